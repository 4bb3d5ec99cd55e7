"""
Pytest fixtures for filedrop tests.

Fixtures are organized by test category:
- pipeline.py: drop directory, scripted probers, recording callbacks, worker factory
"""
