"""
Pytest configuration and fixtures for filedrop tests.

Specialized fixtures are organized in the fixtures/ directory:
- fixtures.pipeline: drop directories, scripted probers, worker factory
"""

# Load fixture modules
pytest_plugins = [
    "tests.fixtures.pipeline",
]
