"""
Configuration for the filedrop pipeline.

Values come from (lowest to highest precedence):
1. PipelineConfig defaults
2. A YAML file (either a bare mapping or nested under a `filedrop:` key)
3. FILEDROP_* environment variables
4. Command-line flags (applied by filedrop.cli)
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

logger = logging.getLogger(__name__)

PROBER_KINDS = ("lock", "size")

# Environment variable -> config field
ENV_OVERRIDES = {
    "FILEDROP_WATCH_DIR": "watch_dir",
    "FILEDROP_PATTERN": "pattern",
    "FILEDROP_RECURSIVE": "recursive",
    "FILEDROP_MAX_ATTEMPTS": "max_attempts",
    "FILEDROP_RETRY_DELAY_MS": "retry_delay_ms",
    "FILEDROP_PROCESS_EXISTING": "process_existing",
    "FILEDROP_IGNORE_TEMPORARY": "ignore_temporary",
    "FILEDROP_PROBER": "prober",
    "FILEDROP_LOG_DIR": "log_dir",
    "FILEDROP_LOG_LEVEL": "log_level",
}

_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off", ""}


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise ValueError(f"Not a boolean: {value!r}")


@dataclass
class PipelineConfig:
    """Settings for watching, retrying, and logging."""

    # Watching
    watch_dir: Path = field(default_factory=lambda: Path.cwd() / "incoming")
    pattern: str = "*"
    recursive: bool = False
    process_existing: bool = False  # Enqueue matching files already present at start
    ignore_temporary: bool = True  # Skip editor/tool artefacts (*.tmp, *~, ...)

    # Stability probing
    max_attempts: int = 5
    retry_delay_ms: int = 5000
    prober: str = "lock"
    settle_seconds: float = 1.0  # Only used by the "size" prober

    # Logging
    log_dir: Optional[Path] = None
    log_level: str = "INFO"

    @property
    def retry_delay(self) -> float:
        """Delay between probes in seconds."""
        return self.retry_delay_ms / 1000.0

    def validate(self) -> "PipelineConfig":
        """
        Check value ranges.

        Raises:
        -------
        ValueError: If any setting is out of range
        """
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.retry_delay_ms < 0:
            raise ValueError("retry_delay_ms must not be negative")
        if self.prober not in PROBER_KINDS:
            raise ValueError(f"prober must be one of {PROBER_KINDS}, got {self.prober!r}")
        if self.settle_seconds <= 0:
            raise ValueError("settle_seconds must be positive")
        if not self.pattern:
            raise ValueError("pattern must not be empty")
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"Unknown log level: {self.log_level!r}")
        return self

    def update(self, values: Mapping[str, Any]) -> "PipelineConfig":
        """Apply raw values (strings allowed), coercing to field types."""
        known = {f.name for f in fields(self)}
        for key, raw in values.items():
            if key not in known:
                logger.warning(f"Ignoring unknown config key: {key}")
                continue
            if raw is None:
                if key == "log_dir":
                    self.log_dir = None
                continue
            setattr(self, key, _coerce(key, raw))
        return self


def _coerce(key: str, raw: Any) -> Any:
    if key in ("watch_dir", "log_dir"):
        return Path(str(raw)).expanduser()
    if key in ("recursive", "process_existing", "ignore_temporary"):
        return _to_bool(raw)
    if key in ("max_attempts", "retry_delay_ms"):
        return int(raw)
    if key == "settle_seconds":
        return float(raw)
    return str(raw)


def load_config(config_path: Optional[Path] = None) -> PipelineConfig:
    """
    Load configuration from a YAML file.

    Args:
        config_path: Path to the YAML file (None or missing file -> defaults)

    Returns:
        PipelineConfig with values from the file

    Raises:
        ValueError: If the file is not a mapping
    """
    config = PipelineConfig()

    if config_path is None or not config_path.exists():
        return config

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {config_path}")

    section = data.get("filedrop", data)
    if not isinstance(section, dict):
        raise ValueError(f"'filedrop' section must be a mapping: {config_path}")

    config.update(section)
    logger.debug(f"Loaded config from {config_path}")
    return config


def apply_env_overrides(
    config: PipelineConfig, environ: Optional[Mapping[str, str]] = None
) -> PipelineConfig:
    """Override config fields from FILEDROP_* environment variables."""
    environ = os.environ if environ is None else environ
    overrides = {
        field_name: environ[var]
        for var, field_name in ENV_OVERRIDES.items()
        if var in environ
    }
    return config.update(overrides)


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    return Path("~/.config/filedrop/config.yaml").expanduser()
