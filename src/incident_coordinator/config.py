"""Application configuration management."""
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_TICK_SECONDS = 60.0
DEFAULT_THRESHOLD_SECONDS = 300.0


class ConfigError(Exception):
    """Raised when the configuration file cannot be read or is malformed."""

    pass


class EscalationConfig:
    """Settings for the escalation sweep."""

    def __init__(
        self,
        tick_seconds: float = DEFAULT_TICK_SECONDS,
        threshold_seconds: float = DEFAULT_THRESHOLD_SECONDS,
        enabled: bool = True,
    ):
        """
        Args:
            tick_seconds: Period between two sweeps
            threshold_seconds: How long an incident may stay unacknowledged
                               before each sweep escalates it
            enabled: Whether the sweep runs at all
        """
        if tick_seconds <= 0:
            raise ConfigError("tick_seconds must be positive")
        if threshold_seconds < 0:
            raise ConfigError("threshold_seconds must not be negative")

        self.tick_seconds = tick_seconds
        self.threshold_seconds = threshold_seconds
        self.enabled = enabled

    def __repr__(self) -> str:
        return (
            f"EscalationConfig(tick_seconds={self.tick_seconds}, "
            f"threshold_seconds={self.threshold_seconds}, enabled={self.enabled})"
        )


def get_config_path() -> Path:
    """
    Get the coordinator configuration file path.

    Priority order:
    1. COORDINATOR_CONFIG_PATH environment variable
    2. /config/coordinator.yaml (Docker/Kubernetes mount)
    3. Default: <project_root>/coordinator.yaml

    Returns:
        Path: The resolved path to the configuration file
    """
    env_path = os.getenv("COORDINATOR_CONFIG_PATH")
    if env_path:
        return Path(env_path)

    docker_path = Path("/config/coordinator.yaml")
    if docker_path.exists():
        return docker_path

    return Path(__file__).parent.parent.parent / "coordinator.yaml"


def load_config_file(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Read the YAML configuration file.

    A missing file is not an error; it yields an empty configuration.

    Raises:
        ConfigError: If the file exists but cannot be parsed
    """
    path = config_path or get_config_path()
    if not path.exists():
        logger.debug(f"No configuration file at {path}, using defaults")
        return {}

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to load config from {path}: {e}")

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def get_escalation_config(config_path: Optional[Path] = None) -> EscalationConfig:
    """
    Build the escalation settings.

    Values from the `escalation:` section of the YAML file are overridden by
    ESCALATION_TICK_SECONDS, ESCALATION_THRESHOLD_SECONDS and
    ESCALATION_ENABLED.

    Returns:
        EscalationConfig: The resolved settings
    """
    section = load_config_file(config_path).get("escalation") or {}

    tick = os.getenv("ESCALATION_TICK_SECONDS", section.get("tick_seconds", DEFAULT_TICK_SECONDS))
    threshold = os.getenv(
        "ESCALATION_THRESHOLD_SECONDS",
        section.get("threshold_seconds", DEFAULT_THRESHOLD_SECONDS),
    )
    enabled = os.getenv("ESCALATION_ENABLED", section.get("enabled", True))

    try:
        return EscalationConfig(
            tick_seconds=float(tick),
            threshold_seconds=float(threshold),
            enabled=_parse_bool(enabled),
        )
    except ValueError as e:
        raise ConfigError(f"Invalid escalation configuration: {e}")


def get_log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").upper()
