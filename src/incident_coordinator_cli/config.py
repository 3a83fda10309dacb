"""Persistent CLI settings: coordinator URL, API key and default responder."""

import os
import yaml
from pathlib import Path
from typing import Dict, Optional, Tuple
from urllib.parse import urlparse


class ConfigError(Exception):
    """Raised when the settings file cannot be read, written or updated."""

    pass


# key -> (environment variable, description)
SETTINGS = {
    "coordinator_url": ("INCIDENT_COORDINATOR_URL", "Base URL of the coordinator API"),
    "api_key": ("INCIDENT_COORDINATOR_API_KEY", "Bearer token sent with every request"),
    "responder": ("INCIDENT_COORDINATOR_RESPONDER", "Default responder and comment author"),
}


def normalize_key(key: str) -> str:
    """Accept dashed keys (coordinator-url) and reject unknown ones."""
    normalized = key.strip().replace("-", "_").lower()
    if normalized not in SETTINGS:
        raise ConfigError(
            f"Unknown configuration key '{key}'. "
            f"Valid keys: {', '.join(sorted(SETTINGS))}"
        )
    return normalized


def _validate_url(value: str) -> str:
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigError(f"Invalid coordinator URL '{value}', expected http(s)://host[:port]")
    return value.rstrip("/")


class Config:
    """
    CLI settings stored in a YAML file, overridable per key by environment
    variables.
    """

    DEFAULT_CONFIG_FILE = Path.home() / ".incident-coordinator" / "config.yaml"

    ENV_VARS = {key: env_var for key, (env_var, _) in SETTINGS.items()}

    def __init__(self, config_file: Optional[Path] = None):
        """
        Args:
            config_file: Settings file (defaults to ~/.incident-coordinator/config.yaml)
        """
        self.config_file = config_file or self.DEFAULT_CONFIG_FILE
        self._stored = self._read()

    def _read(self) -> Dict[str, str]:
        if not self.config_file.exists():
            return {}

        try:
            data = yaml.safe_load(self.config_file.read_text()) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to load config from {self.config_file}: {e}")

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {self.config_file} must contain a mapping")
        return {key: str(value) for key, value in data.items() if key in SETTINGS}

    def _write(self):
        try:
            self.config_file.parent.mkdir(parents=True, exist_ok=True)
            self.config_file.write_text(
                yaml.safe_dump(self._stored, default_flow_style=False)
            )
            # The file may hold an API key
            self.config_file.chmod(0o600)
        except OSError as e:
            raise ConfigError(f"Failed to save config to {self.config_file}: {e}")

    def lookup(self, key: str) -> Tuple[Optional[str], Optional[str]]:
        """
        Resolve a setting.

        Returns:
            The value and its source ("env" or "file"), or (None, None)
        """
        key = normalize_key(key)

        env_value = os.environ.get(self.ENV_VARS[key])
        if env_value:
            return env_value, "env"
        if key in self._stored:
            return self._stored[key], "file"
        return None, None

    def get(self, key: str) -> Optional[str]:
        return self.lookup(key)[0]

    def set(self, key: str, value: str):
        """Store a setting in the file. The coordinator URL must be http(s)."""
        key = normalize_key(key)
        value = value.strip()
        if key == "coordinator_url":
            value = _validate_url(value)

        self._stored[key] = value
        self._write()

    def unset(self, key: str) -> bool:
        """Remove a setting from the file. Returns False if it was not stored."""
        key = normalize_key(key)
        if key not in self._stored:
            return False

        del self._stored[key]
        self._write()
        return True

    def get_all(self) -> Dict[str, str]:
        """Every setting that currently resolves to a value."""
        values = {}
        for key in SETTINGS:
            value, _ = self.lookup(key)
            if value:
                values[key] = value
        return values
