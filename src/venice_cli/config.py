"""Configuration management for venice-cli.

Config discovery (first match wins):
  1. ``--config`` flag
  2. ``./venice.yaml``
  3. ``~/.venice/config.yaml``
  4. Built-in defaults

The API key is read from ``VENICE_API_KEY`` before the config file.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

_logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".venice"
CONFIG_FILENAME = "config.yaml"
API_KEY_ENV = "VENICE_API_KEY"


class VeniceConfig(BaseModel):
    api_key: str | None = None
    base_url: str = "https://api.venice.ai/api/v1"
    default_model: str = "llama-3.3-70b"
    request_timeout: float = Field(default=120.0, gt=0)  # per attempt, seconds
    stream_read_timeout: float = Field(default=60.0, gt=0)
    probe_timeout: float = Field(default=5.0, gt=0)
    max_attempts: int = Field(default=4, ge=1)
    retry_base_delay: float = Field(default=1.0, ge=0)
    stream: bool = True
    show_usage: bool = True
    db_path: str = "~/.venice/venice.db"  # history and usage logs


def _search_paths() -> list[Path]:
    return [Path.cwd() / "venice.yaml", CONFIG_DIR / CONFIG_FILENAME]


def default_config_path() -> Path:
    """The file ``load_config()`` would read, or the user config when none exists."""
    return next((p for p in _search_paths() if p.exists()), CONFIG_DIR / CONFIG_FILENAME)


def load_config(
    config_path: str | Path | None = None,
) -> tuple[VeniceConfig, Path | None]:
    """Load configuration from a YAML file.

    Returns ``(config, resolved_path)``; *resolved_path* is ``None`` when no
    file was found and built-in defaults are used.  An explicit path that
    does not exist raises ``FileNotFoundError``.
    """
    if config_path is not None:
        resolved = Path(config_path).expanduser()
        if not resolved.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        resolved = next((p for p in _search_paths() if p.exists()), None)

    if resolved is None:
        _logger.info("No config file found, using defaults")
        return VeniceConfig(), None

    _logger.info("Loading config from %s", resolved)
    with open(resolved) as f:
        raw: dict[str, Any] = yaml.safe_load(f) or {}
    return VeniceConfig.model_validate(raw), resolved.resolve()


class ConfigStore:
    """YAML-backed key-value store behind ``venice config get/set/unset``.

    Values are validated and coerced through ``VeniceConfig`` so that
    ``set("show_usage", "false")`` stores a boolean.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path).expanduser() if path else default_config_path()

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        with open(self.path) as f:
            return yaml.safe_load(f) or {}

    def _write(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
        with open(self.path, "w") as f:
            yaml.safe_dump(data, f, sort_keys=True)
        os.chmod(self.path, 0o600)

    def get(self, key: str) -> Any:
        return self._read().get(key)

    def set(self, key: str, value: Any) -> Any:
        """Validate and store *value*; returns the coerced value."""
        if key not in VeniceConfig.model_fields:
            raise KeyError(f"Unknown config key: {key}")
        data = self._read()
        candidate = {**data, key: value}
        try:
            validated = VeniceConfig.model_validate(candidate)
        except ValidationError as e:
            raise ValueError(f"Invalid value for {key}: {value!r}") from e
        data[key] = getattr(validated, key)
        self._write(data)
        return data[key]

    def delete(self, key: str) -> bool:
        data = self._read()
        if key not in data:
            return False
        del data[key]
        self._write(data)
        return True

    def all(self) -> dict[str, Any]:
        return self._read()

    def load(self) -> VeniceConfig:
        return VeniceConfig.model_validate(self._read())


class EnvCredentials:
    """API key from ``VENICE_API_KEY``, falling back to the loaded config."""

    def __init__(self, config: VeniceConfig | None = None) -> None:
        self._config = config or VeniceConfig()

    def current_api_key(self) -> str | None:
        return os.environ.get(API_KEY_ENV) or self._config.api_key or None
