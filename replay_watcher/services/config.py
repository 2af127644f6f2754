"""Configuration service for managing watcher settings."""

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any

import structlog

from ..models import WatcherConfig
from .errors import ConfigurationError

log = structlog.stdlib.get_logger()

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
MAX_DELAY_SECONDS = 300.0
MAX_RETRIES = 100

_RETRY_FIELDS = ("download_retries", "poll_retries")
_DELAY_FIELDS = (
    "download_retry_delay",
    "download_initial_delay",
    "poll_retry_delay",
    "poll_initial_delay",
    "reconnect_delay",
)
_PATH_FIELDS = ("replay_directory", "lockfile_path")


class ValidationResult:
    """Result of configuration validation."""

    def __init__(self, is_valid: bool, errors: list[str] | None = None) -> None:
        self.is_valid: bool = is_valid
        self.errors: list[str] = errors or []


class ConfigurationService:
    """Service for managing watcher configuration."""

    def __init__(self, config_path: Path | None = None) -> None:
        self.config_path: Path = config_path or Path.home() / ".config" / "rofl-watcher" / "config.json"
        log.info("Configuration service initialized", config_path=str(self.config_path))

    def load_config(self) -> WatcherConfig:
        """Load configuration from file or return default configuration."""
        if not self.config_path.exists():
            log.info("Configuration file not found, using defaults")
            return WatcherConfig()

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                data = json.load(f)

            config = self._dict_to_config(data)
            validation_result = self.validate_config(config)

            if not validation_result.is_valid:
                log.warning("Invalid configuration loaded, using defaults", errors=validation_result.errors)
                return WatcherConfig()

            log.info("Configuration loaded successfully")
            return config

        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            log.error("Failed to load configuration, using defaults", error=str(e))
            return WatcherConfig()

    def save_config(self, config: WatcherConfig) -> None:
        """Save configuration to file."""
        validation_result = self.validate_config(config)
        if not validation_result.is_valid:
            raise ConfigurationError(
                f"Invalid configuration: {', '.join(validation_result.errors)}",
                current_value=validation_result.errors,
            )

        self.config_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            data = self._config_to_dict(config)
            with open(self.config_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)

            log.info("Configuration saved successfully")

        except OSError as e:
            log.error("Failed to save configuration", error=str(e))
            raise

    def validate_config(self, config: WatcherConfig) -> ValidationResult:
        """Validate configuration settings."""
        errors = []

        for name in _RETRY_FIELDS:
            value = getattr(config, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                errors.append(f"{name} must be a non-negative integer")
            elif value > MAX_RETRIES:
                errors.append(f"{name} should not exceed {MAX_RETRIES}")

        for name in _DELAY_FIELDS:
            value = getattr(config, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                errors.append(f"{name} must be a non-negative number")
            elif value > MAX_DELAY_SECONDS:
                errors.append(f"{name} should not exceed {MAX_DELAY_SECONDS:g} seconds")

        for name in _PATH_FIELDS:
            value = getattr(config, name)
            if value is None:
                continue
            if not isinstance(value, Path):
                errors.append(f"{name} must be a Path object")
            elif not value.is_absolute():
                errors.append(f"{name} must be an absolute path")

        if config.log_level not in VALID_LOG_LEVELS:
            errors.append(f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}")

        return ValidationResult(len(errors) == 0, errors)

    def _config_to_dict(self, config: WatcherConfig) -> dict[str, Any]:
        """Convert WatcherConfig to dictionary for JSON serialization."""
        data = asdict(config)
        for name in _PATH_FIELDS:
            if data[name] is not None:
                data[name] = str(data[name])
        return data

    def _dict_to_config(self, data: dict[str, Any]) -> WatcherConfig:
        """Convert dictionary to WatcherConfig, falling back to defaults for missing keys."""
        if not isinstance(data, dict):
            raise TypeError(f"Expected a JSON object, got {type(data).__name__}")

        defaults = WatcherConfig()
        values: dict[str, Any] = {}

        for name in _PATH_FIELDS:
            raw = data.get(name)
            values[name] = Path(str(raw)).expanduser() if raw else None

        for name in _RETRY_FIELDS:
            raw = data.get(name, getattr(defaults, name))
            values[name] = int(raw) if isinstance(raw, (int, float)) and not isinstance(raw, bool) else getattr(defaults, name)

        for name in _DELAY_FIELDS:
            raw = data.get(name, getattr(defaults, name))
            values[name] = float(raw) if isinstance(raw, (int, float)) and not isinstance(raw, bool) else getattr(defaults, name)

        log_level = data.get("log_level", defaults.log_level)
        values["log_level"] = str(log_level).upper() if isinstance(log_level, str) else defaults.log_level

        return WatcherConfig(**values)
