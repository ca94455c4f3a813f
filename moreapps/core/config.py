"""Settings management for moreapps.

This module provides centralized settings loading from multiple sources:
- YAML/TOML settings files
- Environment variables (.env)
- Default values

Settings describe the environment the catalog pipeline runs in (lookup
endpoint, cache location, logging) and can also carry a default catalog
configuration for the CLI.  They are never consulted implicitly by the
pipeline: callers turn them into a :class:`CatalogConfig` and pass it on.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

try:
    import tomllib  # Python 3.11+
except ImportError:
    import tomli as tomllib  # type: ignore

import yaml
from dotenv import load_dotenv

from moreapps.core.data_models import CatalogConfig, PlatformFilter


@dataclass
class ValidationResult:
    """Result of settings validation."""

    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        """Add an error message."""
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str) -> None:
        """Add a warning message."""
        self.warnings.append(message)

    def __str__(self) -> str:
        """Format validation result as string."""
        lines = []
        if self.errors:
            lines.append("Errors:")
            lines.extend(f"  - {e}" for e in self.errors)
        if self.warnings:
            lines.append("Warnings:")
            lines.extend(f"  - {w}" for w in self.warnings)
        if not lines:
            return "Configuration is valid."
        return "\n".join(lines)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return [str(item) for item in value]


class Settings:
    """Settings manager for moreapps."""

    def __init__(self, config_file: Optional[str] = None):
        """
        Initialize settings.

        Args:
            config_file: Path to YAML or TOML settings file (optional)
        """
        self.logger = logging.getLogger(self.__class__.__name__)
        self._config: Dict[str, Any] = {}
        self._config_file = config_file

        # Load .env file if it exists
        env_path = Path(".env")
        if env_path.exists():
            load_dotenv(env_path)
            self.logger.info("Loaded environment variables from .env")

        if config_file:
            self._load_config_file(config_file)
        else:
            self._auto_load_config()

        self._load_defaults()

    def _load_config_file(self, config_file: str) -> None:
        """Load settings from YAML or TOML file."""
        config_path = Path(config_file)

        if not config_path.exists():
            self.logger.warning(f"Config file not found: {config_file}")
            return

        try:
            with open(config_path, "rb") as f:
                if config_file.endswith((".yaml", ".yml")):
                    self._config = yaml.safe_load(f) or {}
                    self.logger.info(f"Loaded YAML config from {config_file}")
                elif config_file.endswith(".toml"):
                    self._config = tomllib.load(f)
                    self.logger.info(f"Loaded TOML config from {config_file}")
                else:
                    self.logger.error(f"Unsupported config format: {config_file}")
        except (OSError, yaml.YAMLError, tomllib.TOMLDecodeError) as e:
            self.logger.error(f"Failed to load config file {config_file}: {e}")

        if not isinstance(self._config, dict):
            self.logger.error(f"Config file {config_file} must contain a mapping")
            self._config = {}

    def _auto_load_config(self) -> None:
        """Automatically find and load a settings file."""
        config_dir = Path("config")

        candidates = [
            config_dir / "moreapps.yaml",
            config_dir / "moreapps.yml",
            config_dir / "moreapps.toml",
            Path("moreapps.yaml"),
            Path("moreapps.yml"),
            Path("moreapps.toml"),
        ]

        for candidate in candidates:
            if candidate.exists():
                self._load_config_file(str(candidate))
                return

        self.logger.debug("No config file found, using defaults and environment variables")

    def _load_defaults(self) -> None:
        """Load default settings values."""
        defaults = {
            "logging": {
                "level": "INFO",
                "file": "",
                "json": False,
            },
            "lookup": {
                "endpoint": "https://itunes.apple.com/lookup",
                "timeout_seconds": 10,
                "max_retries": 1,
                "user_agent": "moreapps/0.1",
                "default_country": "",
            },
            "cache": {"path": "", "ttl_seconds": 86400},
            "catalog": {
                "developer_id": "",
                "bundle_id": "",
                "exclude_bundle_ids": [],
                "platform_filter": "all",
                "region_fallback": True,
                "show_current_app": False,
            },
        }

        # Merge defaults with loaded config (loaded config takes precedence)
        for key, value in defaults.items():
            if key not in self._config:
                self._config[key] = value
            elif isinstance(value, dict):
                self._config[key] = {**value, **(self._config.get(key) or {})}

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a settings value.

        Supports dot notation for nested keys: "lookup.endpoint"

        Args:
            key: Settings key (supports dot notation)
            default: Default value if key not found

        Returns:
            Settings value or default
        """
        # Environment variables have the highest priority
        env_key = key.upper().replace(".", "_")
        env_value = os.getenv(env_key)
        if env_value is not None:
            return env_value

        keys = key.split(".")
        value: Any = self._config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """
        Set a settings value at runtime.

        Args:
            key: Settings key (supports dot notation)
            value: Value to set
        """
        keys = key.split(".")
        config = self._config

        for k in keys[:-1]:
            if k not in config:
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value
        self.logger.debug(f"Set config {key} = {value}")

    def get_section(self, section: str) -> Dict[str, Any]:
        """
        Get an entire settings section.

        Args:
            section: Section name (e.g., "lookup", "cache")

        Returns:
            Dictionary with section settings
        """
        return self._config.get(section, {})

    def get_int(self, key: str, default: int) -> int:
        """Get a value as int, falling back to ``default`` if malformed."""
        value = self.get(key, default)
        try:
            return int(value)
        except (TypeError, ValueError):
            self.logger.warning(f"Invalid integer for {key}: {value!r}, using {default}")
            return default

    def get_float(self, key: str, default: float) -> float:
        """Get a value as float, falling back to ``default`` if malformed."""
        value = self.get(key, default)
        try:
            return float(value)
        except (TypeError, ValueError):
            self.logger.warning(f"Invalid number for {key}: {value!r}, using {default}")
            return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        """Get a value as bool; strings like "true"/"1"/"yes" count as True."""
        return _as_bool(self.get(key, default))

    def get_list(self, key: str) -> List[str]:
        """Get a value as a list of strings; comma-separated strings are split."""
        return _as_list(self.get(key))

    def cache_path(self) -> Optional[Path]:
        """Configured cache document path, or None for the platform default."""
        path = self.get("cache.path", "")
        return Path(path).expanduser() if path else None

    def bundle_id(self) -> Optional[str]:
        """Bundle id of the running app, if configured."""
        return self.get("catalog.bundle_id", "") or None

    def to_catalog_config(self, **overrides: Any) -> CatalogConfig:
        """
        Build a catalog configuration from the ``catalog`` section.

        Args:
            **overrides: CatalogConfig fields that replace settings values

        Returns:
            CatalogConfig instance

        Raises:
            ValueError: If no developer id is configured or a value is invalid
        """
        values: Dict[str, Any] = {
            "developer_id": str(self.get("catalog.developer_id", "") or ""),
            "exclude_bundle_ids": frozenset(self.get_list("catalog.exclude_bundle_ids")),
            "platform_filter": PlatformFilter(str(self.get("catalog.platform_filter", "all")).lower()),
            "cache_ttl": self.get_float("cache.ttl_seconds", 86400),
            "region_fallback": self.get_bool("catalog.region_fallback", True),
            "show_current_app": self.get_bool("catalog.show_current_app", False),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return CatalogConfig(**values)

    def to_dict(self) -> Dict[str, Any]:
        """
        Get all settings as dictionary.

        Returns:
            Complete settings dictionary
        """
        return self._config.copy()

    def reload(self, config_file: Optional[str] = None) -> None:
        """
        Reload settings from file.

        Args:
            config_file: Path to settings file (optional, uses original if not provided)
        """
        self._config = {}
        config_file = config_file or self._config_file
        if config_file:
            self._load_config_file(config_file)
        else:
            self._auto_load_config()
        self._load_defaults()
        self.logger.info("Configuration reloaded")

    def validate(self) -> ValidationResult:
        """
        Validate the settings.

        Returns:
            ValidationResult with errors and warnings
        """
        result = ValidationResult(is_valid=True)

        log_level = str(self.get("logging.level", "INFO"))
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if log_level.upper() not in valid_levels:
            result.add_error(
                f"Invalid logging level '{log_level}'. Must be one of: {', '.join(valid_levels)}"
            )

        endpoint = str(self.get("lookup.endpoint", ""))
        if not endpoint.startswith(("http://", "https://")):
            result.add_error("lookup.endpoint must be an http(s) URL")

        try:
            timeout = float(self.get("lookup.timeout_seconds", 10))
        except (TypeError, ValueError):
            timeout = -1
        if timeout <= 0:
            result.add_error("lookup.timeout_seconds must be a positive number")

        try:
            max_retries = int(self.get("lookup.max_retries", 1))
        except (TypeError, ValueError):
            max_retries = 0
        if max_retries < 1:
            result.add_error("lookup.max_retries must be a positive integer")

        country = str(self.get("lookup.default_country", "") or "")
        if country and (len(country) != 2 or not country.isalpha()):
            result.add_error("lookup.default_country must be a two-letter country code")

        try:
            ttl = float(self.get("cache.ttl_seconds", 86400))
        except (TypeError, ValueError):
            ttl = -1
        if ttl < 0:
            result.add_error("cache.ttl_seconds must be a non-negative number")
        elif ttl == 0:
            result.add_warning("cache.ttl_seconds is 0, every load will hit the network")

        platform_filter = str(self.get("catalog.platform_filter", "all")).lower()
        valid_filters = [f.value for f in PlatformFilter]
        if platform_filter not in valid_filters:
            result.add_error(
                f"Invalid catalog.platform_filter '{platform_filter}'. "
                f"Must be one of: {', '.join(valid_filters)}"
            )

        if not self.get("catalog.developer_id"):
            result.add_warning("catalog.developer_id is not set; pass --developer to the CLI")

        if not result.is_valid:
            for error in result.errors:
                self.logger.error(f"Config validation error: {error}")
        for warning in result.warnings:
            self.logger.warning(f"Config validation warning: {warning}")

        return result

    def validate_and_raise(self) -> None:
        """
        Validate settings and raise exception if invalid.

        Raises:
            ValueError: If settings are invalid
        """
        result = self.validate()
        if not result.is_valid:
            raise ValueError(f"Invalid configuration:\n{result}")


# Global settings instance
_global_settings: Optional[Settings] = None


def get_settings(config_file: Optional[str] = None) -> Settings:
    """
    Get the global settings instance.

    Args:
        config_file: Path to settings file (only used on first call)

    Returns:
        Settings instance
    """
    global _global_settings

    if _global_settings is None:
        _global_settings = Settings(config_file)

    return _global_settings


def reload_settings(config_file: Optional[str] = None) -> None:
    """
    Reload global settings.

    Args:
        config_file: Path to settings file (optional)
    """
    global _global_settings

    if _global_settings is not None:
        _global_settings.reload(config_file)
    else:
        _global_settings = Settings(config_file)
