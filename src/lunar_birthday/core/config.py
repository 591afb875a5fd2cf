"""
Configuration management with YAML and environment variable support.

Environment variables take precedence over YAML configuration.
Sensitive values are automatically masked in logs.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from lunar_birthday.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "LUNAR_BIRTHDAY_"

# Patterns for sensitive keys that should be masked in logs
SENSITIVE_PATTERNS = [
    re.compile(r".*client[_-]?id.*", re.IGNORECASE),
    re.compile(r".*token.*", re.IGNORECASE),
    re.compile(r".*secret.*", re.IGNORECASE),
    re.compile(r".*credential.*", re.IGNORECASE),
]

# Default configuration paths
DEFAULT_CONFIG_PATHS = [
    Path("lunar_birthday.yaml"),
    Path("lunar_birthday.yml"),
    Path("config/lunar_birthday.yaml"),
    Path.home() / ".lunar_birthday" / "config.yaml",
]

DEFAULT_TENANT_ID = "common"
DEFAULT_SCOPES = ["user.read", "calendars.readwrite"]
DEFAULT_TOKEN_CACHE_PATH = Path.home() / ".lunar_birthday" / "msal_token_cache.json"


def _is_sensitive_key(key: str) -> bool:
    """Check if a key contains sensitive information."""
    return any(pattern.match(key) for pattern in SENSITIVE_PATTERNS)


def _mask_value(value: Any) -> str:
    """Mask sensitive values for logging."""
    if value is None:
        return "None"
    str_value = str(value)
    if len(str_value) <= 8:
        return "***"
    return f"{str_value[:4]}...{str_value[-4:]}"


@dataclass(frozen=True)
class GraphSettings:
    """Application identity used to sign in to Microsoft Graph."""

    client_id: str
    tenant_id: str
    scopes: tuple[str, ...]

    def validate(self) -> None:
        """
        Check that every setting is present.

        Raises:
            ConfigurationError: If the client id, tenant id or scopes are missing
        """
        missing = []
        if not self.client_id or not str(self.client_id).strip():
            missing.append("graph.client_id")
        if not self.tenant_id or not str(self.tenant_id).strip():
            missing.append("graph.tenant_id")
        if not self.scopes or not all(str(s).strip() for s in self.scopes):
            missing.append("graph.scopes")
        if missing:
            raise ConfigurationError(
                "Graph settings are incomplete",
                details={"missing": missing},
            )

    @property
    def authority(self) -> str:
        return f"https://login.microsoftonline.com/{self.tenant_id}"


class Config:
    """
    YAML + environment variable integrated configuration management.

    Environment variables take precedence over YAML values.
    Supports nested key access with dot notation (e.g., "graph.client_id").

    Usage:
        config = Config()
        settings = config.graph_settings
        horizon = config.get("sync.horizon", default=120)
    """

    def __init__(self, config_path: Path | str | None = None, env_file: Path | str | None = None):
        """
        Initialize configuration.

        Args:
            config_path: Path to YAML config file. If None, searches default locations.
            env_file: Path to .env file. If None, searches current directory.
        """
        env_path = Path(env_file) if env_file else None
        load_dotenv(dotenv_path=env_path, override=False)

        self._config: dict[str, Any] = {}
        self._config_path: Path | None = None

        self._load_yaml(config_path)

        logger.debug("Configuration initialized from: %s", self._config_path or "defaults only")

    def _load_yaml(self, config_path: Path | str | None = None) -> None:
        """Load YAML configuration file."""
        if config_path:
            path = Path(config_path)
            if not path.exists():
                raise ConfigurationError(f"Configuration file not found: {path}")
            self._config_path = path
        else:
            for default_path in DEFAULT_CONFIG_PATHS:
                if default_path.exists():
                    self._config_path = default_path
                    break

        if self._config_path:
            try:
                with self._config_path.open("r", encoding="utf-8") as f:
                    loaded = yaml.safe_load(f)
                    if loaded:
                        if not isinstance(loaded, dict):
                            raise ConfigurationError(
                                f"Top level of {self._config_path} must be a mapping"
                            )
                        self._config = loaded
                logger.info("Loaded configuration from: %s", self._config_path)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {self._config_path}: {e}") from e
            except OSError as e:
                raise ConfigurationError(f"Failed to read {self._config_path}: {e}") from e

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value.

        Environment variables take precedence over YAML.
        Supports dot notation for nested keys (e.g., "graph.client_id").

        Environment variable mapping:
            "graph.client_id" -> LUNAR_BIRTHDAY_GRAPH_CLIENT_ID

        Args:
            key: Configuration key (dot notation supported)
            default: Default value if key not found

        Returns:
            Configuration value
        """
        env_key = f"{ENV_PREFIX}{key.upper().replace('.', '_')}"
        env_value = os.getenv(env_key)

        if env_value is not None:
            value = self._parse_env_value(env_value)
            if _is_sensitive_key(key):
                logger.debug("Config %s from env: %s", key, _mask_value(value))
            else:
                logger.debug("Config %s from env: %s", key, value)
            return value

        value = self._get_nested(key)
        if value is not None:
            if _is_sensitive_key(key):
                logger.debug("Config %s from yaml: %s", key, _mask_value(value))
            else:
                logger.debug("Config %s from yaml: %s", key, value)
            return value

        return default

    def get_list(self, key: str, default: list[str] | None = None) -> list[str]:
        """
        Get a list value. Comma-separated strings (typical for env vars) are split.

        Args:
            key: Configuration key
            default: Value returned when the key is unset

        Returns:
            List of stripped, non-empty strings
        """
        value = self.get(key)
        if value is None:
            return list(default or [])
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        if isinstance(value, (list, tuple)):
            return [str(part).strip() for part in value if str(part).strip()]
        raise ConfigurationError(f"Config {key} must be a list or comma-separated string")

    def get_int(self, key: str, default: int) -> int:
        """Get an integer value, raising ConfigurationError on junk."""
        value = self.get(key, default)
        if isinstance(value, bool):
            raise ConfigurationError(f"Config {key} must be an integer, got {value!r}")
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Config {key} must be an integer, got {value!r}") from e

    def _get_nested(self, key: str) -> Any:
        """Get nested value from config dict using dot notation."""
        parts = key.split(".")
        value = self._config

        for part in parts:
            if isinstance(value, dict):
                value = value.get(part)
            else:
                return None
            if value is None:
                return None

        return value

    @staticmethod
    def _parse_env_value(value: str) -> Any:
        """Parse environment variable string to appropriate type."""
        if value.lower() in ("true", "yes", "on"):
            return True
        if value.lower() in ("false", "no", "off"):
            return False

        try:
            return int(value)
        except ValueError:
            pass

        return value

    @property
    def graph_settings(self) -> GraphSettings:
        """
        Build and validate the Graph sign-in settings.

        Raises:
            ConfigurationError: If any required setting is missing
        """
        client_id = self.get("graph.client_id")
        settings = GraphSettings(
            client_id=str(client_id) if client_id is not None else "",
            tenant_id=str(self.get("graph.tenant_id", DEFAULT_TENANT_ID)),
            scopes=tuple(self.get_list("graph.scopes", DEFAULT_SCOPES)),
        )
        settings.validate()
        logger.debug(
            "Graph settings: client_id=%s tenant=%s scopes=%s",
            _mask_value(settings.client_id),
            settings.tenant_id,
            ",".join(settings.scopes),
        )
        return settings

    @property
    def token_cache_path(self) -> Path:
        """Get the MSAL token cache file path."""
        value = self.get("graph.token_cache_path")
        return Path(value).expanduser() if value else DEFAULT_TOKEN_CACHE_PATH

    @property
    def config_path(self) -> Path | None:
        return self._config_path

    def __repr__(self) -> str:
        return f"Config(path={self._config_path})"
