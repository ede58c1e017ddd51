"""Configuration Manager - Two-Tier Configuration System.

Provides:
1. Static configuration loaded at startup from TOML + environment (restart required)
2. Dynamic configuration seeded the same way but updatable at runtime
3. A subscriber hook so components (poll scheduler, aggregator) can react
   to dynamic updates without a restart

Precedence for both tiers: code defaults < TOML file < environment variables.
Environment variables use the SERVERPULSE_ prefix with dots replaced by
underscores (SERVERPULSE_FIVEM_SERVER_HOST overrides fivem.server_host).
The legacy FIVEM_SERVER_IP / FIVEM_SERVER_PORT variables are honoured too.
"""

import asyncio
import os
import tomllib
from collections.abc import Callable
from pathlib import Path
from typing import Any, Optional

import structlog
from dotenv import load_dotenv

from .registry import (
    get_config_key,
    get_default_values,
    get_dynamic_keys,
    get_static_keys,
    validate_config_value,
)

logger = structlog.get_logger(__name__)

ENV_PREFIX = "SERVERPULSE_"

# Variable names used by older deployments
LEGACY_ENV_KEYS = {
    "fivem.server_host": "FIVEM_SERVER_IP",
    "fivem.server_port": "FIVEM_SERVER_PORT",
}


def env_var_for(key: str) -> str:
    return ENV_PREFIX + key.replace(".", "_").upper()


class ConfigManager:
    """Manages two-tier configuration system with hot-reload support.

    Attributes:
        static_config: Static configuration (restart required)
        dynamic_config: Dynamic configuration (hot-reloadable)
        _subscribers: Callbacks notified on dynamic updates
    """

    def __init__(self, config_file: Optional[Path] = None, env_file: Optional[Path] = None):
        """Initialize configuration manager.

        Args:
            config_file: Path to TOML config file (default: config/default.toml)
            env_file: Path to .env file (default: .env in working directory)
        """
        self.static_config: dict[str, Any] = {}
        self.dynamic_config: dict[str, Any] = {}
        self._subscribers: list[Callable[[str, Any], Any]] = []

        self.config_file = config_file if config_file is not None else Path("config/default.toml")
        self.env_file = env_file if env_file is not None else Path(".env")

        logger.info("config_manager_initialized",
                    config_file=str(self.config_file),
                    env_file=str(self.env_file))

    def load(self) -> None:
        """Load both tiers from defaults, the TOML file and the environment."""
        if self.env_file.exists():
            load_dotenv(self.env_file)
            logger.info("env_file_loaded", env_file=str(self.env_file))

        flattened = self._read_toml()
        self.static_config = self._resolve_tier(get_static_keys(), flattened, "static")
        self.dynamic_config = self._resolve_tier(get_dynamic_keys(), flattened, "dynamic")
        logger.info(
            "config_loaded",
            static_keys=len(self.static_config),
            dynamic_keys=len(self.dynamic_config),
        )

    def _read_toml(self) -> dict[str, Any]:
        if not self.config_file.exists():
            logger.warning("config_file_not_found",
                           config_file=str(self.config_file),
                           using_defaults=True)
            return {}

        with open(self.config_file, "rb") as f:
            toml_data = tomllib.load(f)
        flattened = self._flatten_toml(toml_data)
        logger.info("toml_config_loaded", keys_count=len(flattened))
        return flattened

    def _resolve_tier(self, keys: list[str], flattened: dict[str, Any], tier: str) -> dict[str, Any]:
        """Apply defaults < TOML < env for ``keys`` and validate the result.

        Raises:
            ValueError: If an env value cannot be parsed or a value fails validation
        """
        defaults = get_default_values()
        config = {key: defaults[key] for key in keys}

        for key in keys:
            if key in flattened:
                config[key] = flattened[key]

        for key in keys:
            env_key = env_var_for(key)
            env_value = os.getenv(env_key)
            if env_value is None and key in LEGACY_ENV_KEYS:
                env_key = LEGACY_ENV_KEYS[key]
                env_value = os.getenv(env_key)
            if env_value is None:
                continue
            try:
                config[key] = self._parse_env_value(env_value, get_config_key(key).value_type)
            except ValueError as e:
                logger.error("env_parse_error", key=key, env_key=env_key, error=str(e))
                raise ValueError(f"Failed to parse env var {env_key}: {e}") from e
            logger.info("env_override_applied", key=key, env_key=env_key)

        for key, value in config.items():
            is_valid, error_msg = validate_config_value(key, value)
            if not is_valid:
                logger.error("config_validation_failed", tier=tier, key=key, error=error_msg)
                raise ValueError(f"{tier.capitalize()} config validation failed for '{key}': {error_msg}")

        return config

    async def update_dynamic_config(self, key: str, value: Any) -> None:
        """Update a dynamic configuration value and notify subscribers.

        Raises:
            KeyError: If key is not a dynamic config key
            ValueError: If value validation fails
        """
        config_key_def = get_config_key(key)

        if config_key_def.tier != "dynamic":
            raise KeyError(f"Cannot hot-update static config key '{key}' - restart required")

        is_valid, error_msg = validate_config_value(key, value)
        if not is_valid:
            raise ValueError(f"Config validation failed for '{key}': {error_msg}")

        old_value = self.dynamic_config.get(key)
        self.dynamic_config[key] = value
        logger.info("dynamic_config_updated", key=key, old_value=old_value, new_value=value)

        await self._notify_subscribers(key, value)

    async def _notify_subscribers(self, key: str, value: Any) -> None:
        for subscriber in self._subscribers:
            try:
                result = subscriber(key, value)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error("subscriber_notification_failed",
                             key=key,
                             subscriber=getattr(subscriber, "__name__", repr(subscriber)),
                             error=str(e))

    def subscribe(self, callback: Callable[[str, Any], Any]) -> None:
        """Subscribe to dynamic configuration updates.

        Args:
            callback: Called as callback(key, value); may be sync or async
        """
        self._subscribers.append(callback)
        logger.info("config_subscriber_added", callback=getattr(callback, "__name__", repr(callback)))

    def get(self, key: str) -> Any:
        """Get configuration value (static or dynamic).

        Raises:
            KeyError: If key not found
        """
        config_key_def = get_config_key(key)

        if config_key_def.tier == "static":
            return self.static_config.get(key, config_key_def.default)
        return self.dynamic_config.get(key, config_key_def.default)

    @property
    def game_server_address(self) -> str:
        return f"{self.get('fivem.server_host')}:{self.get('fivem.server_port')}"

    def _flatten_toml(self, data: dict) -> dict[str, Any]:
        """Flatten nested TOML structure to dotted keys.

        Example: {"fivem": {"server_host": "..."}} -> {"fivem.server_host": "..."}
        """
        result = {}

        def _flatten(d: dict, prefix: str = ""):
            for key, value in d.items():
                full_key = f"{prefix}.{key}" if prefix else key
                if isinstance(value, dict):
                    _flatten(value, full_key)
                else:
                    result[full_key] = value

        _flatten(data)
        return result

    def _parse_env_value(self, value: str, target_type: type) -> Any:
        """Parse environment variable string to target type.

        Raises:
            ValueError: If parsing fails
        """
        if target_type == bool:
            return value.lower() in ("true", "1", "yes", "on")
        elif target_type == int:
            return int(value)
        elif target_type == float:
            return float(value)
        elif target_type == list:
            return [item.strip() for item in value.split(",")]
        elif target_type == str:
            return value
        else:
            raise ValueError(f"Unsupported type for env parsing: {target_type}")


# Global instance (initialized by the application entry point)
_config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """Get global config manager instance.

    Raises:
        RuntimeError: If config manager not initialized
    """
    if _config_manager is None:
        raise RuntimeError("ConfigManager not initialized. Call initialize_config() first.")
    return _config_manager


def initialize_config(config_file: Optional[Path] = None,
                      env_file: Optional[Path] = None) -> ConfigManager:
    """Create, load and install the global configuration manager."""
    global _config_manager
    _config_manager = ConfigManager(config_file, env_file)
    _config_manager.load()
    return _config_manager
