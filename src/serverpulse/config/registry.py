"""Configuration Registry - Defines all configuration keys with tier classification.

This module provides the ConfigKey dataclass and REGISTRY dictionary that defines
all configuration options available in serverpulse.

Two-Tier System:
- Static Config (tier="static"): Requires restart to apply changes
  Examples: game server address, database path, HTTP binding, log path
- Dynamic Config (tier="dynamic"): Can be hot-reloaded without restart
  Examples: poll interval, timeouts, fallback constants, log verbosity
"""

from dataclasses import dataclass
from typing import Any, Callable, Literal, Optional


@dataclass
class ConfigKey:
    """Defines a single configuration key with validation and tier classification.

    Attributes:
        tier: "static" (restart required) or "dynamic" (hot-reloadable)
        value_type: Expected Python type (str, int, float, bool, list, dict)
        default: Default value if not specified in config files
        min_value: Minimum value for numeric types (optional)
        max_value: Maximum value for numeric types (optional)
        restart_required: Auto-derived from tier (True for static, False for dynamic)
        validator: Custom validation function (optional)
    """
    tier: Literal["static", "dynamic"]
    value_type: type
    default: Any
    min_value: Optional[Any] = None
    max_value: Optional[Any] = None
    restart_required: bool = False
    validator: Optional[Callable[[Any], bool]] = None

    def __post_init__(self):
        """Auto-derive restart_required from tier."""
        self.restart_required = (self.tier == "static")


# Configuration Registry
# =======================
# All configuration keys must be registered here with their tier classification.

REGISTRY: dict[str, ConfigKey] = {
    # ===== DATABASE (Static - Foundation) =====
    "database.path": ConfigKey(
        tier="static",
        value_type=str,
        default="data/serverpulse.db",
    ),

    # ===== LOGGING (Static file path, Dynamic verbosity) =====
    "logging.file_path": ConfigKey(
        tier="static",
        value_type=str,
        default="",
    ),
    "logging.level": ConfigKey(
        tier="dynamic",
        value_type=str,
        default="INFO",
        validator=lambda v: v in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"),
    ),

    # ===== HTTP (Static - Binding) =====
    "http.host": ConfigKey(
        tier="static",
        value_type=str,
        default="0.0.0.0",
    ),
    "http.port": ConfigKey(
        tier="static",
        value_type=int,
        default=5000,
        min_value=1,
        max_value=65535,
    ),

    # ===== GAME SERVER (Static address, Dynamic timeout) =====
    "fivem.server_host": ConfigKey(
        tier="static",
        value_type=str,
        default="45.89.30.198",
        validator=lambda v: bool(v.strip()),
    ),
    "fivem.server_port": ConfigKey(
        tier="static",
        value_type=int,
        default=30120,
        min_value=1,
        max_value=65535,
    ),
    "fivem.request_timeout_seconds": ConfigKey(
        tier="dynamic",
        value_type=float,
        default=3.0,
        min_value=0.5,
        max_value=30.0,
    ),

    # ===== STATUS SYNC (Dynamic - Operational tuning) =====
    "status.poll_interval_seconds": ConfigKey(
        tier="dynamic",
        value_type=int,
        default=30,
        min_value=5,
        max_value=600,
    ),
    "status.heartbeat_interval_seconds": ConfigKey(
        tier="static",
        value_type=int,
        default=30,
        min_value=5,
        max_value=300,
    ),
    "status.send_timeout_seconds": ConfigKey(
        tier="dynamic",
        value_type=float,
        default=5.0,
        min_value=0.5,
        max_value=60.0,
    ),
    "status.persist_last_live": ConfigKey(
        tier="static",
        value_type=bool,
        default=True,
    ),
    "status.fallback_server_name": ConfigKey(
        tier="dynamic",
        value_type=str,
        default="Tokyo Edge Roleplay",
        validator=lambda v: bool(v.strip()),
    ),
    "status.fallback_max_players": ConfigKey(
        tier="dynamic",
        value_type=int,
        default=128,
        min_value=0,
        max_value=2048,
    ),

    # ===== PLAYER CLASSIFICATION (Static - Tag conventions) =====
    "status.police_marker": ConfigKey(
        tier="static",
        value_type=str,
        default="COPE",
    ),
    "status.medic_marker": ConfigKey(
        tier="static",
        value_type=str,
        default="SAMU",
    ),
    "status.staff_marker": ConfigKey(
        tier="static",
        value_type=str,
        default="[STAFF]",
    ),

    # ===== OBSERVABILITY (Dynamic thresholds) =====
    "observability.status_stale_threshold_seconds": ConfigKey(
        tier="dynamic",
        value_type=int,
        default=120,
        min_value=10,
        max_value=86400,
    ),
}


def get_config_key(key: str) -> ConfigKey:
    """Get configuration key definition from registry.

    Args:
        key: Configuration key path (e.g., "fivem.server_host")

    Returns:
        ConfigKey definition

    Raises:
        KeyError: If key not found in registry
    """
    if key not in REGISTRY:
        raise KeyError(f"Configuration key '{key}' not found in registry")
    return REGISTRY[key]


def validate_config_value(key: str, value: Any) -> tuple[bool, Optional[str]]:
    """Validate a configuration value against its registered definition.

    Args:
        key: Configuration key path
        value: Value to validate

    Returns:
        Tuple of (is_valid, error_message)
        error_message is None if valid
    """
    try:
        config_key = get_config_key(key)
    except KeyError as e:
        return False, str(e)

    # Ints are accepted where floats are expected (TOML "timeout = 3")
    expected = config_key.value_type
    if expected is float and isinstance(value, int) and not isinstance(value, bool):
        pass
    elif not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
        return False, f"Expected type {expected.__name__}, got {type(value).__name__}"

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if config_key.min_value is not None and value < config_key.min_value:
            return False, f"Value {value} below minimum {config_key.min_value}"
        if config_key.max_value is not None and value > config_key.max_value:
            return False, f"Value {value} above maximum {config_key.max_value}"

    if config_key.validator is not None:
        try:
            if not config_key.validator(value):
                return False, f"Custom validation failed for value: {value}"
        except Exception as e:
            return False, f"Validator error: {str(e)}"

    return True, None


def get_default_values() -> dict[str, Any]:
    """Get default values for all configuration keys."""
    return {key: config_key.default for key, config_key in REGISTRY.items()}


def get_static_keys() -> list[str]:
    """Get list of all static configuration keys (restart required)."""
    return [key for key, config_key in REGISTRY.items() if config_key.tier == "static"]


def get_dynamic_keys() -> list[str]:
    """Get list of all dynamic configuration keys (hot-reloadable)."""
    return [key for key, config_key in REGISTRY.items() if config_key.tier == "dynamic"]
