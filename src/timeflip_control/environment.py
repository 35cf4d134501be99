"""Environment variable helpers for timeflipctl.

Every knob is read from a ``TIMEFLIP_*`` variable. Invalid values are
logged and replaced by the default rather than aborting the command.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".timeflip"
CONFIG_FILE_NAME = "timeflip.toml"

# Short aliases accepted for a couple of variables
ENV_VAR_ALIASES = {
    "TIMEFLIP_ADDRESS": "TIMEFLIP_MAC",
    "TIMEFLIP_LOG_LEVEL": "LOG_LEVEL",
}


def get_env_with_fallback(
    name: str, default: str | None = None
) -> str | None:
    """Get environment variable, falling back to its alias.

    Args:
        name: Environment variable name (e.g., "TIMEFLIP_LOG_LEVEL")
        default: Default value if neither name nor alias is set

    Returns:
        Environment variable value, or default if not found
    """
    value = os.getenv(name)
    if value is not None:
        return value

    alias = ENV_VAR_ALIASES.get(name)
    if alias:
        value = os.getenv(alias)
        if value is not None:
            logger.debug("Using %s in place of %s", alias, name)
            return value

    return default


def get_config_dir() -> Path:
    """Return the directory holding timeflip.toml and cache files."""
    override = get_env_with_fallback("TIMEFLIP_CONFIG_DIR")
    if override:
        return Path(override).expanduser()
    return DEFAULT_CONFIG_DIR


def default_config_path() -> Path | None:
    """Return the configuration file to use when none was given.

    ``TIMEFLIP_CONFIG`` wins; otherwise ``timeflip.toml`` inside the
    config directory is used if it exists.
    """
    explicit = get_env_with_fallback("TIMEFLIP_CONFIG")
    if explicit:
        return Path(explicit).expanduser()
    candidate = get_config_dir() / CONFIG_FILE_NAME
    if candidate.is_file():
        return candidate
    return None


def get_env_float(name: str, default: float) -> float:
    """Get float environment variable.

    Args:
        name: Environment variable name
        default: Default value if not found or invalid

    Returns:
        Float value from environment or default
    """
    raw = get_env_with_fallback(name)
    if raw is None:
        return default

    try:
        return float(raw)
    except ValueError:
        logger.warning(
            "Invalid float value for %s: '%s'. Using default: %s",
            name,
            raw,
            default,
        )
        return default


def get_log_level(default: str = "WARNING") -> int:
    """Return the numeric log level from ``TIMEFLIP_LOG_LEVEL``."""
    name = (get_env_with_fallback("TIMEFLIP_LOG_LEVEL", default) or default)
    level = logging.getLevelName(name.strip().upper())
    if isinstance(level, int):
        return level
    logger.warning("Unknown log level '%s'. Using %s", name, default)
    return logging.getLevelName(default)
