from __future__ import annotations

# config/runtime.py
import os
from typing import Optional


def get_env_name(default: str = "dev") -> str:
    return os.getenv("ENV_NAME", default)


def get_bot_name(default: str = "TCN-Roles") -> str:
    return os.getenv("BOT_NAME", default)


def _coerce_float(value: Optional[str], fallback: float) -> float:
    try:
        if value is None:
            raise TypeError
        return float(value)
    except (TypeError, ValueError):
        return fallback


def get_api_timeout_sec(default: float = 10.0) -> float:
    """
    Total timeout (seconds) for a single TCN API request.
    Values below one second are raised to one.
    """

    return max(1.0, _coerce_float(os.getenv("TCN_API_TIMEOUT_SEC"), default))


def get_command_prefix(default: str = "!") -> str:
    return os.getenv("COMMAND_PREFIX", default) or default


def get_log_level(default: str = "INFO") -> str:
    return (os.getenv("LOG_LEVEL") or default).strip().upper() or default


def get_guilds_path(default: str = "config/guilds.json") -> str:
    """Path of the static guild catalog (role mappings per guild)."""

    return (os.getenv("TCN_GUILDS_PATH") or default).strip() or default
