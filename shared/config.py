"""Runtime configuration helpers for the roles bot."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict

from config import runtime as _runtime
from shared.redaction import mask_secret, sanitize_text

__all__ = [
    "cfg",
    "reload_config",
    "get_config_snapshot",
    "get_env_name",
    "get_bot_name",
    "get_command_prefix",
    "get_discord_token",
    "get_tcn_api_url",
    "get_tcn_api_token",
    "get_tcn_api_timeout_sec",
    "get_guilds_path",
    "get_log_level",
    "get_log_json",
    "redact_value",
]

log = logging.getLogger("tcn.config")

# ===== Config Schema (authoritative) =====
_REQUIRED_ENV = (
    "DISCORD_TOKEN",
    "TCN_API_URL",
    "TCN_API_TOKEN",
)


def _require_env(name: str) -> str:
    value = os.getenv(name)
    if value is None or str(value).strip() == "":
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


for _name in _REQUIRED_ENV:
    _require_env(_name)

_MISSING_VALUE = "—"

_CONFIG: Dict[str, object] = {}

_SECRET_KEYS = {
    "DISCORD_TOKEN",
    "TCN_API_TOKEN",
}


def _redact_value(key: str, value: object) -> str:
    """Best-effort redaction for import-time logging."""

    key_upper = str(key).upper()

    if value in (None, "", [], (), {}, set()):
        return _MISSING_VALUE

    if key_upper in _SECRET_KEYS or "TOKEN" in key_upper or key_upper.endswith("_SECRET"):
        stripped = str(value).strip()
        if not stripped:
            return _MISSING_VALUE
        return mask_secret(stripped)

    if isinstance(value, (set, list, tuple)):
        items = sorted(str(item) for item in value)
        if len(items) <= 3:
            return ", ".join(items)
        return f"{len(items)} ids"

    return str(sanitize_text(value))


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    return default


def _log_snapshot(snapshot: Dict[str, object]) -> None:
    redacted = {key: _redact_value(key, value) for key, value in snapshot.items()}
    log.info("config loaded", extra={"config": redacted})


def _load_config() -> Dict[str, object]:
    return {
        "BOT_NAME": _runtime.get_bot_name(),
        "ENV_NAME": _runtime.get_env_name(),
        "DISCORD_TOKEN": os.getenv("DISCORD_TOKEN", ""),
        "COMMAND_PREFIX": _runtime.get_command_prefix(),
        "TCN_API_URL": (os.getenv("TCN_API_URL") or "").strip().rstrip("/"),
        "TCN_API_TOKEN": (os.getenv("TCN_API_TOKEN") or "").strip(),
        "TCN_API_TIMEOUT_SEC": _runtime.get_api_timeout_sec(),
        "TCN_GUILDS_PATH": _runtime.get_guilds_path(),
        "LOG_LEVEL": _runtime.get_log_level(),
        "LOG_JSON": _env_bool("LOG_JSON", False),
    }


def reload_config() -> Dict[str, object]:
    """Reload configuration from environment and return a snapshot."""

    for _name in _REQUIRED_ENV:
        _require_env(_name)

    snapshot = _load_config()

    global _CONFIG
    _CONFIG = snapshot
    _log_snapshot(snapshot)
    return dict(_CONFIG)


reload_config()


class _ConfigFacade:
    __slots__ = ()

    def get(self, key: object, default: object | None = None) -> object | None:
        normalised = str(key or "").strip().upper()
        if not normalised:
            return default
        return _CONFIG.get(normalised, default)

    def __contains__(self, key: object) -> bool:  # pragma: no cover - convenience
        return str(key or "").strip().upper() in _CONFIG


cfg = _ConfigFacade()


def get_config_snapshot() -> Dict[str, object]:
    """Return a shallow copy of the cached config values."""

    return dict(_CONFIG)


def get_env_name(default: str = "dev") -> str:
    value = _CONFIG.get("ENV_NAME")
    return str(value) if isinstance(value, str) and value else default


def get_bot_name(default: str = "TCN-Roles") -> str:
    value = _CONFIG.get("BOT_NAME")
    return str(value) if isinstance(value, str) and value else default


def get_command_prefix(default: str = "!") -> str:
    value = _CONFIG.get("COMMAND_PREFIX")
    return str(value) if isinstance(value, str) and value else default


def get_discord_token() -> str:
    return str(_CONFIG.get("DISCORD_TOKEN", ""))


def get_tcn_api_url() -> str:
    return str(_CONFIG.get("TCN_API_URL", ""))


def get_tcn_api_token() -> str:
    return str(_CONFIG.get("TCN_API_TOKEN", ""))


def get_tcn_api_timeout_sec() -> float:
    value = _CONFIG.get("TCN_API_TIMEOUT_SEC")
    if isinstance(value, (int, float)):
        return float(value)
    return _runtime.get_api_timeout_sec()


def get_guilds_path() -> Path:
    value = _CONFIG.get("TCN_GUILDS_PATH")
    return Path(str(value) if value else _runtime.get_guilds_path())


def get_log_level(default: str = "INFO") -> str:
    value = _CONFIG.get("LOG_LEVEL")
    return str(value) if isinstance(value, str) and value else default


def get_log_json() -> bool:
    return bool(_CONFIG.get("LOG_JSON", False))


def redact_value(key: str, value: object) -> str:
    return _redact_value(key, value)

