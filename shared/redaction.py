"""Secret redaction helpers for config snapshots and log payloads."""

from __future__ import annotations

import hashlib
import re
from typing import Any, Mapping

__all__ = [
    "mask_secret",
    "sanitize_data",
    "sanitize_text",
]


_SECRET_FRAGMENT_RE = re.compile(
    r"(?<![A-Za-z0-9_-])"
    r"(?P<secret>(?=[A-Za-z0-9_-]*[A-Za-z])(?=[A-Za-z0-9_-]*\d)[A-Za-z0-9_-]{32,})"
    r"(?![A-Za-z0-9_-])"
)
_DISCORD_TOKEN_RE = re.compile(r"[A-Za-z0-9_-]{24}\.[A-Za-z0-9_-]{6}\.[A-Za-z0-9_-]{27,}")
_BEARER_RE = re.compile(r"(?P<prefix>Bearer\s+)(?P<secret>[^\s,;]+)", re.IGNORECASE)
_SECRET_FIELD_RE = re.compile(
    r"(?P<prefix>(token|secret|credential|key)\s*[=:]\s*)(?P<secret>[^\s,;]+)",
    re.IGNORECASE,
)


def _stable_suffix(text: str) -> str:
    digest = hashlib.sha1(text.encode("utf-8", "ignore")).hexdigest()
    return digest[:4]


def mask_secret(text: str) -> str:
    suffix = _stable_suffix(text)
    return f"***{suffix}"


def sanitize_text(value: Any) -> Any:
    if value is None:
        return value
    text = str(value)
    if not text:
        return text

    sanitized = _DISCORD_TOKEN_RE.sub(lambda match: mask_secret(match.group(0)), text)
    sanitized = _BEARER_RE.sub(
        lambda match: f"{match.group('prefix')}{mask_secret(match.group('secret'))}",
        sanitized,
    )
    sanitized = _SECRET_FIELD_RE.sub(
        lambda match: f"{match.group('prefix')}{mask_secret(match.group('secret'))}",
        sanitized,
    )
    sanitized = _SECRET_FRAGMENT_RE.sub(lambda match: mask_secret(match.group(0)), sanitized)
    return sanitized


def sanitize_data(value: Any) -> Any:
    if isinstance(value, str):
        return sanitize_text(value)
    if isinstance(value, Mapping):
        return {key: sanitize_data(val) for key, val in value.items()}
    if isinstance(value, tuple):
        return tuple(sanitize_data(item) for item in value)
    if isinstance(value, list):
        return [sanitize_data(item) for item in value]
    return value
