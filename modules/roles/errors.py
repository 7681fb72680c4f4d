"""Exception types raised by the role reconciliation engine."""

from __future__ import annotations

__all__ = [
    "RolesError",
    "UnknownPermissionError",
    "GuildCatalogError",
    "NotFoundError",
    "ReconcileError",
    "ApiError",
]


class RolesError(RuntimeError):
    """Base class for role engine failures."""


class UnknownPermissionError(RolesError, ValueError):
    """Raised when a permission name is not part of the catalog."""

    def __init__(self, name: object) -> None:
        super().__init__(f"Unknown permission: {name!r}")
        self.name = name


class GuildCatalogError(RolesError):
    """Raised when the guild catalog file cannot be loaded or is malformed."""


class NotFoundError(RolesError):
    """Raised when the subject or guild of a reconciliation does not exist."""

    def __init__(self, kind: str, identifier: object) -> None:
        super().__init__(f"{kind} not found: {identifier}")
        self.kind = kind
        self.identifier = identifier


class ReconcileError(RolesError):
    """Raised when the initial reads of a reconciliation cannot be completed."""


class ApiError(RolesError):
    """Raised by the TCN API client for non-success responses."""

    def __init__(self, status: int, method: str, path: str, detail: str = "") -> None:
        message = f"{method} {path} failed with HTTP {status}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.status = status
        self.method = method
        self.path = path
        self.detail = detail
