"""Role reconciliation for TCN guild staff, committee, and structural roles."""

from __future__ import annotations

__all__ = [
    "permissions",
    "models",
    "catalog",
    "eligibility",
    "diff",
    "projector",
    "intents",
    "reconciler",
    "api",
    "platform",
    "views",
    "cog",
]
