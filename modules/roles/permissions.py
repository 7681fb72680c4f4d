"""Permission flag catalog shared by every part of the role engine."""

from __future__ import annotations

from enum import IntFlag
from typing import Dict, Iterable, List, Tuple, Union

from .errors import UnknownPermissionError

__all__ = [
    "Permission",
    "ASSIGNABLE_MASK",
    "SENIOR_MASK",
    "PLAIN_FLAGS",
    "STRUCTURAL_ROLES",
    "COMMITTEE_FLAGS",
    "ALL_FLAGS",
    "LABELS",
    "assignable",
    "has_flag",
    "is_cosmetic",
    "label",
    "pack",
    "parse_flag",
    "unpack",
]


class Permission(IntFlag):
    MODERATOR = 1 << 0
    EVENT = 1 << 1
    THEORY = 1 << 2
    LEAKS = 1 << 3
    ART = 1 << 4
    DEV = 1 << 5
    OWNER = 1 << 6
    ADVISOR = 1 << 7
    VOTER = 1 << 8
    EXEC = 1 << 9
    OBSERVER = 1 << 10


# Only the low six bits are stored per guild by the backend. Everything above
# is derived from structural slots or committee membership.
ASSIGNABLE_MASK = (1 << 6) - 1

SENIOR_MASK = Permission.MODERATOR | Permission.DEV | Permission.OWNER | Permission.ADVISOR

PLAIN_FLAGS: Tuple[Permission, ...] = (
    Permission.MODERATOR,
    Permission.EVENT,
    Permission.THEORY,
    Permission.LEAKS,
    Permission.ART,
    Permission.DEV,
)
STRUCTURAL_ROLES: Tuple[Permission, ...] = (
    Permission.VOTER,
    Permission.OWNER,
    Permission.ADVISOR,
)
COMMITTEE_FLAGS: Tuple[Permission, ...] = (Permission.EXEC, Permission.OBSERVER)

# Menu order.
ALL_FLAGS: Tuple[Permission, ...] = PLAIN_FLAGS + (
    Permission.OWNER,
    Permission.ADVISOR,
    Permission.VOTER,
) + COMMITTEE_FLAGS

LABELS: Dict[Permission, str] = {
    Permission.MODERATOR: "Moderator",
    Permission.EVENT: "Event Staff",
    Permission.THEORY: "Theorycrafting Staff",
    Permission.LEAKS: "Leak Staff",
    Permission.ART: "Art Staff",
    Permission.DEV: "Developer Staff",
    Permission.OWNER: "Server Owner",
    Permission.ADVISOR: "Council Advisor",
    Permission.VOTER: "Voter",
    Permission.EXEC: "Internal Committee",
    Permission.OBSERVER: "External Committee",
}

FlagLike = Union[Permission, str]


def parse_flag(value: FlagLike) -> Permission:
    """Return the catalog flag for ``value`` (a flag or its case-insensitive name)."""

    if isinstance(value, Permission):
        if value not in ALL_FLAGS:
            raise UnknownPermissionError(value)
        return value
    name = str(value or "").strip().upper()
    try:
        return Permission[name]
    except KeyError:
        raise UnknownPermissionError(value) from None


def has_flag(bits: int, flag: FlagLike) -> bool:
    return bool(int(bits) & parse_flag(flag))


def assignable(bits: int) -> int:
    return int(bits) & ASSIGNABLE_MASK


def pack(flags: Iterable[FlagLike]) -> int:
    """Reduce ``flags`` to the bitmask stored per guild.

    Structural roles and committee flags live in their own backend fields, so
    they never contribute to the packed value.
    """

    bits = 0
    for value in flags:
        flag = parse_flag(value)
        if flag in PLAIN_FLAGS:
            bits |= flag
    return bits


def unpack(bits: int) -> List[Permission]:
    value = int(bits)
    return [flag for flag in ALL_FLAGS if value & flag]


def is_cosmetic(flag: FlagLike) -> bool:
    resolved = parse_flag(flag)
    return resolved in PLAIN_FLAGS and not resolved & SENIOR_MASK


def label(flag: FlagLike) -> str:
    return LABELS[parse_flag(flag)]
