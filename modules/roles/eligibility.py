"""Decide which flags an operator may set on a subject for a guild."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from .models import GuildState, TcnUser
from .permissions import (
    ALL_FLAGS,
    COMMITTEE_FLAGS,
    PLAIN_FLAGS,
    FlagLike,
    Permission,
    parse_flag,
)

__all__ = [
    "DENIED_NO_GUILD",
    "DENIED_NOT_AUTHORIZED",
    "DENIED_INVOKE_NO_GUILD",
    "DENIED_INVOKE_GUILD",
    "Eligibility",
    "authorize_invocation",
    "current_selection",
    "resolve_eligibility",
]

DENIED_NO_GUILD = "Forbidden: no tenant specified"
DENIED_NOT_AUTHORIZED = "Forbidden: not authorized for that user"
DENIED_INVOKE_NO_GUILD = "You are not allowed to set any roles without server"
DENIED_INVOKE_GUILD = "You are not allowed to set any roles for that user"


@dataclass(frozen=True, slots=True)
class Eligibility:
    options: Tuple[Permission, ...] = ()
    denial: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.denial is None and bool(self.options)

    def __contains__(self, flag: object) -> bool:
        return flag in self.options

    def filter(self, requested: Iterable[FlagLike]) -> Tuple[Permission, ...]:
        """Keep the requested flags that were actually offered, in menu order."""

        wanted = {parse_flag(value) for value in requested}
        return tuple(flag for flag in self.options if flag in wanted)


def _structural_allowed(
    flag: Permission,
    operator: Optional[TcnUser],
    subject: Optional[TcnUser],
    guild_id: str,
) -> bool:
    if operator is None:
        return False
    is_owner = operator.owner_of == guild_id
    if flag == Permission.VOTER:
        return is_owner or operator.voter_of == guild_id
    if flag == Permission.ADVISOR:
        return is_owner or operator.advisor_of == guild_id
    if flag == Permission.OWNER:
        if subject is not None and subject.roles & Permission.OWNER:
            return False
        return is_owner
    return False


def resolve_eligibility(
    operator: Optional[TcnUser],
    subject: Optional[TcnUser],
    guild_id: Optional[str],
) -> Eligibility:
    """Return the flags ``operator`` may present and apply for ``subject``.

    Committee members (EXEC/OBSERVER) may manage committee flags only outside
    a guild context, and every plain flag inside one. Structural roles are
    always gated on the operator's own slot in the guild. Denials come back as
    values so callers can render them directly.
    """

    committee = operator is not None and operator.committee
    if guild_id is None:
        if committee:
            return Eligibility(options=COMMITTEE_FLAGS)
        return Eligibility(denial=DENIED_NO_GUILD)

    guild_id = str(guild_id)
    options = []
    for flag in ALL_FLAGS:
        if flag in COMMITTEE_FLAGS:
            continue
        if flag in PLAIN_FLAGS:
            options.append(flag)
            continue
        if _structural_allowed(flag, operator, subject, guild_id):
            options.append(flag)

    if not options:
        return Eligibility(denial=DENIED_NOT_AUTHORIZED)
    return Eligibility(options=tuple(options))


def authorize_invocation(operator: Optional[TcnUser], guild_id: Optional[str]) -> Optional[str]:
    """Gate run before any menu is shown; returns a denial message or ``None``."""

    if operator is not None and operator.committee:
        return None
    if guild_id is None:
        return DENIED_INVOKE_NO_GUILD
    guild_id = str(guild_id)
    if operator is not None and guild_id in (operator.owner_of, operator.advisor_of):
        return None
    return DENIED_INVOKE_GUILD


def current_selection(
    subject: Optional[TcnUser],
    guild: Optional[GuildState],
    options: Iterable[Permission],
) -> Tuple[Permission, ...]:
    """Flags among ``options`` the subject holds right now."""

    if subject is None:
        return ()
    guild_bits = subject.bits_for(guild.id) if guild is not None else 0
    held = []
    for flag in options:
        if flag in PLAIN_FLAGS:
            if guild_bits & flag:
                held.append(flag)
        elif flag == Permission.EXEC:
            if subject.exec:
                held.append(flag)
        elif flag == Permission.OBSERVER:
            if subject.observer:
                held.append(flag)
        elif guild is not None and guild.holder(flag) == subject.id:
            held.append(flag)
    return tuple(held)
