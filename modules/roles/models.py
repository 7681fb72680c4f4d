"""Backend and platform records consumed by the role engine."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, Mapping, Optional

from .permissions import ASSIGNABLE_MASK, Permission

__all__ = ["TcnUser", "GuildState", "Membership"]


def _normalize_id(value: object) -> Optional[str]:
    if isinstance(value, Mapping):
        value = value.get("id")
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _slot(payload: Mapping[str, object], name: str) -> Optional[str]:
    for key in (name, f"{name}Id", f"{name}_id"):
        value = _normalize_id(payload.get(key))
        if value is not None:
            return value
    return None


def _coerce_bits(value: object) -> int:
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0


@dataclass(frozen=True, slots=True)
class TcnUser:
    """Aggregate backend record for a user (subject or operator)."""

    id: str
    guilds: Mapping[str, int] = field(default_factory=dict)
    owner_of: Optional[str] = None
    advisor_of: Optional[str] = None
    voter_of: Optional[str] = None
    exec: bool = False
    observer: bool = False

    @classmethod
    def from_payload(cls, payload: Mapping[str, object]) -> "TcnUser":
        raw_guilds = payload.get("guilds") or {}
        guilds: Dict[str, int] = {}
        if isinstance(raw_guilds, Mapping):
            for guild_id, bits in raw_guilds.items():
                guilds[str(guild_id)] = _coerce_bits(bits)
        elif isinstance(raw_guilds, (list, tuple)):
            # List form: [{"guild": "...", "roles": 5}, ...]
            for entry in raw_guilds:
                if not isinstance(entry, Mapping):
                    continue
                guild_id = _normalize_id(entry.get("guild"))
                if guild_id:
                    guilds[guild_id] = _coerce_bits(entry.get("roles"))
        return cls(
            id=str(payload.get("id")),
            guilds=guilds,
            owner_of=_slot(payload, "owner"),
            advisor_of=_slot(payload, "advisor"),
            voter_of=_slot(payload, "voter"),
            exec=bool(payload.get("exec")),
            observer=bool(payload.get("observer")),
        )

    @property
    def committee(self) -> bool:
        return self.exec or self.observer

    @property
    def roles(self) -> Permission:
        """Every bit the record carries, across all guilds."""

        bits = 0
        for value in self.guilds.values():
            bits |= int(value) & ASSIGNABLE_MASK
        if self.owner_of:
            bits |= Permission.OWNER
        if self.advisor_of:
            bits |= Permission.ADVISOR
        if self.voter_of:
            bits |= Permission.VOTER
        if self.exec:
            bits |= Permission.EXEC
        if self.observer:
            bits |= Permission.OBSERVER
        return Permission(bits)

    def bits_for(self, guild_id: str | None) -> int:
        if guild_id is None:
            return 0
        return int(self.guilds.get(str(guild_id), 0)) & ASSIGNABLE_MASK

    def with_guild_bits(self, guild_id: str, bits: int) -> "TcnUser":
        guilds = dict(self.guilds)
        guilds[str(guild_id)] = int(bits) & ASSIGNABLE_MASK
        return replace(self, guilds=guilds)


@dataclass(frozen=True, slots=True)
class GuildState:
    """Backend view of a guild and its structural role holders."""

    id: str
    name: str = ""
    owner_id: Optional[str] = None
    advisor_id: Optional[str] = None
    voter_id: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, object]) -> "GuildState":
        return cls(
            id=str(payload.get("id")),
            name=str(payload.get("name") or ""),
            owner_id=_slot(payload, "owner"),
            advisor_id=_slot(payload, "advisor"),
            voter_id=_slot(payload, "voter"),
        )

    def holder(self, role: Permission) -> Optional[str]:
        if role == Permission.OWNER:
            return self.owner_id
        if role == Permission.ADVISOR:
            return self.advisor_id
        if role == Permission.VOTER:
            return self.voter_id
        raise ValueError(f"{role!r} is not a structural role")

    def with_holders(
        self,
        *,
        voter: Optional[str],
        owner: Optional[str],
        advisor: Optional[str],
    ) -> "GuildState":
        return replace(self, voter_id=voter, owner_id=owner, advisor_id=advisor)


@dataclass(frozen=True, slots=True)
class Membership:
    """Live Discord membership of a user in one guild."""

    guild_id: str
    user_id: str
    role_ids: frozenset[str] = frozenset()
    bot: bool = False

    @classmethod
    def build(
        cls, guild_id: object, user_id: object, role_ids: Iterable[object], *, bot: bool = False
    ) -> "Membership":
        return cls(
            guild_id=str(guild_id),
            user_id=str(user_id),
            role_ids=frozenset(str(role_id) for role_id in role_ids),
            bot=bool(bot),
        )
