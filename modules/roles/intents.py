"""Idempotent write intents produced by the diff and projector stages."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Tuple, Union

from .permissions import Permission, unpack

__all__ = [
    "BackendWriter",
    "PlatformWriter",
    "SetPermissionBits",
    "GrantCommittee",
    "RevokeCommittee",
    "PatchGuildStructuralRoles",
    "UpdateMemberRoles",
    "WriteIntent",
    "IntentOutcome",
]


class BackendWriter(Protocol):
    async def put_guild_permissions(self, user_id: str, guild_id: str, bits: int) -> None: ...

    async def add_committee(self, user_id: str, committee: Permission) -> None: ...

    async def remove_committee(self, user_id: str, committee: Permission) -> None: ...

    async def patch_guild_holders(
        self,
        guild_id: str,
        *,
        voter: Optional[str],
        owner: Optional[str],
        advisor: Optional[str],
    ) -> None: ...


class PlatformWriter(Protocol):
    async def set_member_roles(
        self, guild_id: str, user_id: str, role_ids: Tuple[str, ...]
    ) -> None: ...


@dataclass(frozen=True, slots=True)
class SetPermissionBits:
    user_id: str
    guild_id: str
    bits: int

    target = "backend"

    def describe(self) -> str:
        names = ",".join(flag.name for flag in unpack(self.bits)) or "none"
        return f"set bits {self.bits} ({names}) for {self.user_id} in {self.guild_id}"

    async def apply(self, backend: BackendWriter, platform: PlatformWriter) -> None:
        await backend.put_guild_permissions(self.user_id, self.guild_id, self.bits)


@dataclass(frozen=True, slots=True)
class GrantCommittee:
    user_id: str
    committee: Permission

    target = "backend"

    def describe(self) -> str:
        return f"grant {self.committee.name} to {self.user_id}"

    async def apply(self, backend: BackendWriter, platform: PlatformWriter) -> None:
        await backend.add_committee(self.user_id, self.committee)


@dataclass(frozen=True, slots=True)
class RevokeCommittee:
    user_id: str
    committee: Permission

    target = "backend"

    def describe(self) -> str:
        return f"revoke {self.committee.name} from {self.user_id}"

    async def apply(self, backend: BackendWriter, platform: PlatformWriter) -> None:
        await backend.remove_committee(self.user_id, self.committee)


@dataclass(frozen=True, slots=True)
class PatchGuildStructuralRoles:
    guild_id: str
    voter: Optional[str]
    owner: Optional[str]
    advisor: Optional[str]

    target = "backend"

    def describe(self) -> str:
        return (
            f"patch guild {self.guild_id} holders "
            f"voter={self.voter} owner={self.owner} advisor={self.advisor}"
        )

    async def apply(self, backend: BackendWriter, platform: PlatformWriter) -> None:
        await backend.patch_guild_holders(
            self.guild_id, voter=self.voter, owner=self.owner, advisor=self.advisor
        )


@dataclass(frozen=True, slots=True)
class UpdateMemberRoles:
    guild_id: str
    user_id: str
    role_ids: Tuple[str, ...]
    added: Tuple[str, ...] = ()
    removed: Tuple[str, ...] = ()

    target = "discord"

    def describe(self) -> str:
        return (
            f"update roles of {self.user_id} in {self.guild_id} "
            f"(+{len(self.added)} / -{len(self.removed)})"
        )

    async def apply(self, backend: BackendWriter, platform: PlatformWriter) -> None:
        await platform.set_member_roles(self.guild_id, self.user_id, self.role_ids)


WriteIntent = Union[
    SetPermissionBits,
    GrantCommittee,
    RevokeCommittee,
    PatchGuildStructuralRoles,
    UpdateMemberRoles,
]


@dataclass(frozen=True, slots=True)
class IntentOutcome:
    intent: WriteIntent
    ok: bool
    error: Optional[str] = None
