"""Compute the central backend writes for a reconciliation."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterable, List, Optional, Tuple

from .eligibility import Eligibility
from .intents import (
    GrantCommittee,
    PatchGuildStructuralRoles,
    RevokeCommittee,
    SetPermissionBits,
    WriteIntent,
)
from .models import GuildState, TcnUser
from .permissions import COMMITTEE_FLAGS, STRUCTURAL_ROLES, FlagLike, Permission, pack

__all__ = ["CentralPlan", "plan_central_writes", "apply_plan"]


@dataclass(slots=True)
class CentralPlan:
    """Backend write intents plus the state they lead to."""

    intents: List[WriteIntent] = field(default_factory=list)
    applied: Tuple[Permission, ...] = ()
    bits: Optional[int] = None
    guild: Optional[GuildState] = None
    exec: bool = False
    observer: bool = False


def _committee_value(subject: TcnUser, flag: Permission) -> bool:
    return subject.exec if flag == Permission.EXEC else subject.observer


def _next_holder(
    role: Permission,
    *,
    subject: TcnUser,
    guild: GuildState,
    eligibility: Eligibility,
    requested: Tuple[Permission, ...],
) -> Optional[str]:
    current = guild.holder(role)
    if role in requested:
        return subject.id
    if role in eligibility and current == subject.id:
        # Offered, left unselected, and held by the subject: clear the slot.
        return None
    return current


def plan_central_writes(
    subject: TcnUser,
    guild: Optional[GuildState],
    eligibility: Eligibility,
    requested: Iterable[FlagLike],
) -> CentralPlan:
    """Diff the requested flags against the subject's recorded state.

    ``requested`` is filtered through ``eligibility`` first, so flags the
    operator was never offered can neither be granted nor cleared.
    """

    applied = eligibility.filter(requested)
    plan = CentralPlan(applied=applied, exec=subject.exec, observer=subject.observer)

    if guild is not None:
        bits = pack(applied)
        plan.bits = bits
        if bits != subject.bits_for(guild.id):
            plan.intents.append(SetPermissionBits(subject.id, guild.id, bits))

    for flag in COMMITTEE_FLAGS:
        if flag not in eligibility:
            continue
        wanted = flag in applied
        if wanted == _committee_value(subject, flag):
            continue
        if wanted:
            plan.intents.append(GrantCommittee(subject.id, flag))
        else:
            plan.intents.append(RevokeCommittee(subject.id, flag))
        if flag == Permission.EXEC:
            plan.exec = wanted
        else:
            plan.observer = wanted

    if guild is not None:
        holders = {
            role: _next_holder(
                role,
                subject=subject,
                guild=guild,
                eligibility=eligibility,
                requested=applied,
            )
            for role in STRUCTURAL_ROLES
        }
        patched = guild.with_holders(
            voter=holders[Permission.VOTER],
            owner=holders[Permission.OWNER],
            advisor=holders[Permission.ADVISOR],
        )
        plan.guild = patched
        if patched != guild:
            plan.intents.append(
                PatchGuildStructuralRoles(
                    guild.id,
                    voter=patched.voter_id,
                    owner=patched.owner_id,
                    advisor=patched.advisor_id,
                )
            )

    return plan


def apply_plan(subject: TcnUser, plan: CentralPlan) -> TcnUser:
    """Return the subject as it will look once ``plan`` has been written."""

    updated = subject
    if plan.guild is not None and plan.bits is not None:
        updated = updated.with_guild_bits(plan.guild.id, plan.bits)
    slots = {}
    if plan.guild is not None:
        guild_id = plan.guild.id
        for role, attr in (
            (Permission.OWNER, "owner_of"),
            (Permission.ADVISOR, "advisor_of"),
            (Permission.VOTER, "voter_of"),
        ):
            holder = plan.guild.holder(role)
            current = getattr(subject, attr)
            if holder == subject.id:
                slots[attr] = guild_id
            elif current == guild_id:
                slots[attr] = None
    return replace(updated, exec=plan.exec, observer=plan.observer, **slots)
