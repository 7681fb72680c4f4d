"""Derive the managed Discord roles a member should carry in each guild."""

from __future__ import annotations

import logging
from typing import Iterable, List, Mapping, Optional, Set

from .catalog import GuildConfig
from .intents import UpdateMemberRoles
from .models import GuildState, Membership, TcnUser
from .permissions import PLAIN_FLAGS, SENIOR_MASK, Permission, is_cosmetic

__all__ = ["target_roles", "project_membership", "project_all"]

log = logging.getLogger("tcn.roles.projector")


def _source_bits(
    subject: TcnUser,
    source_guild_id: str,
    bits: int,
    states: Optional[Mapping[str, GuildState]],
) -> int:
    """Fold the subject's structural slots in ``source_guild_id`` into its record.

    Holders come from the guild state, since a subject may sit in the owner or
    advisor slot of several guilds while the user record carries only one.
    """

    value = int(bits)
    source = states.get(source_guild_id) if states else None
    if source is not None:
        is_owner = source.owner_id == subject.id
        is_advisor = source.advisor_id == subject.id
    else:
        is_owner = subject.owner_of == source_guild_id
        is_advisor = subject.advisor_of == source_guild_id
    if is_owner:
        value |= Permission.OWNER
    if is_advisor:
        value |= Permission.ADVISOR
    return value


def target_roles(
    subject: Optional[TcnUser],
    config: GuildConfig,
    state: Optional[GuildState],
    membership: Membership,
    states: Optional[Mapping[str, GuildState]] = None,
) -> Set[str]:
    """Role ids ``membership`` should hold once ``subject`` is reconciled.

    ``states`` maps every known guild id to its post-reconcile holders. When
    ``state`` is ``None`` the holders of this guild are unknown and the
    structural roles the member already carries are left in place.
    """

    catalog = config.roles
    managed = catalog.managed
    roles = {role for role in membership.role_ids if role not in managed}

    if membership.bot and catalog.bot:
        roles.add(catalog.bot)

    if subject is None:
        return roles

    if state is None:
        structural = {catalog.owner, catalog.advisor, catalog.voter}
        roles.update(role for role in membership.role_ids if role and role in structural)

    is_owner = state is not None and state.owner_id == subject.id
    is_advisor = state is not None and state.advisor_id == subject.id
    is_voter = state is not None and state.voter_id == subject.id

    if is_owner and catalog.owner:
        roles.add(catalog.owner)
    if is_advisor and catalog.advisor:
        roles.add(catalog.advisor)
    if is_voter and catalog.voter:
        roles.add(catalog.voter)

    for source_guild_id, bits in subject.guilds.items():
        record = _source_bits(subject, source_guild_id, bits, states)
        senior = bool(record & SENIOR_MASK)
        for flag in PLAIN_FLAGS:
            if not record & flag:
                continue
            role = catalog.permission_role(source_guild_id, flag)
            if role is None:
                continue
            if (
                config.single_color_role
                and is_cosmetic(flag)
                and not (senior or is_owner or is_advisor)
            ):
                continue
            roles.add(role)

    return roles


def project_membership(
    subject: Optional[TcnUser],
    config: GuildConfig,
    state: Optional[GuildState],
    membership: Membership,
    states: Optional[Mapping[str, GuildState]] = None,
) -> Optional[UpdateMemberRoles]:
    """Return a role update for ``membership`` or ``None`` when it already matches."""

    current = set(membership.role_ids)
    target = target_roles(subject, config, state, membership, states)
    if target == current:
        return None
    return UpdateMemberRoles(
        guild_id=membership.guild_id,
        user_id=membership.user_id,
        role_ids=tuple(sorted(target)),
        added=tuple(sorted(target - current)),
        removed=tuple(sorted(current - target)),
    )


def project_all(
    subject: Optional[TcnUser],
    configs: Iterable[GuildConfig],
    states: Mapping[str, GuildState],
    memberships: Mapping[str, Membership],
) -> List[UpdateMemberRoles]:
    """Project every guild the subject is a live member of."""

    updates: List[UpdateMemberRoles] = []
    for config in configs:
        membership = memberships.get(config.id)
        if membership is None:
            continue
        update = project_membership(
            subject, config, states.get(config.id), membership, states
        )
        if update is None:
            continue
        log.debug(
            "member roles drifted",
            extra={
                "guild_id": config.id,
                "user_id": membership.user_id,
                "added": len(update.added),
                "removed": len(update.removed),
            },
        )
        updates.append(update)
    return updates
