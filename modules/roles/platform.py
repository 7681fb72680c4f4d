"""discord.py adapter for reading and replacing member roles."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

import discord
from discord.ext import commands

from .errors import RolesError
from .models import Membership

__all__ = ["DiscordPlatform", "ROLE_SYNC_REASON"]

log = logging.getLogger("tcn.roles.platform")

ROLE_SYNC_REASON = "TCN role reconciliation"


class DiscordPlatform:
    """Membership reads and full-replace role writes through the gateway client."""

    def __init__(self, bot: commands.Bot, *, reason: str = ROLE_SYNC_REASON) -> None:
        self.bot = bot
        self.reason = reason

    async def _member(self, guild: discord.Guild, user_id: str) -> Optional[discord.Member]:
        member = guild.get_member(int(user_id))
        if member is not None:
            return member
        try:
            return await guild.fetch_member(int(user_id))
        except discord.NotFound:
            return None

    async def get_membership(self, guild_id: str, user_id: str) -> Optional[Membership]:
        guild = self.bot.get_guild(int(guild_id))
        if guild is None:
            log.debug("guild not cached, skipping membership", extra={"guild_id": guild_id})
            return None
        member = await self._member(guild, user_id)
        if member is None:
            return None
        # The @everyone role shares the guild id and is never part of an edit.
        role_ids = [
            role.id for role in getattr(member, "roles", []) or [] if role.id != guild.id
        ]
        return Membership.build(
            guild_id, user_id, role_ids, bot=bool(getattr(member, "bot", False))
        )

    async def set_member_roles(
        self, guild_id: str, user_id: str, role_ids: Iterable[str]
    ) -> None:
        guild = self.bot.get_guild(int(guild_id))
        if guild is None:
            raise RolesError(f"guild {guild_id} is not available to the bot")
        member = await self._member(guild, user_id)
        if member is None:
            raise RolesError(f"user {user_id} is no longer a member of {guild_id}")
        roles = [discord.Object(id=int(role_id)) for role_id in role_ids]
        await member.edit(roles=roles, reason=self.reason)
