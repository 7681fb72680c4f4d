"""``!roles`` command: pick a user's TCN roles and reconcile them."""

from __future__ import annotations

import logging
from typing import Optional, Tuple

import discord
from discord.ext import commands

from shared.config import (
    get_guilds_path,
    get_tcn_api_timeout_sec,
    get_tcn_api_token,
    get_tcn_api_url,
)

from .api import TcnApiClient
from .catalog import load_guild_catalog
from .eligibility import authorize_invocation
from .errors import NotFoundError, RolesError
from .platform import DiscordPlatform
from .reconciler import RoleMenu, RoleReconciler
from .views import RoleSelectView

__all__ = ["RolesCog", "get_reconciler", "setup"]

log = logging.getLogger("tcn.roles.cog")

_ATTRIBUTE_NAME = "_role_reconciler"

GUILD_NOT_FOUND = "Guild not found"
USER_NOT_REGISTERED = "That user is not registered with TCN"
SUGGESTION_LIMIT = 5


def get_reconciler(bot: commands.Bot) -> RoleReconciler:
    """Return the bot's reconciler, building it from config on first use."""

    reconciler = getattr(bot, _ATTRIBUTE_NAME, None)
    if reconciler is None:
        api = TcnApiClient(
            get_tcn_api_url(),
            get_tcn_api_token(),
            timeout=get_tcn_api_timeout_sec(),
        )
        catalog = load_guild_catalog(get_guilds_path())
        reconciler = RoleReconciler(api, DiscordPlatform(bot), catalog)
        setattr(bot, _ATTRIBUTE_NAME, reconciler)
    return reconciler


class RolesCog(commands.Cog):
    """Expose the role reconciliation engine to operators."""

    def __init__(self, bot: commands.Bot, reconciler: RoleReconciler | None = None) -> None:
        self.bot = bot
        self.reconciler = reconciler or get_reconciler(bot)

    async def cog_unload(self) -> None:
        close = getattr(self.reconciler.api, "close", None)
        if callable(close):
            await close()

    def _resolve_guild(self, query: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
        if query is None or not query.strip():
            return None, None
        catalog = self.reconciler.catalog
        guild = catalog.resolve(query)
        if guild is None:
            matches = catalog.search(query, limit=SUGGESTION_LIMIT)
            if not matches:
                return None, GUILD_NOT_FOUND
            names = ", ".join(
                f"{match.name} ({match.alias})" if match.alias else match.name for match in matches
            )
            return None, f"{GUILD_NOT_FOUND}. Did you mean: {names}?"
        return guild.id, None

    async def prepare_menu(
        self, operator_id: str, subject_id: str, guild_query: Optional[str]
    ) -> Tuple[Optional[RoleMenu], Optional[str]]:
        """Run the invocation gate and build the menu; returns ``(menu, message)``."""

        guild_id, error = self._resolve_guild(guild_query)
        if error is not None:
            return None, error

        try:
            operator = await self.reconciler.api.get_user(operator_id)
        except RolesError as exc:
            log.warning("operator lookup failed", extra={"operator_id": operator_id, "error": str(exc)})
            return None, f"roles unavailable: {exc}"
        denial = authorize_invocation(operator, guild_id)
        if denial is not None:
            return None, denial

        try:
            menu = await self.reconciler.menu(operator_id, subject_id, guild_id)
        except NotFoundError as exc:
            return None, GUILD_NOT_FOUND if exc.kind == "guild" else USER_NOT_REGISTERED
        except RolesError as exc:
            log.warning("roles menu failed", extra={"subject_id": subject_id, "error": str(exc)})
            return None, f"roles unavailable: {exc}"
        if menu.denial is not None:
            return None, menu.denial
        return menu, None

    @commands.command(
        name="roles",
        help="Sets the roles a user fulfills, optionally for one guild (id, name or alias).",
        brief="Sets the roles a user fulfills.",
    )
    async def roles(
        self, ctx: commands.Context, user: discord.User, *, guild: Optional[str] = None
    ) -> None:
        menu, message = await self.prepare_menu(str(ctx.author.id), str(user.id), guild)
        if menu is None:
            await ctx.reply(message or USER_NOT_REGISTERED, mention_author=False)
            return
        view = RoleSelectView(
            reconciler=self.reconciler, menu=menu, operator_id=ctx.author.id
        )
        config = self.reconciler.catalog.get(menu.guild_id)
        scope = f" for {config.name if config else menu.guild_id}" if menu.guild_id else ""
        sent = await ctx.reply(
            f"Select the roles of {user.mention}{scope}:",
            view=view,
            mention_author=False,
        )
        view.message = sent


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(RolesCog(bot))
