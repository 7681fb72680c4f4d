"""Select-menu panel used by ``!roles`` to pick the flags to apply."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, cast

import discord
from discord import InteractionResponded

from .errors import RolesError

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from .reconciler import RoleMenu, RoleReconciler

log = logging.getLogger("tcn.roles.views")

NOT_YOUR_PANEL = "⚠️ Not your panel. Run **!roles** to open your own."


def build_select_options(menu: "RoleMenu") -> List[discord.SelectOption]:
    return [
        discord.SelectOption(label=text, value=flag.name, default=selected)
        for flag, text, selected in menu.entries()
    ]


class _RoleSelect(discord.ui.Select):
    def __init__(self, menu: "RoleMenu") -> None:
        options = build_select_options(menu)
        super().__init__(
            placeholder="roles",
            min_values=0,
            max_values=len(options),
            options=options,
        )

    async def callback(self, interaction: discord.Interaction) -> None:  # pragma: no cover - exercised indirectly
        view = cast("RoleSelectView", self.view)
        await view.submit(interaction, list(self.values))


class RoleSelectView(discord.ui.View):
    """One-shot panel: the first submission disables it before reconciling."""

    def __init__(
        self,
        *,
        reconciler: "RoleReconciler",
        menu: "RoleMenu",
        operator_id: int,
        timeout: float = 300,
    ) -> None:
        super().__init__(timeout=timeout)
        self.reconciler = reconciler
        self.menu = menu
        self.operator_id = int(operator_id)
        self.message: discord.Message | None = None
        self.add_item(_RoleSelect(menu))

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        if interaction.user and interaction.user.id == self.operator_id:
            return True
        try:
            await interaction.response.send_message(NOT_YOUR_PANEL, ephemeral=True)
        except InteractionResponded:
            await interaction.followup.send(NOT_YOUR_PANEL, ephemeral=True)
        return False

    def _disable(self) -> None:
        for child in self.children:
            child.disabled = True

    async def submit(self, interaction: discord.Interaction, values: List[str]) -> str:
        # Concurrent passes for the same subject are last-writer-wins, so the
        # panel only ever accepts one submission.
        self._disable()
        self.stop()
        await interaction.response.edit_message(content="updating roles…", view=self)
        try:
            report = await self.reconciler.reconcile(
                str(self.operator_id), self.menu.subject_id, self.menu.guild_id, values
            )
            content = report.summary()
        except RolesError as exc:
            log.warning(
                "role reconcile aborted",
                extra={"subject_id": self.menu.subject_id, "error": str(exc)},
            )
            content = f"roles not updated: {exc}"
        await interaction.edit_original_response(content=content, view=None)
        return content

    async def on_timeout(self) -> None:  # pragma: no cover - runtime safety
        self._disable()
        if self.message is not None:
            try:
                await self.message.edit(view=self)
            except discord.HTTPException:
                log.debug("roles panel timeout edit failed", exc_info=True)
