from __future__ import annotations

import asyncio
import logging

import discord
from discord.ext import commands

from shared.config import (
    get_command_prefix,
    get_discord_token,
    get_env_name,
    get_log_json,
    get_log_level,
)
from shared.logging import setup_logging

setup_logging(
    level=get_log_level(),
    json_output=get_log_json(),
    static_fields={"env": get_env_name()},
)
log = logging.getLogger("tcn.app")

INTENTS = discord.Intents.default()
INTENTS.message_content = True
INTENTS.members = True

EXTENSIONS = ("modules.roles.cog",)

bot = commands.Bot(
    command_prefix=commands.when_mentioned_or(get_command_prefix()),
    intents=INTENTS,
)


@bot.event
async def on_ready():
    log.info(
        'Bot ready as %s | env=%s | prefixes=["%s", "@mention"] | guilds=%s',
        bot.user,
        get_env_name(),
        get_command_prefix(),
        len(bot.guilds),
    )


@bot.event
async def on_command_error(ctx: commands.Context, error: Exception):
    log.warning(
        "cmd error: cmd=%s user=%s err=%r",
        getattr(ctx.command, "name", None),
        getattr(ctx.author, "id", None),
        error,
    )
    if isinstance(error, (commands.UserInputError, commands.CheckFailure)):
        try:
            await ctx.reply(str(error), mention_author=False)
        except discord.HTTPException:
            log.debug("failed to report command error", exc_info=True)


async def main() -> None:
    token = get_discord_token()
    async with bot:
        for extension in EXTENSIONS:
            await bot.load_extension(extension)
        await bot.start(token)


if __name__ == "__main__":
    asyncio.run(main())
