# ##############################################################################
# MODULE: META COG
# DESCRIPTION: Cog chứa các lệnh thông tin chung (Help).
# ##############################################################################

from __future__ import annotations

from discord.ext import commands


def help_fields(prefix: str, name: str, *, max_skip: int, queue_limit: int) -> list[tuple[str, str]]:
    p = prefix
    n = f"**{name}**"
    return [
        (f"{p}help", "Explains all available commands"),
        (f"{p}join", f"Call {n} to join your current voice channel"),
        (f"{p}leave", f"Make {n} leave the voice channel"),
        (
            f"{p}mute",
            f"Mutes {n}. Beware, if playing a track, no sound will come out. "
            f"See **{p}unmute** to unmute {n}",
        ),
        (f"{p}unmute", f"Unmute {n}. See **{p}mute** to mute {n}"),
        (f"{p}play", "Play or enqueue a track. Must provide the track name or source **URL**"),
        (
            f"{p}skip",
            f"Skip track. Accepts an optional parameter to define amount of tracks to skip (max of {max_skip})",
        ),
        (f"{p}stop", f"Stop {n} if playing a track and clears all enqueued tracks"),
        (f"{p}queue", f"List first {queue_limit} enqueued tracks"),
        (f"{p}now", f"Show playing track title. Also available as **{p}head**"),
    ]


# ------------------------------------------------------------------------------
# Class: MetaCog
# Purpose: Quản lý các lệnh meta không liên quan trực tiếp đến nhạc.
# ------------------------------------------------------------------------------
class MetaCog(commands.Cog):
    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot

    @commands.command(name="help")
    @commands.guild_only()
    async def help(self, ctx: commands.Context) -> None:
        config = getattr(self.bot, "config")
        fields = help_fields(
            config.command_prefix,
            config.display_name,
            max_skip=config.max_skip,
            queue_limit=config.queue_display_limit,
        )
        await getattr(self.bot, "send_embed")(ctx, "Available commands", fields=fields)


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(MetaCog(bot))
