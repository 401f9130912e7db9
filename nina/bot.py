# ##############################################################################
# MODULE: BOT CORE
# DESCRIPTION: Định nghĩa class NinaBot kế thừa từ commands.Bot.
#              Quản lý Lifecycle, Extensions, Voice Sessions và Global Error Handling.
# ##############################################################################

from __future__ import annotations

import logging
from typing import Iterable

import discord
from discord.ext import commands

from nina.config import Config
from nina.music.embeds import EmbedStyle
from nina.music.resolver import YtDlpResolver
from nina.music.session import SessionManager
from nina.utils.errors import MusicCommandError, VoiceStateError

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------------------
# Helper: command_title
# Purpose: Title của embed phản hồi = prefix + tên lệnh (vd: "!play").
# ------------------------------------------------------------------------------
def command_title(ctx: commands.Context, fallback: str = "Nina") -> str:
    if ctx.command is None:
        return fallback
    prefix = ctx.prefix or ""
    return f"{prefix}{ctx.command.qualified_name}"


def _humans_in(channel) -> int:
    return sum(1 for m in channel.members if not m.bot)


# ------------------------------------------------------------------------------
# Class: NinaBot
# Purpose: Class bot chính.
# ------------------------------------------------------------------------------
class NinaBot(commands.Bot):
    def __init__(self, config: Config) -> None:
        intents = discord.Intents.default()
        intents.message_content = True
        intents.voice_states = True
        super().__init__(command_prefix=config.command_prefix, intents=intents, help_command=None)

        self.config = config
        self.embed_style = EmbedStyle(config.display_name, config.avatar_url)

        # Registry session voice: mỗi guild tối đa 1 session
        self.sessions = SessionManager(
            resolver=YtDlpResolver(
                config.ytdlp_path,
                audio_format=config.ytdlp_format,
                timeout=config.resolve_timeout_seconds,
            ),
            style=self.embed_style,
            ffmpeg_path=config.ffmpeg_path,
            announce=config.announce_tracks,
            self_deafen=config.self_deafen,
        )

    # --------------------------------------------------------------------------
    # Method: setup_hook
    # Purpose: Khởi chạy khi bot bắt đầu. Load Cogs.
    # --------------------------------------------------------------------------
    async def setup_hook(self) -> None:
        await self.load_extension("nina.cogs.music")
        await self.load_extension("nina.cogs.meta")

    # --------------------------------------------------------------------------
    # Method: on_ready
    # Purpose: Event khi bot đã đăng nhập thành công vào Discord Gateway.
    # --------------------------------------------------------------------------
    async def on_ready(self) -> None:
        if not self.user:
            return

        # Bot chỉ dùng prefix command, xóa slash command global còn sót lại
        try:
            self.tree.clear_commands(guild=None)
            await self.tree.sync()
        except discord.HTTPException:
            logger.exception("Failed to clear global application commands")

        logger.info("Logged in as %s (%s)", self.user, self.user.id)

    # --------------------------------------------------------------------------
    # Method: send_embed
    # Purpose: Gửi phản hồi dạng embed cho lệnh, lỗi gửi chỉ được log lại.
    # --------------------------------------------------------------------------
    async def send_embed(
        self,
        ctx: commands.Context,
        description: str,
        *,
        error: bool = False,
        fields: Iterable[tuple[str, str]] = (),
    ) -> None:
        embed = self.embed_style.build(command_title(ctx), description, error=error, fields=fields)
        try:
            await ctx.send(embed=embed)
        except discord.HTTPException:
            logger.exception("Error sending message channel=%s", getattr(ctx.channel, "id", None))

    # --------------------------------------------------------------------------
    # Method: on_command_error
    # Purpose: Xử lý lỗi toàn cục cho prefix commands.
    # --------------------------------------------------------------------------
    async def on_command_error(self, ctx: commands.Context, error: commands.CommandError) -> None:
        if isinstance(error, commands.CommandNotFound):
            return

        if isinstance(error, (MusicCommandError, VoiceStateError)):
            message = str(error)
        elif isinstance(error, commands.NoPrivateMessage):
            message = "This command can only be used in a server"
        elif isinstance(error, commands.UserInputError):
            message = f"Invalid arguments. Use `{self.config.command_prefix}help` to see usage"
        else:
            original = getattr(error, "original", error)
            logger.error(
                "Command error command=%s guild=%s",
                ctx.command.qualified_name if ctx.command else None,
                ctx.guild.id if ctx.guild else None,
                exc_info=original,
            )
            message = "Something went wrong while handling the command"

        await self.send_embed(ctx, message, error=True)

    # --------------------------------------------------------------------------
    # Method: close
    # Purpose: Dọn dẹp tài nguyên khi tắt bot (rời mọi voice channel).
    # --------------------------------------------------------------------------
    async def close(self) -> None:
        logger.info("Shutting down bot - cleaning up resources...")

        disconnect_count = await self.sessions.close_all()
        if disconnect_count > 0:
            logger.info("Disconnected %d voice sessions", disconnect_count)

        await super().close()
        logger.info("Bot shutdown complete")

    # --------------------------------------------------------------------------
    # Event: on_voice_state_update
    # Purpose: Tự động rời kênh khi không còn ai, dọn session khi bot bị kick.
    # --------------------------------------------------------------------------
    async def on_voice_state_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        guild = member.guild
        session = self.sessions.get(guild.id)
        if session is None:
            return

        # Bot bị ngắt kết nối từ bên ngoài (kick, xóa channel)
        if self.user is not None and member.id == self.user.id:
            if before.channel is not None and after.channel is None:
                logger.info("Bot was disconnected from voice guild=%s", guild.id)
                self.sessions.discard(guild.id)
            return

        if not self.config.auto_leave_empty:
            return

        if before.channel is None or before.channel == after.channel:
            return

        if session.channel is None or session.channel.id != before.channel.id:
            return

        channel = before.channel
        # Chờ lệnh đang chạy (vd: !play đang resolve) xong rồi mới rời kênh
        async with self.sessions.locks.hold(guild.id):
            if self.sessions.get(guild.id) is not session:
                return

            humans_left = _humans_in(channel)
            if humans_left:
                logger.info("Remaining %d members connected to voice channel guild=%s", humans_left, guild.id)
                return

            try:
                await self.sessions.remove(guild.id)
            except Exception:
                logger.exception("Failed leaving empty voice channel automatically guild=%s", guild.id)
                return

        await session.notify("Auto leave", "Left the voice channel because everyone left")
