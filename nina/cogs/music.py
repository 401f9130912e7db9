# ##############################################################################
# MODULE: MUSIC COG
# DESCRIPTION: Cog xử lý toàn bộ lệnh phát nhạc của bot.
#              Bao gồm: join, leave, mute, unmute, play, skip, stop, queue, now.
#              Mọi lệnh (trừ join/play) yêu cầu user ở cùng voice channel với bot.
# ##############################################################################

from __future__ import annotations

import asyncio
import logging

import discord
from discord.ext import commands

from nina.config import Config
from nina.music.embeds import numbered
from nina.music.queue import QueuedTrack
from nina.music.resolver import TrackMetadata, is_playlist_url
from nina.music.session import GuildVoiceSession, SessionManager
from nina.utils.errors import (
    DifferentChannelError,
    MusicCommandError,
    NotConnectedError,
    ResolveError,
    UserNotInVoiceError,
)

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------------------
# Helper: parse_skip_amount
# Purpose: Đọc tham số của !skip. Mặc định 1, phải là số nguyên dương <= max_skip.
# ------------------------------------------------------------------------------
def parse_skip_amount(raw: str | None, *, max_skip: int) -> int:
    if raw is None or not raw.strip():
        return 1

    try:
        amount = int(raw.strip())
    except ValueError:
        raise MusicCommandError("Amount of tracks to skip must be a positive integer") from None

    if amount > max_skip:
        raise MusicCommandError(f"Cannot skip more than {max_skip} tracks at once")
    if amount < 1:
        raise MusicCommandError("Amount of tracks to skip must be a positive integer")

    return amount


def _to_track(metadata: TrackMetadata, requester_id: int | None) -> QueuedTrack:
    return QueuedTrack(
        title=metadata.title,
        url=metadata.url,
        requester_id=requester_id,
        duration=metadata.duration,
    )


# ------------------------------------------------------------------------------
# Helper: author_voice_channel
# Purpose: Lấy voice channel mà author đang tham gia.
# ------------------------------------------------------------------------------
def author_voice_channel(ctx: commands.Context) -> discord.VoiceChannel | discord.StageChannel | None:
    member = ctx.author if isinstance(ctx.author, discord.Member) else None
    if not member or not member.voice or not member.voice.channel:
        return None
    return member.voice.channel


def _guild(ctx: commands.Context) -> discord.Guild:
    # guild_only() đã chặn DM, kiểm tra lại để có kiểu Guild rõ ràng
    if ctx.guild is None:
        raise commands.NoPrivateMessage()
    return ctx.guild


# ------------------------------------------------------------------------------
# Class: MusicCog
# Purpose: Class chứa các prefix command liên quan đến âm nhạc.
# ------------------------------------------------------------------------------
class MusicCog(commands.Cog):
    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot

    @property
    def sessions(self) -> SessionManager:
        return getattr(self.bot, "sessions")

    @property
    def config(self) -> Config:
        return getattr(self.bot, "config")

    async def _reply(self, ctx: commands.Context, description: str) -> None:
        await getattr(self.bot, "send_embed")(ctx, description)

    # --------------------------------------------------------------------------
    # Guards: kiểm tra trạng thái voice trước mỗi lệnh
    # --------------------------------------------------------------------------
    def _require_author_channel(self, ctx: commands.Context) -> discord.VoiceChannel | discord.StageChannel:
        channel = author_voice_channel(ctx)
        if channel is None:
            raise UserNotInVoiceError()
        return channel

    def _ensure_same_channel(self, ctx: commands.Context, session: GuildVoiceSession) -> None:
        channel = author_voice_channel(ctx)
        if channel is None or session.channel is None or channel.id != session.channel.id:
            raise DifferentChannelError()

    def _require_session(self, ctx: commands.Context) -> GuildVoiceSession:
        guild = _guild(ctx)
        session = self.sessions.get(guild.id)
        if session is None:
            raise NotConnectedError()

        self._ensure_same_channel(ctx, session)
        return session

    async def _join(
        self,
        channel: discord.VoiceChannel | discord.StageChannel,
        *,
        error_message: str,
    ) -> GuildVoiceSession:
        try:
            return await self.sessions.join(channel)
        except (asyncio.TimeoutError, discord.ClientException, discord.HTTPException, RuntimeError):
            logger.exception("Failed joining voice channel guild=%s channel=%s", channel.guild.id, channel.id)
            raise MusicCommandError(error_message) from None

    # --------------------------------------------------------------------------
    # Command: !join
    # --------------------------------------------------------------------------
    @commands.command(name="join")
    @commands.guild_only()
    async def join(self, ctx: commands.Context) -> None:
        guild = _guild(ctx)
        channel = self._require_author_channel(ctx)

        async with self.sessions.locks.hold(guild.id):
            session = self.sessions.get(guild.id)
            if session is not None:
                if session.channel is not None and session.channel.id == channel.id:
                    await self._reply(ctx, f"I'm already in {channel.mention}")
                    return
                raise MusicCommandError("I'm already in another voice channel")

            session = await self._join(channel, error_message=f"Could not join the voice channel {channel.mention}")
            session.text_channel = ctx.channel

        await self._reply(ctx, f"Joined {channel.mention}")

    # --------------------------------------------------------------------------
    # Command: !leave
    # --------------------------------------------------------------------------
    @commands.command(name="leave")
    @commands.guild_only()
    async def leave(self, ctx: commands.Context) -> None:
        guild = _guild(ctx)

        async with self.sessions.locks.hold(guild.id):
            session = self._require_session(ctx)
            channel = session.channel

            try:
                await self.sessions.remove(guild.id)
            except Exception:
                logger.exception("Failed leaving voice channel guild=%s", guild.id)
                raise MusicCommandError("Failed leaving voice channel") from None

        mention = getattr(channel, "mention", "the voice channel")
        await self._reply(ctx, f"Left voice channel {mention}")

    # --------------------------------------------------------------------------
    # Command: !mute / !unmute
    # --------------------------------------------------------------------------
    @commands.command(name="mute")
    @commands.guild_only()
    async def mute(self, ctx: commands.Context) -> None:
        guild = _guild(ctx)
        prefix = self.config.command_prefix

        async with self.sessions.locks.hold(guild.id):
            session = self._require_session(ctx)
            if session.muted:
                await self._reply(ctx, f"I'm already muted. Use `{prefix}unmute` to unmute me")
                return

            try:
                await session.set_muted(True)
            except (discord.HTTPException, discord.ClientException):
                logger.exception("Failed self muting guild=%s", guild.id)
                raise MusicCommandError("Could not mute myself") from None

        await self._reply(ctx, f"I'm now muted. Use `{prefix}unmute` to unmute me")

    @commands.command(name="unmute")
    @commands.guild_only()
    async def unmute(self, ctx: commands.Context) -> None:
        guild = _guild(ctx)
        prefix = self.config.command_prefix

        async with self.sessions.locks.hold(guild.id):
            session = self._require_session(ctx)
            try:
                await session.set_muted(False)
            except (discord.HTTPException, discord.ClientException):
                logger.exception("Failed self unmuting guild=%s", guild.id)
                raise MusicCommandError("Could not unmute myself") from None

        await self._reply(ctx, f"I'm now unmuted. Use `{prefix}mute` to mute me")

    # --------------------------------------------------------------------------
    # Command: !play <query|url>
    # Purpose: Tìm/đọc bài (hoặc playlist) rồi thêm vào hàng đợi.
    #          Tự join voice channel của user nếu bot chưa có session.
    # --------------------------------------------------------------------------
    @commands.command(name="play")
    @commands.guild_only()
    async def play(self, ctx: commands.Context, *, query: str | None = None) -> None:
        guild = _guild(ctx)
        channel = self._require_author_channel(ctx)

        query = (query or "").strip()
        if not query:
            raise MusicCommandError("Missing music or URL argument")

        resolver = self.sessions.resolver

        # Giữ lock trong lúc resolve để các lệnh !play liên tiếp vào hàng đợi đúng thứ tự
        async with self.sessions.locks.hold(guild.id):
            session = self.sessions.get(guild.id)
            if session is None:
                session = await self._join(channel, error_message=f"Could not join the voice channel {channel.mention}")

            self._ensure_same_channel(ctx, session)
            session.text_channel = ctx.channel

            if is_playlist_url(query):
                try:
                    async with ctx.typing():
                        playlist = await resolver.resolve_playlist(query)
                except ResolveError as e:
                    logger.warning("Failed querying playlist metadata guild=%s url=%r: %s", guild.id, query, e)
                    raise MusicCommandError("Could not load track from playlist") from None

                tracks = [_to_track(m, ctx.author.id) for m in playlist]
                session.enqueue(tracks)
                logger.info("Enqueued playlist guild=%s tracks=%d", guild.id, len(tracks))
                await self._reply(ctx, f"{len(tracks)} tracks added to the queue")
                return

            try:
                async with ctx.typing():
                    metadata = await resolver.resolve_track(query)
            except ResolveError as e:
                logger.warning("Failed querying track metadata guild=%s query=%r: %s", guild.id, query, e)
                raise MusicCommandError("Could not load track") from None

            started = session.enqueue([_to_track(metadata, ctx.author.id)])
            logger.info("Enqueued track guild=%s title=%r", guild.id, metadata.title)

        if started:
            await self._reply(ctx, f"Now playing **{metadata.title}**")
        else:
            await self._reply(ctx, f"Added **{metadata.title}** to the queue")

    # --------------------------------------------------------------------------
    # Command: !skip [n]
    # --------------------------------------------------------------------------
    @commands.command(name="skip")
    @commands.guild_only()
    async def skip(self, ctx: commands.Context, amount: str | None = None) -> None:
        guild = _guild(ctx)

        async with self.sessions.locks.hold(guild.id):
            session = self._require_session(ctx)
            if session.queue.is_empty():
                raise MusicCommandError("Queue is already empty. No tracks to skip")

            count = parse_skip_amount(amount, max_skip=self.config.max_skip)
            skipped = session.skip(count)

        if count == 1:
            if skipped:
                await self._reply(ctx, f"Current track {skipped[0].title} skipped")
            else:
                await self._reply(ctx, "Current track skipped")
            return

        await self._reply(ctx, "Skipped following tracks:\n" + numbered(t.title for t in skipped))

    # --------------------------------------------------------------------------
    # Command: !stop
    # --------------------------------------------------------------------------
    @commands.command(name="stop")
    @commands.guild_only()
    async def stop(self, ctx: commands.Context) -> None:
        guild = _guild(ctx)

        async with self.sessions.locks.hold(guild.id):
            session = self._require_session(ctx)
            dropped = session.stop()

        logger.info("Stopped playback guild=%s dropped=%d", guild.id, len(dropped))
        await self._reply(ctx, "Stopped playing and cleared the queue")

    # --------------------------------------------------------------------------
    # Command: !queue
    # --------------------------------------------------------------------------
    @commands.command(name="queue")
    @commands.guild_only()
    async def queue(self, ctx: commands.Context) -> None:
        session = self._require_session(ctx)
        limit = self.config.queue_display_limit

        current = session.queue.current
        upcoming = session.queue.upcoming
        if current is None and not upcoming:
            await self._reply(ctx, "Queue is currently empty")
            return

        lines: list[str] = []
        if current is not None:
            lines.append(f"Now playing: **{current.title}**")
        else:
            lines.append("Not currently playing a track")

        lines.append("")
        lines.append(f"Total tracks in queue: **{len(upcoming)}**")

        if upcoming:
            lines.append("")
            lines.append(numbered(t.title for t in session.queue.snapshot(limit)))
            if len(upcoming) > limit:
                lines.append(f"... and {len(upcoming) - limit} more")

        await self._reply(ctx, "\n".join(lines))

    # --------------------------------------------------------------------------
    # Command: !now (alias !head)
    # --------------------------------------------------------------------------
    @commands.command(name="now", aliases=["head"])
    @commands.guild_only()
    async def now(self, ctx: commands.Context) -> None:
        session = self._require_session(ctx)

        current = session.queue.current
        if current is None:
            await self._reply(ctx, "Not currently playing a track")
            return

        await self._reply(ctx, f"Now playing {current.title}")


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(MusicCog(bot))
