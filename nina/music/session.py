# ##############################################################################
# MODULE: VOICE SESSION
# DESCRIPTION: Quản lý phiên voice của từng guild (1 guild = 1 session).
#              Session bọc discord.VoiceClient + TrackQueue, tự phát bài kế tiếp
#              khi bài hiện tại kết thúc (callback `after` của discord.py).
# ##############################################################################

from __future__ import annotations

import asyncio
import logging
import shlex
from functools import partial
from typing import Sequence

import discord

from nina.music.embeds import EmbedStyle
from nina.music.queue import QueuedTrack, TrackQueue
from nina.music.resolver import StreamInfo, YtDlpResolver
from nina.utils.constants import (
    FFMPEG_BEFORE_OPTIONS,
    FFMPEG_OPTIONS,
    VOICE_CONNECT_TIMEOUT,
    VOICE_DISCONNECT_TIMEOUT,
)
from nina.utils.errors import ResolveError
from nina.utils.locks import GuildLocks

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------------------
# Class: GuildVoiceSession
# Purpose: Trạng thái phát nhạc của 1 guild.
# ------------------------------------------------------------------------------
class GuildVoiceSession:
    def __init__(
        self,
        voice_client: discord.VoiceClient,
        *,
        resolver: YtDlpResolver,
        style: EmbedStyle,
        ffmpeg_path: str = "ffmpeg",
        announce: bool = True,
        deafened: bool = False,
    ) -> None:
        self.voice_client = voice_client
        self.guild_id: int = voice_client.guild.id
        self.queue = TrackQueue()

        # Kênh text nhận thông báo "Finished playing"/"Now playing"
        self.text_channel: discord.abc.Messageable | None = None

        self._resolver = resolver
        self._style = style
        self._ffmpeg_path = ffmpeg_path
        self._announce = announce

        self._muted = False
        self._deafened = deafened
        self._closed = False
        self._source: discord.PCMVolumeTransformer | None = None

        self._loop = asyncio.get_running_loop()
        self._play_lock = asyncio.Lock()
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def channel(self) -> discord.abc.Connectable | None:
        return self.voice_client.channel

    @property
    def muted(self) -> bool:
        return self._muted

    @property
    def deafened(self) -> bool:
        return self._deafened

    # --------------------------------------------------------------------------
    # Voice state (mute / deafen)
    # --------------------------------------------------------------------------
    async def _change_voice_state(self, *, self_mute: bool, self_deaf: bool) -> None:
        guild = self.voice_client.guild
        await guild.change_voice_state(channel=self.channel, self_mute=self_mute, self_deaf=self_deaf)

    async def set_muted(self, muted: bool) -> None:
        await self._change_voice_state(self_mute=muted, self_deaf=self._deafened)
        self._muted = muted

        # Self-mute chỉ là cờ hiển thị, cần tắt hẳn âm lượng để không còn tiếng
        if self._source is not None:
            self._source.volume = 0.0 if muted else 1.0

    async def set_deafened(self, deafened: bool) -> None:
        await self._change_voice_state(self_mute=self._muted, self_deaf=deafened)
        self._deafened = deafened

    # --------------------------------------------------------------------------
    # Method: enqueue
    # Purpose: Thêm bài vào cuối hàng đợi, bắt đầu phát nếu đang rảnh.
    #          Trả về True nếu bài đầu tiên được phát ngay.
    # --------------------------------------------------------------------------
    def enqueue(self, tracks: Sequence[QueuedTrack]) -> bool:
        if not tracks:
            return False

        was_idle = self.queue.is_empty()
        self.queue.extend(tracks)
        self._schedule_play_next(announce=False)
        return was_idle

    # --------------------------------------------------------------------------
    # Method: skip
    # Purpose: Bỏ bài hiện tại và (amount - 1) bài kế tiếp.
    #          Trả về danh sách bài bị bỏ theo thứ tự.
    # --------------------------------------------------------------------------
    def skip(self, amount: int = 1) -> list[QueuedTrack]:
        if amount < 1:
            raise ValueError("amount must be >= 1")

        skipped: list[QueuedTrack] = []
        current = self.queue.current
        if current is not None:
            skipped.append(current)

        skipped.extend(self.queue.drop_upcoming(amount - len(skipped)))
        self._interrupt_current()
        return skipped

    def stop(self) -> list[QueuedTrack]:
        dropped = self.queue.clear()
        current = self.queue.current
        self._interrupt_current()
        return ([current] if current is not None else []) + dropped

    def _interrupt_current(self) -> None:
        # Kết thúc bài ngay tại đây: callback `after` của vc.stop() đến sau,
        # lệnh skip kế tiếp phải thấy bài tiếp theo là current
        track = self.queue.finish_current()
        if track is None:
            return

        vc = self.voice_client
        if vc.is_playing() or vc.is_paused():
            vc.stop()

        self._schedule_play_next(announce=False)

    def detach(self) -> None:
        """Dừng phát và xóa hàng đợi, session không được dùng lại sau đó."""
        self._closed = True
        self.queue.clear()
        self.queue.finish_current()

        vc = self.voice_client
        if vc.is_playing() or vc.is_paused():
            vc.stop()

        for task in list(self._tasks):
            task.cancel()

    # --------------------------------------------------------------------------
    # Method: disconnect
    # Purpose: Dừng phát, xóa hàng đợi và rời voice channel.
    # --------------------------------------------------------------------------
    async def disconnect(self) -> None:
        self.detach()

        vc = self.voice_client
        if vc.is_connected():
            await asyncio.wait_for(vc.disconnect(force=True), timeout=VOICE_DISCONNECT_TIMEOUT)

    # --------------------------------------------------------------------------
    # Playback loop
    # --------------------------------------------------------------------------
    def _schedule_play_next(self, *, announce: bool) -> None:
        if self._closed:
            return
        task = self._loop.create_task(self._play_next(announce=announce))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _create_source(self, stream: StreamInfo) -> discord.PCMVolumeTransformer:
        before_options = FFMPEG_BEFORE_OPTIONS
        if stream.http_headers:
            headers = "".join(f"{k}: {v}\r\n" for k, v in stream.http_headers.items())
            before_options = f"{before_options} -headers {shlex.quote(headers)}"

        audio = discord.FFmpegPCMAudio(
            stream.url,
            executable=self._ffmpeg_path,
            before_options=before_options,
            options=FFMPEG_OPTIONS,
        )
        return discord.PCMVolumeTransformer(audio, volume=0.0 if self._muted else 1.0)

    async def _play_next(self, *, announce: bool) -> None:
        async with self._play_lock:
            while not self._closed and self.voice_client.is_connected():
                track = self.queue.start_next()
                if track is None:
                    # Đang có bài phát hoặc hàng đợi đã hết
                    return

                try:
                    stream = await self._resolver.resolve_stream(track.url)
                except ResolveError as e:
                    logger.warning("Failed to resolve stream guild=%s title=%r: %s", self.guild_id, track.title, e)
                    if self.queue.current is track:
                        self.queue.finish_current()
                    await self.notify(
                        "Playback",
                        f"Could not play **{track.title}**, skipping to the next track",
                        error=True,
                    )
                    continue

                if self.queue.current is not track:
                    # Bị skip/stop trong lúc đang resolve
                    continue

                source = self._create_source(stream)
                try:
                    self.voice_client.play(source, after=partial(self._after, track))
                except discord.ClientException:
                    logger.exception("Failed to start playback guild=%s title=%r", self.guild_id, track.title)
                    source.cleanup()
                    self.queue.finish_current()
                    return

                self._source = source
                logger.info("Now playing guild=%s title=%r", self.guild_id, track.title)

                if announce and self._announce:
                    await self.notify("Now playing", f"Now playing **{track.title}**")
                return

    def _after(self, track: QueuedTrack, error: Exception | None) -> None:
        # Chạy trên thread player của discord.py, phải quay về event loop
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._on_track_end, track, error)

    def _on_track_end(self, track: QueuedTrack, error: Exception | None) -> None:
        task = self._loop.create_task(self._handle_track_end(track, error))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _handle_track_end(self, track: QueuedTrack, error: Exception | None) -> None:
        # Bài đã bị skip/stop thì current đã được kết thúc trước đó
        natural_end = self.queue.current is track and error is None
        if self.queue.current is track:
            self.queue.finish_current()
            self._source = None

        if error is not None:
            logger.warning("Playback error guild=%s title=%r: %r", self.guild_id, track.title, error)

        if self._closed:
            return

        if natural_end and self._announce:
            await self.notify("Finished playing", f"Finished playing **{track.title}**")

        await self._play_next(announce=natural_end)

    # --------------------------------------------------------------------------
    # Method: notify
    # Purpose: Gửi thông báo vào kênh text gần nhất đã gọi !play.
    # --------------------------------------------------------------------------
    async def notify(self, title: str, description: str, *, error: bool = False) -> None:
        channel = self.text_channel
        if channel is None:
            return

        embed = self._style.build(title, description, error=error)
        try:
            await channel.send(embed=embed)
        except discord.HTTPException:
            logger.warning("Failed to send notice guild=%s title=%r", self.guild_id, title)


# ------------------------------------------------------------------------------
# Class: SessionManager
# Purpose: Registry session theo guild, đảm bảo mỗi guild chỉ có 1 session.
# ------------------------------------------------------------------------------
class SessionManager:
    def __init__(
        self,
        *,
        resolver: YtDlpResolver,
        style: EmbedStyle,
        ffmpeg_path: str = "ffmpeg",
        announce: bool = True,
        self_deafen: bool = True,
    ) -> None:
        self.resolver = resolver
        self._style = style
        self._ffmpeg_path = ffmpeg_path
        self._announce = announce
        self._self_deafen = self_deafen
        self._sessions: dict[int, GuildVoiceSession] = {}
        # Lock serialize lệnh theo guild, thu hồi khi session bị hủy
        self.locks = GuildLocks()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, guild_id: object) -> bool:
        return guild_id in self._sessions

    def get(self, guild_id: int) -> GuildVoiceSession | None:
        return self._sessions.get(guild_id)

    # --------------------------------------------------------------------------
    # Method: join
    # Purpose: Kết nối voice channel và tạo session mới cho guild.
    #          Nếu guild đã có session thì trả về session cũ.
    # --------------------------------------------------------------------------
    async def join(self, channel: discord.VoiceChannel | discord.StageChannel) -> GuildVoiceSession:
        guild = channel.guild
        existing = self._sessions.get(guild.id)
        if existing is not None:
            return existing

        # Voice client mồ côi (không có session) sẽ chặn connect mới
        stale = guild.voice_client
        if stale is not None:
            logger.warning("Dropping stale voice client guild=%s", guild.id)
            try:
                await asyncio.wait_for(stale.disconnect(force=True), timeout=VOICE_DISCONNECT_TIMEOUT)
            except Exception:
                logger.exception("Failed to disconnect stale voice client guild=%s", guild.id)

        voice_client = await channel.connect(
            timeout=VOICE_CONNECT_TIMEOUT,
            self_deaf=self._self_deafen,
        )

        session = GuildVoiceSession(
            voice_client,
            resolver=self.resolver,
            style=self._style,
            ffmpeg_path=self._ffmpeg_path,
            announce=self._announce,
            deafened=self._self_deafen,
        )
        self._sessions[guild.id] = session
        logger.info("Joined voice guild=%s channel=%s", guild.id, channel.id)
        return session

    # --------------------------------------------------------------------------
    # Method: remove
    # Purpose: Rời voice channel và hủy session. Trả về False nếu không có session.
    # --------------------------------------------------------------------------
    async def remove(self, guild_id: int) -> bool:
        session = self._sessions.pop(guild_id, None)
        if session is None:
            return False

        try:
            await session.disconnect()
        finally:
            self.locks.release(guild_id)

        logger.info("Left voice guild=%s", guild_id)
        return True

    def discard(self, guild_id: int) -> GuildVoiceSession | None:
        """Bỏ session khi bot đã bị ngắt kết nối từ bên ngoài (kick/move)."""
        session = self._sessions.pop(guild_id, None)
        if session is not None:
            session.detach()
            self.locks.release(guild_id)
        return session

    async def close_all(self) -> int:
        closed = 0
        for guild_id in list(self._sessions):
            try:
                if await self.remove(guild_id):
                    closed += 1
            except asyncio.TimeoutError:
                logger.warning("Timeout disconnect voice guild=%s during shutdown", guild_id)
            except Exception:
                logger.exception("Failed to disconnect voice guild=%s during shutdown", guild_id)
        return closed
