from __future__ import annotations

from discord.ext import commands


class MusicCommandError(commands.CommandError):
    """Lỗi nghiệp vụ của lệnh nhạc. Message được hiển thị nguyên văn cho user."""


class VoiceStateError(commands.CheckFailure):
    """User/bot không ở trạng thái voice phù hợp để chạy lệnh."""

    default_message = "Invalid voice state"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class UserNotInVoiceError(VoiceStateError):
    default_message = "User not in a voice channel"


class NotConnectedError(VoiceStateError):
    default_message = "I'm not connected to a voice channel"


class DifferentChannelError(VoiceStateError):
    default_message = "User not in the same voice channel"


class ResolveError(Exception):
    """yt-dlp chạy lỗi, timeout hoặc trả về dữ liệu không dùng được."""
