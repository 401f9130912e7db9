# ##############################################################################
# MODULE: CONFIG
# DESCRIPTION: Quản lý cấu hình ứng dụng từ biến môi trường (Environment Variables).
#              Sử dụng python-dotenv để load file .env.
# ##############################################################################

from __future__ import annotations

from dataclasses import dataclass
import os

from dotenv import load_dotenv


DEFAULT_AVATAR_URL = "https://raw.githubusercontent.com/Hironha/rina/main/static/images/nina.jpg"
DEFAULT_YTDLP_FORMAT = "ba[abr>0][vcodec=none]/best"

_TRUE_VALUES = {"1", "true", "yes", "y", "on"}


# ------------------------------------------------------------------------------
# Helper: _get_bool
# Purpose: Chuyển đổi giá trị string từ env thành boolean an toàn.
# ------------------------------------------------------------------------------
def _get_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUE_VALUES


# ------------------------------------------------------------------------------
# Helper: _get_int
# Purpose: Chuyển đổi giá trị string từ env thành int, có giá trị mặc định.
# ------------------------------------------------------------------------------
def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


def _get_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip() or default


# ------------------------------------------------------------------------------
# Class: Config
# Purpose: Dataclass chứa toàn bộ thông tin cấu hình (immutable).
# ------------------------------------------------------------------------------
@dataclass(frozen=True)
class Config:
    discord_token: str

    # Cấu hình Bot
    command_prefix: str
    display_name: str
    avatar_url: str | None
    self_deafen: bool
    auto_leave_empty: bool
    announce_tracks: bool
    max_skip: int
    queue_display_limit: int

    # Cấu hình công cụ ngoài (yt-dlp / ffmpeg)
    ytdlp_path: str
    ytdlp_format: str
    ffmpeg_path: str
    resolve_timeout_seconds: int

    # Cấu hình Logging
    log_level: str
    log_dir: str
    log_file: str
    log_max_bytes: int
    log_backup_count: int


# ------------------------------------------------------------------------------
# Function: load_config
# Purpose: Đọc file .env và validate các giá trị bắt buộc.
#          Trả về đối tượng Config hoàn chỉnh.
# ------------------------------------------------------------------------------
def load_config() -> Config:
    load_dotenv(override=False)

    # 1. Discord Token (Bắt buộc)
    discord_token = os.getenv("DISCORD_TOKEN", "").strip()
    if not discord_token:
        raise ValueError("Missing DISCORD_TOKEN in environment")

    # 2. Bot General Config
    command_prefix = _get_str("COMMAND_PREFIX", "!")
    display_name = _get_str("BOT_DISPLAY_NAME", "Nina")

    # Cho phép tắt avatar bằng cách set BOT_AVATAR_URL rỗng
    raw_avatar = os.getenv("BOT_AVATAR_URL")
    if raw_avatar is None:
        avatar_url: str | None = DEFAULT_AVATAR_URL
    else:
        avatar_url = raw_avatar.strip() or None

    self_deafen = _get_bool("SELF_DEAFEN", True)
    auto_leave_empty = _get_bool("AUTO_LEAVE_EMPTY", True)
    announce_tracks = _get_bool("ANNOUNCE_TRACKS", True)

    max_skip = _get_int("MAX_SKIP", 20)
    if max_skip < 1:
        raise ValueError("MAX_SKIP must be >= 1")

    queue_display_limit = _get_int("QUEUE_DISPLAY_LIMIT", 50)
    if queue_display_limit < 1:
        raise ValueError("QUEUE_DISPLAY_LIMIT must be >= 1")

    # 3. External tools
    ytdlp_path = _get_str("YTDLP_PATH", "yt-dlp")
    ytdlp_format = _get_str("YTDLP_FORMAT", DEFAULT_YTDLP_FORMAT)
    ffmpeg_path = _get_str("FFMPEG_PATH", "ffmpeg")

    resolve_timeout_seconds = _get_int("RESOLVE_TIMEOUT_SECONDS", 30)
    if resolve_timeout_seconds <= 0:
        raise ValueError("RESOLVE_TIMEOUT_SECONDS must be > 0")

    # 4. Logging Config
    log_level = _get_str("LOG_LEVEL", "INFO")
    log_dir = _get_str("LOG_DIR", "logs")
    log_file = _get_str("LOG_FILE", "bot.log")
    log_max_bytes = _get_int("LOG_MAX_BYTES", 5 * 1024 * 1024)
    log_backup_count = _get_int("LOG_BACKUP_COUNT", 5)

    return Config(
        discord_token=discord_token,
        command_prefix=command_prefix,
        display_name=display_name,
        avatar_url=avatar_url,
        self_deafen=self_deafen,
        auto_leave_empty=auto_leave_empty,
        announce_tracks=announce_tracks,
        max_skip=max_skip,
        queue_display_limit=queue_display_limit,
        ytdlp_path=ytdlp_path,
        ytdlp_format=ytdlp_format,
        ffmpeg_path=ffmpeg_path,
        resolve_timeout_seconds=resolve_timeout_seconds,
        log_level=log_level,
        log_dir=log_dir,
        log_file=log_file,
        log_max_bytes=log_max_bytes,
        log_backup_count=log_backup_count,
    )
