# ##############################################################################
# MODULE: CONSTANTS
# DESCRIPTION: Tập trung các hằng số và magic numbers dùng trong toàn bộ codebase.
#              Tránh hardcode giá trị, dễ maintain và điều chỉnh.
# ##############################################################################

from __future__ import annotations


# ==============================================================================
# TIMEOUT CONSTANTS
# ==============================================================================

# Thời gian chờ cho các thao tác network (giây)
VOICE_CONNECT_TIMEOUT = 12        # Timeout khi join voice
VOICE_DISCONNECT_TIMEOUT = 10     # Timeout khi rời voice (leave/shutdown)


# ==============================================================================
# FFMPEG CONSTANTS
# ==============================================================================

# Stream từ yt-dlp có thể bị rớt giữa chừng, cho ffmpeg tự reconnect
FFMPEG_BEFORE_OPTIONS = "-reconnect 1 -reconnect_streamed 1 -reconnect_delay_max 5"
FFMPEG_OPTIONS = "-vn"


# ==============================================================================
# TEXT CONSTANTS
# ==============================================================================

UNKNOWN_TITLE = "Unknown"         # Title mặc định khi yt-dlp không trả về
MAX_EMBED_DESCRIPTION = 4000      # Discord giới hạn 4096 ký tự cho description
