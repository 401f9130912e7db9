# ##############################################################################
# MODULE: MAIN
# DESCRIPTION: Entry point của Nina: load config, setup logging, kiểm tra công cụ
#              ngoài (yt-dlp, ffmpeg) rồi chạy bot.
# ##############################################################################

from __future__ import annotations

import asyncio
import logging
import shutil

from nina.bot import NinaBot
from nina.config import Config, load_config
from nina.utils.logging import setup_logging

logger = logging.getLogger("nina")


def missing_tools(config: Config) -> list[str]:
    """Trả về các executable không tìm thấy trên PATH."""
    return [path for path in (config.ytdlp_path, config.ffmpeg_path) if shutil.which(path) is None]


async def main(config: Config) -> None:
    for tool in missing_tools(config):
        # Bot vẫn chạy được, chỉ lệnh !play sẽ lỗi
        logger.warning("Executable %r not found, playback will fail", tool)

    bot = NinaBot(config)

    # Thoát context manager sẽ rời mọi voice channel và đóng gateway
    async with bot:
        await bot.start(config.discord_token)


def run() -> None:
    try:
        config = load_config()
    except ValueError as e:
        raise SystemExit(f"Invalid configuration: {e}") from None

    setup_logging(config)
    logger.info("Starting %s with prefix %r", config.display_name, config.command_prefix)

    try:
        asyncio.run(main(config))
    except KeyboardInterrupt:
        logger.info("Interrupted, bye")


if __name__ == "__main__":
    run()
