from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
import os

from nina.config import Config

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# discord.py log rất nhiều (heartbeat, voice websocket, mỗi lần spawn ffmpeg)
_LIBRARY_LOGGERS = ("discord", "discord.player", "discord.voice_state")


def _file_handler(config: Config) -> RotatingFileHandler:
    os.makedirs(config.log_dir, exist_ok=True)
    return RotatingFileHandler(
        os.path.join(config.log_dir, config.log_file),
        maxBytes=config.log_max_bytes,
        backupCount=config.log_backup_count,
        encoding="utf-8",
    )


def setup_logging(config: Config) -> None:
    level = getattr(logging, config.log_level.upper(), logging.INFO)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    root = logging.getLogger()
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    for handler in (_file_handler(config), logging.StreamHandler()):
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root.addHandler(handler)

    lib_level = max(level, logging.WARNING)
    for name in _LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(lib_level)
