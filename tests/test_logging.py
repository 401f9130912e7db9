from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

import pytest

from nina.utils.logging import setup_logging
from tests.fakes import make_config


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    discord_level = logging.getLogger("discord").level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    logging.getLogger("discord").setLevel(discord_level)


def test_setup_logging_writes_rotating_file(tmp_path) -> None:
    config = make_config(log_dir=str(tmp_path / "logs"), log_file="nina.log", log_level="debug")

    setup_logging(config)
    logging.getLogger("nina.test").debug("hello")

    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert any(isinstance(h, RotatingFileHandler) for h in root.handlers)
    assert len(root.handlers) == 2
    assert "hello" in (tmp_path / "logs" / "nina.log").read_text(encoding="utf-8")


def test_setup_logging_quiets_discord(tmp_path) -> None:
    setup_logging(make_config(log_dir=str(tmp_path), log_level="INFO"))

    assert logging.getLogger("discord").level == logging.WARNING

    # Gọi lại không nhân đôi handler
    setup_logging(make_config(log_dir=str(tmp_path), log_level="ERROR"))
    assert len(logging.getLogger().handlers) == 2
    assert logging.getLogger("discord").level == logging.ERROR
