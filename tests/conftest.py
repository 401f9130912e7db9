from __future__ import annotations

from types import SimpleNamespace

import pytest

from nina.music.embeds import EmbedStyle
from nina.music.resolver import StreamInfo
from nina.music.session import GuildVoiceSession, SessionManager
from tests.fakes import FakeGuild, FakeResolver, FakeSource, FakeTextChannel, FakeVoiceChannel


@pytest.fixture(autouse=True)
def fake_audio_source(monkeypatch: pytest.MonkeyPatch) -> None:
    # Không spawn ffmpeg thật trong test
    def _create_source(self: GuildVoiceSession, stream: StreamInfo) -> FakeSource:
        return FakeSource(stream, 0.0 if self.muted else 1.0)

    monkeypatch.setattr(GuildVoiceSession, "_create_source", _create_source)


@pytest.fixture
def style() -> EmbedStyle:
    return EmbedStyle("Nina", "https://example.com/nina.jpg")


@pytest.fixture
def resolver() -> FakeResolver:
    return FakeResolver()


@pytest.fixture
def guild() -> FakeGuild:
    return FakeGuild()


@pytest.fixture
def voice_channel(guild: FakeGuild) -> FakeVoiceChannel:
    return FakeVoiceChannel(guild)


@pytest.fixture
def text_channel() -> FakeTextChannel:
    return FakeTextChannel()


@pytest.fixture
def manager(resolver: FakeResolver, style: EmbedStyle) -> SessionManager:
    return SessionManager(resolver=resolver, style=style, announce=True, self_deafen=True)  # type: ignore[arg-type]


@pytest.fixture
def bot_config() -> SimpleNamespace:
    return SimpleNamespace(
        command_prefix="!",
        display_name="Nina",
        max_skip=20,
        queue_display_limit=50,
        auto_leave_empty=True,
    )
