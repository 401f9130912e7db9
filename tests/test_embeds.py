from __future__ import annotations

from types import SimpleNamespace

import discord
import pytest

from nina.cogs.meta import MetaCog, help_fields
from nina.music.embeds import EmbedStyle, numbered, truncate


def test_build_uses_author_and_colors() -> None:
    style = EmbedStyle("Nina", "https://example.com/nina.jpg")

    ok = style.build("!join", "Joined <#1>")
    failed = style.build("!join", "User not in a voice channel", error=True)

    assert ok.title == "!join"
    assert ok.description == "Joined <#1>"
    assert ok.color == discord.Color.orange()
    assert failed.color == discord.Color.red()
    assert ok.author.name == "Nina"
    assert ok.author.icon_url == "https://example.com/nina.jpg"
    assert ok.timestamp is not None


def test_build_fields_and_long_description() -> None:
    embed = EmbedStyle("Nina").build("!help", "x" * 5000, fields=[("!play", "Play a track")])

    assert len(embed.description) == 4000
    assert embed.description.endswith("…")
    assert [(f.name, f.value, f.inline) for f in embed.fields] == [("!play", "Play a track", False)]


def test_truncate_and_numbered() -> None:
    assert truncate("short", 10) == "short"
    assert truncate("abcdef", 4) == "abc…"
    assert numbered(["a", "b"]) == "1. a\n2. b"
    assert numbered(["c"], start=3) == "3. c"


def test_help_fields_use_prefix_and_limits() -> None:
    fields = dict(help_fields("?", "Nina", max_skip=7, queue_limit=25))

    assert list(fields) == [
        "?help", "?join", "?leave", "?mute", "?unmute", "?play", "?skip", "?stop", "?queue", "?now",
    ]
    assert "max of 7" in fields["?skip"]
    assert "first 25" in fields["?queue"]
    assert "**?head**" in fields["?now"]


@pytest.mark.asyncio
async def test_help_command_sends_fields(bot_config) -> None:
    sent: list[tuple[str, list]] = []

    async def send_embed(ctx, description, *, error=False, fields=()):
        sent.append((description, list(fields)))

    bot = SimpleNamespace(config=bot_config, send_embed=send_embed)
    cog = MetaCog(bot)  # type: ignore[arg-type]

    await MetaCog.help.callback(cog, SimpleNamespace())

    description, fields = sent[0]
    assert description == "Available commands"
    assert len(fields) == 10
