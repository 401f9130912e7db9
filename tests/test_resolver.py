from __future__ import annotations

import asyncio
import json

import pytest

import nina.music.resolver as resolver_module
from nina.music.resolver import (
    YtDlpResolver,
    is_playlist_url,
    is_url,
    parse_json_lines,
)
from nina.utils.errors import ResolveError


class FakeProcess:
    def __init__(self, stdout: bytes = b"", stderr: bytes = b"", returncode: int = 0, hang: bool = False) -> None:
        self._stdout = stdout
        self._stderr = stderr
        self.returncode = returncode
        self._hang = hang
        self.killed = False

    async def communicate(self) -> tuple[bytes, bytes]:
        if self._hang:
            await asyncio.sleep(3600)
        return self._stdout, self._stderr

    def kill(self) -> None:
        self.killed = True

    async def wait(self) -> int:
        return self.returncode


@pytest.fixture
def spawn(monkeypatch: pytest.MonkeyPatch):
    calls: list[tuple[str, ...]] = []
    state: dict[str, FakeProcess] = {}

    async def fake_exec(*args, **kwargs):
        calls.append(tuple(args))
        return state["process"]

    monkeypatch.setattr(resolver_module.asyncio, "create_subprocess_exec", fake_exec)

    def _set(process: FakeProcess) -> list[tuple[str, ...]]:
        state["process"] = process
        return calls

    return _set


def _lines(*items: dict) -> bytes:
    return ("\n".join(json.dumps(i) for i in items) + "\n").encode()


def _resolver(timeout: float = 5) -> YtDlpResolver:
    return YtDlpResolver("yt-dlp", audio_format="bestaudio", timeout=timeout)


@pytest.mark.parametrize(
    ("query", "expected"),
    [
        ("https://www.youtube.com/watch?v=abc&list=PL123", True),
        ("https://www.youtube.com/playlist?list=PL123", True),
        ("https://www.youtube.com/watch?v=abc", False),
        ("never gonna give you up list=PL1", False),
    ],
)
def test_is_playlist_url(query: str, expected: bool) -> None:
    assert is_playlist_url(query) is expected


def test_is_url() -> None:
    assert is_url("https://example.com/a")
    assert not is_url("some song name")


def test_parse_json_lines_skips_blank_lines() -> None:
    raw = b'{"title": "a", "url": "u1"}\n\n{"title": "b", "url": "u2"}\n'

    assert [i["title"] for i in parse_json_lines(raw)] == ["a", "b"]


def test_parse_json_lines_rejects_invalid_json() -> None:
    with pytest.raises(ResolveError, match="line 2"):
        parse_json_lines(b'{"title": "a"}\nnot-json\n')


@pytest.mark.asyncio
async def test_resolve_playlist_uses_flat_playlist(spawn) -> None:
    calls = spawn(
        FakeProcess(
            stdout=_lines(
                {"url": "https://youtu.be/1", "title": "First"},
                {"url": "https://youtu.be/2", "title": None},
            )
        )
    )

    tracks = await _resolver().resolve_playlist("https://www.youtube.com/watch?v=1&list=PL")

    assert [t.title for t in tracks] == ["First", "Unknown"]
    assert [t.url for t in tracks] == ["https://youtu.be/1", "https://youtu.be/2"]
    assert calls == [
        ("yt-dlp", "-j", "https://www.youtube.com/watch?v=1&list=PL", "-f", "bestaudio", "--flat-playlist")
    ]


@pytest.mark.asyncio
async def test_resolve_playlist_empty_output_is_error(spawn) -> None:
    spawn(FakeProcess(stdout=b"\n"))

    with pytest.raises(ResolveError):
        await _resolver().resolve_playlist("https://www.youtube.com/playlist?list=PL")


@pytest.mark.asyncio
async def test_resolve_track_searches_plain_queries(spawn) -> None:
    calls = spawn(
        FakeProcess(
            stdout=_lines(
                {
                    "title": "Song",
                    "webpage_url": "https://www.youtube.com/watch?v=xyz",
                    "url": "https://media.example/stream",
                    "duration": 212,
                }
            )
        )
    )

    track = await _resolver().resolve_track("  some song  ")

    assert track.title == "Song"
    assert track.url == "https://www.youtube.com/watch?v=xyz"
    assert track.duration == 212.0
    assert calls[0][-1] == "ytsearch1:some song"
    assert "--no-playlist" in calls[0]


@pytest.mark.asyncio
async def test_resolve_track_nonzero_exit(spawn) -> None:
    spawn(FakeProcess(stderr=b"ERROR: video unavailable", returncode=1))

    with pytest.raises(ResolveError, match="video unavailable"):
        await _resolver().resolve_track("https://www.youtube.com/watch?v=gone")


@pytest.mark.asyncio
async def test_resolve_stream_returns_headers(spawn) -> None:
    spawn(
        FakeProcess(
            stdout=_lines(
                {
                    "url": "https://media.example/stream",
                    "http_headers": {"User-Agent": "agent"},
                }
            )
        )
    )

    stream = await _resolver().resolve_stream("https://www.youtube.com/watch?v=xyz")

    assert stream.url == "https://media.example/stream"
    assert stream.http_headers == {"User-Agent": "agent"}


@pytest.mark.asyncio
async def test_resolve_stream_requires_url(spawn) -> None:
    spawn(FakeProcess(stdout=_lines({"title": "no stream"})))

    with pytest.raises(ResolveError, match="no stream url"):
        await _resolver().resolve_stream("https://www.youtube.com/watch?v=xyz")


@pytest.mark.asyncio
async def test_timeout_kills_process(spawn) -> None:
    process = FakeProcess(hang=True)
    spawn(process)

    with pytest.raises(ResolveError, match="timed out"):
        await _resolver(timeout=0.01).resolve_track("https://www.youtube.com/watch?v=slow")

    assert process.killed


@pytest.mark.asyncio
async def test_missing_executable(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_exec(*args, **kwargs):
        raise FileNotFoundError("yt-dlp")

    monkeypatch.setattr(resolver_module.asyncio, "create_subprocess_exec", fake_exec)

    with pytest.raises(ResolveError, match="Could not start"):
        await _resolver().resolve_track("song")
