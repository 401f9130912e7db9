# ##############################################################################
# MODULE: RESOLVER
# DESCRIPTION: Lấy metadata bài hát/playlist và URL stream bằng yt-dlp.
#              Gọi yt-dlp như một subprocess, mỗi dòng stdout là một JSON object.
# ##############################################################################

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import json
import logging
from urllib.parse import parse_qs, urlparse

from nina.utils.constants import UNKNOWN_TITLE
from nina.utils.errors import ResolveError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackMetadata:
    title: str
    url: str
    duration: float | None = None


@dataclass(frozen=True)
class StreamInfo:
    url: str
    http_headers: dict[str, str] = field(default_factory=dict)


# ------------------------------------------------------------------------------
# Helper: is_url / is_playlist_url
# Purpose: Phân loại input của !play (URL, playlist URL, hay từ khóa tìm kiếm).
# ------------------------------------------------------------------------------
def is_url(query: str) -> bool:
    return query.strip().startswith("http")


def is_playlist_url(query: str) -> bool:
    if not is_url(query):
        return False
    params = parse_qs(urlparse(query.strip()).query)
    return bool(params.get("list"))


# ------------------------------------------------------------------------------
# Helper: parse_json_lines
# Purpose: Parse stdout của yt-dlp (-j) thành list dict, bỏ qua dòng trống.
# ------------------------------------------------------------------------------
def parse_json_lines(raw: bytes) -> list[dict]:
    items: list[dict] = []
    for line_no, line in enumerate(raw.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            item = json.loads(line)
        except json.JSONDecodeError as e:
            raise ResolveError(f"Invalid JSON from yt-dlp at line {line_no}") from e
        if not isinstance(item, dict):
            raise ResolveError(f"Unexpected JSON value from yt-dlp at line {line_no}")
        items.append(item)
    return items


def _metadata_from(item: dict, *, fallback_url: str | None = None) -> TrackMetadata:
    url = item.get("webpage_url") or item.get("original_url") or item.get("url") or fallback_url
    if not url:
        raise ResolveError("yt-dlp result has no url")

    title = str(item.get("title") or "").strip() or UNKNOWN_TITLE

    duration_raw = item.get("duration")
    duration = float(duration_raw) if isinstance(duration_raw, (int, float)) else None

    return TrackMetadata(title=title, url=str(url), duration=duration)


# ------------------------------------------------------------------------------
# Class: YtDlpResolver
# Purpose: Bọc executable yt-dlp với format/timeout cố định.
# ------------------------------------------------------------------------------
class YtDlpResolver:
    def __init__(self, executable: str, *, audio_format: str, timeout: float) -> None:
        self._executable = executable
        self._format = audio_format
        self._timeout = timeout

    async def _run(self, *args: str) -> list[dict]:
        try:
            proc = await asyncio.create_subprocess_exec(
                self._executable,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ResolveError(f"Could not start {self._executable!r}") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
            await proc.wait()
            raise ResolveError(f"yt-dlp timed out after {self._timeout}s") from e

        if proc.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip()[-500:]
            raise ResolveError(f"yt-dlp exited with code {proc.returncode}: {detail}")

        return parse_json_lines(stdout)

    # --------------------------------------------------------------------------
    # Method: resolve_playlist
    # Purpose: Lấy danh sách (url, title) của playlist, không tải từng video.
    # --------------------------------------------------------------------------
    async def resolve_playlist(self, url: str) -> list[TrackMetadata]:
        items = await self._run("-j", url, "-f", self._format, "--flat-playlist")
        tracks = [_metadata_from(item) for item in items]
        if not tracks:
            raise ResolveError("Playlist is empty")

        logger.debug("Resolved playlist url=%r tracks=%d", url, len(tracks))
        return tracks

    # --------------------------------------------------------------------------
    # Method: resolve_track
    # Purpose: Lấy metadata 1 bài. Input không phải URL sẽ được search trên YouTube.
    # --------------------------------------------------------------------------
    async def resolve_track(self, query: str) -> TrackMetadata:
        query = query.strip()
        target = query if is_url(query) else f"ytsearch1:{query}"

        items = await self._run("-j", "-f", self._format, "--no-playlist", target)
        if not items:
            raise ResolveError(f"No result for {query!r}")

        return _metadata_from(items[0], fallback_url=query if is_url(query) else None)

    # --------------------------------------------------------------------------
    # Method: resolve_stream
    # Purpose: Lấy URL media trực tiếp ngay trước khi phát (URL stream có hạn dùng).
    # --------------------------------------------------------------------------
    async def resolve_stream(self, url: str) -> StreamInfo:
        items = await self._run("-j", "-f", self._format, "--no-playlist", url)
        if not items:
            raise ResolveError(f"No stream for {url!r}")

        item = items[0]
        stream_url = item.get("url")
        if not stream_url:
            raise ResolveError(f"yt-dlp returned no stream url for {url!r}")

        headers = item.get("http_headers") or {}
        return StreamInfo(
            url=str(stream_url),
            http_headers={str(k): str(v) for k, v in headers.items()},
        )
