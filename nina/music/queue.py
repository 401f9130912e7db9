# ##############################################################################
# MODULE: TRACK QUEUE
# DESCRIPTION: Hàng đợi bài hát của một guild.
#              Giữ bài đang phát (current) tách riêng với các bài chờ (upcoming).
#              Thứ tự phát luôn là thứ tự thêm vào.
# ##############################################################################

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Iterable


# ------------------------------------------------------------------------------
# Class: QueuedTrack
# Purpose: Một bài trong hàng đợi: nguồn phát (URL trang) + title hiển thị.
# ------------------------------------------------------------------------------
@dataclass(frozen=True)
class QueuedTrack:
    title: str
    url: str
    requester_id: int | None = None
    duration: float | None = None


class TrackQueue:
    def __init__(self) -> None:
        self.current: QueuedTrack | None = None
        self._upcoming: deque[QueuedTrack] = deque()

    def __len__(self) -> int:
        return len(self._upcoming) + (1 if self.current is not None else 0)

    def is_empty(self) -> bool:
        return self.current is None and not self._upcoming

    @property
    def upcoming(self) -> list[QueuedTrack]:
        return list(self._upcoming)

    def extend(self, tracks: Iterable[QueuedTrack]) -> int:
        before = len(self._upcoming)
        self._upcoming.extend(tracks)
        return len(self._upcoming) - before

    # --------------------------------------------------------------------------
    # Method: start_next
    # Purpose: Chuyển bài đầu tiên của upcoming thành current.
    #          Trả về None nếu đang có current hoặc hết bài.
    # --------------------------------------------------------------------------
    def start_next(self) -> QueuedTrack | None:
        if self.current is not None or not self._upcoming:
            return None
        self.current = self._upcoming.popleft()
        return self.current

    def finish_current(self) -> QueuedTrack | None:
        finished = self.current
        self.current = None
        return finished

    def drop_upcoming(self, amount: int) -> list[QueuedTrack]:
        dropped: list[QueuedTrack] = []
        while self._upcoming and len(dropped) < amount:
            dropped.append(self._upcoming.popleft())
        return dropped

    def clear(self) -> list[QueuedTrack]:
        """Xóa toàn bộ upcoming. current do session tự kết thúc."""
        dropped = list(self._upcoming)
        self._upcoming.clear()
        return dropped

    def snapshot(self, limit: int | None = None) -> list[QueuedTrack]:
        tracks = list(self._upcoming)
        if limit is not None:
            tracks = tracks[:limit]
        return tracks
