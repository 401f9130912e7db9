# ##############################################################################
# MODULE: GUILD LOCKS
# DESCRIPTION: Mỗi guild có 1 asyncio.Lock để serialize các lệnh làm thay đổi
#              session (join/leave/play/skip...). Lock của guild đã rời voice
#              được thu hồi khi lệnh cuối cùng dùng nó kết thúc.
# ##############################################################################

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class GuildLocks:
    def __init__(self) -> None:
        self._locks: dict[int, asyncio.Lock] = {}
        # Số lệnh đang giữ hoặc đang chờ lock của từng guild
        self._users: dict[int, int] = {}
        self._retired: set[int] = set()

    def __len__(self) -> int:
        return len(self._locks)

    def __contains__(self, guild_id: object) -> bool:
        return guild_id in self._locks

    def locked(self, guild_id: int) -> bool:
        lock = self._locks.get(guild_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, guild_id: int) -> AsyncIterator[None]:
        lock = self._locks.get(guild_id)
        if lock is None:
            lock = self._locks[guild_id] = asyncio.Lock()
        self._users[guild_id] = self._users.get(guild_id, 0) + 1

        try:
            async with lock:
                yield
        finally:
            self._users[guild_id] -= 1
            if not self._users[guild_id]:
                del self._users[guild_id]
                if guild_id in self._retired:
                    self._retired.discard(guild_id)
                    self._locks.pop(guild_id, None)

    def release(self, guild_id: int) -> None:
        """Thu hồi lock khi session của guild kết thúc."""
        if guild_id not in self._locks:
            return
        if self._users.get(guild_id):
            self._retired.add(guild_id)
            return
        del self._locks[guild_id]
