# audioswitch/cache.py
#
# Time-bounded snapshot of the device catalog.
#
# The cache is a plain owned object (one per AudioManager), not a module
# global. Access goes through its ReadWriteLock: cache-hit reads share the
# lock, and a refresh holds it exclusively only for the replace-and-stamp
# step. The PowerShell call that produces the new snapshot runs outside the
# lock.

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Callable, Dict, Iterable, List, Optional

from .models import AudioDevice

DEFAULT_CACHE_TTL = 30.0  # seconds


class ReadWriteLock:
    """
    asyncio reader/writer lock.

    Any number of readers may hold it together; a writer holds it alone.
    A waiting writer blocks new readers, so a steady stream of cache hits
    cannot starve a refresh.
    """

    def __init__(self):
        self._cond = asyncio.Condition()
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @asynccontextmanager
    async def read(self):
        async with self._cond:
            await self._cond.wait_for(lambda: not self._writer and self._writers_waiting == 0)
            self._readers += 1
        try:
            yield
        finally:
            async with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @asynccontextmanager
    async def write(self):
        async with self._cond:
            self._writers_waiting += 1
            try:
                await self._cond.wait_for(lambda: not self._writer and self._readers == 0)
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            async with self._cond:
                self._writer = False
                self._cond.notify_all()

    @property
    def readers(self) -> int:
        return self._readers

    @property
    def locked_for_write(self) -> bool:
        return self._writer


class DeviceCache:
    """
    id -> AudioDevice plus the monotonic time of the last refresh.

    last_refresh None means "never filled or invalidated": always stale.
    The methods below do no locking; callers hold `lock` (read for
    is_valid/snapshot, write for replace/clear).
    """

    def __init__(self, ttl: float = DEFAULT_CACHE_TTL, clock: Optional[Callable[[], float]] = None):
        self.ttl = float(ttl)
        self.clock = clock or time.monotonic
        self.lock = ReadWriteLock()
        self.last_refresh: Optional[float] = None
        self._devices: Dict[str, AudioDevice] = {}

    def is_valid(self, now: Optional[float] = None) -> bool:
        if self.last_refresh is None:
            return False
        if now is None:
            now = self.clock()
        return (now - self.last_refresh) < self.ttl

    def snapshot(self) -> List[AudioDevice]:
        return list(self._devices.values())

    def get(self, device_id: str) -> Optional[AudioDevice]:
        return self._devices.get(device_id)

    def replace(self, devices: Iterable[AudioDevice], stamp: Optional[float] = None):
        # Wholesale replacement: records missing from the new listing disappear.
        self._devices = {d.id: d for d in devices}
        self.last_refresh = self.clock() if stamp is None else stamp

    def clear(self):
        self._devices = {}
        self.last_refresh = None

    def __len__(self):
        return len(self._devices)
