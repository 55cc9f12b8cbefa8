"""Tests for the reader/writer lock and the TTL device cache."""
import asyncio

import pytest

from audioswitch.cache import DeviceCache, ReadWriteLock
from audioswitch.models import AudioDevice, DeviceType


async def _settle():
    for _ in range(5):
        await asyncio.sleep(0)


def _dev(id):
    return AudioDevice(id=id, name=f"Device {id}", device_type=DeviceType.PLAYBACK)


@pytest.mark.asyncio
async def test_readers_share_the_lock():
    lock = ReadWriteLock()
    async with lock.read():
        async with lock.read():
            assert lock.readers == 2
    assert lock.readers == 0


@pytest.mark.asyncio
async def test_writer_waits_for_readers():
    lock = ReadWriteLock()
    release = asyncio.Event()

    async def reader():
        async with lock.read():
            await release.wait()

    async def writer():
        async with lock.write():
            assert lock.readers == 0
            assert lock.locked_for_write

    r = asyncio.create_task(reader())
    await _settle()
    w = asyncio.create_task(writer())
    await _settle()
    assert not w.done()

    release.set()
    await asyncio.gather(r, w)
    assert not lock.locked_for_write


@pytest.mark.asyncio
async def test_waiting_writer_blocks_new_readers():
    lock = ReadWriteLock()
    order = []
    release = asyncio.Event()

    async def first_reader():
        async with lock.read():
            order.append("reader-1")
            await release.wait()

    async def writer():
        async with lock.write():
            order.append("writer")

    async def second_reader():
        async with lock.read():
            order.append("reader-2")

    tasks = [asyncio.create_task(first_reader())]
    await _settle()
    tasks.append(asyncio.create_task(writer()))
    await _settle()
    tasks.append(asyncio.create_task(second_reader()))
    await _settle()
    assert order == ["reader-1"]

    release.set()
    await asyncio.gather(*tasks)
    assert order == ["reader-1", "writer", "reader-2"]


def test_empty_cache_is_stale():
    cache = DeviceCache(ttl=30, clock=lambda: 0.0)
    assert cache.last_refresh is None
    assert not cache.is_valid()
    assert cache.snapshot() == []


def test_validity_window():
    now = [100.0]
    cache = DeviceCache(ttl=30, clock=lambda: now[0])
    cache.replace([_dev("A")])

    assert cache.last_refresh == 100.0
    now[0] = 129.9
    assert cache.is_valid()
    now[0] = 130.0
    assert not cache.is_valid()
    assert cache.is_valid(now=110.0)


def test_replace_is_wholesale_and_clear_resets():
    cache = DeviceCache(ttl=30, clock=lambda: 0.0)
    cache.replace([_dev("A"), _dev("B")], stamp=5.0)
    cache.replace([_dev("C")], stamp=6.0)

    assert [d.id for d in cache.snapshot()] == ["C"]
    assert cache.get("A") is None
    assert cache.last_refresh == 6.0
    assert len(cache) == 1

    cache.clear()
    assert len(cache) == 0
    assert cache.last_refresh is None
