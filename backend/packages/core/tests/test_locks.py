"""Tests for the keyed lock registry."""

import asyncio

import pytest

from chirp_core.locks import KeyedLock, LockKeys


@pytest.mark.asyncio
async def test_same_key_is_serialized():
    """Test holders of one key never overlap."""
    locks = KeyedLock()
    active = 0
    peak = 0

    async def worker():
        nonlocal active, peak
        async with locks.hold("feed:1"):
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1

    await asyncio.gather(*(worker() for _ in range(5)))

    assert peak == 1


@pytest.mark.asyncio
async def test_different_keys_run_concurrently():
    """Test holders of distinct keys do not block each other."""
    locks = KeyedLock()
    entered = asyncio.Event()

    async def first():
        async with locks.hold("feed:1"):
            await asyncio.wait_for(entered.wait(), timeout=1)

    async def second():
        async with locks.hold("feed:2"):
            entered.set()

    await asyncio.gather(first(), second())


@pytest.mark.asyncio
async def test_released_on_exception():
    """Test the lock is released and dropped when the block raises."""
    locks = KeyedLock()

    with pytest.raises(RuntimeError):
        async with locks.hold("feed:1"):
            assert locks.locked("feed:1")
            raise RuntimeError("boom")

    assert not locks.locked("feed:1")
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_idle_keys_are_dropped():
    """Test the registry only keeps keys that are in use."""
    locks = KeyedLock()

    async with locks.hold("a"):
        async with locks.hold("b"):
            assert len(locks) == 2

    assert len(locks) == 0


def test_lock_keys_are_distinct():
    """Test key templates do not collide across kinds."""
    keys = {
        LockKeys.feed("x"),
        LockKeys.subscription("x", "http://t/", "http://h/"),
        LockKeys.mirror("x"),
    }
    assert len(keys) == 3
