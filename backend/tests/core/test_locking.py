"""Tests for the per-session Redis lease."""

import asyncio

import pytest

from ideavault.core.exceptions import ConcurrencyConflictError
from ideavault.core.locking import SessionLock

pytestmark = pytest.mark.unit


async def test_acquire_is_exclusive(session_lock):
    assert await session_lock.acquire("s1", "owner-a") is True
    assert await session_lock.acquire("s1", "owner-b") is False
    assert await session_lock.acquire("s2", "owner-b") is True


async def test_release_requires_owner(session_lock):
    await session_lock.acquire("s1", "owner-a")

    assert await session_lock.release("s1", "owner-b") is False
    assert await session_lock.is_locked("s1") is not None
    assert await session_lock.release("s1", "owner-a") is True
    assert await session_lock.is_locked("s1") is None


async def test_lease_has_ttl(session_lock, redis):
    await session_lock.acquire("s1", "owner-a")

    ttl = await redis.ttl("ideavault:lock:discovery:s1")
    assert 0 < ttl <= 30


async def test_extend_only_for_owner(session_lock):
    await session_lock.acquire("s1", "owner-a", ttl=5)

    assert await session_lock.extend("s1", "owner-b") is False
    assert await session_lock.extend("s1", "owner-a", ttl=60) is True
    info = await session_lock.is_locked("s1")
    assert info["owner"] == "owner-a"
    assert info["expires_in"] > 5


async def test_stale_owner_cannot_release_a_newer_lease(session_lock, redis):
    await session_lock.acquire("s1", "owner-a")
    # Lease expires while owner-a is still working and owner-b takes over.
    await redis.delete("ideavault:lock:discovery:s1")
    assert await session_lock.acquire("s1", "owner-b") is True

    assert await session_lock.release("s1", "owner-a") is False
    assert await session_lock.extend("s1", "owner-a", ttl=60) is False
    info = await session_lock.is_locked("s1")
    assert info["owner"] == "owner-b"


async def test_release_checks_and_deletes_in_one_server_call(session_lock, redis, monkeypatch):
    await session_lock.acquire("s1", "owner-a")

    async def fail(*args, **kwargs):
        raise AssertionError("release must not read and delete in separate commands")

    monkeypatch.setattr(redis, "get", fail)
    monkeypatch.setattr(redis, "delete", fail)

    assert await session_lock.release("s1", "owner-a") is True
    assert await redis.exists("ideavault:lock:discovery:s1") == 0


async def test_owner_prefix_must_match_whole_token(session_lock):
    await session_lock.acquire("s1", "owner-ab")

    assert await session_lock.release("s1", "owner-a") is False
    assert await session_lock.release("s1", "owner-ab") is True


async def test_hold_releases_on_exit(session_lock):
    async with session_lock.hold("s1") as owner:
        info = await session_lock.is_locked("s1")
        assert info["owner"] == owner

    assert await session_lock.is_locked("s1") is None


async def test_hold_releases_on_error(session_lock):
    with pytest.raises(RuntimeError):
        async with session_lock.hold("s1"):
            raise RuntimeError("boom")

    assert await session_lock.is_locked("s1") is None


async def test_hold_without_wait_conflicts_immediately(session_lock):
    await session_lock.acquire("s1", "someone-else")

    with pytest.raises(ConcurrencyConflictError):
        async with session_lock.hold("s1", wait=False):
            pass


async def test_hold_times_out_when_lease_is_never_released(redis):
    lock = SessionLock(redis, ttl=30, wait_timeout=0.3)
    await lock.acquire("s1", "someone-else")

    with pytest.raises(ConcurrencyConflictError, match="in progress"):
        async with lock.hold("s1"):
            pass


async def test_hold_waits_for_release(session_lock):
    order: list[str] = []

    async def worker(name: str, delay: float):
        async with session_lock.hold("s1"):
            order.append(f"{name}-in")
            await asyncio.sleep(delay)
            order.append(f"{name}-out")

    await asyncio.gather(worker("a", 0.15), worker("b", 0))

    # Critical sections never interleave
    assert order in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])
