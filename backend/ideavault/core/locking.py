"""Per-session locking: serialize discovery operations using Redis.

This module provides:
- Session-level leases so at most one turn is in flight per session
- Lock acquisition with bounded wait
- Owner-checked release and extension
- Automatic lease expiration if a worker dies mid-turn
"""

import asyncio
import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import redis.asyncio as redis
import structlog

from ideavault.core.exceptions import ConcurrencyConflictError

logger = structlog.get_logger(__name__)

# Lease values are "<owner>:<timestamp>"; ARGV[1] is "<owner>:".
# The owner check and the write must run as one atomic step.
_RELEASE_SCRIPT = """
local current = redis.call("GET", KEYS[1])
if current and string.sub(current, 1, string.len(ARGV[1])) == ARGV[1] then
    return redis.call("DEL", KEYS[1])
end
return 0
"""

_EXTEND_SCRIPT = """
local current = redis.call("GET", KEYS[1])
if current and string.sub(current, 1, string.len(ARGV[1])) == ARGV[1] then
    return redis.call("EXPIRE", KEYS[1], ARGV[2])
end
return 0
"""


class SessionLock:
    """Manages distributed per-session locks using Redis."""

    LOCK_PREFIX = "ideavault:lock:discovery:"
    DEFAULT_TTL = 120
    POLL_INTERVAL = 0.1

    def __init__(self, redis_client: redis.Redis, ttl: int | None = None, wait_timeout: float = 10.0):
        self.redis = redis_client
        self.ttl = ttl or self.DEFAULT_TTL
        self.wait_timeout = wait_timeout
        self._release_script = redis_client.register_script(_RELEASE_SCRIPT)
        self._extend_script = redis_client.register_script(_EXTEND_SCRIPT)

    def _lock_key(self, session_id: str) -> str:
        """Generate the Redis key for a session lock."""
        return f"{self.LOCK_PREFIX}{session_id}"

    async def acquire(self, session_id: str, owner: str, ttl: int | None = None) -> bool:
        """Attempt to acquire the lock on a session.

        Args:
            session_id: Discovery session identifier
            owner: Identifier of the lock holder (one token per operation)
            ttl: Lease time-to-live in seconds

        Returns:
            True if the lock was acquired, False if another owner holds it
        """
        key = self._lock_key(session_id)
        lock_value = f"{owner}:{datetime.now(UTC).isoformat()}"
        result = await self.redis.set(key, lock_value, nx=True, ex=ttl or self.ttl)
        return bool(result)

    async def release(self, session_id: str, owner: str) -> bool:
        """Release a session lock if this owner still holds it.

        Returns:
            True if released, False if the lease expired or belongs to someone else
        """
        released = await self._release_script(keys=[self._lock_key(session_id)], args=[f"{owner}:"])
        return bool(released)

    async def extend(self, session_id: str, owner: str, ttl: int | None = None) -> bool:
        """Extend an existing lease. Returns False if not owned."""
        extended = await self._extend_script(
            keys=[self._lock_key(session_id)],
            args=[f"{owner}:", ttl or self.ttl],
        )
        return bool(extended)

    async def is_locked(self, session_id: str) -> dict | None:
        """Return lock info if the session is locked, None otherwise."""
        key = self._lock_key(session_id)
        current = await self.redis.get(key)
        if not current:
            return None

        owner, _, locked_at = current.partition(":")
        return {
            "session_id": session_id,
            "owner": owner,
            "locked_at": locked_at or None,
            "expires_in": await self.redis.ttl(key),
        }

    @asynccontextmanager
    async def hold(self, session_id: str, wait: bool = True) -> AsyncGenerator[str, None]:
        """Context manager that serializes work on one session.

        Args:
            session_id: Discovery session identifier
            wait: Whether to poll for the lock up to ``wait_timeout`` seconds

        Yields:
            The owner token of the acquired lease

        Raises:
            ConcurrencyConflictError: If the lock could not be acquired in time

        Example:
            async with session_lock.hold(session_id):
                ...  # read-modify-write the session
        """
        owner = uuid.uuid4().hex
        acquired = await self.acquire(session_id, owner)

        if not acquired and wait:
            loop = asyncio.get_running_loop()
            deadline = loop.time() + self.wait_timeout
            while loop.time() < deadline:
                await asyncio.sleep(self.POLL_INTERVAL)
                acquired = await self.acquire(session_id, owner)
                if acquired:
                    break

        if not acquired:
            logger.warning("session_lock_unavailable", session_id=session_id)
            raise ConcurrencyConflictError(session_id, "another operation is in progress")

        try:
            yield owner
        finally:
            released = await self.release(session_id, owner)
            if not released:
                logger.warning("session_lock_expired_before_release", session_id=session_id)
