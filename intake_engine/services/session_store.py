"""
Guided Session Stores.

The session store is the only shared mutable state in the engine. Both
implementations expose the same async interface and a per-identity lock
that serializes messages from one caller.

- ``InMemorySessionStore``: a dict bounded by ``session_max_entries`` with
  oldest-activity eviction. Single process only.
- ``RedisSessionStore``: JSON documents plus a sorted-set activity index,
  with a Redis lock per identity.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncContextManager, AsyncIterator, Optional, Protocol

import redis.asyncio as aioredis
from redis.exceptions import LockError

from intake_engine.config import SessionBackend, get_settings
from intake_engine.logging_config import get_logger, mask_phone
from intake_engine.schemas.session import GuidedSession

logger = get_logger(__name__)

# Redis key prefixes
SESSION_STATE_KEY = "sessions:state:{}"     # JSON document per identity
SESSION_ACTIVITY_KEY = "sessions:activity"  # Sorted set scored by last activity
SESSION_LOCK_KEY = "sessions:lock:{}"       # Lock per identity

LOCK_TIMEOUT_SECONDS = 30
LOCK_BLOCKING_TIMEOUT_SECONDS = 10


class SessionStore(Protocol):
    async def get(self, identity: str) -> Optional[GuidedSession]: ...

    async def put(self, session: GuidedSession) -> None: ...

    async def delete(self, identity: str) -> None: ...

    async def sweep(self, now: datetime, ttl_seconds: int) -> list[GuidedSession]:
        """Remove and return every session idle for longer than ``ttl_seconds``."""
        ...

    def lock(self, identity: str) -> AsyncContextManager[object]: ...


def _is_expired(session: GuidedSession, now: datetime, ttl_seconds: int) -> bool:
    return (now - session.last_activity_at).total_seconds() > ttl_seconds


class InMemorySessionStore:
    """Process-local store. Sessions are copied in and out."""

    def __init__(self, max_entries: Optional[int] = None) -> None:
        self.max_entries = max_entries or get_settings().session_max_entries
        self._sessions: dict[str, GuidedSession] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    async def get(self, identity: str) -> Optional[GuidedSession]:
        session = self._sessions.get(identity)
        return session.model_copy(deep=True) if session else None

    async def put(self, session: GuidedSession) -> None:
        self._sessions[session.identity] = session.model_copy(deep=True)
        while len(self._sessions) > self.max_entries:
            oldest = min(self._sessions.values(), key=lambda s: s.last_activity_at)
            del self._sessions[oldest.identity]
            logger.info("session_evicted", identity=mask_phone(oldest.identity), size=len(self._sessions))

    async def delete(self, identity: str) -> None:
        self._sessions.pop(identity, None)

    async def sweep(self, now: datetime, ttl_seconds: int) -> list[GuidedSession]:
        stale = [i for i, s in self._sessions.items() if _is_expired(s, now, ttl_seconds)]

        expired: list[GuidedSession] = []
        for identity in stale:
            # A message may be in flight for this identity; re-check once it is done
            async with self.lock(identity):
                session = self._sessions.get(identity)
                if session is None or not _is_expired(session, now, ttl_seconds):
                    continue
                del self._sessions[identity]
                expired.append(session)

        # Drop locks nobody holds for identities that no longer have a session
        for identity in [i for i, lk in self._locks.items() if i not in self._sessions and not lk.locked()]:
            del self._locks[identity]
        return expired

    @asynccontextmanager
    async def lock(self, identity: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(identity, asyncio.Lock())
        async with lock:
            yield


class RedisSessionStore:
    """
    Redis-backed store shared by every worker process.

    Sessions never get a Redis TTL: the sweeper has to see an expired
    session to salvage it.
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        max_entries: Optional[int] = None,
        client: Optional[aioredis.Redis] = None,
    ) -> None:
        settings = get_settings()
        self.redis_url = redis_url or settings.redis_url
        self.max_entries = max_entries or settings.session_max_entries
        self._redis: Optional[aioredis.Redis] = client

    async def initialize(self) -> None:
        if self._redis is None:
            self._redis = aioredis.from_url(self.redis_url, decode_responses=True)
        logger.info("redis_session_store_initialized")

    async def close(self) -> None:
        if self._redis:
            await self._redis.close()

    @property
    def redis(self) -> aioredis.Redis:
        if not self._redis:
            raise RuntimeError("RedisSessionStore not initialized. Call initialize() first.")
        return self._redis

    async def get(self, identity: str) -> Optional[GuidedSession]:
        raw = await self.redis.get(SESSION_STATE_KEY.format(identity))
        if not raw:
            return None
        return GuidedSession.model_validate_json(raw)

    async def put(self, session: GuidedSession) -> None:
        await self.redis.set(SESSION_STATE_KEY.format(session.identity), session.model_dump_json())
        await self.redis.zadd(SESSION_ACTIVITY_KEY, {session.identity: session.last_activity_at.timestamp()})

        size = await self.redis.zcard(SESSION_ACTIVITY_KEY)
        if size > self.max_entries:
            evicted = await self.redis.zpopmin(SESSION_ACTIVITY_KEY, count=size - self.max_entries)
            for identity, _score in evicted:
                await self.redis.delete(SESSION_STATE_KEY.format(identity))
                logger.info("session_evicted", identity=mask_phone(identity), size=self.max_entries)

    async def delete(self, identity: str) -> None:
        await self.redis.delete(SESSION_STATE_KEY.format(identity))
        await self.redis.zrem(SESSION_ACTIVITY_KEY, identity)

    async def sweep(self, now: datetime, ttl_seconds: int) -> list[GuidedSession]:
        cutoff = now.timestamp() - ttl_seconds
        identities = await self.redis.zrangebyscore(SESSION_ACTIVITY_KEY, "-inf", f"({cutoff}")

        expired: list[GuidedSession] = []
        for identity in identities:
            try:
                async with self.lock(identity):
                    session = await self.get(identity)
                    if session is not None and not _is_expired(session, now, ttl_seconds):
                        continue
                    await self.delete(identity)
                    if session is not None:
                        expired.append(session)
            except LockError as e:
                logger.warning("session_sweep_lock_error", identity=mask_phone(identity), error=str(e))
        return expired

    def lock(self, identity: str) -> AsyncContextManager[object]:
        return self.redis.lock(
            SESSION_LOCK_KEY.format(identity),
            timeout=LOCK_TIMEOUT_SECONDS,
            blocking_timeout=LOCK_BLOCKING_TIMEOUT_SECONDS,
        )


async def create_session_store() -> SessionStore:
    """Build the store selected by ``session_backend``."""
    settings = get_settings()
    if settings.session_backend == SessionBackend.REDIS:
        store = RedisSessionStore()
        await store.initialize()
        return store
    return InMemorySessionStore()
