import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from ..models import Session, session_from_dict, session_to_dict
from ..settings import get_settings
from .redis import RedisJsonClient, get_redis_json_client

logger = logging.getLogger(__name__)

SESSION_KEY_PREFIX = "session:"


class SessionUnavailable(Exception):
    """The stored session could not be read; it must not be replaced by a fresh one."""

    def __init__(self, session_id: str, reason: str) -> None:
        super().__init__(f"session {session_id} could not be loaded: {reason}")
        self.session_id = session_id
        self.reason = reason


class SessionStore(ABC):
    """Storage for intake sessions.

    ``get_or_create`` hands out a session the caller may mutate freely;
    nothing is visible to later requests until ``save`` is called.
    """

    @abstractmethod
    async def get_or_create(self, session_id: str) -> Session:
        ...

    @abstractmethod
    async def save(self, session: Session) -> None:
        ...


class InMemorySessionStore(SessionStore):
    """Process-local store. Sessions live as long as the process."""

    def __init__(self) -> None:
        self._sessions: Dict[str, Session] = {}

    async def get_or_create(self, session_id: str) -> Session:
        if session_id not in self._sessions:
            logger.info("Creating session %s", session_id)
            self._sessions[session_id] = Session(session_id=session_id)
        return self._sessions[session_id].clone()

    async def save(self, session: Session) -> None:
        self._sessions[session.session_id] = session.clone()

    def __len__(self) -> int:
        return len(self._sessions)


class RedisSessionStore(SessionStore):
    """Sessions persisted as JSON in Redis, expiring after ``ttl_seconds`` idle."""

    def __init__(self, redis_client: RedisJsonClient, ttl_seconds: int) -> None:
        self._redis = redis_client
        self._ttl = ttl_seconds

    def _key(self, session_id: str) -> str:
        return f"{SESSION_KEY_PREFIX}{session_id}"

    async def get_or_create(self, session_id: str) -> Session:
        try:
            data = await self._redis.get_json(self._key(session_id))
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise SessionUnavailable(session_id, str(e)) from e
        if data is not None:
            try:
                return session_from_dict(data)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Discarding unreadable session %s: %s", session_id, e)
        logger.info("Creating session %s", session_id)
        return Session(session_id=session_id)

    async def save(self, session: Session) -> None:
        saved = await self._redis.set_json(
            self._key(session.session_id),
            session_to_dict(session),
            ttl_seconds=self._ttl,
        )
        if not saved:
            logger.error("Session %s could not be persisted to Redis", session.session_id)

    async def close(self) -> None:
        await self._redis.close()


class SessionLocks:
    """One asyncio lock per session id; idle locks are dropped."""

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._holders: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, session_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        self._holders[session_id] = self._holders.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[session_id] -= 1
            if self._holders[session_id] == 0:
                del self._holders[session_id]
                del self._locks[session_id]

    def __len__(self) -> int:
        return len(self._locks)


async def build_session_store_async() -> SessionStore:
    """Return a Redis-backed store when Redis is configured and reachable, else in-memory."""
    redis_client = get_redis_json_client()
    if redis_client is None:
        logger.info("Using in-memory session store")
        return InMemorySessionStore()
    try:
        await redis_client.connect()
    except (RedisConnectionError, RedisTimeoutError, ConnectionError, TimeoutError) as e:
        logger.warning("Redis unavailable, falling back to in-memory sessions: %s", e)
        return InMemorySessionStore()
    logger.info("Using Redis session store")
    return RedisSessionStore(redis_client, ttl_seconds=get_settings().context_ttl_seconds)
