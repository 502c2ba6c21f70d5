import json
import logging
from typing import Any, Dict

from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from ..settings import get_settings

logger = logging.getLogger(__name__)


class RedisJsonClient:
    """Async JSON document reads/writes against a Redis instance."""

    def __init__(self, url: str) -> None:
        """Create a client for the given URL (e.g. redis://localhost:6379/0)."""
        self._url = url
        self._client: Redis | None = None

    @property
    def connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        """Establish connection to Redis. Idempotent."""
        if self._client is not None:
            return
        self._client = Redis.from_url(self._url, decode_responses=True)
        try:
            await self._client.ping()
            logger.info("Redis connection established: %s", self._url.split("@")[-1])
        except (RedisConnectionError, RedisTimeoutError) as e:
            logger.warning("Redis ping failed: %s", e)
            await self._client.aclose()
            self._client = None
            raise

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.debug("Redis connection closed")

    async def get_json(self, key: str) -> Dict[str, Any] | None:
        """Return the decoded document at key, or None if missing or invalid.

        Connection errors and timeouts are logged and re-raised so callers can
        tell an unreachable server from an absent key.
        """
        if self._client is None:
            return None
        try:
            raw = await self._client.get(key)
        except (RedisConnectionError, RedisTimeoutError) as e:
            logger.warning("Redis get %s failed: %s", key, e)
            raise
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Invalid JSON stored at %s: %s", key, e)
            return None
        if not isinstance(data, dict):
            logger.warning("Unexpected document type at %s: %s", key, type(data).__name__)
            return None
        return data

    async def set_json(
        self,
        key: str,
        document: Dict[str, Any],
        ttl_seconds: int | None = None,
    ) -> bool:
        """Store document at key, expiring after ttl_seconds if given. Returns True on success."""
        if self._client is None:
            return False
        payload = json.dumps(document)
        try:
            if ttl_seconds is not None and ttl_seconds > 0:
                await self._client.setex(key, ttl_seconds, payload)
            else:
                await self._client.set(key, payload)
            return True
        except (RedisConnectionError, RedisTimeoutError) as e:
            logger.warning("Redis set %s failed: %s", key, e)
            return False


def get_redis_json_client() -> RedisJsonClient | None:
    """Return a Redis client if redis_url is configured, else None."""
    settings = get_settings()
    if not settings.redis_url or not settings.redis_url.strip():
        return None
    return RedisJsonClient(settings.redis_url.strip())
