"""Redis implementation of KeyValueStore."""

from redis.asyncio import Redis

from auditlens.cache.store import KeyValueStore
from auditlens.observability.logging import get_logger

logger = get_logger(__name__)


class RedisKeyValueStore(KeyValueStore):
    """Redis-backed KeyValueStore.

    Key format: {prefix}:{key}. Values are stored without expiry; staleness
    is handled by the caller's versioning.
    """

    def __init__(self, redis: Redis, key_prefix: str = "auditlens") -> None:
        """Initialize Redis key-value store.

        Args:
            redis: Redis client instance
            key_prefix: Prefix for Redis keys
        """
        self._redis = redis
        self._key_prefix = key_prefix

    def _make_key(self, key: str) -> str:
        return f"{self._key_prefix}:{key}"

    async def get(self, key: str) -> str | None:
        value = await self._redis.get(self._make_key(key))
        if value is None:
            return None
        return value.decode() if isinstance(value, bytes) else value

    async def set(self, key: str, value: str) -> None:
        await self._redis.set(self._make_key(key), value)
        logger.debug("kv_store_set", key=key, size=len(value))

    async def clear(self, key: str) -> bool:
        return bool(await self._redis.delete(self._make_key(key)))
