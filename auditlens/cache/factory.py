"""KeyValueStore factory driven by CacheConfig."""

from redis.asyncio import Redis

from auditlens.cache.store import KeyValueStore
from auditlens.cache.stores.inmemory import InMemoryKeyValueStore
from auditlens.cache.stores.redis import RedisKeyValueStore
from auditlens.config.models.cache import CacheConfig
from auditlens.observability.logging import get_logger

logger = get_logger(__name__)


def create_key_value_store(config: CacheConfig) -> KeyValueStore:
    """Create the KeyValueStore selected by ``config.backend``.

    Raises:
        ValueError: If the backend type is not supported
    """
    backend = config.backend

    if backend == "inmemory":
        logger.info("creating_kv_store", backend="inmemory")
        return InMemoryKeyValueStore()

    elif backend == "redis":
        logger.info("creating_kv_store", backend="redis", prefix=config.key_prefix)
        return RedisKeyValueStore(
            redis=Redis.from_url(config.redis_url),
            key_prefix=config.key_prefix,
        )

    else:
        raise ValueError(f"Unsupported cache backend: {backend}")
