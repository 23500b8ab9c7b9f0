"""KeyValueStore backends."""

from auditlens.cache.store import KeyValueStore
from auditlens.cache.stores.inmemory import InMemoryKeyValueStore
from auditlens.cache.stores.redis import RedisKeyValueStore

__all__ = [
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "RedisKeyValueStore",
]
