"""Metadata and display name caches with pluggable persistence."""

from auditlens.cache.display_names import DisplayNameCache
from auditlens.cache.factory import create_key_value_store
from auditlens.cache.metadata import METADATA_CACHE_VERSION, MetadataCache
from auditlens.cache.store import KeyValueStore
from auditlens.cache.stores import InMemoryKeyValueStore, RedisKeyValueStore

__all__ = [
    "DisplayNameCache",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "METADATA_CACHE_VERSION",
    "MetadataCache",
    "RedisKeyValueStore",
    "create_key_value_store",
]
