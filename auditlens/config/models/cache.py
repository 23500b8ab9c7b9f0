"""Metadata cache persistence configuration."""

from typing import Literal

from pydantic import BaseModel, Field

CacheBackendType = Literal["inmemory", "redis"]


class CacheConfig(BaseModel):
    """Where and how the metadata cache is persisted."""

    backend: CacheBackendType = Field(
        default="inmemory",
        description="Key-value store backing the metadata cache",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL (redis backend only)",
    )
    key_prefix: str = Field(
        default="auditlens",
        description="Prefix applied to every key written to the store",
    )
    storage_key: str = Field(
        default="entity-metadata",
        description="Key under which the metadata blob is persisted",
    )
    schema_version: int = Field(
        default=1,
        ge=1,
        description="Persisted blob version; a mismatch on load discards the cache",
    )
