"""Configuration section models."""

from auditlens.config.models.cache import CacheBackendType, CacheConfig
from auditlens.config.models.history import DEFAULT_UNSUPPORTED_ACTIONS, HistoryConfig
from auditlens.config.models.observability import LoggingConfig, ObservabilityConfig

__all__ = [
    "CacheBackendType",
    "CacheConfig",
    "DEFAULT_UNSUPPORTED_ACTIONS",
    "HistoryConfig",
    "LoggingConfig",
    "ObservabilityConfig",
]
