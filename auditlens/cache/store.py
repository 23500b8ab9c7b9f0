"""KeyValueStore abstract interface."""

from abc import ABC, abstractmethod


class KeyValueStore(ABC):
    """Abstract string key-value store used to persist caches.

    Keeps cache logic independent of where the bytes end up.
    """

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Get the value stored under ``key``, or None."""
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        pass

    @abstractmethod
    async def clear(self, key: str) -> bool:
        """Remove ``key``, returning whether it existed."""
        pass
