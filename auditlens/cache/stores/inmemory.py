"""In-memory implementation of KeyValueStore."""

from auditlens.cache.store import KeyValueStore


class InMemoryKeyValueStore(KeyValueStore):
    """Dict-backed KeyValueStore for testing and single-process use.

    Contents live only as long as the instance.
    """

    def __init__(self) -> None:
        self._values: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._values.get(key)

    async def set(self, key: str, value: str) -> None:
        self._values[key] = value

    async def clear(self, key: str) -> bool:
        return self._values.pop(key, None) is not None
