"""Display Name Cache: resolved primary names of target records.

Session-scoped and never persisted. Primary names change over time and the
set of records seen grows without bound, so entries die with the instance.
"""


class DisplayNameCache:
    """Record id -> primary name."""

    def __init__(self) -> None:
        self._names: dict[str, str] = {}

    def get_display_name(self, record_id: str) -> str | None:
        return self._names.get(record_id)

    def set_display_name(self, record_id: str, display_name: str) -> None:
        """Store a name, overwriting any previous one for the record."""
        self._names[record_id] = display_name

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._names

    def __len__(self) -> int:
        return len(self._names)
