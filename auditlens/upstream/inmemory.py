"""In-memory AuditSource for testing and development."""

from collections.abc import Sequence
from typing import Any

from auditlens.models.metadata import AttributeDefinition, EntityMetadataResponse
from auditlens.models.query import QueryParameters
from auditlens.models.references import EntityReference
from auditlens.upstream.models import ChangeHistoryPage
from auditlens.upstream.source import AuditSource


class InMemoryAuditSource(AuditSource):
    """AuditSource serving canned data.

    Expanded records are keyed by primary record id, histories by record id
    and served in pages of ``page_size``; entity metadata maps an entity type
    to ``{"display_name", "primary_name_attribute", "attributes": {key: label}}``;
    records map an entity type to a list of attribute dicts. Every call is
    appended to ``call_history``.
    """

    def __init__(
        self,
        expanded_records: dict[str, dict[str, Any]] | None = None,
        histories: dict[str, list[dict[str, Any]]] | None = None,
        entity_metadata: dict[str, dict[str, Any]] | None = None,
        records: dict[str, list[dict[str, Any]]] | None = None,
        page_size: int = 100,
    ) -> None:
        self._expanded_records = expanded_records or {}
        self._histories = histories or {}
        self._entity_metadata = entity_metadata or {}
        self._records = records or {}
        self._page_size = page_size
        self._call_history: list[tuple[str, Any]] = []

    @property
    def call_history(self) -> list[tuple[str, Any]]:
        return self._call_history

    def calls_to(self, operation: str) -> list[Any]:
        """Arguments of every recorded call to ``operation``."""
        return [args for name, args in self._call_history if name == operation]

    async def fetch_expanded_record(
        self, query: QueryParameters
    ) -> dict[str, Any] | None:
        self._call_history.append(("fetch_expanded_record", query))
        record_id = query.filter.rsplit(" ", 1)[-1] if query.filter else None
        if record_id is None:
            return None
        return self._expanded_records.get(record_id)

    async def fetch_change_history(
        self,
        reference: EntityReference,
        paging_cookie: str | None = None,
    ) -> ChangeHistoryPage:
        self._call_history.append(("fetch_change_history", (reference, paging_cookie)))
        details = self._histories.get(reference.id, [])
        start = int(paging_cookie) if paging_cookie else 0
        end = start + self._page_size
        more = end < len(details)
        return ChangeHistoryPage(
            details=details[start:end],
            more_records=more,
            paging_cookie=str(end) if more else None,
        )

    async def fetch_entity_metadata(
        self, entity_type: str, attribute_keys: Sequence[str]
    ) -> EntityMetadataResponse:
        self._call_history.append(
            ("fetch_entity_metadata", (entity_type, tuple(attribute_keys)))
        )
        metadata = self._entity_metadata.get(entity_type)
        if metadata is None:
            raise LookupError(f"No metadata for entity type '{entity_type}'")

        labels: dict[str, str] = metadata.get("attributes", {})
        return EntityMetadataResponse(
            entity_type=entity_type,
            display_name=metadata.get("display_name"),
            primary_name_attribute=metadata.get("primary_name_attribute"),
            attributes=[
                AttributeDefinition(logical_name=key, display_name=labels[key])
                for key in attribute_keys
                if key in labels
            ],
        )

    async def fetch_records(
        self, entity_type: str, ids: Sequence[str], select: Sequence[str]
    ) -> list[dict[str, Any]]:
        self._call_history.append(
            ("fetch_records", (entity_type, tuple(ids), tuple(select)))
        )
        wanted = set(ids)
        id_key = f"{entity_type}id"
        return [
            {key: record[key] for key in select if key in record}
            for record in self._records.get(entity_type, [])
            if record.get(id_key) in wanted
        ]
