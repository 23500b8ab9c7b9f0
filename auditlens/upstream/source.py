"""Collaborator interfaces for the upstream record-fetch API.

The enrichment orchestrator depends only on MetadataFetcher and
RecordFetcher; the end-to-end pipeline needs the full AuditSource.
Implementations may raise any exception; the pipeline wraps it once into
a TransportError.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from auditlens.models.metadata import EntityMetadataResponse
from auditlens.models.query import QueryParameters
from auditlens.models.references import EntityReference
from auditlens.upstream.models import ChangeHistoryPage


class MetadataFetcher(ABC):
    """Fetches entity and attribute metadata."""

    @abstractmethod
    async def fetch_entity_metadata(
        self, entity_type: str, attribute_keys: Sequence[str]
    ) -> EntityMetadataResponse:
        """Get the display name, primary-name attribute and the labels of
        ``attribute_keys`` for one entity type. Unknown keys are omitted.
        """
        pass


class RecordFetcher(ABC):
    """Fetches records in bulk."""

    @abstractmethod
    async def fetch_records(
        self, entity_type: str, ids: Sequence[str], select: Sequence[str]
    ) -> list[dict[str, Any]]:
        """Get the records of ``entity_type`` with the given ids, each
        restricted to the ``select`` attributes.
        """
        pass


class AuditSource(MetadataFetcher, RecordFetcher):
    """Full upstream API used by the end-to-end pipeline."""

    @abstractmethod
    async def fetch_expanded_record(
        self, query: QueryParameters
    ) -> dict[str, Any] | None:
        """Run an expansion query; returns the primary record with its
        expanded related records nested under the navigation properties, or
        None when the record does not exist.
        """
        pass

    @abstractmethod
    async def fetch_change_history(
        self,
        reference: EntityReference,
        paging_cookie: str | None = None,
    ) -> ChangeHistoryPage:
        """Get one page of a record's change history."""
        pass
