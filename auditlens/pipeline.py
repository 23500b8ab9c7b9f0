"""End-to-end audit history pipeline.

Given a query descriptor and a primary record id, the pipeline:

1. validates the descriptor and builds the expansion query (no I/O),
2. fetches the primary record with its expanded related records,
3. extracts the records to pull history for,
4. fetches each record's change history concurrently, following pages,
5. parses the entries, dropping unsupported actions,
6. merges the per-record streams newest first,
7. enriches the merged items with labels.

Every upstream failure surfaces as a single TransportError; nothing is
retried and no partial result is returned.
"""

import asyncio
from collections.abc import Mapping
from typing import Any

from structlog.contextvars import bound_contextvars

from auditlens.cache.display_names import DisplayNameCache
from auditlens.cache.factory import create_key_value_store
from auditlens.cache.metadata import MetadataCache
from auditlens.config import get_settings
from auditlens.config.settings import Settings
from auditlens.enrichment.orchestrator import EnrichmentOrchestrator
from auditlens.errors import DataShapeError
from auditlens.history.merge import merge_sorted
from auditlens.history.parser import compare_audit_detail_items, parse_audit_details
from auditlens.history.references import extract_entity_references
from auditlens.models.audit import AuditDetailItem
from auditlens.models.enriched import EnrichedAuditRow
from auditlens.models.references import EntityReference
from auditlens.observability.logging import get_logger, setup_logging
from auditlens.observability.metrics import STAGE_LATENCY
from auditlens.query.builder import build, parse
from auditlens.schema.static import StaticSchema, seed_metadata_cache
from auditlens.upstream.calls import call_upstream
from auditlens.upstream.source import AuditSource

logger = get_logger(__name__)


class AuditHistoryPipeline:
    """Builds the enriched, merged audit history of a record and its relatives."""

    def __init__(
        self,
        source: AuditSource,
        metadata_cache: MetadataCache,
        display_name_cache: DisplayNameCache | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._source = source
        self._settings = settings or get_settings()
        self._orchestrator = EnrichmentOrchestrator(
            metadata_cache=metadata_cache,
            display_name_cache=display_name_cache or DisplayNameCache(),
            metadata_fetcher=source,
            record_fetcher=source,
        )

    async def run(
        self, descriptor: str | Mapping[str, Any], record_id: str
    ) -> list[EnrichedAuditRow]:
        """Build the audit history for ``record_id``.

        Args:
            descriptor: Query descriptor, JSON text or decoded mapping
            record_id: Id of the primary record

        Returns:
            Enriched rows, newest first

        Raises:
            ConfigError: If the descriptor is invalid; raised before any I/O
            TransportError: If any upstream call fails
            DataShapeError: If upstream data lacks a required attribute
        """
        plan = parse(descriptor)
        query = build(plan, record_id)

        with bound_contextvars(
            primary_entity_type=plan.primary_entity_type_name, record_id=record_id
        ):
            with STAGE_LATENCY.labels(stage="expanded_record_fetch").time():
                record = await call_upstream(
                    "fetch_expanded_record",
                    self._source.fetch_expanded_record(query),
                    record_id=record_id,
                )
            if not record:
                raise DataShapeError(
                    f"No {plan.primary_entity_type_name} record returned for id {record_id}"
                )

            references = list(dict.fromkeys(extract_entity_references(record)))
            if not references:
                raise DataShapeError(
                    f"Expanded {plan.primary_entity_type_name} record has no "
                    "identifiable records"
                )

            with STAGE_LATENCY.labels(stage="history_fetch").time():
                streams = await asyncio.gather(
                    *(self.fetch_history(reference) for reference in references)
                )
            items = merge_sorted(streams, compare_audit_detail_items)

            rows = await self._orchestrator.enrich(items)
            logger.info(
                "audit_history_built",
                records=len(references),
                entries=len(rows),
            )
            return rows

    async def fetch_history(self, reference: EntityReference) -> list[AuditDetailItem]:
        """Fetch and parse one record's change history, newest first."""
        history = self._settings.history
        details: list[dict[str, Any]] = []
        paging_cookie: str | None = None

        for _ in range(history.max_pages_per_record):
            page = await call_upstream(
                "fetch_change_history",
                self._source.fetch_change_history(reference, paging_cookie),
                record_id=reference.id,
            )
            details.extend(page.details)
            if not page.more_records or not page.paging_cookie:
                break
            paging_cookie = page.paging_cookie
        else:
            logger.warning(
                "change_history_truncated",
                subject=str(reference),
                max_pages=history.max_pages_per_record,
            )

        return parse_audit_details(details, history.unsupported_actions)


async def create_pipeline(
    source: AuditSource,
    settings: Settings | None = None,
    schema: StaticSchema | None = None,
) -> AuditHistoryPipeline:
    """Create a pipeline from settings.

    Configures logging and restores the metadata cache from the configured
    store, seeding it from ``schema`` when nothing usable was stored.

    Args:
        source: Upstream collaborator
        settings: Defaults to ``get_settings()``
        schema: Optional snapshot seeding the metadata cache on a cold start
    """
    settings = settings or get_settings()
    logging_config = settings.observability.logging
    setup_logging(
        level=logging_config.level,
        format=logging_config.format,
        redact_pii=logging_config.redact_pii,
    )

    store = create_key_value_store(settings.cache)
    metadata_cache = await MetadataCache.load(
        store, settings.cache.storage_key, settings.cache.schema_version
    )
    if schema is not None and len(metadata_cache) == 0:
        seed_metadata_cache(metadata_cache, schema)

    return AuditHistoryPipeline(
        source=source,
        metadata_cache=metadata_cache,
        display_name_cache=DisplayNameCache(),
        settings=settings,
    )
