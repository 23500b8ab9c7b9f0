"""Enrichment Orchestrator: label substitution for parsed audit items.

Enrichment runs in strictly ordered phases:

1. Gap analysis: find the attribute labels, entity display names and
   primary-name attributes missing from the metadata cache.
2. Metadata fetch: one request per entity type with gaps, all in flight at
   once. Any failure fails the pass and nothing is applied.
3. Cache update and persist.
4. Target name resolution: for target types whose primary-name attribute is
   now known, fetch the primary names missing from the display name cache,
   one request per type, all in flight at once.
5. Projection into display-ready rows.

Phase 4 reads the cache state written by phase 3, so the phases never
overlap even though requests within a phase do.
"""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from auditlens.cache.display_names import DisplayNameCache
from auditlens.cache.metadata import MetadataCache
from auditlens.errors import DataShapeError
from auditlens.models.audit import (
    AuditDetailItem,
    ChangeItem,
    TargetRecordChange,
    ValueRepresentation,
)
from auditlens.models.enriched import EnrichedAuditRow, EnrichedChange
from auditlens.models.metadata import EntityMetadataResponse
from auditlens.observability.logging import get_logger
from auditlens.observability.metrics import (
    DISPLAY_NAME_CACHE_MISSES,
    METADATA_CACHE_MISSES,
    STAGE_LATENCY,
)
from auditlens.query.builder import id_field
from auditlens.upstream.calls import call_upstream
from auditlens.upstream.source import MetadataFetcher, RecordFetcher

logger = get_logger(__name__)


@dataclass
class MetadataGap:
    """What the metadata cache lacks for one entity type."""

    attribute_keys: list[str] = field(default_factory=list)
    entity_facts_missing: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.attribute_keys and not self.entity_facts_missing


class EnrichmentOrchestrator:
    """Turns AuditDetailItems into EnrichedAuditRows.

    The fetch collaborators are injected so the orchestrator never knows how
    metadata or records reach it.
    """

    def __init__(
        self,
        metadata_cache: MetadataCache,
        display_name_cache: DisplayNameCache,
        metadata_fetcher: MetadataFetcher,
        record_fetcher: RecordFetcher,
    ) -> None:
        self._metadata_cache = metadata_cache
        self._display_name_cache = display_name_cache
        self._metadata_fetcher = metadata_fetcher
        self._record_fetcher = record_fetcher

    async def enrich(self, items: Sequence[AuditDetailItem]) -> list[EnrichedAuditRow]:
        """Resolve labels for ``items`` and project them, preserving order.

        Raises:
            TransportError: If any metadata or record fetch fails
            DataShapeError: If a fetched record lacks its id attribute
        """
        gaps = self.find_metadata_gaps(items)
        if gaps:
            with STAGE_LATENCY.labels(stage="metadata_fetch").time():
                responses = await self._fetch_metadata(gaps)
            self._apply_metadata(responses)
            await self._metadata_cache.save()

        missing_names = self.find_missing_display_names(items)
        if missing_names:
            with STAGE_LATENCY.labels(stage="display_name_fetch").time():
                await self._fetch_display_names(missing_names)

        with STAGE_LATENCY.labels(stage="projection").time():
            rows = [self.project(item) for item in items]

        logger.info(
            "audit_items_enriched",
            items=len(rows),
            metadata_requests=len(gaps),
            display_name_requests=len(missing_names),
        )
        return rows

    def find_metadata_gaps(
        self, items: Sequence[AuditDetailItem]
    ) -> dict[str, MetadataGap]:
        """Collect, per entity type, what the metadata cache is missing.

        Subject types need their changed attributes labelled; subject and
        target types both need their display name and primary-name attribute.
        Types with nothing missing are left out.
        """
        gaps: dict[str, MetadataGap] = {}

        def gap_for(entity_type: str) -> MetadataGap:
            if entity_type not in gaps:
                gaps[entity_type] = MetadataGap(
                    entity_facts_missing=self._entity_facts_missing(entity_type)
                )
            return gaps[entity_type]

        for item in items:
            subject_gap = gap_for(item.subject.logical_name)
            for change in item.change_items or ():
                key = change.field_key
                if key in subject_gap.attribute_keys:
                    continue
                if self._metadata_cache.get_attribute(item.subject.logical_name, key) is None:
                    subject_gap.attribute_keys.append(key)

            for target_change in item.target_record_changes or ():
                gap_for(target_change.target.logical_name)

        gaps = {
            entity_type: gap for entity_type, gap in gaps.items() if not gap.is_empty
        }
        for gap in gaps.values():
            if gap.attribute_keys:
                METADATA_CACHE_MISSES.labels(kind="attribute").inc(len(gap.attribute_keys))
            if gap.entity_facts_missing:
                METADATA_CACHE_MISSES.labels(kind="entity").inc()
        return gaps

    def _entity_facts_missing(self, entity_type: str) -> bool:
        return (
            self._metadata_cache.get_entity_display_name(entity_type) is None
            or self._metadata_cache.get_entity_primary_name_attribute(entity_type) is None
        )

    async def _fetch_metadata(
        self, gaps: dict[str, MetadataGap]
    ) -> dict[str, EntityMetadataResponse]:
        entity_types = list(gaps)
        responses = await asyncio.gather(
            *(
                call_upstream(
                    "fetch_entity_metadata",
                    self._metadata_fetcher.fetch_entity_metadata(
                        entity_type, gaps[entity_type].attribute_keys
                    ),
                    entity_type=entity_type,
                )
                for entity_type in entity_types
            )
        )
        return dict(zip(entity_types, responses, strict=True))

    def _apply_metadata(self, responses: dict[str, EntityMetadataResponse]) -> None:
        cache = self._metadata_cache
        for entity_type, response in responses.items():
            if response.display_name:
                cache.set_entity_display_name(entity_type, response.display_name)
            if response.primary_name_attribute:
                cache.set_entity_primary_name_attribute(
                    entity_type, response.primary_name_attribute
                )
            for attribute in response.attributes:
                cache.set_attribute(entity_type, attribute)

        logger.debug("metadata_cache_updated", entity_types=sorted(responses))

    def find_missing_display_names(
        self, items: Sequence[AuditDetailItem]
    ) -> dict[str, list[str]]:
        """Target ids without a cached primary name, grouped by type.

        Types whose primary-name attribute is unknown cannot be resolved and
        are skipped; their rows fall back to the entity display name.
        """
        missing: dict[str, list[str]] = {}
        for item in items:
            for target_change in item.target_record_changes or ():
                target = target_change.target
                if self._metadata_cache.get_entity_primary_name_attribute(
                    target.logical_name
                ) is None:
                    continue
                if target.id in self._display_name_cache:
                    continue
                ids = missing.setdefault(target.logical_name, [])
                if target.id not in ids:
                    ids.append(target.id)

        DISPLAY_NAME_CACHE_MISSES.inc(sum(len(ids) for ids in missing.values()))
        return missing

    async def _fetch_display_names(self, missing: dict[str, list[str]]) -> None:
        entity_types = list(missing)
        selects = {
            entity_type: [
                id_field(entity_type),
                self._metadata_cache.get_entity_primary_name_attribute(entity_type),
            ]
            for entity_type in entity_types
        }
        results = await asyncio.gather(
            *(
                call_upstream(
                    "fetch_records",
                    self._record_fetcher.fetch_records(
                        entity_type, missing[entity_type], selects[entity_type]
                    ),
                    entity_type=entity_type,
                )
                for entity_type in entity_types
            )
        )

        for entity_type, records in zip(entity_types, results, strict=True):
            id_key, name_key = selects[entity_type]
            for record in records:
                self._store_display_name(entity_type, record, id_key, name_key)

    def _store_display_name(
        self, entity_type: str, record: dict[str, Any], id_key: str, name_key: str
    ) -> None:
        record_id = record.get(id_key)
        if not record_id:
            raise DataShapeError(
                f"Fetched {entity_type} record is missing required attribute '{id_key}'"
            )
        name = record.get(name_key)
        if name not in (None, ""):
            self._display_name_cache.set_display_name(str(record_id), str(name))

    def project(self, item: AuditDetailItem) -> EnrichedAuditRow:
        """Build the display row for one item from current cache state."""
        entry = item.entry
        entity_display_name = (
            self._metadata_cache.get_entity_display_name(entry.subject.logical_name)
            or entry.subject_type_display_name
            or entry.subject.logical_name
        )
        primary_name = entry.subject_primary_name or (
            self._display_name_cache.get_display_name(entry.subject.id)
        )
        record_display_name = (
            f"{entity_display_name}: {primary_name}" if primary_name else entity_display_name
        )

        changes: list[EnrichedChange] | None = None
        if item.change_items is not None:
            changes = [
                self._project_change(entry.subject.logical_name, change)
                for change in item.change_items
            ]
        elif item.target_record_changes is not None:
            changes = [
                self._project_target_change(change)
                for change in item.target_record_changes
            ]

        return EnrichedAuditRow(
            id=entry.id,
            entity_reference=entry.subject,
            created_on=entry.created_on,
            formatted_date=entry.formatted_created_on or entry.created_on.isoformat(),
            changed_by=entry.actor_name or entry.actor_id or "",
            event=entry.action_text or str(entry.action),
            entity_display_name=entity_display_name,
            record_display_name=record_display_name,
            changes=changes,
        )

    def _project_change(self, entity_type: str, change: ChangeItem) -> EnrichedChange:
        attribute = self._metadata_cache.get_attribute(entity_type, change.field_key)
        return EnrichedChange(
            field_key=change.field_key,
            field_label=attribute.display_name if attribute else change.field_key,
            old_value=change.old_value,
            new_value=change.new_value,
        )

    def _project_target_change(self, change: TargetRecordChange) -> EnrichedChange:
        entity_type = change.target.logical_name
        return EnrichedChange(
            field_key=entity_type,
            field_label=self._metadata_cache.get_entity_display_name(entity_type)
            or entity_type,
            old_value=self._resolve_target_value(change.old_value),
            new_value=self._resolve_target_value(change.new_value),
        )

    def _resolve_target_value(self, value: ValueRepresentation) -> ValueRepresentation:
        if value.lookup is None:
            return value
        text = (
            self._display_name_cache.get_display_name(value.lookup.id)
            or self._metadata_cache.get_entity_display_name(value.lookup.logical_name)
            or value.text
        )
        return ValueRepresentation(text=text, lookup=value.lookup)
