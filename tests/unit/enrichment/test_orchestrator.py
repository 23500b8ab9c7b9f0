"""Tests for EnrichmentOrchestrator."""

import asyncio
import json
from collections.abc import Sequence
from typing import Any

import pytest

from auditlens.cache.display_names import DisplayNameCache
from auditlens.cache.metadata import MetadataCache
from auditlens.cache.stores import InMemoryKeyValueStore
from auditlens.enrichment import EnrichmentOrchestrator
from auditlens.errors import DataShapeError, TransportError
from auditlens.history.parser import ASSOCIATE_ACTION, DISASSOCIATE_ACTION
from auditlens.models.audit import AuditDetailItem, ValueRepresentation
from auditlens.models.metadata import AttributeDefinition, EntityMetadataResponse
from auditlens.models.references import EntityReference
from auditlens.upstream import InMemoryAuditSource, MetadataFetcher, RecordFetcher
from tests.factories import AuditDetailFactory, make_item

ACME_ID = "11111111-2222-3333-4444-555555555555"
GLOBEX_ID = "66666666-7777-8888-9999-000000000000"
TEAM_ID = "aaaaaaaa-bbbb-cccc-dddd-eeeeeeeeeeee"

ENTITY_METADATA = {
    "contact": {
        "display_name": "Contact",
        "primary_name_attribute": "fullname",
        "attributes": {"firstname": "First Name", "jobtitle": "Job Title"},
    },
    "account": {
        "display_name": "Account",
        "primary_name_attribute": "name",
        "attributes": {},
    },
    "team": {"display_name": "Team", "attributes": {}},
}

RECORDS = {
    "account": [
        {"accountid": ACME_ID, "name": "Acme"},
        {"accountid": GLOBEX_ID, "name": "Globex"},
    ]
}


class ConcurrencyProbe(MetadataFetcher, RecordFetcher):
    """Fetcher recording how many requests are in flight at once."""

    def __init__(self, fail_for: str | None = None) -> None:
        self.fail_for = fail_for
        self.in_flight = 0
        self.max_in_flight = 0
        self.metadata_requests: list[str] = []

    async def fetch_entity_metadata(
        self, entity_type: str, attribute_keys: Sequence[str]
    ) -> EntityMetadataResponse:
        self.metadata_requests.append(entity_type)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0)
        self.in_flight -= 1
        if entity_type == self.fail_for:
            raise ConnectionError("upstream unavailable")
        return EntityMetadataResponse(
            entity_type=entity_type,
            display_name=entity_type.title(),
            primary_name_attribute="name",
            attributes=[
                AttributeDefinition(logical_name=key, display_name=key.upper())
                for key in attribute_keys
            ],
        )

    async def fetch_records(
        self, entity_type: str, ids: Sequence[str], select: Sequence[str]
    ) -> list[dict[str, Any]]:
        return []


@pytest.fixture
def source() -> InMemoryAuditSource:
    return InMemoryAuditSource(entity_metadata=ENTITY_METADATA, records=RECORDS)


@pytest.fixture
def orchestrator(
    metadata_cache: MetadataCache,
    display_name_cache: DisplayNameCache,
    source: InMemoryAuditSource,
) -> EnrichmentOrchestrator:
    return EnrichmentOrchestrator(metadata_cache, display_name_cache, source, source)


@pytest.fixture
def field_item() -> AuditDetailItem:
    return make_item(
        audit_id="update-1",
        object_name="Dana Scully",
        old_values={"firstname": "Dana", "jobtitle": "Agent"},
        new_values={"firstname": "Fox"},
    )


@pytest.fixture
def associate_item() -> AuditDetailItem:
    return make_item(
        audit_id="associate-1",
        action=ASSOCIATE_ACTION,
        action_text="Associate Entities",
        target_records=[
            AuditDetailFactory.target("account", ACME_ID),
            AuditDetailFactory.target("account", GLOBEX_ID),
        ],
    )


class TestGapAnalysis:
    """Tests for metadata and display name gap detection."""

    def test_cold_cache_needs_everything(
        self,
        orchestrator: EnrichmentOrchestrator,
        field_item: AuditDetailItem,
        associate_item: AuditDetailItem,
    ) -> None:
        gaps = orchestrator.find_metadata_gaps([field_item, associate_item])

        assert list(gaps) == ["contact", "account"]
        assert gaps["contact"].attribute_keys == ["firstname", "jobtitle"]
        assert gaps["contact"].entity_facts_missing is True
        assert gaps["account"].attribute_keys == []
        assert gaps["account"].entity_facts_missing is True

    def test_warm_cache_has_no_gaps(
        self,
        orchestrator: EnrichmentOrchestrator,
        metadata_cache: MetadataCache,
        field_item: AuditDetailItem,
    ) -> None:
        metadata_cache.set_entity_display_name("contact", "Contact")
        metadata_cache.set_entity_primary_name_attribute("contact", "fullname")
        for key in ("firstname", "jobtitle"):
            metadata_cache.set_attribute(
                "contact", AttributeDefinition(logical_name=key, display_name=key)
            )

        assert orchestrator.find_metadata_gaps([field_item]) == {}

    def test_only_missing_attributes_requested(
        self,
        orchestrator: EnrichmentOrchestrator,
        metadata_cache: MetadataCache,
        field_item: AuditDetailItem,
    ) -> None:
        metadata_cache.set_attribute(
            "contact", AttributeDefinition(logical_name="firstname", display_name="First Name")
        )

        gaps = orchestrator.find_metadata_gaps([field_item, field_item])

        assert gaps["contact"].attribute_keys == ["jobtitle"]

    def test_missing_display_names_grouped_and_deduplicated(
        self,
        orchestrator: EnrichmentOrchestrator,
        metadata_cache: MetadataCache,
        display_name_cache: DisplayNameCache,
        associate_item: AuditDetailItem,
    ) -> None:
        metadata_cache.set_entity_primary_name_attribute("account", "name")
        display_name_cache.set_display_name(GLOBEX_ID, "Globex")

        missing = orchestrator.find_missing_display_names([associate_item, associate_item])

        assert missing == {"account": [ACME_ID]}

    def test_unresolvable_target_types_skipped(
        self, orchestrator: EnrichmentOrchestrator, associate_item: AuditDetailItem
    ) -> None:
        assert orchestrator.find_missing_display_names([associate_item]) == {}


class TestEnrich:
    """Tests for the full enrichment pass."""

    @pytest.mark.asyncio
    async def test_empty_input(
        self, orchestrator: EnrichmentOrchestrator, source: InMemoryAuditSource
    ) -> None:
        assert await orchestrator.enrich([]) == []
        assert source.call_history == []

    @pytest.mark.asyncio
    async def test_one_metadata_request_per_type(
        self,
        orchestrator: EnrichmentOrchestrator,
        source: InMemoryAuditSource,
        field_item: AuditDetailItem,
        associate_item: AuditDetailItem,
    ) -> None:
        await orchestrator.enrich([field_item, associate_item, field_item])

        assert sorted(source.calls_to("fetch_entity_metadata")) == [
            ("account", ()),
            ("contact", ("firstname", "jobtitle")),
        ]
        assert source.calls_to("fetch_records") == [
            ("account", (ACME_ID, GLOBEX_ID), ("accountid", "name")),
        ]

    @pytest.mark.asyncio
    async def test_field_labels_substituted(
        self, orchestrator: EnrichmentOrchestrator, field_item: AuditDetailItem
    ) -> None:
        [row] = await orchestrator.enrich([field_item])

        assert [(c.field_key, c.field_label) for c in row.changes] == [
            ("firstname", "First Name"),
            ("jobtitle", "Job Title"),
        ]
        assert row.changes[0].old_value.text == "Dana"
        assert row.changes[0].new_value.text == "Fox"

    @pytest.mark.asyncio
    async def test_unknown_attribute_falls_back_to_key(
        self, orchestrator: EnrichmentOrchestrator
    ) -> None:
        item = make_item(old_values={"ardea_custom": "a"}, new_values={"ardea_custom": "b"})

        [row] = await orchestrator.enrich([item])

        assert row.changes[0].field_label == "ardea_custom"

    @pytest.mark.asyncio
    async def test_row_fields(
        self, orchestrator: EnrichmentOrchestrator, field_item: AuditDetailItem
    ) -> None:
        [row] = await orchestrator.enrich([field_item])

        assert row.id == "update-1"
        assert row.entity_reference == field_item.subject
        assert row.created_on == field_item.created_on
        assert row.formatted_date == "2024-05-01T10:00:00+00:00"
        assert row.changed_by == "Dana Scully"
        assert row.event == "Update"
        assert row.entity_display_name == "Contact"
        assert row.record_display_name == "Contact: Dana Scully"

    @pytest.mark.asyncio
    async def test_record_display_name_without_primary_name(
        self, orchestrator: EnrichmentOrchestrator
    ) -> None:
        item = make_item(
            action_text=None,
            formatted_created_on="01/05/2024 11:00",
            old_values={},
            new_values={},
        )

        [row] = await orchestrator.enrich([item])

        assert row.record_display_name == "Contact"
        assert row.event == "2"
        assert row.formatted_date == "01/05/2024 11:00"

    @pytest.mark.asyncio
    async def test_target_names_resolved(
        self,
        orchestrator: EnrichmentOrchestrator,
        display_name_cache: DisplayNameCache,
        associate_item: AuditDetailItem,
    ) -> None:
        [row] = await orchestrator.enrich([associate_item])

        assert [(c.field_key, c.field_label) for c in row.changes] == [
            ("account", "Account"),
            ("account", "Account"),
        ]
        assert [c.new_value.text for c in row.changes] == ["Acme", "Globex"]
        assert row.changes[0].new_value.lookup == EntityReference(
            id=ACME_ID, logical_name="account"
        )
        assert row.changes[0].old_value == ValueRepresentation()
        assert display_name_cache.get_display_name(ACME_ID) == "Acme"

    @pytest.mark.asyncio
    async def test_disassociate_resolves_old_side(
        self, orchestrator: EnrichmentOrchestrator
    ) -> None:
        item = make_item(
            action=DISASSOCIATE_ACTION,
            target_records=[AuditDetailFactory.target("account", ACME_ID)],
        )

        [row] = await orchestrator.enrich([item])

        assert row.changes[0].old_value.text == "Acme"
        assert row.changes[0].new_value == ValueRepresentation()

    @pytest.mark.asyncio
    async def test_unreturned_target_falls_back_to_entity_name(
        self, orchestrator: EnrichmentOrchestrator
    ) -> None:
        missing_id = "99999999-9999-9999-9999-999999999999"
        item = make_item(
            action=ASSOCIATE_ACTION,
            target_records=[AuditDetailFactory.target("account", missing_id)],
        )

        [row] = await orchestrator.enrich([item])

        assert row.changes[0].new_value.text == "Account"

    @pytest.mark.asyncio
    async def test_target_type_without_primary_name_not_fetched(
        self, orchestrator: EnrichmentOrchestrator, source: InMemoryAuditSource
    ) -> None:
        item = make_item(
            action=ASSOCIATE_ACTION,
            target_records=[AuditDetailFactory.target("team", TEAM_ID)],
        )

        [row] = await orchestrator.enrich([item])

        assert source.calls_to("fetch_records") == []
        assert row.changes[0].field_label == "Team"
        assert row.changes[0].new_value.text == "Team"

    @pytest.mark.asyncio
    async def test_metadata_persisted_after_update(
        self,
        orchestrator: EnrichmentOrchestrator,
        kv_store: InMemoryKeyValueStore,
        field_item: AuditDetailItem,
    ) -> None:
        await orchestrator.enrich([field_item])

        blob = json.loads(await kv_store.get("entity-metadata"))
        contact = blob["entityMetadataMap"]["contact"]
        assert contact["displayName"] == "Contact"
        assert contact["attributes"]["jobtitle"]["displayName"] == "Job Title"

    @pytest.mark.asyncio
    async def test_warm_cache_skips_fetches(
        self,
        orchestrator: EnrichmentOrchestrator,
        source: InMemoryAuditSource,
        field_item: AuditDetailItem,
        associate_item: AuditDetailItem,
    ) -> None:
        await orchestrator.enrich([field_item, associate_item])
        source.call_history.clear()

        rows = await orchestrator.enrich([field_item, associate_item])

        assert source.call_history == []
        assert rows[1].changes[0].new_value.text == "Acme"

    @pytest.mark.asyncio
    async def test_record_without_id_fails(
        self,
        metadata_cache: MetadataCache,
        display_name_cache: DisplayNameCache,
        associate_item: AuditDetailItem,
    ) -> None:
        source = InMemoryAuditSource(entity_metadata=ENTITY_METADATA)

        async def records_without_ids(*args: Any) -> list[dict[str, Any]]:
            return [{"name": "Acme"}]

        source.fetch_records = records_without_ids  # type: ignore[method-assign]
        orchestrator = EnrichmentOrchestrator(
            metadata_cache, display_name_cache, source, source
        )

        with pytest.raises(DataShapeError, match="accountid"):
            await orchestrator.enrich([associate_item])


class TestConcurrency:
    """Tests for fan-out and fail-fast behaviour."""

    @pytest.mark.asyncio
    async def test_metadata_requests_in_flight_together(
        self,
        metadata_cache: MetadataCache,
        display_name_cache: DisplayNameCache,
    ) -> None:
        probe = ConcurrencyProbe()
        orchestrator = EnrichmentOrchestrator(metadata_cache, display_name_cache, probe, probe)
        items = [
            make_item(object_type=entity_type, old_values={"a": 1}, new_values={"a": 2})
            for entity_type in ("contact", "account", "lead")
        ]

        await orchestrator.enrich(items)

        assert sorted(probe.metadata_requests) == ["account", "contact", "lead"]
        assert probe.max_in_flight == 3

    @pytest.mark.asyncio
    async def test_failure_applies_nothing(
        self,
        metadata_cache: MetadataCache,
        display_name_cache: DisplayNameCache,
        kv_store: InMemoryKeyValueStore,
    ) -> None:
        """One failed request fails the pass with no partial cache update."""
        probe = ConcurrencyProbe(fail_for="account")
        orchestrator = EnrichmentOrchestrator(metadata_cache, display_name_cache, probe, probe)
        items = [
            make_item(object_type=entity_type, old_values={"a": 1}, new_values={"a": 2})
            for entity_type in ("contact", "account")
        ]

        with pytest.raises(TransportError) as exc_info:
            await orchestrator.enrich(items)

        assert isinstance(exc_info.value.cause, ConnectionError)
        assert metadata_cache.get_entity_display_name("contact") is None
        assert metadata_cache.get_attribute("contact", "a") is None
        assert await kv_store.get("entity-metadata") is None
