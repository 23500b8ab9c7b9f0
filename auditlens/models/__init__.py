"""Domain models for audit history enrichment."""

from auditlens.models.audit import (
    PLACEHOLDER_TEXT,
    AuditDetailItem,
    ChangeItem,
    RawAuditEntry,
    TargetRecordChange,
    ValueRepresentation,
)
from auditlens.models.enriched import EnrichedAuditRow, EnrichedChange
from auditlens.models.metadata import (
    AttributeDefinition,
    EntityMetadata,
    EntityMetadataResponse,
    MetadataBlob,
)
from auditlens.models.query import QueryParameters, QueryPlan, QueryPlanNode
from auditlens.models.references import EntityReference

__all__ = [
    # References
    "EntityReference",
    # Audit
    "PLACEHOLDER_TEXT",
    "AuditDetailItem",
    "ChangeItem",
    "RawAuditEntry",
    "TargetRecordChange",
    "ValueRepresentation",
    # Enriched output
    "EnrichedAuditRow",
    "EnrichedChange",
    # Metadata
    "AttributeDefinition",
    "EntityMetadata",
    "EntityMetadataResponse",
    "MetadataBlob",
    # Query
    "QueryParameters",
    "QueryPlan",
    "QueryPlanNode",
]
