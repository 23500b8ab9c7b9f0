"""Display-ready audit rows produced by the enrichment orchestrator."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from auditlens.models.audit import ValueRepresentation
from auditlens.models.references import EntityReference


class EnrichedChange(BaseModel):
    """A field change or target record change with its label resolved."""

    model_config = ConfigDict(frozen=True)

    field_key: str = Field(..., description="Attribute key or target entity type")
    field_label: str = Field(..., description="Attribute label or entity display name")
    old_value: ValueRepresentation
    new_value: ValueRepresentation


class EnrichedAuditRow(BaseModel):
    """One audit entry ready for display."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Audit entry id")
    entity_reference: EntityReference = Field(..., description="Audited record")
    created_on: datetime = Field(..., description="When the change happened")
    formatted_date: str = Field(..., description="Localised timestamp")
    changed_by: str = Field(..., description="Actor name")
    event: str = Field(..., description="Action label")
    entity_display_name: str = Field(..., description="Display name of the record type")
    record_display_name: str = Field(..., description="'<type>: <primary name>'")
    changes: list[EnrichedChange] | None = Field(
        default=None, description="Field or membership changes"
    )
