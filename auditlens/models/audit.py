"""Audit history models.

RawAuditEntry holds the core metadata of one change-log entry together with
its raw annotated value maps. AuditDetailItem is the structured form derived
from it exactly once; neither is mutated after construction.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from auditlens.models.references import EntityReference

PLACEHOLDER_TEXT = "-"


class ValueRepresentation(BaseModel):
    """One side of a change: display text plus an optional record reference."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(default=PLACEHOLDER_TEXT, description="Display text")
    lookup: EntityReference | None = Field(
        default=None, description="Referenced record, for lookup values"
    )


class ChangeItem(BaseModel):
    """Field-level difference between the old and new record state."""

    model_config = ConfigDict(frozen=True)

    field_key: str = Field(..., description="Canonical field identity")
    old_value: ValueRepresentation = Field(..., description="Value before the change")
    new_value: ValueRepresentation = Field(..., description="Value after the change")


class TargetRecordChange(BaseModel):
    """Relationship membership change against a single target record.

    Exactly one side carries the target reference: the new side for an
    associate event, the old side for a disassociate event.
    """

    model_config = ConfigDict(frozen=True)

    target: EntityReference = Field(..., description="Associated or disassociated record")
    old_value: ValueRepresentation = Field(..., description="Membership before the event")
    new_value: ValueRepresentation = Field(..., description="Membership after the event")


class RawAuditEntry(BaseModel):
    """Core metadata of a change-log entry plus its raw annotated maps."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Audit entry id")
    created_on: datetime = Field(..., description="When the change happened")
    formatted_created_on: str | None = Field(
        default=None, description="Localised timestamp from the upstream system"
    )
    actor_id: str | None = Field(default=None, description="User who made the change")
    actor_name: str | None = Field(default=None, description="User full name")
    action: int = Field(..., description="Upstream action code")
    action_text: str | None = Field(default=None, description="Action label")
    subject: EntityReference = Field(..., description="Record the entry belongs to")
    subject_type_display_name: str | None = Field(
        default=None, description="Display name of the subject's type"
    )
    subject_primary_name: str | None = Field(
        default=None, description="Primary name of the subject record"
    )
    old_values: dict[str, Any] | None = Field(
        default=None, description="Annotated values before the change"
    )
    new_values: dict[str, Any] | None = Field(
        default=None, description="Annotated values after the change"
    )
    target_records: list[dict[str, Any]] | None = Field(
        default=None, description="Raw target items for membership events"
    )

    @field_validator("created_on")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        """Treat timestamps without an offset as UTC so all entries compare."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class AuditDetailItem(BaseModel):
    """Structured audit entry.

    Carries field changes or target record changes, never both.
    """

    model_config = ConfigDict(frozen=True)

    entry: RawAuditEntry = Field(..., description="Source entry")
    change_items: tuple[ChangeItem, ...] | None = Field(
        default=None, description="Field-level changes"
    )
    target_record_changes: tuple[TargetRecordChange, ...] | None = Field(
        default=None, description="Relationship membership changes"
    )

    @model_validator(mode="after")
    def check_exclusive_changes(self) -> "AuditDetailItem":
        if self.change_items is not None and self.target_record_changes is not None:
            raise ValueError(
                "change_items and target_record_changes are mutually exclusive"
            )
        return self

    @property
    def created_on(self) -> datetime:
        return self.entry.created_on

    @property
    def subject(self) -> EntityReference:
        return self.entry.subject
