"""Upstream response models."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ChangeHistoryPage(BaseModel):
    """One page of a record's change history, newest entry first."""

    model_config = ConfigDict(frozen=True)

    details: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Raw audit details: {AuditRecord, OldValue?, NewValue?, TargetRecords?}",
    )
    more_records: bool = Field(default=False, description="Whether another page exists")
    paging_cookie: str | None = Field(
        default=None, description="Opaque token requesting the next page"
    )
