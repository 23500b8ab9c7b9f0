"""Change history retrieval configuration."""

from pydantic import BaseModel, Field

# Audit bookkeeping events that carry no record-level change
DEFAULT_UNSUPPORTED_ACTIONS: dict[int, str] = {
    105: "Entity Audit Started",
    106: "Attribute Audit Started",
    107: "Audit Enabled",
    108: "Entity Audit Stopped",
    109: "Attribute Audit Stopped",
    110: "Audit Disabled",
    111: "Audit Log Deletion",
}


class HistoryConfig(BaseModel):
    """Controls which audit entries are fetched and kept."""

    unsupported_actions: list[int] = Field(
        default_factory=lambda: sorted(DEFAULT_UNSUPPORTED_ACTIONS),
        description="Action codes dropped before parsing",
    )
    max_pages_per_record: int = Field(
        default=50,
        gt=0,
        description="Upper bound on change history pages fetched per record",
    )
