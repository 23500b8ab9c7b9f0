"""Query plan models produced by the expansion validator."""

from pydantic import BaseModel, ConfigDict, Field


class QueryPlanNode(BaseModel):
    """One relationship traversal, optionally expanding further."""

    model_config = ConfigDict(frozen=True)

    property_name: str = Field(..., description="Navigation property to expand")
    related_entity_type_name: str = Field(..., description="Logical type of related records")
    is_many_to_many: bool = Field(..., description="Whether the relationship is N:N")
    nested_expansion: tuple["QueryPlanNode", ...] | None = Field(
        default=None, description="Expansions applied to the related records"
    )


class QueryPlan(BaseModel):
    """Validated root of an expansion query."""

    model_config = ConfigDict(frozen=True)

    primary_entity_type_name: str = Field(..., description="Logical type of the primary record")
    expansion: tuple[QueryPlanNode, ...] = Field(
        default=(), description="Top-level expansions"
    )


class QueryParameters(BaseModel):
    """Serialized selection/expansion clauses for the record-fetch API."""

    model_config = ConfigDict(frozen=True)

    entity_type: str = Field(..., description="Entity set to query")
    select: str = Field(..., description="$select clause value")
    expand: str | None = Field(default=None, description="$expand clause value")
    filter: str | None = Field(default=None, description="$filter clause value")

    def to_query_string(self) -> str:
        parts = [f"$select={self.select}"]
        if self.expand:
            parts.append(f"$expand={self.expand}")
        if self.filter:
            parts.append(f"$filter={self.filter}")
        return "?" + "&".join(parts)


QueryPlanNode.model_rebuild()
