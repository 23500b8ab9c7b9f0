"""Entity and attribute metadata models.

The persisted cache blob uses camelCase keys:
``{version, entityMetadataMap: {type: {displayName, primaryNameAttribute,
attributes: {key: {logicalName, displayName}}}}}``.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AttributeDefinition(_CamelModel):
    """Display label for a single attribute."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    logical_name: str = Field(..., description="Attribute key")
    display_name: str = Field(..., description="Human-readable label")


class EntityMetadata(_CamelModel):
    """Cached metadata for one entity type."""

    display_name: str | None = Field(default=None, description="Entity display name")
    primary_name_attribute: str | None = Field(
        default=None, description="Attribute holding a record's primary name"
    )
    attributes: dict[str, AttributeDefinition] = Field(
        default_factory=dict, description="Attribute key -> definition"
    )


class MetadataBlob(_CamelModel):
    """Persisted form of the metadata cache."""

    version: int = Field(..., description="Blob schema version")
    entity_metadata_map: dict[str, EntityMetadata] = Field(
        default_factory=dict, description="Entity type -> metadata"
    )


class EntityMetadataResponse(BaseModel):
    """Result of a metadata fetch for one entity type."""

    model_config = ConfigDict(frozen=True)

    entity_type: str = Field(..., description="Logical type name")
    display_name: str | None = Field(default=None, description="Entity display name")
    primary_name_attribute: str | None = Field(
        default=None, description="Primary name attribute"
    )
    attributes: list[AttributeDefinition] = Field(
        default_factory=list, description="Definitions for the requested keys"
    )
