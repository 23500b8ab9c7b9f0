"""Static schema: an offline snapshot of entity and relationship metadata.

The snapshot is generated ahead of time and shipped as JSON::

    {
        "entities": {
            "ardea_booking": {
                "logicalName": "ardea_booking",
                "displayName": "Booking",
                "idField": "ardea_bookingid",
                "primaryNameField": "ardea_name",
                "attributes": {"ardea_date": {"label": "Date", "type": "DateTime"}}
            }
        },
        "relationships": [
            {
                "id": "1f3a01db-ea39-f011-8c4e-7c1e5202cd37",
                "schemaName": "ardea_Booking_Contact_Attendees",
                "relationshipType": "N:N",
                "entity1": "contact",
                "entity2": "ardea_booking"
            }
        ]
    }

It can stand in for live metadata fetches on a cold start and can derive a
query descriptor covering an entity's direct relationships.
"""

from collections.abc import Sequence
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from auditlens.cache.metadata import MetadataCache
from auditlens.errors import ConfigError, TransportError
from auditlens.models.metadata import AttributeDefinition, EntityMetadataResponse
from auditlens.observability.logging import get_logger
from auditlens.query.builder import (
    EXPAND_KEY,
    MANY_TO_MANY_KEY,
    PRIMARY_ENTITY_KEY,
    PROPERTY_NAME_KEY,
    RELATED_ENTITY_KEY,
)
from auditlens.upstream.source import MetadataFetcher

logger = get_logger(__name__)

MANY_TO_MANY = "N:N"


class _SchemaModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class SchemaAttribute(_SchemaModel):
    label: str = Field(..., description="Attribute display label")
    type: str = Field(default="String", description="Attribute type name")


class SchemaEntity(_SchemaModel):
    logical_name: str = Field(..., description="Logical type name")
    display_name: str = Field(..., description="Entity display name")
    id_field: str = Field(..., description="Primary key attribute")
    primary_name_field: str = Field(..., description="Primary name attribute")
    attributes: dict[str, SchemaAttribute] = Field(default_factory=dict)


class SchemaRelationship(_SchemaModel):
    id: str = Field(..., description="Relationship id")
    schema_name: str = Field(..., description="Navigation property name")
    relationship_type: str = Field(..., description="'1:N' or 'N:N'")
    entity1: str
    entity2: str


class StaticSchema(_SchemaModel):
    entities: dict[str, SchemaEntity] = Field(default_factory=dict)
    relationships: list[SchemaRelationship] = Field(default_factory=list)


def load_static_schema(path: str | Path) -> StaticSchema:
    """Read a schema snapshot from a JSON file.

    Raises:
        ConfigError: If the file cannot be read or is not a valid snapshot
    """
    path = Path(path)
    try:
        schema = StaticSchema.model_validate_json(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Unable to read static schema {path}: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"Static schema {path} is malformed: {e}") from e

    logger.debug(
        "static_schema_loaded",
        path=str(path),
        entity_types=len(schema.entities),
        relationships=len(schema.relationships),
    )
    return schema


class StaticSchemaMetadataFetcher(MetadataFetcher):
    """MetadataFetcher answering from a schema snapshot.

    An entity type missing from the snapshot fails like a live fetch would,
    with a TransportError.
    """

    def __init__(self, schema: StaticSchema) -> None:
        self._schema = schema

    async def fetch_entity_metadata(
        self, entity_type: str, attribute_keys: Sequence[str]
    ) -> EntityMetadataResponse:
        entity = self._schema.entities.get(entity_type)
        if entity is None:
            raise TransportError(
                f"Entity type '{entity_type}' is not present in the static schema"
            )
        return EntityMetadataResponse(
            entity_type=entity_type,
            display_name=entity.display_name,
            primary_name_attribute=entity.primary_name_field,
            attributes=[
                AttributeDefinition(
                    logical_name=key, display_name=entity.attributes[key].label
                )
                for key in attribute_keys
                if key in entity.attributes
            ],
        )


def seed_metadata_cache(cache: MetadataCache, schema: StaticSchema) -> int:
    """Copy every entity in ``schema`` into ``cache``.

    Existing entries are overwritten. The cache is not saved.

    Returns:
        Number of entity types seeded
    """
    for entity_type, entity in schema.entities.items():
        cache.set_entity_display_name(entity_type, entity.display_name)
        cache.set_entity_primary_name_attribute(entity_type, entity.primary_name_field)
        for key, attribute in entity.attributes.items():
            cache.set_attribute(
                entity_type, AttributeDefinition(logical_name=key, display_name=attribute.label)
            )

    logger.info("metadata_cache_seeded", entity_types=len(schema.entities))
    return len(schema.entities)


def descriptor_for(schema: StaticSchema, entity_type: str) -> dict[str, Any]:
    """Derive a one-level query descriptor for ``entity_type``.

    A relationship is expanded when the entity is its first party, or when
    it is the second party of a many-to-many relationship; the entity on the
    many side of a one-to-many never expands back to its parent. Related
    types absent from the snapshot are skipped.

    Raises:
        ConfigError: If ``entity_type`` is not in the snapshot
    """
    if entity_type not in schema.entities:
        raise ConfigError(f"Entity type '{entity_type}' is not present in the static schema")

    expansion: list[dict[str, Any]] = []
    for relationship in schema.relationships:
        is_many_to_many = relationship.relationship_type == MANY_TO_MANY
        related = None
        if relationship.entity1 == entity_type:
            related = relationship.entity2
        elif is_many_to_many and relationship.entity2 == entity_type:
            related = relationship.entity1

        if related is None or related not in schema.entities:
            continue
        expansion.append(
            {
                PROPERTY_NAME_KEY: relationship.schema_name,
                RELATED_ENTITY_KEY: related,
                MANY_TO_MANY_KEY: is_many_to_many,
            }
        )

    descriptor: dict[str, Any] = {PRIMARY_ENTITY_KEY: entity_type}
    if expansion:
        descriptor[EXPAND_KEY] = expansion
    return descriptor
