"""Offline schema snapshots."""

from auditlens.schema.static import (
    SchemaAttribute,
    SchemaEntity,
    SchemaRelationship,
    StaticSchema,
    StaticSchemaMetadataFetcher,
    descriptor_for,
    load_static_schema,
    seed_metadata_cache,
)

__all__ = [
    "SchemaAttribute",
    "SchemaEntity",
    "SchemaRelationship",
    "StaticSchema",
    "StaticSchemaMetadataFetcher",
    "descriptor_for",
    "load_static_schema",
    "seed_metadata_cache",
]
