"""Metadata Cache: versioned, persisted entity and attribute labels.

Holds, per entity type, its display name, its primary-name attribute and the
display labels of its attributes. The whole map is persisted as one JSON blob
under a caller-supplied key::

    {"version": 1, "entityMetadataMap": {"contact": {"displayName": "Contact",
     "primaryNameAttribute": "fullname", "attributes": {"firstname":
     {"logicalName": "firstname", "displayName": "First Name"}}}}}

Nothing depends on this cache for correctness, so loading and saving never
raise: an unreadable, corrupt or other-version blob means a cold start, and a
failed save is logged and dropped.
"""

import json

from pydantic import ValidationError

from auditlens.cache.store import KeyValueStore
from auditlens.models.metadata import AttributeDefinition, EntityMetadata, MetadataBlob
from auditlens.observability.logging import get_logger
from auditlens.observability.metrics import CACHE_PERSISTENCE_FAILURES

logger = get_logger(__name__)

METADATA_CACHE_VERSION = 1


class MetadataCache:
    """In-memory entity metadata map with best-effort persistence.

    Use ``MetadataCache.load`` to restore a persisted cache; the constructor
    always starts empty.
    """

    def __init__(
        self,
        store: KeyValueStore,
        storage_key: str,
        version: int = METADATA_CACHE_VERSION,
    ) -> None:
        self._store = store
        self._storage_key = storage_key
        self._version = version
        self._entities: dict[str, EntityMetadata] = {}

    @classmethod
    async def load(
        cls,
        store: KeyValueStore,
        storage_key: str,
        version: int = METADATA_CACHE_VERSION,
    ) -> "MetadataCache":
        """Restore the cache persisted under ``storage_key``.

        Returns an empty cache when nothing usable is stored.
        """
        cache = cls(store, storage_key, version)

        try:
            raw = await store.get(storage_key)
        except Exception as e:
            CACHE_PERSISTENCE_FAILURES.labels(operation="load").inc()
            logger.warning("metadata_cache_load_failed", key=storage_key, error=str(e))
            return cache

        if raw is None:
            logger.debug("metadata_cache_empty", key=storage_key)
            return cache

        try:
            data = json.loads(raw)
            stored_version = data.get("version") if isinstance(data, dict) else None
            if stored_version != version:
                logger.info(
                    "metadata_cache_version_mismatch",
                    key=storage_key,
                    stored_version=stored_version,
                    expected_version=version,
                )
                return cache
            blob = MetadataBlob.model_validate(data)
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("metadata_cache_corrupted", key=storage_key, error=str(e))
            return cache

        cache._entities = dict(blob.entity_metadata_map)
        logger.debug(
            "metadata_cache_loaded", key=storage_key, entity_types=len(cache._entities)
        )
        return cache

    @property
    def version(self) -> int:
        return self._version

    def __len__(self) -> int:
        return len(self._entities)

    def _entity(self, entity_type: str) -> EntityMetadata:
        if entity_type not in self._entities:
            self._entities[entity_type] = EntityMetadata()
        return self._entities[entity_type]

    def get_attribute(
        self, entity_type: str, attribute_key: str
    ) -> AttributeDefinition | None:
        entity = self._entities.get(entity_type)
        if entity is None:
            return None
        return entity.attributes.get(attribute_key)

    def set_attribute(self, entity_type: str, attribute: AttributeDefinition) -> None:
        self._entity(entity_type).attributes[attribute.logical_name] = attribute

    def get_entity_display_name(self, entity_type: str) -> str | None:
        entity = self._entities.get(entity_type)
        return entity.display_name if entity else None

    def set_entity_display_name(self, entity_type: str, display_name: str) -> None:
        self._entity(entity_type).display_name = display_name

    def get_entity_primary_name_attribute(self, entity_type: str) -> str | None:
        entity = self._entities.get(entity_type)
        return entity.primary_name_attribute if entity else None

    def set_entity_primary_name_attribute(
        self, entity_type: str, attribute_key: str
    ) -> None:
        self._entity(entity_type).primary_name_attribute = attribute_key

    def to_blob(self) -> MetadataBlob:
        return MetadataBlob(version=self._version, entity_metadata_map=self._entities)

    async def save(self) -> None:
        """Persist the cache. Failures are logged, never raised."""
        try:
            payload = self.to_blob().model_dump_json(by_alias=True)
            await self._store.set(self._storage_key, payload)
        except Exception as e:
            CACHE_PERSISTENCE_FAILURES.labels(operation="save").inc()
            logger.error("metadata_cache_save_failed", key=self._storage_key, error=str(e))
            return

        logger.debug(
            "metadata_cache_saved", key=self._storage_key, entity_types=len(self._entities)
        )
