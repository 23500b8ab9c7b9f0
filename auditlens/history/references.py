"""Entity Reference Extractor.

Walks an arbitrary record-with-expansions payload and collects every record
it can identify. Identification is purely by naming convention: a key of the
form ``{logicalname}id`` whose value is a GUID-shaped string is taken to be
the primary key of a ``logicalname`` record.

This heuristic is fragile by nature. It does not consult the query plan, so
it copes with navigation property names that differ from logical type names,
but a non-key attribute that happens to end in ``id`` and hold a GUID is
reported as a reference too. Lookup values returned as ``_{name}_value`` do
not end in ``id`` and are never matched.
"""

import re
from collections.abc import Mapping
from typing import Any, TypeAlias

from auditlens.models.references import EntityReference

# Tree of primitives, lists and string-keyed mappings
PayloadValue: TypeAlias = (
    str | int | float | bool | None | list["PayloadValue"] | Mapping[str, "PayloadValue"]
)

ID_SUFFIX = "id"
GUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def is_guid(value: Any) -> bool:
    """Whether ``value`` is a string in canonical 8-4-4-4-12 GUID form."""
    return isinstance(value, str) and GUID_PATTERN.match(value) is not None


def extract_entity_references(payload: PayloadValue) -> list[EntityReference]:
    """Collect entity references from a payload in document order.

    Duplicates are kept; callers that fetch per reference de-duplicate.
    """
    references: list[EntityReference] = []
    _walk(payload, references)
    return references


def _walk(value: Any, references: list[EntityReference]) -> None:
    if isinstance(value, Mapping):
        for key, child in value.items():
            if (
                isinstance(key, str)
                and len(key) > len(ID_SUFFIX)
                and key.endswith(ID_SUFFIX)
                and is_guid(child)
            ):
                references.append(
                    EntityReference(id=child, logical_name=key[: -len(ID_SUFFIX)])
                )
            else:
                _walk(child, references)
    elif isinstance(value, list):
        for child in value:
            _walk(child, references)
