"""Query Expansion Builder & Validator.

Turns a declarative descriptor of nested relationship expansions into a
validated QueryPlan, and serializes a plan into $select/$expand/$filter
clauses for the record-fetch API.

Descriptor format (JSON or an already-decoded mapping)::

    {
        "primaryEntityLogicalName": "ardea_booking",
        "expand": [
            {
                "propertyName": "ardea_booking_Venue_ardea_venue",
                "relatedEntityLogicalName": "ardea_venue",
                "isManyToMany": false,
                "expand": [...]
            }
        ]
    }

Two rules hold for the whole tree: expansions nest at most
MAX_EXPANSION_DEPTH levels, and a tree containing any many-to-many
expansion may not nest below the first level anywhere, because the
upstream API cannot serve both in one query.
"""

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from auditlens.errors import ConfigError
from auditlens.models.query import QueryParameters, QueryPlan, QueryPlanNode
from auditlens.observability.logging import get_logger

logger = get_logger(__name__)

MAX_EXPANSION_DEPTH = 4

PRIMARY_ENTITY_KEY = "primaryEntityLogicalName"
EXPAND_KEY = "expand"
PROPERTY_NAME_KEY = "propertyName"
RELATED_ENTITY_KEY = "relatedEntityLogicalName"
MANY_TO_MANY_KEY = "isManyToMany"


@dataclass(frozen=True)
class ExpansionStats:
    """Facts about a subtree, combined bottom-up during validation."""

    max_depth: int = 0
    has_many_to_many: bool = False

    def combine(self, other: "ExpansionStats") -> "ExpansionStats":
        return ExpansionStats(
            max_depth=max(self.max_depth, other.max_depth),
            has_many_to_many=self.has_many_to_many or other.has_many_to_many,
        )


def parse(descriptor: str | Mapping[str, Any]) -> QueryPlan:
    """Validate a query descriptor and return its plan.

    Args:
        descriptor: JSON text or decoded mapping

    Returns:
        The validated QueryPlan

    Raises:
        ConfigError: Naming the violated rule; raised before any I/O
    """
    if isinstance(descriptor, str):
        try:
            descriptor = json.loads(descriptor)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Query descriptor is not valid JSON: {e}") from e

    if not isinstance(descriptor, Mapping):
        raise ConfigError("Query descriptor must be a JSON object")

    primary = descriptor.get(PRIMARY_ENTITY_KEY)
    if not isinstance(primary, str) or not primary.strip():
        raise ConfigError(f"'{PRIMARY_ENTITY_KEY}' must be a non-empty string")

    expansion: tuple[QueryPlanNode, ...] = ()
    stats = ExpansionStats()
    if EXPAND_KEY in descriptor:
        expansion, stats = _parse_expansion(
            descriptor[EXPAND_KEY], depth=1, path=primary
        )

    if stats.has_many_to_many and stats.max_depth > 1:
        raise ConfigError(
            "Many-to-many expansions cannot be combined with nested expansions "
            "in the same query; remove the nesting or the many-to-many relationship"
        )

    logger.debug(
        "query_descriptor_parsed",
        primary_entity_type=primary,
        expansion_depth=stats.max_depth,
        has_many_to_many=stats.has_many_to_many,
    )
    return QueryPlan(primary_entity_type_name=primary, expansion=expansion)


def _parse_expansion(
    items: Any, depth: int, path: str
) -> tuple[tuple[QueryPlanNode, ...], ExpansionStats]:
    if depth > MAX_EXPANSION_DEPTH:
        raise ConfigError(
            f"Maximum expansion depth {MAX_EXPANSION_DEPTH} exceeded at '{path}'"
        )
    if isinstance(items, (str, bytes)) or not isinstance(items, Sequence) or not items:
        raise ConfigError(f"'{EXPAND_KEY}' under '{path}' must be a non-empty array")

    nodes: list[QueryPlanNode] = []
    stats = ExpansionStats(max_depth=depth)
    for index, item in enumerate(items):
        node, node_stats = _parse_node(item, depth, f"{path}.{EXPAND_KEY}[{index}]")
        nodes.append(node)
        stats = stats.combine(node_stats)
    return tuple(nodes), stats


def _parse_node(item: Any, depth: int, path: str) -> tuple[QueryPlanNode, ExpansionStats]:
    if not isinstance(item, Mapping):
        raise ConfigError(f"Expansion at '{path}' must be an object")

    for key in (PROPERTY_NAME_KEY, RELATED_ENTITY_KEY):
        value = item.get(key)
        if not isinstance(value, str) or not value.strip():
            raise ConfigError(f"'{key}' at '{path}' must be a non-empty string")

    is_many_to_many = item.get(MANY_TO_MANY_KEY)
    if not isinstance(is_many_to_many, bool):
        raise ConfigError(f"'{MANY_TO_MANY_KEY}' at '{path}' must be a boolean")

    stats = ExpansionStats(max_depth=depth, has_many_to_many=is_many_to_many)
    nested: tuple[QueryPlanNode, ...] | None = None
    if EXPAND_KEY in item:
        nested, nested_stats = _parse_expansion(item[EXPAND_KEY], depth + 1, path)
        stats = stats.combine(nested_stats)

    node = QueryPlanNode(
        property_name=item[PROPERTY_NAME_KEY],
        related_entity_type_name=item[RELATED_ENTITY_KEY],
        is_many_to_many=is_many_to_many,
        nested_expansion=nested,
    )
    return node, stats


def id_field(entity_type: str) -> str:
    """Primary key attribute of an entity type, by naming convention."""
    return f"{entity_type}id"


def build(plan: QueryPlan, record_id: str | None = None) -> QueryParameters:
    """Serialize a validated plan into query clauses.

    Args:
        plan: Plan returned by ``parse``
        record_id: When given, restricts the query to that primary record

    Raises:
        ConfigError: If the plan nests beyond MAX_EXPANSION_DEPTH
    """
    primary = plan.primary_entity_type_name
    return QueryParameters(
        entity_type=primary,
        select=id_field(primary),
        expand=_build_expand(plan.expansion, depth=1) if plan.expansion else None,
        filter=f"{id_field(primary)} eq {record_id}" if record_id else None,
    )


def _build_expand(nodes: Sequence[QueryPlanNode], depth: int) -> str:
    if depth > MAX_EXPANSION_DEPTH:
        raise ConfigError(f"Maximum expansion depth {MAX_EXPANSION_DEPTH} exceeded")

    clauses = []
    for node in nodes:
        options = f"$select={id_field(node.related_entity_type_name)}"
        if node.nested_expansion:
            options += f";$expand={_build_expand(node.nested_expansion, depth + 1)}"
        clauses.append(f"{node.property_name}({options})")
    return ",".join(clauses)
