"""Change Parser: raw annotated audit entries to AuditDetailItems.

Upstream audit details are loosely typed key/value maps. A base key such as
``name`` may be shadowed by annotation keys carrying metadata about it::

    name@OData.Community.Display.V1.FormattedValue          formatted text
    _parentid_value@Microsoft.Dynamics.CRM.lookuplogicalname  lookup type
    _parentid_value@Microsoft.Dynamics.CRM.associatednavigationproperty

Lookup values are returned under wrapped keys of the form ``_{name}_value``.
Any key containing ``@`` is an annotation and never a field in its own right.

Associate and disassociate entries carry no field changes; instead they list
the target records whose membership in a relationship changed.
"""

import re
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from auditlens.errors import DataShapeError
from auditlens.history.references import ID_SUFFIX
from auditlens.models.audit import (
    PLACEHOLDER_TEXT,
    AuditDetailItem,
    ChangeItem,
    RawAuditEntry,
    TargetRecordChange,
    ValueRepresentation,
)
from auditlens.models.references import EntityReference
from auditlens.observability.logging import get_logger
from auditlens.observability.metrics import AUDIT_ENTRIES_PARSED, AUDIT_ENTRIES_SKIPPED

logger = get_logger(__name__)

FORMATTED_VALUE = "@OData.Community.Display.V1.FormattedValue"
LOOKUP_LOGICAL_NAME = "@Microsoft.Dynamics.CRM.lookuplogicalname"
ASSOCIATED_NAVIGATION_PROPERTY = "@Microsoft.Dynamics.CRM.associatednavigationproperty"
ODATA_TYPE = "@odata.type"
ANNOTATION_MARKER = "@"

WRAPPED_LOOKUP_KEY = re.compile(r"^_(?P<name>.+)_value$")

ASSOCIATE_ACTION = 33
DISASSOCIATE_ACTION = 34

# Keys in the AuditRecord section of an upstream audit detail
AUDIT_ID = "auditid"
ACTION = "action"
CREATED_ON = "createdon"
OBJECT_ID = "_objectid_value"
OBJECT_TYPE = "objecttypecode"
USER_ID = "_userid_value"
REQUIRED_RECORD_KEYS = (AUDIT_ID, ACTION, CREATED_ON, OBJECT_ID, OBJECT_TYPE)


def is_annotation(key: str) -> bool:
    return ANNOTATION_MARKER in key


def construct_audit_detail_item(detail: Mapping[str, Any]) -> AuditDetailItem:
    """Build an AuditDetailItem from one upstream audit detail.

    Args:
        detail: ``{AuditRecord, OldValue?, NewValue?, TargetRecords?}``

    Returns:
        The parsed item. Field changes are populated for every action except
        associate/disassociate, which populate target record changes instead.

    Raises:
        DataShapeError: If the record lacks an identifying attribute or a
            target item cannot be identified
    """
    record = detail.get("AuditRecord")
    if not isinstance(record, Mapping):
        raise DataShapeError("Audit detail is missing its 'AuditRecord' section")

    entry = parse_raw_audit_entry(
        record,
        old_values=detail.get("OldValue"),
        new_values=detail.get("NewValue"),
        target_records=detail.get("TargetRecords"),
    )

    if entry.action in (ASSOCIATE_ACTION, DISASSOCIATE_ACTION):
        return AuditDetailItem(
            entry=entry,
            target_record_changes=parse_target_record_changes(
                entry.target_records, entry.action
            ),
        )
    return AuditDetailItem(
        entry=entry,
        change_items=parse_change_items(entry.old_values, entry.new_values),
    )


def parse_raw_audit_entry(
    record: Mapping[str, Any],
    old_values: Mapping[str, Any] | None = None,
    new_values: Mapping[str, Any] | None = None,
    target_records: list[Mapping[str, Any]] | None = None,
) -> RawAuditEntry:
    """Read core audit metadata from an annotated AuditRecord map."""
    for key in REQUIRED_RECORD_KEYS:
        if record.get(key) is None:
            raise DataShapeError(f"Audit record is missing required attribute '{key}'")

    try:
        return RawAuditEntry(
            id=str(record[AUDIT_ID]),
            created_on=record[CREATED_ON],
            formatted_created_on=record.get(f"{CREATED_ON}{FORMATTED_VALUE}"),
            actor_id=record.get(USER_ID),
            actor_name=record.get(f"{USER_ID}{FORMATTED_VALUE}"),
            action=record[ACTION],
            action_text=record.get(f"{ACTION}{FORMATTED_VALUE}"),
            subject=EntityReference(
                id=str(record[OBJECT_ID]), logical_name=str(record[OBJECT_TYPE])
            ),
            subject_type_display_name=record.get(f"{OBJECT_TYPE}{FORMATTED_VALUE}"),
            subject_primary_name=record.get(f"{OBJECT_ID}{FORMATTED_VALUE}"),
            old_values=dict(old_values) if old_values is not None else None,
            new_values=dict(new_values) if new_values is not None else None,
            target_records=(
                [dict(t) for t in target_records] if target_records is not None else None
            ),
        )
    except (ValidationError, TypeError, ValueError) as e:
        raise DataShapeError(
            f"Audit record {record.get(AUDIT_ID)} has malformed attributes: {e}"
        ) from e


def parse_change_items(
    old_values: Mapping[str, Any] | None,
    new_values: Mapping[str, Any] | None,
) -> tuple[ChangeItem, ...] | None:
    """Diff the old and new annotated maps field by field.

    Returns None unless both maps are present; an empty map counts as present.
    """
    if old_values is None or new_values is None:
        return None

    items: list[ChangeItem] = []
    for key in dict.fromkeys([*old_values, *new_values]):
        if is_annotation(key):
            continue

        match = WRAPPED_LOOKUP_KEY.match(key)
        if match:
            items.append(
                ChangeItem(
                    field_key=_lookup_field_key(
                        key, match.group("name"), old_values, new_values
                    ),
                    old_value=_lookup_value(key, old_values),
                    new_value=_lookup_value(key, new_values),
                )
            )
        else:
            items.append(
                ChangeItem(
                    field_key=key,
                    old_value=ValueRepresentation(text=_display_text(key, old_values)),
                    new_value=ValueRepresentation(text=_display_text(key, new_values)),
                )
            )
    return tuple(items)


def _display_text(key: str, values: Mapping[str, Any]) -> str:
    formatted = values.get(f"{key}{FORMATTED_VALUE}")
    if formatted not in (None, ""):
        return str(formatted)
    raw = values.get(key)
    if raw not in (None, ""):
        return str(raw)
    return PLACEHOLDER_TEXT


def _lookup_value(key: str, values: Mapping[str, Any]) -> ValueRepresentation:
    text = _display_text(key, values)
    record_id = values.get(key)
    logical_name = values.get(f"{key}{LOOKUP_LOGICAL_NAME}")
    if not record_id or not logical_name:
        return ValueRepresentation(text=text)
    return ValueRepresentation(
        text=text,
        lookup=EntityReference(id=str(record_id), logical_name=str(logical_name)),
    )


def _lookup_field_key(
    key: str,
    unwrapped: str,
    old_values: Mapping[str, Any],
    new_values: Mapping[str, Any],
) -> str:
    """Canonical identity of a wrapped lookup key.

    Some lookups (owner, for one) are not attributes of the entity itself; the
    associated navigation property then names the real column, but only when
    it is a lowercase logical name rather than a relationship schema name.
    """
    navigation_key = f"{key}{ASSOCIATED_NAVIGATION_PROPERTY}"
    navigation = old_values.get(navigation_key) or new_values.get(navigation_key)
    if isinstance(navigation, str) and navigation == navigation.lower():
        return navigation

    logical_name_key = f"{key}{LOOKUP_LOGICAL_NAME}"
    logical_name = old_values.get(logical_name_key) or new_values.get(logical_name_key)
    if logical_name:
        return str(logical_name)

    return unwrapped


def parse_target_record_changes(
    target_records: list[Mapping[str, Any]] | None,
    action: int,
) -> tuple[TargetRecordChange, ...] | None:
    """Convert the target items of an associate/disassociate entry.

    The reference sits on the new side for associate and on the old side for
    disassociate; the other side is an empty placeholder.
    """
    if target_records is None:
        return None

    changes: list[TargetRecordChange] = []
    for item in target_records:
        target = _target_reference(item)
        present = ValueRepresentation(text=target.logical_name, lookup=target)
        absent = ValueRepresentation()
        if action == ASSOCIATE_ACTION:
            changes.append(
                TargetRecordChange(target=target, old_value=absent, new_value=present)
            )
        else:
            changes.append(
                TargetRecordChange(target=target, old_value=present, new_value=absent)
            )
    return tuple(changes)


def _target_reference(item: Mapping[str, Any]) -> EntityReference:
    if not isinstance(item, Mapping):
        raise DataShapeError("Target record item must be an object")

    qualified_type = item.get(ODATA_TYPE)
    if not isinstance(qualified_type, str) or not qualified_type.strip("#."):
        raise DataShapeError(f"Target record item is missing '{ODATA_TYPE}'")
    # "#Microsoft.Dynamics.CRM.contact" -> "contact"
    logical_name = qualified_type.rsplit(".", 1)[-1].lstrip("#")

    for key, value in item.items():
        if not is_annotation(key) and key.endswith(ID_SUFFIX) and value:
            return EntityReference(id=str(value), logical_name=logical_name)

    raise DataShapeError(f"Target record of type '{logical_name}' has no id attribute")


def compare_audit_detail_items(
    a: AuditDetailItem | None, b: AuditDetailItem | None
) -> int:
    """Order two items ascending by timestamp.

    None compares below any item, so it lands last in a descending merge.
    """
    if a is None and b is None:
        return 0
    if b is None:
        return 1
    if a is None:
        return -1
    if a.created_on == b.created_on:
        return 0
    return 1 if a.created_on > b.created_on else -1


def parse_audit_details(
    details: Iterable[Mapping[str, Any]],
    unsupported_actions: Iterable[int] = (),
) -> list[AuditDetailItem]:
    """Parse one record's change history, dropping unsupported actions.

    Upstream order (newest first) is preserved.
    """
    skipped = frozenset(unsupported_actions)
    items: list[AuditDetailItem] = []
    for detail in details:
        record = detail.get("AuditRecord") if isinstance(detail, Mapping) else None
        action = record.get(ACTION) if isinstance(record, Mapping) else None
        if action in skipped:
            AUDIT_ENTRIES_SKIPPED.labels(action=str(action)).inc()
            continue

        item = construct_audit_detail_item(detail)
        AUDIT_ENTRIES_PARSED.labels(action=str(item.entry.action)).inc()
        items.append(item)

    logger.debug("audit_details_parsed", parsed=len(items))
    return items
