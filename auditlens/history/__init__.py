"""Audit history parsing, reference extraction and stream merging."""

from auditlens.history.merge import merge_sorted
from auditlens.history.parser import (
    ASSOCIATE_ACTION,
    DISASSOCIATE_ACTION,
    compare_audit_detail_items,
    construct_audit_detail_item,
    parse_audit_details,
)
from auditlens.history.references import extract_entity_references, is_guid

__all__ = [
    "ASSOCIATE_ACTION",
    "DISASSOCIATE_ACTION",
    "compare_audit_detail_items",
    "construct_audit_detail_item",
    "extract_entity_references",
    "is_guid",
    "merge_sorted",
    "parse_audit_details",
]
