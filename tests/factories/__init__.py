"""Test factories for creating test data."""

from tests.factories.audit import AuditDetailFactory, make_item

__all__ = [
    "AuditDetailFactory",
    "make_item",
]
