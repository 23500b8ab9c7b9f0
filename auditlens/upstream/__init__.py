"""Upstream collaborator interfaces and an in-memory implementation."""

from auditlens.upstream.calls import call_upstream
from auditlens.upstream.inmemory import InMemoryAuditSource
from auditlens.upstream.models import ChangeHistoryPage
from auditlens.upstream.source import AuditSource, MetadataFetcher, RecordFetcher

__all__ = [
    "AuditSource",
    "ChangeHistoryPage",
    "InMemoryAuditSource",
    "MetadataFetcher",
    "RecordFetcher",
    "call_upstream",
]
