"""Prometheus metrics for the audit history pipeline."""

from prometheus_client import Counter, Histogram

AUDIT_ENTRIES_PARSED = Counter(
    "auditlens_audit_entries_parsed_total",
    "Audit entries converted into audit detail items",
    labelnames=["action"],
)

AUDIT_ENTRIES_SKIPPED = Counter(
    "auditlens_audit_entries_skipped_total",
    "Audit entries dropped because their action is not supported",
    labelnames=["action"],
)

UPSTREAM_REQUESTS = Counter(
    "auditlens_upstream_requests_total",
    "Requests made to upstream collaborators",
    labelnames=["operation", "outcome"],
)

METADATA_CACHE_MISSES = Counter(
    "auditlens_metadata_cache_misses_total",
    "Attribute keys or entity facts missing from the metadata cache",
    labelnames=["kind"],
)

DISPLAY_NAME_CACHE_MISSES = Counter(
    "auditlens_display_name_cache_misses_total",
    "Target record ids missing from the display name cache",
)

CACHE_PERSISTENCE_FAILURES = Counter(
    "auditlens_cache_persistence_failures_total",
    "Metadata cache load or save operations that failed",
    labelnames=["operation"],
)

STAGE_LATENCY = Histogram(
    "auditlens_stage_latency_seconds",
    "Latency of individual pipeline stages",
    labelnames=["stage"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)
