"""Label enrichment of parsed audit history."""

from auditlens.enrichment.orchestrator import EnrichmentOrchestrator, MetadataGap

__all__ = ["EnrichmentOrchestrator", "MetadataGap"]
