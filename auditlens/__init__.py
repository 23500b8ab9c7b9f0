"""auditlens: expanded audit history for a record and its related records.

Fetches change history for a primary record plus every record reached through
a nested relationship expansion, merges the per-record streams into a single
time-ordered sequence and enriches it with display labels.
"""

from auditlens.errors import AuditLensError, ConfigError, DataShapeError, TransportError
from auditlens.pipeline import AuditHistoryPipeline, create_pipeline

__version__ = "0.1.0"
__all__ = [
    "AuditHistoryPipeline",
    "AuditLensError",
    "ConfigError",
    "DataShapeError",
    "TransportError",
    "create_pipeline",
]
