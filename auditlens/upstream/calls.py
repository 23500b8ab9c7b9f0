"""Wrapping of upstream calls.

Any exception escaping a collaborator is wrapped exactly once into a
TransportError; errors already raised by this package pass through as-is.
"""

from collections.abc import Awaitable
from typing import TypeVar

from auditlens.errors import AuditLensError, TransportError
from auditlens.observability.logging import get_logger
from auditlens.observability.metrics import UPSTREAM_REQUESTS

logger = get_logger(__name__)

T = TypeVar("T")


async def call_upstream(operation: str, awaitable: Awaitable[T], **context: object) -> T:
    """Await an upstream call, counting its outcome.

    Args:
        operation: Collaborator operation name, used for metrics and logs
        awaitable: The pending call
        **context: Extra fields for the failure log and message

    Raises:
        TransportError: If the call fails with a foreign exception
    """
    try:
        result = await awaitable
    except AuditLensError:
        UPSTREAM_REQUESTS.labels(operation=operation, outcome="error").inc()
        raise
    except Exception as e:
        UPSTREAM_REQUESTS.labels(operation=operation, outcome="error").inc()
        logger.warning("upstream_call_failed", operation=operation, error=str(e), **context)
        details = ", ".join(f"{key}={value}" for key, value in context.items())
        message = f"Upstream {operation} failed"
        if details:
            message = f"{message} ({details})"
        raise TransportError(f"{message}: {e}", cause=e) from e

    UPSTREAM_REQUESTS.labels(operation=operation, outcome="success").inc()
    return result
