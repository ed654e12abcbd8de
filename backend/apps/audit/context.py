"""
Audit context for non-request code paths.

Binds request-like context for management commands and scheduled jobs so
audit entries they write carry a correlation id just like HTTP requests.
"""

from collections.abc import Generator
from contextlib import contextmanager
from uuid import uuid4

import structlog


@contextmanager
def audit_context(
    correlation_id: str | None = None,
    job: str = "",
) -> Generator[str, None, None]:
    """
    Bind audit context for background code.

    Usage:
        with audit_context(job="publish_scheduled_content") as correlation_id:
            publish_due_scheduled()

    Args:
        correlation_id: Trace ID to reuse. Auto-generated if not provided.
        job: Name of the job, logged and stored as the user agent.

    Yields:
        The correlation id in effect.
    """
    generated_correlation_id = correlation_id or str(uuid4())

    ctx = {
        "correlation_id": generated_correlation_id,
        "request.ip_address": None,
        "request.user_agent": f"job:{job}" if job else "",
    }

    structlog.contextvars.bind_contextvars(**ctx)
    try:
        yield generated_correlation_id
    finally:
        structlog.contextvars.unbind_contextvars(*ctx.keys())
