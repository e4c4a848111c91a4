"""Dispatch context binding for structured logging.

Binds a correlation id and the message identity to every log entry emitted
while a message is being dispatched, including entries from the factory and
its client cache.

Usage:
    from destinations.logging import bind_dispatch_context

    with bind_dispatch_context(message_id=message.message_id,
                               destination_type=message.destination_type.value):
        logger.info("publishing")
"""

import uuid
from contextlib import contextmanager
from typing import Any, Generator, Optional

import structlog


@contextmanager
def bind_dispatch_context(
    correlation_id: Optional[str] = None,
    message_id: Optional[str] = None,
    destination_type: Optional[str] = None,
    **extra_context: Any,
) -> Generator[None, None, None]:
    """Bind dispatch-scoped context to all logs within the context manager.

    Args:
        correlation_id: Identifier shared by every log entry of the dispatch.
            Reuses the id already bound by an outer context, otherwise one is
            generated.
        message_id: Identifier of the message being dispatched.
        destination_type: Destination type value of the message.
        **extra_context: Additional key-value pairs to include in logs.

    Yields:
        None - context is bound to structlog's context vars.
    """
    context: dict[str, Any] = {}

    context["correlation_id"] = (
        correlation_id or get_correlation_id() or str(uuid.uuid4())
    )

    if message_id is not None:
        context["message_id"] = message_id

    if destination_type is not None:
        context["destination_type"] = destination_type

    context.update(extra_context)

    previous = structlog.contextvars.get_contextvars()
    structlog.contextvars.bind_contextvars(**context)
    try:
        yield
    finally:
        structlog.contextvars.unbind_contextvars(*context.keys())
        # Restore values an outer context had bound under the same keys
        restored = {k: previous[k] for k in context if k in previous}
        if restored:
            structlog.contextvars.bind_contextvars(**restored)


def get_correlation_id() -> Optional[str]:
    """Get the current correlation ID from the logging context.

    Returns:
        The correlation ID if set, None otherwise.
    """
    ctx = structlog.contextvars.get_contextvars()
    return ctx.get("correlation_id")


def clear_dispatch_context() -> None:
    """Clear all dispatch-scoped context from the logging context."""
    structlog.contextvars.clear_contextvars()
