"""Structured logging infrastructure.

Public API:
    - configure_logging(): Initialize logging for the application
    - get_module_logger(): Get a logger for the calling module
    - bind_dispatch_context(): Context manager for dispatch-scoped logging
    - get_correlation_id(): Get current correlation ID from context
    - clear_dispatch_context(): Clear all dispatch context

Example:
    from destinations.logging import configure_logging, get_module_logger

    configure_logging(log_level="INFO", is_production=True)

    logger = get_module_logger()
    logger.info("module_initialized")
"""

from destinations.logging.setup import (
    configure_logging,
    get_module_logger,
)

from destinations.logging.context import (
    bind_dispatch_context,
    get_correlation_id,
    clear_dispatch_context,
)

from destinations.logging.formatters import (
    mask_sensitive_data,
    mask_webhook_urls,
    redact_url,
    truncate_large_values,
    SENSITIVE_PATTERNS,
)

__all__ = [
    # Setup
    "configure_logging",
    "get_module_logger",
    # Context
    "bind_dispatch_context",
    "get_correlation_id",
    "clear_dispatch_context",
    # Formatters
    "mask_sensitive_data",
    "mask_webhook_urls",
    "redact_url",
    "truncate_large_values",
    "SENSITIVE_PATTERNS",
]
