"""Custom log processors for structured logging.

Webhook URLs for Slack and Chime embed their secret in the path, and SMTP
credentials travel through the email factory, so both are scrubbed before
an event is rendered.

Usage:
    from destinations.logging.formatters import mask_sensitive_data, mask_webhook_urls
"""

import re
from typing import Any

# Sensitive field patterns that should be masked in logs
SENSITIVE_PATTERNS = frozenset(
    {
        "password",
        "secret",
        "token",
        "api_key",
        "apikey",
        "authorization",
        "credential",
        "private_key",
        "cookie",
        "bearer",
    }
)

_URL_PATTERN = re.compile(r"(?P<origin>https?://[^/\s?#]+)(?P<rest>[^\s]*)")


def mask_sensitive_data(
    mask_value: str = "***REDACTED***",
    additional_patterns: frozenset[str] | None = None,
):
    """Create a processor that masks sensitive data in log entries.

    Values are masked for keys containing a sensitive pattern
    (case-insensitive matching).

    Args:
        mask_value: The string to replace sensitive values with.
        additional_patterns: Extra patterns to consider sensitive.

    Returns:
        A structlog processor function.
    """
    patterns = SENSITIVE_PATTERNS
    if additional_patterns:
        patterns = patterns | additional_patterns

    def processor(
        logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        masked_dict = {}
        for key, value in event_dict.items():
            key_lower = key.lower()
            is_sensitive = any(pattern in key_lower for pattern in patterns)
            if is_sensitive and value is not None:
                masked_dict[key] = mask_value
            else:
                masked_dict[key] = value
        return masked_dict

    return processor


def redact_url(value: str, mask_value: str = "***") -> str:
    """Keep the scheme and host of every URL in value, hide path and query.

    Example:
        redact_url("https://hooks.slack.com/services/T0/B0/xyz")
        # "https://hooks.slack.com/***"
    """

    def _replace(match: re.Match) -> str:
        if not match.group("rest"):
            return match.group("origin")
        return f"{match.group('origin')}/{mask_value}"

    return _URL_PATTERN.sub(_replace, value)


def mask_webhook_urls(
    keys: frozenset[str] = frozenset({"url", "webhook_url", "error"}),
):
    """Create a processor that redacts webhook URL paths.

    Args:
        keys: Event keys whose string values may contain URLs. The
            "event" key is always scanned as well.

    Returns:
        A structlog processor function.
    """

    def processor(
        logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        for key, value in event_dict.items():
            if isinstance(value, str) and (key in keys or key == "event"):
                event_dict[key] = redact_url(value)
        return event_dict

    return processor


def truncate_large_values(max_length: int = 500):
    """Create a processor that truncates overly large string values.

    Response bodies from remote endpoints can be arbitrarily large.

    Args:
        max_length: Maximum string length before truncation.

    Returns:
        A structlog processor function.
    """

    def processor(
        logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        for key, value in event_dict.items():
            if isinstance(value, str) and len(value) > max_length:
                event_dict[key] = (
                    value[:max_length] + f"...[truncated, {len(value)} chars total]"
                )
        return event_dict

    return processor
