"""Transport outcome classifiers.

Converts transport results and exceptions (requests, slack_sdk webhooks,
smtplib) into DestinationResponse objects so every factory reports failures
with the same status codes and error codes.

Key Functions:
- classify_http_response(): status code, body and headers -> DestinationResponse
- classify_transport_error(): transport exception -> DestinationResponse
- is_stale_connection_error(): whether a cached client should be rebuilt

Usage:
    from destinations.classifiers import classify_transport_error

    try:
        response = session.post(url, data=body, timeout=timeout)
    except requests.RequestException as exc:
        return classify_transport_error(DestinationType.CHIME, exc)
"""

import smtplib
import socket
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Iterator, Mapping, Optional
from urllib.error import URLError

import requests

from destinations.models import DestinationResponse, DestinationType

DEFAULT_RETRY_AFTER_SECONDS = 60

# Synthetic status codes for failures that never produced a remote status
TIMEOUT_STATUS = 408
CONNECTION_ERROR_STATUS = 503
UNEXPECTED_ERROR_STATUS = 500


def parse_retry_after(value: Optional[str]) -> Optional[int]:
    """Parse a Retry-After header value into seconds.

    Accepts delta-seconds ("120") or an HTTP date. Dates in the past give 0.

    Args:
        value: Raw header value, or None

    Returns:
        Seconds to wait, or None if the value is missing or malformed
    """
    if value is None:
        return None
    value = value.strip()
    if value.isdigit():
        return int(value)
    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    delta = (retry_at - datetime.now(timezone.utc)).total_seconds()
    return max(0, int(delta))


def _header(headers: Optional[Mapping[str, object]], name: str) -> Optional[str]:
    """Case-insensitive header lookup that tolerates list-valued headers."""
    if not headers:
        return None
    for key, value in headers.items():
        if key.lower() == name.lower():
            if isinstance(value, (list, tuple)):
                return str(value[0]) if value else None
            return str(value)
    return None


def classify_http_response(
    destination_type: DestinationType,
    status_code: int,
    body: str = "",
    headers: Optional[Mapping[str, object]] = None,
) -> DestinationResponse:
    """Classify an HTTP status into a DestinationResponse.

    Status Code Mapping:
    - 2xx: SENT
    - 429: RATE_LIMITED with retry_after (Retry-After header, default 60s)
    - 401: UNAUTHORIZED
    - 403: FORBIDDEN
    - 404: NOT_FOUND
    - 5xx: SERVER_ERROR (retry_after only if the server sent Retry-After)
    - Other: HTTP_ERROR

    Args:
        destination_type: Type of the destination that answered
        status_code: HTTP status code
        body: Response body text
        headers: Response headers

    Returns:
        DestinationResponse carrying the status code and body
    """
    if 200 <= status_code < 300:
        return DestinationResponse.sent(destination_type, status_code, body)

    if status_code == 429:
        retry_after = parse_retry_after(_header(headers, "retry-after"))
        return DestinationResponse.failed(
            destination_type,
            status_code,
            body or "Rate limited",
            error_code="RATE_LIMITED",
            retry_after=(
                retry_after if retry_after is not None else DEFAULT_RETRY_AFTER_SECONDS
            ),
        )

    error_codes = {401: "UNAUTHORIZED", 403: "FORBIDDEN", 404: "NOT_FOUND"}
    if status_code in error_codes:
        return DestinationResponse.failed(
            destination_type,
            status_code,
            body,
            error_code=error_codes[status_code],
        )

    if 500 <= status_code < 600:
        return DestinationResponse.failed(
            destination_type,
            status_code,
            body,
            error_code="SERVER_ERROR",
            retry_after=parse_retry_after(_header(headers, "retry-after")),
        )

    return DestinationResponse.failed(
        destination_type,
        status_code,
        body,
        error_code="HTTP_ERROR",
    )


def _exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield exc and every exception wrapped by it (args, cause, context)."""
    seen = set()
    pending = [exc]
    while pending:
        current = pending.pop()
        if id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        pending.extend(a for a in current.args if isinstance(a, BaseException))
        for linked in (current.__cause__, current.__context__):
            if linked is not None:
                pending.append(linked)
        reason = getattr(current, "reason", None)
        if isinstance(reason, BaseException):
            pending.append(reason)


def _is_timeout(exc: BaseException) -> bool:
    return any(
        isinstance(e, (requests.Timeout, TimeoutError, socket.timeout))
        for e in _exception_chain(exc)
    )


def is_stale_connection_error(exc: BaseException) -> bool:
    """Check whether exc means a cached client's connection went stale.

    A reset or remotely closed keep-alive connection, or an SMTP server that
    dropped the session, is recovered by rebuilding the client. Refused
    connections and timeouts are real transport failures and are not stale.
    """
    if isinstance(exc, smtplib.SMTPServerDisconnected):
        return True
    if _is_timeout(exc):
        return False
    return any(
        isinstance(e, (ConnectionResetError, BrokenPipeError))
        for e in _exception_chain(exc)
    )


def classify_transport_error(
    destination_type: DestinationType, exc: BaseException
) -> DestinationResponse:
    """Classify a transport exception into a failed DestinationResponse.

    Exception Mapping:
    - Timeouts (requests, socket, urllib): 408 TIMEOUT
    - SMTPRecipientsRefused: 550 RECIPIENTS_REFUSED
    - SMTPResponseException: SMTP reply code, SMTP_ERROR
    - Other SMTPException: 500 SMTP_ERROR
    - Connection failures (requests, OSError, urllib): 503 CONNECTION_ERROR
    - Anything else: 500 UNEXPECTED_ERROR

    Args:
        destination_type: Type of the destination being published to
        exc: Exception raised by the transport

    Returns:
        DestinationResponse with FAILED status
    """
    if _is_timeout(exc):
        return DestinationResponse.failed(
            destination_type,
            TIMEOUT_STATUS,
            f"Request timed out: {exc}",
            error_code="TIMEOUT",
        )

    if isinstance(exc, smtplib.SMTPRecipientsRefused):
        return DestinationResponse.failed(
            destination_type,
            550,
            f"Recipients refused: {', '.join(sorted(exc.recipients))}",
            error_code="RECIPIENTS_REFUSED",
        )

    if isinstance(exc, smtplib.SMTPResponseException):
        smtp_error = exc.smtp_error
        if isinstance(smtp_error, bytes):
            smtp_error = smtp_error.decode("utf-8", errors="replace")
        return DestinationResponse.failed(
            destination_type,
            exc.smtp_code,
            str(smtp_error),
            error_code="SMTP_ERROR",
        )

    if isinstance(exc, smtplib.SMTPException):
        return DestinationResponse.failed(
            destination_type,
            UNEXPECTED_ERROR_STATUS,
            f"SMTP error: {exc}",
            error_code="SMTP_ERROR",
        )

    if isinstance(exc, (requests.ConnectionError, URLError, OSError)):
        return DestinationResponse.failed(
            destination_type,
            CONNECTION_ERROR_STATUS,
            f"Connection error: {type(exc).__name__}: {exc}",
            error_code="CONNECTION_ERROR",
        )

    return DestinationResponse.failed(
        destination_type,
        UNEXPECTED_ERROR_STATUS,
        f"Unexpected error: {type(exc).__name__}: {exc}",
        error_code="UNEXPECTED_ERROR",
    )
