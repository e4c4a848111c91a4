"""Unit tests for transport outcome classifiers."""

import smtplib
import socket
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from urllib.error import URLError

import pytest
import requests

from destinations.classifiers import (
    DEFAULT_RETRY_AFTER_SECONDS,
    classify_http_response,
    classify_transport_error,
    is_stale_connection_error,
    parse_retry_after,
)
from destinations.models import DestinationStatus, DestinationType


@pytest.mark.unit
class TestParseRetryAfter:
    """Tests for Retry-After parsing."""

    def test_delta_seconds(self):
        """Test integer seconds are returned as-is."""
        assert parse_retry_after("120") == 120

    def test_http_date(self):
        """Test an HTTP date is converted to seconds from now."""
        retry_at = datetime.now(timezone.utc) + timedelta(seconds=90)

        seconds = parse_retry_after(format_datetime(retry_at, usegmt=True))

        assert 80 <= seconds <= 90

    def test_past_date_gives_zero(self):
        """Test a date in the past means retry immediately."""
        assert parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT") == 0

    @pytest.mark.parametrize("value", [None, "soon", ""])
    def test_missing_or_malformed(self, value):
        """Test unusable values give None."""
        assert parse_retry_after(value) is None


@pytest.mark.unit
class TestClassifyHttpResponse:
    """Tests for HTTP status classification."""

    @pytest.mark.parametrize("status_code", [200, 201, 204])
    def test_success(self, status_code):
        """Test 2xx statuses are SENT."""
        response = classify_http_response(DestinationType.CHIME, status_code, "ok")

        assert response.status == DestinationStatus.SENT
        assert response.status_code == status_code
        assert response.message == "ok"

    def test_rate_limited_with_header(self):
        """Test 429 uses the Retry-After header."""
        response = classify_http_response(
            DestinationType.SLACK, 429, "", headers={"retry-after": "30"}
        )

        assert response.error_code == "RATE_LIMITED"
        assert response.retry_after == 30

    def test_rate_limited_default_retry_after(self):
        """Test 429 without Retry-After gets the default delay."""
        response = classify_http_response(DestinationType.SLACK, 429)

        assert response.retry_after == DEFAULT_RETRY_AFTER_SECONDS

    def test_header_lookup_is_case_insensitive(self):
        """Test headers are matched regardless of case."""
        response = classify_http_response(
            DestinationType.CHIME, 503, "", headers={"RETRY-AFTER": ["15"]}
        )

        assert response.error_code == "SERVER_ERROR"
        assert response.retry_after == 15

    @pytest.mark.parametrize(
        "status_code,error_code",
        [
            (401, "UNAUTHORIZED"),
            (403, "FORBIDDEN"),
            (404, "NOT_FOUND"),
            (500, "SERVER_ERROR"),
            (400, "HTTP_ERROR"),
            (302, "HTTP_ERROR"),
        ],
    )
    def test_failures(self, status_code, error_code):
        """Test non-2xx statuses map to failure codes."""
        response = classify_http_response(
            DestinationType.CUSTOM_WEBHOOK, status_code, "nope"
        )

        assert response.status == DestinationStatus.FAILED
        assert response.status_code == status_code
        assert response.error_code == error_code
        assert response.message == "nope"


@pytest.mark.unit
class TestClassifyTransportError:
    """Tests for transport exception classification."""

    @pytest.mark.parametrize(
        "exc",
        [
            requests.ReadTimeout("read timed out"),
            requests.ConnectTimeout("connect timed out"),
            socket.timeout("timed out"),
            URLError(TimeoutError("timed out")),
        ],
    )
    def test_timeouts(self, exc):
        """Test every timeout flavour maps to 408 TIMEOUT."""
        response = classify_transport_error(DestinationType.SLACK, exc)

        assert response.status_code == 408
        assert response.error_code == "TIMEOUT"

    @pytest.mark.parametrize(
        "exc",
        [
            requests.ConnectionError("refused"),
            ConnectionRefusedError("refused"),
            URLError("name or service not known"),
        ],
    )
    def test_connection_errors(self, exc):
        """Test connection failures map to 503 CONNECTION_ERROR."""
        response = classify_transport_error(DestinationType.CHIME, exc)

        assert response.status_code == 503
        assert response.error_code == "CONNECTION_ERROR"

    def test_smtp_reply_code(self):
        """Test SMTP reply errors keep the server's code."""
        exc = smtplib.SMTPAuthenticationError(535, b"5.7.8 bad credentials")

        response = classify_transport_error(DestinationType.EMAIL, exc)

        assert response.status_code == 535
        assert response.error_code == "SMTP_ERROR"
        assert "bad credentials" in response.message

    def test_smtp_recipients_refused(self):
        """Test refused recipients map to 550."""
        exc = smtplib.SMTPRecipientsRefused({"a@example.com": (550, b"no such user")})

        response = classify_transport_error(DestinationType.EMAIL, exc)

        assert response.status_code == 550
        assert response.error_code == "RECIPIENTS_REFUSED"
        assert "a@example.com" in response.message

    def test_smtp_disconnect(self):
        """Test a dropped SMTP session maps to SMTP_ERROR."""
        exc = smtplib.SMTPServerDisconnected("Connection unexpectedly closed")

        response = classify_transport_error(DestinationType.EMAIL, exc)

        assert response.status_code == 500
        assert response.error_code == "SMTP_ERROR"

    def test_unexpected(self):
        """Test anything else maps to 500 UNEXPECTED_ERROR."""
        response = classify_transport_error(
            DestinationType.CUSTOM_WEBHOOK, ValueError("boom")
        )

        assert response.status_code == 500
        assert response.error_code == "UNEXPECTED_ERROR"
        assert "ValueError" in response.message


@pytest.mark.unit
class TestIsStaleConnectionError:
    """Tests for stale client detection."""

    def test_connection_reset_wrapped_by_requests(self):
        """Test a reset keep-alive connection is stale."""
        exc = requests.ConnectionError(ConnectionResetError(104, "reset by peer"))

        assert is_stale_connection_error(exc)

    def test_smtp_server_disconnected(self):
        """Test a dropped SMTP session is stale."""
        assert is_stale_connection_error(smtplib.SMTPServerDisconnected("closed"))

    def test_refused_connection_not_stale(self):
        """Test a refused connection is a real failure."""
        exc = requests.ConnectionError(ConnectionRefusedError(111, "refused"))

        assert not is_stale_connection_error(exc)

    def test_timeout_not_stale(self):
        """Test a timeout is never treated as stale."""
        assert not is_stale_connection_error(requests.ReadTimeout("timed out"))
