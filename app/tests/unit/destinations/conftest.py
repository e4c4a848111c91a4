"""Test fixtures for destination dispatch tests."""

from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest
import requests

from destinations.factories.base import DestinationFactory
from destinations.models import (
    ChimeMessage,
    CustomWebhookMessage,
    DestinationResponse,
    DestinationType,
    EmailMessage,
    EmailMethod,
    SlackMessage,
    TestActionMessage,
)

SLACK_URL = "https://hooks.slack.com/services/T000/B000/XXXXSECRET"
CHIME_URL = "https://hooks.chime.aws/incomingwebhooks/abc-123?token=SECRET"
WEBHOOK_URL = "https://alerts.example.com/hooks/monitor"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock():
    """Manually advanced clock for cache TTL tests.

    Example:
        cache = ClientCache("test", ttl_seconds=10, clock=fake_clock)
        fake_clock.advance(11)
    """
    return FakeClock()


@pytest.fixture
def chime_message_factory():
    """Factory for creating ChimeMessage instances."""

    def _factory(
        url: str = CHIME_URL,
        content: str = "Monitor triggered",
        destination_name: str = "ops-room",
    ) -> ChimeMessage:
        return ChimeMessage(url=url, content=content, destination_name=destination_name)

    return _factory


@pytest.fixture
def slack_message_factory():
    """Factory for creating SlackMessage instances."""

    def _factory(
        url: str = SLACK_URL,
        content: str = "Monitor triggered",
        destination_name: str = "#alerts",
    ) -> SlackMessage:
        return SlackMessage(url=url, content=content, destination_name=destination_name)

    return _factory


@pytest.fixture
def webhook_message_factory():
    """Factory for creating CustomWebhookMessage instances.

    Example:
        message = webhook_message_factory(url=None, host="hooks.example.com")
    """

    def _factory(**overrides: Any) -> CustomWebhookMessage:
        fields: Dict[str, Any] = {
            "url": WEBHOOK_URL,
            "content": '{"text": "Monitor triggered"}',
            "destination_name": "pager-bridge",
        }
        fields.update(overrides)
        return CustomWebhookMessage(**fields)

    return _factory


@pytest.fixture
def email_message_factory():
    """Factory for creating EmailMessage instances."""

    def _factory(
        host: str = "smtp.example.com",
        port: int = 587,
        method: EmailMethod = EmailMethod.STARTTLS,
        recipients: Optional[List[str]] = None,
        credentials_id: Optional[str] = "ops-relay",
        content: str = "Monitor triggered",
        subject: str = "Alert: CPU high",
    ) -> EmailMessage:
        return EmailMessage(
            host=host,
            port=port,
            method=method,
            from_address="alerts@example.com",
            recipients=recipients or ["oncall@example.com"],
            credentials_id=credentials_id,
            content=content,
            subject=subject,
        )

    return _factory


@pytest.fixture
def dry_run_message():
    """A TestActionMessage instance."""
    return TestActionMessage(content="Dry run", destination_name="check")


@pytest.fixture
def http_response_factory():
    """Factory for creating mock requests.Response objects.

    Example:
        response = http_response_factory(429, headers={"Retry-After": "30"})
    """

    def _factory(
        status_code: int = 200,
        text: str = "ok",
        headers: Optional[Dict[str, str]] = None,
    ) -> MagicMock:
        response = MagicMock(spec=requests.Response)
        response.status_code = status_code
        response.text = text
        response.encoding = "utf-8"
        response.iter_content.return_value = [text.encode("utf-8")]
        response.headers = headers or {}
        return response

    return _factory


@pytest.fixture
def mock_session_factory(http_response_factory):
    """Session factory returning mock requests.Session objects.

    Every created session is recorded in mock_session_factory.sessions.
    Sessions answer 200 "ok" unless their request side effect is changed.
    """
    sessions: List[MagicMock] = []

    def _factory() -> MagicMock:
        session = MagicMock(spec=requests.Session)
        session.headers = {}
        session.request.return_value = http_response_factory()
        sessions.append(session)
        return session

    _factory.sessions = sessions
    return _factory


@pytest.fixture
def stub_factory_class():
    """Build a minimal DestinationFactory subclass for a destination type.

    Publish calls are recorded on the instance and answered with a SENT
    response.

    Example:
        factory = stub_factory_class(DestinationType.SLACK)()
    """
    message_classes = {
        DestinationType.CHIME: ChimeMessage,
        DestinationType.SLACK: SlackMessage,
        DestinationType.CUSTOM_WEBHOOK: CustomWebhookMessage,
        DestinationType.EMAIL: EmailMessage,
        DestinationType.TEST_ACTION: TestActionMessage,
    }

    def _build(destination_type: DestinationType):
        class StubFactory(DestinationFactory):
            def __init__(self):
                self.published = []
                self.closed = False

            def get_client(self, message):
                return self._ensure_message(message)

            def publish(self, message, timeout=None):
                self._ensure_message(message)
                self.published.append((message, timeout))
                return DestinationResponse.sent(self.destination_type, 200, "stub")

            def close(self):
                self.closed = True

        StubFactory.destination_type = destination_type
        StubFactory.message_class = message_classes[destination_type]
        return StubFactory

    return _build
