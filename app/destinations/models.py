"""Destination dispatch core models.

Messages describe what to send and where, tagged with a DestinationType
discriminant. Responses are the normalized outcome of one publish attempt.
Both are immutable once constructed.

Addressing fields (URLs, hosts, credential references) are stored as given
and validated by the owning factory's get_client(), so an unusable address
surfaces as ClientConstructionError rather than a model validation error.
"""

import uuid
from enum import Enum
from typing import Annotated, Any, Literal, Mapping, Optional, Tuple, Union
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    TypeAdapter,
    field_validator,
)


class DestinationType(Enum):
    """Kinds of notification channel a message can be addressed to."""

    CHIME = "chime"
    SLACK = "slack"
    CUSTOM_WEBHOOK = "custom_webhook"
    EMAIL = "email"
    TEST_ACTION = "test_action"


class DestinationStatus(Enum):
    """Outcome of a publish attempt."""

    SENT = "sent"
    FAILED = "failed"


class HttpMethod(Enum):
    """HTTP verbs accepted by custom webhooks."""

    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"


class EmailMethod(Enum):
    """SMTP connection security."""

    NONE = "none"
    SSL = "ssl"
    STARTTLS = "starttls"


class BaseMessage(BaseModel):
    """Fields shared by every destination message.

    Attributes:
        destination_type: Discriminant selecting the factory
        destination_name: Human readable label used in logs
        content: Message body (required, not blank)
        message_id: Identifier used to correlate log entries
    """

    model_config = ConfigDict(frozen=True)

    destination_type: DestinationType
    destination_name: str = ""
    content: str
    message_id: str = Field(default_factory=lambda: str(uuid.uuid4()))

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        """Ensure content is not empty."""
        if not v or not v.strip():
            raise ValueError("Message content cannot be empty")
        return v


class ChimeMessage(BaseMessage):
    """Amazon Chime incoming webhook message."""

    destination_type: Literal[DestinationType.CHIME] = DestinationType.CHIME
    url: str


class SlackMessage(BaseMessage):
    """Slack incoming webhook message."""

    destination_type: Literal[DestinationType.SLACK] = DestinationType.SLACK
    url: str


class CustomWebhookMessage(BaseMessage):
    """Message for an arbitrary HTTP endpoint.

    The endpoint is either a full url, or assembled from scheme, host, port
    and path. query_params are merged into the query string in both cases.
    query_params and header_params may be given as mappings; they are kept
    as (name, value) pairs so the message stays immutable.

    Example:
        message = CustomWebhookMessage(
            host="hooks.example.com",
            path="/alerts",
            query_params={"team": "sre"},
            header_params={"X-Api-Key": "..."},
            content='{"text": "CPU high"}',
        )
        message.build_url()  # "https://hooks.example.com/alerts?team=sre"
    """

    destination_type: Literal[DestinationType.CUSTOM_WEBHOOK] = (
        DestinationType.CUSTOM_WEBHOOK
    )
    url: Optional[str] = None
    scheme: str = "https"
    host: Optional[str] = None
    port: Optional[int] = None
    path: str = ""
    query_params: Tuple[Tuple[str, str], ...] = ()
    header_params: Tuple[Tuple[str, str], ...] = (
        ("Content-Type", "application/json"),
    )
    method: HttpMethod = HttpMethod.POST

    @field_validator("query_params", "header_params", mode="before")
    @classmethod
    def freeze_params(cls, v: Any) -> Any:
        """Accept a mapping and store it as ordered (name, value) pairs."""
        if isinstance(v, Mapping):
            return tuple(v.items())
        return v

    def build_url(self) -> Optional[str]:
        """Return the target URL, or None when no address was given."""
        if self.url:
            base = self.url
        elif self.host:
            netloc = self.host if self.port is None else f"{self.host}:{self.port}"
            path = self.path
            if path and not path.startswith("/"):
                path = f"/{path}"
            base = urlunsplit((self.scheme, netloc, path, "", ""))
        else:
            return None

        if not self.query_params:
            return base

        parts = urlsplit(base)
        query = parse_qsl(parts.query, keep_blank_values=True)
        query.extend(self.query_params)
        return urlunsplit(parts._replace(query=urlencode(query)))


class EmailMessage(BaseMessage):
    """Message relayed through an SMTP server.

    credentials_id names an entry in the email factory's credentials store;
    secrets are never carried by the message itself.
    """

    destination_type: Literal[DestinationType.EMAIL] = DestinationType.EMAIL
    host: str
    port: int = 25
    method: EmailMethod = EmailMethod.NONE
    from_address: EmailStr
    recipients: Tuple[EmailStr, ...] = Field(..., min_length=1)
    subject: str = "Alerting Notification"
    credentials_id: Optional[str] = None


class TestActionMessage(BaseMessage):
    """Message used to exercise an action without contacting any channel."""

    # Not a pytest test class despite the name
    __test__ = False

    destination_type: Literal[DestinationType.TEST_ACTION] = (
        DestinationType.TEST_ACTION
    )


DestinationMessage = Annotated[
    Union[
        ChimeMessage,
        SlackMessage,
        CustomWebhookMessage,
        EmailMessage,
        TestActionMessage,
    ],
    Field(discriminator="destination_type"),
]

_MESSAGE_ADAPTER: TypeAdapter = TypeAdapter(DestinationMessage)
_TYPE_VALUES = {t.value for t in DestinationType}


def parse_message(data: Mapping[str, Any]) -> BaseMessage:
    """Build the message variant selected by data["destination_type"].

    Args:
        data: Plain mapping, typically loaded from destination configuration.
            destination_type may be a DestinationType or its string value.

    Returns:
        The matching BaseMessage subclass instance.

    Raises:
        pydantic.ValidationError: If the type is unknown or fields are invalid.

    Example:
        message = parse_message(
            {"destination_type": "slack", "url": "https://hooks.slack.com/...",
             "content": "Monitor triggered"}
        )
        assert isinstance(message, SlackMessage)
    """
    payload = dict(data)
    raw_type = payload.get("destination_type")
    if isinstance(raw_type, str) and raw_type in _TYPE_VALUES:
        payload["destination_type"] = DestinationType(raw_type)
    return _MESSAGE_ADAPTER.validate_python(payload)


class DestinationResponse(BaseModel):
    """Normalized result of a publish attempt.

    Attributes:
        destination_type: Type of the destination that was published to
        status: SENT or FAILED
        status_code: HTTP status, SMTP reply code, or synthetic code
            (408 timeout, 503 connection failure, 500 unexpected error)
        message: Response body or human-readable result message
        error_code: Machine error code for failures
        retry_after: Seconds to wait before retrying (rate limits)

    Example:
        response = DestinationResponse.sent(DestinationType.SLACK, 200, "ok")
        assert response.is_success
    """

    model_config = ConfigDict(frozen=True)

    destination_type: DestinationType
    status: DestinationStatus
    status_code: int
    message: str = ""
    error_code: Optional[str] = None
    retry_after: Optional[int] = None

    @property
    def is_success(self) -> bool:
        """Check if the publish attempt was successful."""
        return self.status == DestinationStatus.SENT

    @classmethod
    def sent(
        cls,
        destination_type: DestinationType,
        status_code: int = 200,
        message: str = "",
    ) -> "DestinationResponse":
        """Create a SENT response."""
        return cls(
            destination_type=destination_type,
            status=DestinationStatus.SENT,
            status_code=status_code,
            message=message,
        )

    @classmethod
    def failed(
        cls,
        destination_type: DestinationType,
        status_code: int,
        message: str,
        error_code: Optional[str] = None,
        retry_after: Optional[int] = None,
    ) -> "DestinationResponse":
        """Create a FAILED response."""
        return cls(
            destination_type=destination_type,
            status=DestinationStatus.FAILED,
            status_code=status_code,
            message=message,
            error_code=error_code,
            retry_after=retry_after,
        )
