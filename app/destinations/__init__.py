"""Alerting destinations.

Pluggable notification dispatch: messages addressed to Chime, Slack, custom
webhooks or SMTP relays are routed by a DestinationRegistry to the factory
for their type, which builds (or reuses) a transport client and publishes.

Usage:
    from destinations import (
        DestinationRegistry,
        SlackFactory,
        SlackMessage,
        DestinationType,
    )

    registry = DestinationRegistry()
    registry.register(DestinationType.SLACK, SlackFactory())

    response = registry.dispatch(
        SlackMessage(url="https://hooks.slack.com/services/...",
                     content="Monitor triggered")
    )
"""

from destinations.configuration import (
    DestinationSettings,
    EmailCredentials,
    EmailSettings,
    Settings,
)
from destinations.errors import (
    ClientConstructionError,
    DestinationError,
    DestinationTypeMismatchError,
    DestinationTypeNotAllowedError,
    DuplicateRegistrationError,
    UnregisteredDestinationTypeError,
)
from destinations.factories import (
    CachingDestinationFactory,
    ChimeFactory,
    CustomWebhookFactory,
    DestinationFactory,
    EmailFactory,
    SlackFactory,
    TestActionFactory,
)
from destinations.models import (
    BaseMessage,
    ChimeMessage,
    CustomWebhookMessage,
    DestinationMessage,
    DestinationResponse,
    DestinationStatus,
    DestinationType,
    EmailMessage,
    EmailMethod,
    HttpMethod,
    SlackMessage,
    TestActionMessage,
    parse_message,
)
from destinations.registry import DestinationRegistry
from destinations.service import DestinationService, build_default_factories

__all__ = [
    # Models
    "DestinationType",
    "DestinationStatus",
    "HttpMethod",
    "EmailMethod",
    "BaseMessage",
    "ChimeMessage",
    "SlackMessage",
    "CustomWebhookMessage",
    "EmailMessage",
    "TestActionMessage",
    "DestinationMessage",
    "DestinationResponse",
    "parse_message",
    # Errors
    "DestinationError",
    "ClientConstructionError",
    "UnregisteredDestinationTypeError",
    "DuplicateRegistrationError",
    "DestinationTypeMismatchError",
    "DestinationTypeNotAllowedError",
    # Factories
    "DestinationFactory",
    "CachingDestinationFactory",
    "ChimeFactory",
    "SlackFactory",
    "CustomWebhookFactory",
    "EmailFactory",
    "TestActionFactory",
    # Dispatch
    "DestinationRegistry",
    "DestinationService",
    "build_default_factories",
    # Configuration
    "Settings",
    "DestinationSettings",
    "EmailSettings",
    "EmailCredentials",
]
