"""Channel factories.

Each factory publishes one DestinationType. New channels subclass
DestinationFactory (or CachingDestinationFactory for cached transport
clients) and are registered with a DestinationRegistry.
"""

from destinations.factories.base import (
    CachingDestinationFactory,
    DestinationFactory,
)
from destinations.factories.chime import ChimeFactory
from destinations.factories.custom_webhook import CustomWebhookFactory
from destinations.factories.email import EmailFactory, SmtpSession
from destinations.factories.http import HttpWebhookFactory, WebhookRequest
from destinations.factories.slack import SlackFactory
from destinations.factories.test_action import TestActionFactory

__all__ = [
    "DestinationFactory",
    "CachingDestinationFactory",
    "HttpWebhookFactory",
    "WebhookRequest",
    "ChimeFactory",
    "CustomWebhookFactory",
    "SlackFactory",
    "EmailFactory",
    "SmtpSession",
    "TestActionFactory",
]
