"""Amazon Chime incoming webhook factory."""

import json

from destinations.factories.http import HttpWebhookFactory, WebhookRequest
from destinations.models import ChimeMessage, DestinationType


class ChimeFactory(HttpWebhookFactory[ChimeMessage]):
    """Publishes to Chime rooms through their incoming webhook URL.

    Chime expects a JSON body with a single "Content" field.
    """

    destination_type = DestinationType.CHIME
    message_class = ChimeMessage

    def target_url(self, message: ChimeMessage) -> str:
        return message.url

    def build_request(self, message: ChimeMessage, url: str) -> WebhookRequest:
        return WebhookRequest(
            method="POST",
            url=url,
            body=json.dumps({"Content": message.content}),
            headers={"Content-Type": "application/json"},
        )
