"""Custom HTTP endpoint factory."""

from typing import Optional

from destinations.factories.http import HttpWebhookFactory, WebhookRequest
from destinations.models import CustomWebhookMessage, DestinationType


class CustomWebhookFactory(HttpWebhookFactory[CustomWebhookMessage]):
    """Publishes message content as the raw body to a user-defined endpoint.

    The URL comes from the message's url, or is assembled from its host,
    port and path. The message's method and header_params are used as given.
    """

    destination_type = DestinationType.CUSTOM_WEBHOOK
    message_class = CustomWebhookMessage

    def target_url(self, message: CustomWebhookMessage) -> Optional[str]:
        return message.build_url()

    def build_request(
        self, message: CustomWebhookMessage, url: str
    ) -> WebhookRequest:
        return WebhookRequest(
            method=message.method.value,
            url=url,
            body=message.content,
            headers=dict(message.header_params),
        )
