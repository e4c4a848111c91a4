"""Slack incoming webhook factory using slack_sdk."""

import math
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Callable, Hashable, Optional

from slack_sdk.webhook import WebhookClient

from destinations.classifiers import classify_http_response
from destinations.factories.base import CachingDestinationFactory
from destinations.logging import get_module_logger
from destinations.models import DestinationResponse, DestinationType, SlackMessage
from destinations.validation import HostDenyList, validate_webhook_url

logger = get_module_logger()


def _timeout_seconds(timeout: float) -> int:
    # WebhookClient only accepts whole seconds
    return max(1, math.ceil(timeout))


class SlackFactory(CachingDestinationFactory[SlackMessage, WebhookClient]):
    """Publishes to Slack channels through incoming webhook URLs.

    One WebhookClient is cached per webhook URL. Slack answers non-2xx
    statuses (for example 404 "no_service" for a revoked hook) with a body
    describing the problem; these become failed responses.

    WebhookClient applies its timeout to each socket operation, so sends run
    on a small worker pool and the caller stops waiting once the publish
    timeout has passed. An abandoned send finishes in the background.

    Args:
        host_deny_list: Hosts that messages may not target
        client_factory: Callable creating a WebhookClient (injectable for tests)
        max_workers: Size of the send worker pool
        **kwargs: Passed to CachingDestinationFactory
    """

    destination_type = DestinationType.SLACK
    message_class = SlackMessage

    def __init__(
        self,
        host_deny_list: Optional[HostDenyList] = None,
        client_factory: Callable[..., WebhookClient] = WebhookClient,
        max_workers: int = 8,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self._deny_list = host_deny_list or HostDenyList()
        self._client_factory = client_factory
        self._max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()

    def client_key(self, message: SlackMessage) -> Hashable:
        return validate_webhook_url(message.url, self.destination_type, self._deny_list)

    def _build_client(self, message: SlackMessage) -> WebhookClient:
        return self._client_factory(
            url=self.client_key(message),
            timeout=_timeout_seconds(self.default_timeout),
        )

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers,
                    thread_name_prefix="slack-webhook",
                )
            return self._executor

    def _send(
        self, client: WebhookClient, message: SlackMessage, timeout: float
    ) -> DestinationResponse:
        if _timeout_seconds(timeout) != client.timeout:
            # Per-call timeout override; the cached client keeps the default
            client = self._client_factory(
                url=client.url, timeout=_timeout_seconds(timeout)
            )

        future = self._get_executor().submit(client.send, text=message.content)
        try:
            response = future.result(timeout=timeout)
        except FuturesTimeoutError:
            future.cancel()
            raise TimeoutError(
                f"Slack webhook did not answer within {timeout}s"
            ) from None

        result = classify_http_response(
            self.destination_type,
            response.status_code,
            response.body or "",
            response.headers,
        )
        logger.info(
            "slack_webhook_published" if result.is_success else "slack_webhook_rejected",
            destination_name=message.destination_name,
            status_code=response.status_code,
            error_code=result.error_code,
        )
        return result

    def close(self) -> None:
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)
        super().close()
