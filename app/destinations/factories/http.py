"""Shared HTTP webhook factory built on requests sessions.

One requests.Session is cached per URL origin, so messages for the same
webhook host share a connection pool. Evicted sessions are closed.
"""

import time
from abc import abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Dict, Hashable, Optional

import requests

from destinations.classifiers import classify_http_response
from destinations.factories.base import CachingDestinationFactory, MessageT
from destinations.logging import get_module_logger
from destinations.models import DestinationResponse
from destinations.validation import HostDenyList, url_origin, validate_webhook_url

logger = get_module_logger()

USER_AGENT = "alerting-destinations"


def _read_body(response: requests.Response, deadline: float, timeout: float) -> str:
    """Read a streamed response body, giving up once deadline has passed.

    requests applies its timeout to each socket read, so a server trickling
    bytes could otherwise hold the call open indefinitely. The body is read
    one byte per step because larger reads block until they are filled.
    """
    chunks = []
    for chunk in response.iter_content(chunk_size=1):
        chunks.append(chunk)
        if time.monotonic() > deadline:
            raise requests.Timeout(f"Response body not received within {timeout}s")
    return b"".join(chunks).decode(response.encoding or "utf-8", errors="replace")


@dataclass(frozen=True)
class WebhookRequest:
    """A fully resolved HTTP request for a webhook message."""

    method: str
    url: str
    body: str
    headers: Dict[str, str] = field(default_factory=dict)


class HttpWebhookFactory(CachingDestinationFactory[MessageT, requests.Session]):
    """Base for factories that POST (or PUT/PATCH) to an HTTP endpoint.

    Subclasses implement target_url() and build_request().

    Args:
        host_deny_list: Hosts that messages may not target
        session_factory: Callable creating a new session (requests.Session)
        **kwargs: Passed to CachingDestinationFactory
    """

    def __init__(
        self,
        host_deny_list: Optional[HostDenyList] = None,
        session_factory: Callable[[], requests.Session] = requests.Session,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self._deny_list = host_deny_list or HostDenyList()
        self._session_factory = session_factory

    @abstractmethod
    def target_url(self, message: MessageT) -> Optional[str]:
        """Return the raw URL addressed by message."""
        pass

    @abstractmethod
    def build_request(self, message: MessageT, url: str) -> WebhookRequest:
        """Build the HTTP request that delivers message to url."""
        pass

    def resolve_url(self, message: MessageT) -> str:
        return validate_webhook_url(
            self.target_url(message), self.destination_type, self._deny_list
        )

    def client_key(self, message: MessageT) -> Hashable:
        return url_origin(self.resolve_url(message))

    def _build_client(self, message: MessageT) -> requests.Session:
        session = self._session_factory()
        session.headers.update({"User-Agent": USER_AGENT})
        logger.debug(
            "webhook_session_created",
            destination_type=self.destination_type.value,
        )
        return session

    def _send(
        self, client: requests.Session, message: MessageT, timeout: float
    ) -> DestinationResponse:
        deadline = time.monotonic() + timeout
        request = self.build_request(message, self.resolve_url(message))
        response = client.request(
            request.method,
            request.url,
            data=request.body.encode("utf-8"),
            headers=request.headers,
            timeout=timeout,
            allow_redirects=False,
            stream=True,
        )
        try:
            body = _read_body(response, deadline, timeout)
        finally:
            response.close()

        result = classify_http_response(
            self.destination_type,
            response.status_code,
            body,
            response.headers,
        )
        logger.info(
            "webhook_published" if result.is_success else "webhook_rejected",
            destination_type=self.destination_type.value,
            destination_name=message.destination_name,
            status_code=response.status_code,
            error_code=result.error_code,
        )
        return result
