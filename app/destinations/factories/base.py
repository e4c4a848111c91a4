"""Destination factory abstract base classes.

Every channel implementation (Chime, Slack, custom webhook, email) plugs
into the registry through DestinationFactory. The generic parameters bind a
factory to the message variant it accepts and the client type it builds; the
binding is also enforced at runtime so a factory registered for one type
never receives another type's message.

Example Implementation:
    class ChimeFactory(HttpWebhookFactory[ChimeMessage]):
        destination_type = DestinationType.CHIME
        message_class = ChimeMessage

        def target_url(self, message: ChimeMessage) -> str:
            return message.url

        def build_request(self, message: ChimeMessage, url: str) -> WebhookRequest:
            ...
"""

import time
from abc import ABC, abstractmethod
from typing import Callable, ClassVar, Generic, Hashable, Optional, Type, TypeVar

from destinations.classifiers import (
    classify_transport_error,
    is_stale_connection_error,
)
from destinations.client_cache import ClientCache
from destinations.errors import DestinationTypeMismatchError
from destinations.logging import get_module_logger
from destinations.models import BaseMessage, DestinationResponse, DestinationType

logger = get_module_logger()

MessageT = TypeVar("MessageT", bound=BaseMessage)
ClientT = TypeVar("ClientT")

DEFAULT_TIMEOUT_SECONDS = 10.0


class DestinationFactory(ABC, Generic[MessageT, ClientT]):
    """Abstract base class for destination factories.

    Attributes:
        destination_type: Type this factory is registered under
        message_class: Message variant this factory accepts
    """

    destination_type: ClassVar[DestinationType]
    message_class: ClassVar[Type[BaseMessage]]

    @abstractmethod
    def get_client(self, message: MessageT) -> ClientT:
        """Return a transport client able to deliver message.

        Safe to call repeatedly for messages sharing a target; never mutates
        the message.

        Raises:
            ClientConstructionError: If the message's addressing is invalid
            DestinationTypeMismatchError: If message is another type's variant
        """
        pass

    @abstractmethod
    def publish(
        self, message: MessageT, timeout: Optional[float] = None
    ) -> DestinationResponse:
        """Send message and return the normalized outcome.

        Remote and transport failures (4xx/5xx, refused connections,
        timeouts) are returned as FAILED responses, never raised.

        Args:
            message: Message to send
            timeout: Seconds before the attempt is abandoned (factory default
                when None)

        Raises:
            ClientConstructionError: If the message's addressing is invalid
            DestinationTypeMismatchError: If message is another type's variant
        """
        pass

    def close(self) -> None:
        """Release every transport client held by the factory."""
        pass

    def _ensure_message(self, message: BaseMessage) -> MessageT:
        """Reject messages that are not this factory's variant."""
        if not isinstance(message, self.message_class):
            raise DestinationTypeMismatchError(
                f"{type(self).__name__} handles "
                f"'{self.destination_type.value}' messages, "
                f"got '{message.destination_type.value}'"
            )
        return message  # type: ignore[return-value]


class CachingDestinationFactory(DestinationFactory[MessageT, ClientT]):
    """Factory base that caches clients per addressing key.

    Subclasses provide client_key(), _build_client() and _send(). This class
    handles caching, default timeouts, conversion of transport exceptions to
    failed responses, and a single rebuild-and-resend when the cached client
    turns out to be stale.

    Args:
        default_timeout: Timeout used when publish() is given none
        cache_max_size: Maximum number of cached clients
        cache_ttl_seconds: Age after which a cached client is rebuilt
        clock: Monotonic time source for the cache (injectable for tests)
    """

    def __init__(
        self,
        default_timeout: float = DEFAULT_TIMEOUT_SECONDS,
        cache_max_size: int = 64,
        cache_ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_timeout = default_timeout
        self._clients: ClientCache[Hashable, ClientT] = ClientCache(
            name=self.destination_type.value,
            max_size=cache_max_size,
            ttl_seconds=cache_ttl_seconds,
            on_evict=self._close_client,
            clock=clock,
        )

    @property
    def client_cache(self) -> ClientCache:
        """The factory's client cache (exposed for stats and tests)."""
        return self._clients

    @abstractmethod
    def client_key(self, message: MessageT) -> Hashable:
        """Validate message addressing and return its cache key.

        Raises:
            ClientConstructionError: If the addressing is invalid
        """
        pass

    @abstractmethod
    def _build_client(self, message: MessageT) -> ClientT:
        """Create a new client for message's target."""
        pass

    @abstractmethod
    def _send(
        self, client: ClientT, message: MessageT, timeout: float
    ) -> DestinationResponse:
        """Deliver message with client within timeout seconds in total.

        Transport exceptions may propagate; exceeding timeout should raise
        TimeoutError (or the transport's timeout exception).
        """
        pass

    def _close_client(self, client: ClientT) -> None:
        close = getattr(client, "close", None)
        if callable(close):
            close()

    def get_client(self, message: MessageT) -> ClientT:
        message = self._ensure_message(message)
        key = self.client_key(message)
        return self._clients.get_or_create(key, lambda: self._build_client(message))

    def publish(
        self, message: MessageT, timeout: Optional[float] = None
    ) -> DestinationResponse:
        message = self._ensure_message(message)
        effective_timeout = timeout if timeout is not None else self.default_timeout
        deadline = time.monotonic() + effective_timeout
        client = self.get_client(message)

        try:
            return self._send(client, message, effective_timeout)
        except Exception as e:
            if not is_stale_connection_error(e):
                return self._failure(message, e)

            logger.info(
                "stale_client_rebuilding",
                destination_type=self.destination_type.value,
                error=str(e),
            )
            self._clients.invalidate(self.client_key(message), client)

        # The resend shares the caller's deadline
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return self._failure(
                message,
                TimeoutError(f"No time left to resend within {effective_timeout}s"),
            )

        client = self.get_client(message)
        try:
            return self._send(client, message, remaining)
        except Exception as e:
            return self._failure(message, e)

    def close(self) -> None:
        self._clients.clear()
        logger.debug(
            "destination_factory_closed",
            destination_type=self.destination_type.value,
        )

    def _failure(self, message: MessageT, exc: Exception) -> DestinationResponse:
        response = classify_transport_error(self.destination_type, exc)
        if response.error_code == "UNEXPECTED_ERROR":
            logger.error(
                "destination_publish_error",
                destination_type=self.destination_type.value,
                destination_name=message.destination_name,
                error=str(exc),
                exc_info=True,
            )
        else:
            logger.warning(
                "destination_publish_failed",
                destination_type=self.destination_type.value,
                destination_name=message.destination_name,
                status_code=response.status_code,
                error_code=response.error_code,
                error=str(exc),
            )
        return response
