"""Destination factory registry and dispatcher.

Maps each DestinationType to the factory that publishes it, and routes
messages to the matching factory. Registries are constructed explicitly and
passed by reference; there is no global instance.

Thread safety:
    Registration and removal take a lock and replace the mapping with a new
    copy. Dispatch reads the current mapping without locking, so concurrent
    dispatches never wait on each other or on a registration.

Usage Example:
    registry = DestinationRegistry()
    registry.register(DestinationType.SLACK, SlackFactory())
    registry.register(DestinationType.EMAIL, EmailFactory(credentials=...))

    response = registry.dispatch(
        SlackMessage(url="https://hooks.slack.com/services/...",
                     content="Monitor triggered")
    )
    if not response.is_success:
        logger.warning("alert_not_delivered", error_code=response.error_code)
"""

import threading
from typing import Dict, Iterable, List, Mapping, Optional

from destinations.errors import (
    DestinationTypeMismatchError,
    DestinationTypeNotAllowedError,
    DuplicateRegistrationError,
    UnregisteredDestinationTypeError,
)
from destinations.factories.base import DestinationFactory
from destinations.logging import bind_dispatch_context, get_module_logger
from destinations.models import BaseMessage, DestinationResponse, DestinationType

logger = get_module_logger()


class DestinationRegistry:
    """Thread-safe registry routing messages to destination factories.

    Attributes:
        allow_list: Destination types that may be dispatched (None = all)

    Args:
        allow_list: Optional destination types that may be dispatched.
            Messages of other types raise DestinationTypeNotAllowedError.
    """

    def __init__(self, allow_list: Optional[Iterable[DestinationType]] = None):
        self.allow_list = frozenset(allow_list) if allow_list is not None else None
        self._factories: Mapping[DestinationType, DestinationFactory] = {}
        self._lock = threading.Lock()

    def register(
        self, destination_type: DestinationType, factory: DestinationFactory
    ) -> None:
        """Register the factory publishing destination_type messages.

        Args:
            destination_type: Type the factory serves
            factory: Factory instance

        Raises:
            DestinationTypeMismatchError: If the factory declares another type
            DuplicateRegistrationError: If the type already has a factory; the
                existing registration stays active.
        """
        declared = getattr(factory, "destination_type", None)
        if declared != destination_type:
            raise DestinationTypeMismatchError(
                f"{type(factory).__name__} serves "
                f"'{declared.value if declared else declared}', "
                f"cannot register it for '{destination_type.value}'"
            )

        with self._lock:
            if destination_type in self._factories:
                logger.warning(
                    "destination_factory_duplicate_registration",
                    destination_type=destination_type.value,
                    factory=type(factory).__name__,
                )
                raise DuplicateRegistrationError(destination_type)

            factories: Dict[DestinationType, DestinationFactory] = dict(
                self._factories
            )
            factories[destination_type] = factory
            self._factories = factories

        logger.info(
            "destination_factory_registered",
            destination_type=destination_type.value,
            factory=type(factory).__name__,
        )

    def unregister(self, destination_type: DestinationType) -> DestinationFactory:
        """Remove and return the factory registered for destination_type.

        The factory is not closed; the caller owns it from here on.

        Raises:
            UnregisteredDestinationTypeError: If no factory is registered
        """
        with self._lock:
            if destination_type not in self._factories:
                raise UnregisteredDestinationTypeError(destination_type)
            factories = dict(self._factories)
            factory = factories.pop(destination_type)
            self._factories = factories

        logger.info(
            "destination_factory_unregistered",
            destination_type=destination_type.value,
        )
        return factory

    def get_factory(
        self, destination_type: DestinationType
    ) -> Optional[DestinationFactory]:
        """Get the factory for destination_type, or None."""
        return self._factories.get(destination_type)

    def has_factory(self, destination_type: DestinationType) -> bool:
        return destination_type in self._factories

    def registered_types(self) -> List[DestinationType]:
        """Destination types that currently have a factory."""
        return list(self._factories)

    def is_allowed(self, destination_type: DestinationType) -> bool:
        return self.allow_list is None or destination_type in self.allow_list

    def dispatch(
        self, message: BaseMessage, timeout: Optional[float] = None
    ) -> DestinationResponse:
        """Publish message through the factory registered for its type.

        The factory's publish() is called exactly once and its response is
        returned unchanged.

        Args:
            message: Message to publish
            timeout: Seconds before the attempt is abandoned (factory default
                when None)

        Returns:
            DestinationResponse from the factory

        Raises:
            DestinationTypeNotAllowedError: If the allow list excludes the type
            UnregisteredDestinationTypeError: If no factory serves the type
            ClientConstructionError: If the message's addressing is invalid
        """
        destination_type = message.destination_type

        with bind_dispatch_context(
            message_id=message.message_id,
            destination_type=destination_type.value,
        ):
            if not self.is_allowed(destination_type):
                logger.warning("destination_type_not_allowed")
                raise DestinationTypeNotAllowedError(destination_type)

            factory = self._factories.get(destination_type)
            if factory is None:
                logger.warning("destination_factory_not_registered")
                raise UnregisteredDestinationTypeError(destination_type)

            response = factory.publish(message, timeout=timeout)

            logger.info(
                "destination_dispatched",
                destination_name=message.destination_name,
                status=response.status.value,
                status_code=response.status_code,
                error_code=response.error_code,
            )
            return response

    def close(self) -> None:
        """Close every registered factory and empty the registry."""
        with self._lock:
            factories, self._factories = self._factories, {}

        for destination_type, factory in factories.items():
            try:
                factory.close()
            except Exception as e:
                logger.error(
                    "destination_factory_close_failed",
                    destination_type=destination_type.value,
                    error=str(e),
                    exc_info=True,
                )

        logger.info("destination_registry_closed", factory_count=len(factories))
