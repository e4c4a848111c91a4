"""Destination service for dependency injection.

The only component that reads Settings. It builds the default factories and
the registry from configuration and owns their lifecycle.

Usage:
    from destinations import DestinationService, Settings, parse_message

    with DestinationService(Settings()) as service:
        response = service.dispatch(parse_message(action_config))
"""

from typing import Dict, Iterable, List, Optional

from destinations.configuration import Settings
from destinations.factories import (
    ChimeFactory,
    CustomWebhookFactory,
    DestinationFactory,
    EmailFactory,
    SlackFactory,
    TestActionFactory,
)
from destinations.logging import configure_logging, get_module_logger
from destinations.models import BaseMessage, DestinationResponse, DestinationType
from destinations.registry import DestinationRegistry
from destinations.validation import HostDenyList

logger = get_module_logger()


def build_default_factories(settings: Settings) -> Dict[DestinationType, DestinationFactory]:
    """Create one factory per built-in destination type from settings.

    Args:
        settings: Settings instance

    Returns:
        Dict mapping each DestinationType to a configured factory
    """
    destination = settings.destination
    cache_options = {
        "default_timeout": destination.timeout_seconds,
        "cache_max_size": destination.client_cache_max_size,
        "cache_ttl_seconds": destination.cache_ttl,
    }
    deny_list = HostDenyList(destination.host_deny_list)

    factories: List[DestinationFactory] = [
        ChimeFactory(host_deny_list=deny_list, **cache_options),
        SlackFactory(host_deny_list=deny_list, **cache_options),
        CustomWebhookFactory(host_deny_list=deny_list, **cache_options),
        EmailFactory(credentials=settings.email.credentials, **cache_options),
        TestActionFactory(),
    ]
    return {factory.destination_type: factory for factory in factories}


class DestinationService:
    """Class-based destination service.

    Wraps a DestinationRegistry populated from settings. Pass a registry to
    use custom factories instead of the built-in ones.

    Args:
        settings: Settings instance
        registry: Optional pre-populated registry
        factories: Optional factories registered instead of the defaults
            (ignored when registry is given)
        configure_logs: Configure structlog from settings on construction

    Example:
        service = DestinationService(settings)
        response = service.dispatch(
            ChimeMessage(url="https://hooks.chime.aws/incomingwebhooks/...",
                         content="Disk usage above 90%")
        )
        service.close()
    """

    def __init__(
        self,
        settings: Settings,
        registry: Optional[DestinationRegistry] = None,
        factories: Optional[Iterable[DestinationFactory]] = None,
        configure_logs: bool = True,
    ):
        if configure_logs:
            configure_logging(
                log_level=settings.LOG_LEVEL, is_production=settings.is_production
            )

        if registry is None:
            registry = DestinationRegistry(allow_list=settings.destination.allow_list)
            if factories is None:
                factories = build_default_factories(settings).values()
            for factory in factories:
                registry.register(factory.destination_type, factory)

        self._registry = registry
        self._settings = settings

        logger.info(
            "initialized_destination_service",
            registered_types=[t.value for t in registry.registered_types()],
            allowed_types=[t.value for t in settings.destination.allow_list],
        )

    @property
    def registry(self) -> DestinationRegistry:
        """Access the underlying DestinationRegistry."""
        return self._registry

    def dispatch(
        self, message: BaseMessage, timeout: Optional[float] = None
    ) -> DestinationResponse:
        """Publish message through its destination's factory.

        See DestinationRegistry.dispatch() for the error contract.
        """
        return self._registry.dispatch(message, timeout=timeout)

    def close(self) -> None:
        """Close every factory and release their clients."""
        self._registry.close()

    def __enter__(self) -> "DestinationService":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()
