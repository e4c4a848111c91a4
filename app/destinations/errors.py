"""Destination dispatch exceptions.

Only programmer and configuration errors are raised. Remote and transport
failures are returned as failed DestinationResponse values.
"""

from typing import Optional

from destinations.models import DestinationType


class DestinationError(Exception):
    """Base class for destination dispatch errors."""

    pass


class ClientConstructionError(DestinationError):
    """Raised when a message's addressing information cannot produce a client.

    Examples: malformed URL, host on the deny list, missing or unknown
    credentials reference. Not retryable until the input is fixed.
    """

    def __init__(
        self,
        message: str,
        destination_type: Optional[DestinationType] = None,
    ):
        super().__init__(message)
        self.destination_type = destination_type


class UnregisteredDestinationTypeError(DestinationError):
    """Raised when no factory is registered for a message's destination type."""

    def __init__(self, destination_type: DestinationType):
        super().__init__(
            f"No factory registered for destination type '{destination_type.value}'"
        )
        self.destination_type = destination_type


class DuplicateRegistrationError(DestinationError):
    """Raised when a second factory is registered for the same destination type."""

    def __init__(self, destination_type: DestinationType):
        super().__init__(
            f"A factory for destination type '{destination_type.value}' "
            "is already registered"
        )
        self.destination_type = destination_type


class DestinationTypeMismatchError(DestinationError):
    """Raised when a factory is registered for, or handed, the wrong type."""

    pass


class DestinationTypeNotAllowedError(DestinationError):
    """Raised when a message's destination type is excluded by the allow list."""

    def __init__(self, destination_type: DestinationType):
        super().__init__(
            f"Destination type is not allowed: {destination_type.value}"
        )
        self.destination_type = destination_type
