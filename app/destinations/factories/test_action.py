"""Factory for test actions that never leave the process."""

from typing import Optional

from destinations.factories.base import DestinationFactory
from destinations.logging import get_module_logger
from destinations.models import (
    DestinationResponse,
    DestinationType,
    TestActionMessage,
)

logger = get_module_logger()


class TestActionFactory(DestinationFactory[TestActionMessage, None]):
    """Accepts test action messages and reports them as sent.

    Used to check a monitor's action wiring without contacting any channel.
    """

    # Not a pytest test class despite the name
    __test__ = False

    destination_type = DestinationType.TEST_ACTION
    message_class = TestActionMessage

    def get_client(self, message: TestActionMessage) -> None:
        self._ensure_message(message)
        return None

    def publish(
        self, message: TestActionMessage, timeout: Optional[float] = None
    ) -> DestinationResponse:
        message = self._ensure_message(message)
        logger.info(
            "test_action_published",
            destination_name=message.destination_name,
        )
        return DestinationResponse.sent(self.destination_type, 200, message.content)
