"""Notification delivery for task lifecycle events.

Delivery is simulated: a short pause stands in for the call to a real
notification provider.
"""

import asyncio
import logging
from typing import Optional

from apis.shared.errors import MalformedMessageError
from apis.shared.tasks.service import TaskEvent

logger = logging.getLogger(__name__)

SUPPORTED_EVENTS = frozenset(event.value for event in TaskEvent)


class NotificationService:
    """Sends a notification for each supported task event."""

    def __init__(self, delivery_delay_seconds: float = 0.1):
        self.delivery_delay_seconds = delivery_delay_seconds

    async def send(self, event: Optional[str]) -> None:
        """
        Send the notification for an event.

        Args:
            event: TaskEvent value from the message attribute

        Raises:
            MalformedMessageError: If the event is missing or unsupported
        """
        if event not in SUPPORTED_EVENTS:
            raise MalformedMessageError(f"Unsupported notification event: {event}")

        await asyncio.sleep(self.delivery_delay_seconds)
        logger.info(f"Notification sent for event {event}")
