"""SQS publishing client."""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

from botocore.exceptions import BotoCoreError, ClientError

from apis.shared.errors import QueuePublishError, classify_client_error

logger = logging.getLogger(__name__)


def to_message_attributes(attributes: Optional[Dict[str, str]]) -> Dict[str, Dict[str, str]]:
    """Convert plain string tags to SQS MessageAttributes."""
    if not attributes:
        return {}
    return {
        name: {"DataType": "String", "StringValue": value}
        for name, value in attributes.items()
    }


class QueuePublisher:
    """
    Publishes JSON messages to SQS queues.

    Wraps the synchronous boto3 client with asyncio.to_thread so that many
    sends can be in flight at once. The client is stateless and shared.
    """

    def __init__(self, sqs_client: Any):
        self._client = sqs_client

    async def send_message(
        self,
        queue_url: str,
        message: Dict[str, Any],
        attributes: Optional[Dict[str, str]] = None,
    ) -> str:
        """
        Send one message to a queue.

        Args:
            queue_url: Target queue URL
            message: JSON-serializable message body
            attributes: Optional string tags used for routing/filtering

        Returns:
            The message id assigned by the queue

        Raises:
            QueuePublishError: If the send fails
        """
        params: Dict[str, Any] = {
            "QueueUrl": queue_url,
            "MessageBody": json.dumps(message),
        }
        message_attributes = to_message_attributes(attributes)
        if message_attributes:
            params["MessageAttributes"] = message_attributes

        try:
            response = await asyncio.to_thread(self._client.send_message, **params)
        except ClientError as e:
            logger.error(f"Failed to send message to {queue_url}: {e}")
            raise QueuePublishError(
                f"Failed to send message to queue: {e}",
                code=classify_client_error(e),
            ) from e
        except BotoCoreError as e:
            logger.error(f"Failed to send message to {queue_url}: {e}")
            raise QueuePublishError(f"Failed to send message to queue: {e}") from e

        message_id = response.get("MessageId", "")
        logger.debug(f"Sent message {message_id} to {queue_url}")
        return message_id
