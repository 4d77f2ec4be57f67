"""Fan-out of validated task requests to the create-task queue."""

import asyncio
import logging
from typing import Dict, List, Sequence

from apis.shared.errors import FanOutError
from apis.shared.queue.sqs_client import QueuePublisher

from .models import CreateTaskRequest

logger = logging.getLogger(__name__)


async def fan_out_create_tasks(
    requests: Sequence[CreateTaskRequest],
    publisher: QueuePublisher,
    queue_url: str,
) -> List[str]:
    """
    Publish each create request as its own message.

    All sends are started together and awaited until every one has settled,
    so one failure never stops the others from being attempted.

    Args:
        requests: Validated create requests
        publisher: Queue publisher
        queue_url: Create-task queue URL

    Returns:
        Message ids in the same order as ``requests``

    Raises:
        FanOutError: If any message could not be published
    """
    logger.info(f"Fanning out {len(requests)} create task messages")
    if not requests:
        return []

    results = await asyncio.gather(
        *(publisher.send_message(queue_url, request.to_message()) for request in requests),
        return_exceptions=True,
    )

    failures: Dict[int, str] = {}
    message_ids: List[str] = []
    for index, result in enumerate(results):
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            failures[index] = str(result)
        else:
            message_ids.append(result)

    if failures:
        logger.error(f"Fan-out failed for {len(failures)} of {len(requests)} messages")
        raise FanOutError(failures=failures, total=len(requests))

    logger.info(f"Published {len(message_ids)} create task messages")
    return message_ids
