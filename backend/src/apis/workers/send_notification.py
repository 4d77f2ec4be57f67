"""
Send Notification Lambda

Triggered by the notification queue. Every message must carry an ``event``
message attribute naming a task lifecycle event; messages without one, or
with an unsupported one, are reported as failed so the queue retries them
and eventually moves them to the dead-letter queue.
"""

import logging
from typing import Optional

from apis.shared.notifications.service import NotificationService
from apis.shared.queue.batch import BatchProcessor, run_batch
from apis.shared.errors import ConfigError, MalformedMessageError
from apis.shared.queue.models import BatchResult, SqsRecord, message_ids_from_raw_event
from apis.shared.tasks.config import TaskServiceConfig, configure_logging
from apis.shared.tasks.service import EVENT_ATTRIBUTE

logger = logging.getLogger(__name__)


def build_processor(
    notifications: Optional[NotificationService] = None,
    deadline_margin_ms: int = 1000,
) -> BatchProcessor:
    """Build the batch processor that sends one notification per message."""
    notifications = notifications or NotificationService()

    async def notify(record: SqsRecord) -> None:
        event = record.attribute(EVENT_ATTRIBUTE)
        if not event:
            raise MalformedMessageError(
                f"Message {record.message_id} is missing the '{EVENT_ATTRIBUTE}' attribute"
            )
        await notifications.send(event)

    return BatchProcessor(
        notify,
        name="SendNotification",
        deadline_margin_ms=deadline_margin_ms,
    )


def lambda_handler(event, context):
    """
    Lambda handler for the Notification queue.

    Reads LOGGING_* and BATCH_DEADLINE_MARGIN_MS from the environment;
    TASKS_TABLE is not needed by this worker.

    Returns:
        {"batchItemFailures": [{"itemIdentifier": messageId}, ...]}
    """
    try:
        config = TaskServiceConfig.from_env(require_table=False)
    except ConfigError as e:
        # Nothing can be processed without valid settings; retry the whole batch
        logger.error(f"Invalid notification worker configuration: {e}")
        return BatchResult(failed_message_ids=message_ids_from_raw_event(event)).to_response()

    configure_logging(config)
    processor = build_processor(deadline_margin_ms=config.batch_deadline_margin_ms)
    return run_batch(processor, event, context)
