"""
Create Task subscriber Lambda

Triggered by the create-task queue that the CSV upload fans out to. Each
message body is a CreateTaskRequest; each one becomes a task. Uses
ReportBatchItemFailures so only failed messages are redelivered.
"""

import logging
from typing import Any

from apis.shared.queue.batch import BatchProcessor, parse_record, run_batch
from apis.shared.queue.models import BatchResult, SqsRecord, message_ids_from_raw_event
from apis.shared.tasks.config import TaskContext, get_task_context
from apis.shared.tasks.models import CreateTaskRequest

logger = logging.getLogger(__name__)


def build_processor(context: TaskContext) -> BatchProcessor:
    """Build the batch processor that creates one task per message."""
    service = context.service
    idempotent = context.config.idempotent_creates

    async def create_from_message(record: SqsRecord) -> None:
        request = parse_record(record, CreateTaskRequest)
        task = await service.create_task(
            request,
            idempotency_key=record.message_id if idempotent else None,
        )
        logger.info(f"Created task {task.id} from message {record.message_id}")

    return BatchProcessor(
        create_from_message,
        name="CreateTaskSubscriber",
        deadline_margin_ms=context.config.batch_deadline_margin_ms,
    )


async def handle_create_task_batch(
    event: Any, lambda_context: Any, context: TaskContext
) -> BatchResult:
    """Process one batch of create-task messages."""
    return await build_processor(context).process(event, lambda_context)


def lambda_handler(event, context):
    """
    Lambda handler for the Create Task queue.

    Returns:
        {"batchItemFailures": [{"itemIdentifier": messageId}, ...]}
    """
    try:
        task_context = get_task_context()
    except Exception as e:
        # Nothing can be processed without a context; retry the whole batch
        logger.error(f"Failed to initialize task context: {e}", exc_info=True)
        return BatchResult(failed_message_ids=message_ids_from_raw_event(event)).to_response()

    return run_batch(build_processor(task_context), event, context)
