"""TaskService: task CRUD plus lifecycle notifications."""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from apis.shared.queue.sqs_client import QueuePublisher

from .models import CreateTaskRequest, Task, UpdateTaskRequest
from .repository import TaskRepository

logger = logging.getLogger(__name__)


class TaskEvent(str, Enum):
    """Lifecycle events published to the notification queue."""

    CREATED = "task_created"
    UPDATED = "task_updated"
    DELETED = "task_deleted"


# Message attribute that carries the TaskEvent value
EVENT_ATTRIBUTE = "event"


class TaskService:
    """
    Service for task operations used by the HTTP API and queue subscribers.

    When a notification queue is configured, every successful mutation
    publishes a TaskEvent. A failed publish propagates to the caller.
    """

    def __init__(
        self,
        repository: TaskRepository,
        publisher: Optional[QueuePublisher] = None,
        notification_queue_url: Optional[str] = None,
    ):
        """Initialize service with repository and optional event publisher."""
        self.repository = repository
        self.publisher = publisher
        self.notification_queue_url = notification_queue_url

    @property
    def events_enabled(self) -> bool:
        return bool(self.publisher and self.notification_queue_url)

    async def list_tasks(self) -> List[Task]:
        return await self.repository.list()

    async def get_task(self, task_id: str) -> Optional[Task]:
        return await self.repository.get(task_id)

    async def create_task(
        self,
        request: CreateTaskRequest,
        idempotency_key: Optional[str] = None,
    ) -> Task:
        """Create a task and publish task_created."""
        task = await self.repository.create(request, idempotency_key=idempotency_key)
        await self._publish(TaskEvent.CREATED, {"task": task.to_dict()})
        return task

    async def update_task(self, task_id: str, request: UpdateTaskRequest) -> Optional[Task]:
        """
        Update a task and publish task_updated with the before/after records.

        The prior record is read only for the event payload; the conditional
        write decides whether the task exists.
        """
        old_task = await self.repository.get(task_id) if self.events_enabled else None

        new_task = await self.repository.update(task_id, request)
        if new_task is None:
            return None

        await self._publish(
            TaskEvent.UPDATED,
            {
                "oldTask": old_task.to_dict() if old_task else None,
                "newTask": new_task.to_dict(),
            },
        )
        return new_task

    async def delete_task(self, task_id: str) -> bool:
        """Delete a task and publish task_deleted with the removed record."""
        if not self.events_enabled:
            return await self.repository.delete(task_id)

        deleted = await self.repository.delete_returning(task_id)
        if deleted is None:
            return False

        await self._publish(TaskEvent.DELETED, {"task": deleted.to_dict()})
        return True

    async def _publish(self, event: TaskEvent, payload: Dict[str, Any]) -> None:
        if not self.events_enabled:
            return

        message_id = await self.publisher.send_message(
            self.notification_queue_url,
            payload,
            attributes={EVENT_ATTRIBUTE: event.value},
        )
        logger.info(f"Published {event.value} event: {message_id}")
