"""Task records: models, DynamoDB repository, CSV validation and fan-out."""

from .models import (
    Task,
    CreateTaskRequest,
    UpdateTaskRequest,
    TaskResponse,
)
from .repository import TaskRepository
from .service import TaskService, TaskEvent
from .csv_service import parse_tasks_csv
from .fan_out import fan_out_create_tasks
from .config import (
    TaskServiceConfig,
    TaskContext,
    build_task_context,
    get_task_context,
)

__all__ = [
    "Task",
    "CreateTaskRequest",
    "UpdateTaskRequest",
    "TaskResponse",
    "TaskRepository",
    "TaskService",
    "TaskEvent",
    "parse_tasks_csv",
    "fan_out_create_tasks",
    "TaskServiceConfig",
    "TaskContext",
    "build_task_context",
    "get_task_context",
]
