"""Task repository for DynamoDB operations."""

import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from apis.shared.errors import (
    StoreError,
    classify_client_error,
    is_conditional_check_failure,
)

from .models import CreateTaskRequest, Task, UpdateTaskRequest, task_pk, utc_now_iso

logger = logging.getLogger(__name__)

# Namespace for ids derived from idempotency keys
IDEMPOTENCY_NAMESPACE = uuid.UUID("5b0f6a38-3c47-4a8e-9f64-2f7e3d1b9c21")


class TaskRepository:
    """
    Repository for Task CRUD operations in DynamoDB.

    Items are keyed by ``pk = TASK#<id>``. Update and delete are conditional
    on the item existing; a failed condition is reported as a normal
    "not found" outcome (``None`` / ``False``), never as an error.

    The boto3 Table is stateless and shared by concurrent callers. Each
    blocking call runs in a worker thread.
    """

    def __init__(self, table: Any):
        """Initialize repository with a boto3 DynamoDB Table resource."""
        self._table = table

    # =========================================================================
    # Core CRUD Operations
    # =========================================================================

    async def create(
        self,
        request: CreateTaskRequest,
        idempotency_key: Optional[str] = None,
    ) -> Task:
        """
        Create a new task.

        Without an idempotency key a fresh id is generated and the put is
        unconditional. With a key, the id is derived from it and the put only
        succeeds if no item exists yet; a repeat returns the stored task.

        Args:
            request: Validated create request
            idempotency_key: Optional stable key (e.g. a queue message id)

        Returns:
            The created (or previously created) Task
        """
        now = utc_now_iso()
        if idempotency_key:
            task_id = str(uuid.uuid5(IDEMPOTENCY_NAMESPACE, idempotency_key))
        else:
            task_id = str(uuid.uuid4())

        task = Task(
            id=task_id,
            title=request.title,
            detail=request.detail or None,
            due_at=request.due_at or None,
            is_complete=request.is_complete,
            created_at=now,
            updated_at=now,
        )

        params: Dict[str, Any] = {"Item": task.to_item()}
        if idempotency_key:
            params["ConditionExpression"] = "attribute_not_exists(pk)"

        try:
            await asyncio.to_thread(self._table.put_item, **params)
        except ClientError as e:
            if idempotency_key and is_conditional_check_failure(e):
                existing = await self.get(task_id)
                if existing is not None:
                    logger.info(
                        f"Task {task_id} already created for key {idempotency_key}"
                    )
                    return existing
            raise self._store_error("creating task", e) from e
        except BotoCoreError as e:
            raise self._store_error("creating task", e) from e

        logger.info(f"Created task: {task.id}")
        return task

    async def get(self, task_id: str) -> Optional[Task]:
        """
        Get a task by ID.

        Args:
            task_id: The task identifier

        Returns:
            Task if found, None otherwise
        """
        try:
            response = await asyncio.to_thread(
                self._table.get_item, Key={"pk": task_pk(task_id)}
            )
        except (ClientError, BotoCoreError) as e:
            raise self._store_error(f"getting task {task_id}", e) from e

        item = response.get("Item")
        if not item:
            logger.debug(f"Task not found: {task_id}")
            return None
        return Task.from_dict(item)

    async def list(self) -> List[Task]:
        """
        List all tasks.

        Follows scan pagination to the end. The result is not a consistent
        snapshot when writes happen concurrently.

        Returns:
            List of Task objects
        """
        try:
            response = await asyncio.to_thread(self._table.scan)
            items = response.get("Items", [])

            # Handle pagination
            while "LastEvaluatedKey" in response:
                response = await asyncio.to_thread(
                    self._table.scan,
                    ExclusiveStartKey=response["LastEvaluatedKey"],
                )
                items.extend(response.get("Items", []))
        except (ClientError, BotoCoreError) as e:
            raise self._store_error("listing tasks", e) from e

        tasks = [Task.from_dict(item) for item in items]
        logger.info(f"Listed {len(tasks)} tasks")
        return tasks

    async def update(self, task_id: str, request: UpdateTaskRequest) -> Optional[Task]:
        """
        Replace a task's fields.

        Always sets title, isComplete and updatedAt. Sets detail/dueAt when
        present in the request and removes them when absent.

        Args:
            task_id: The task identifier
            request: Validated update request

        Returns:
            The updated Task, or None if the task does not exist
        """
        params = self._build_update_params(task_id, request, utc_now_iso())

        try:
            response = await asyncio.to_thread(self._table.update_item, **params)
        except ClientError as e:
            if is_conditional_check_failure(e):
                logger.info(f"Task not found for update: {task_id}")
                return None
            raise self._store_error(f"updating task {task_id}", e) from e
        except BotoCoreError as e:
            raise self._store_error(f"updating task {task_id}", e) from e

        attributes = response.get("Attributes")
        if not attributes:
            return None

        logger.info(f"Updated task: {task_id}")
        return Task.from_dict(attributes)

    async def delete(self, task_id: str) -> bool:
        """
        Delete a task.

        Args:
            task_id: The task identifier

        Returns:
            True if deleted, False if not found
        """
        return await self._delete(task_id, return_old=False) is not None

    async def delete_returning(self, task_id: str) -> Optional[Task]:
        """
        Delete a task and return the removed record.

        Args:
            task_id: The task identifier

        Returns:
            The deleted Task, or None if not found
        """
        deleted = await self._delete(task_id, return_old=True)
        return deleted if isinstance(deleted, Task) else None

    # =========================================================================
    # Helper Methods
    # =========================================================================

    async def _delete(self, task_id: str, return_old: bool):
        """Conditional delete; None when missing, Task (or True) when removed."""
        params: Dict[str, Any] = {
            "Key": {"pk": task_pk(task_id)},
            "ConditionExpression": "attribute_exists(pk)",
        }
        if return_old:
            params["ReturnValues"] = "ALL_OLD"

        try:
            response = await asyncio.to_thread(self._table.delete_item, **params)
        except ClientError as e:
            if is_conditional_check_failure(e):
                logger.info(f"Task not found for delete: {task_id}")
                return None
            raise self._store_error(f"deleting task {task_id}", e) from e
        except BotoCoreError as e:
            raise self._store_error(f"deleting task {task_id}", e) from e

        logger.info(f"Deleted task: {task_id}")
        attributes = (response or {}).get("Attributes")
        if return_old and attributes:
            return Task.from_dict(attributes)
        return True

    @staticmethod
    def _build_update_params(
        task_id: str, request: UpdateTaskRequest, now: str
    ) -> Dict[str, Any]:
        """Build the update_item arguments (SET/REMOVE lists plus existence check)."""
        set_expressions = [
            "title = :title",
            "isComplete = :isComplete",
            "updatedAt = :updatedAt",
        ]
        remove_expressions: List[str] = []
        values: Dict[str, Any] = {
            ":title": request.title,
            ":isComplete": request.is_complete,
            ":updatedAt": now,
        }

        if request.detail is not None:
            set_expressions.append("detail = :detail")
            values[":detail"] = request.detail
        else:
            remove_expressions.append("detail")

        if request.due_at is not None:
            set_expressions.append("dueAt = :dueAt")
            values[":dueAt"] = request.due_at
        else:
            remove_expressions.append("dueAt")

        update_expression = f"SET {', '.join(set_expressions)}"
        if remove_expressions:
            update_expression += f" REMOVE {', '.join(remove_expressions)}"

        return {
            "Key": {"pk": task_pk(task_id)},
            "UpdateExpression": update_expression,
            "ExpressionAttributeValues": values,
            "ConditionExpression": "attribute_exists(pk)",
            "ReturnValues": "ALL_NEW",
        }

    @staticmethod
    def _store_error(action: str, error: Exception) -> StoreError:
        logger.error(f"Error {action}: {error}")
        if isinstance(error, ClientError):
            return StoreError(f"Error {action}: {error}", code=classify_client_error(error))
        return StoreError(f"Error {action}: {error}")
