"""Tasks API routes

Provides the synchronous CRUD path over the task table and the CSV bulk
upload that validates a file and fans its rows out to the create-task queue.
"""

import base64
import binascii
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from apis.shared.errors import (
    CsvParseError,
    CsvValidationError,
    ErrorCode,
    FanOutError,
    TaskPipelineError,
    create_error_response,
    error_code_to_http_status,
)
from apis.shared.tasks.config import TaskContext, get_task_context
from apis.shared.tasks.csv_service import FIRST_DATA_ROW, parse_tasks_csv
from apis.shared.tasks.fan_out import fan_out_create_tasks
from apis.shared.tasks.models import (
    CreateTaskRequest,
    TaskListResponse,
    TaskResponse,
    UpdateTaskRequest,
    UploadTasksResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["tasks"])


def get_context() -> TaskContext:
    """FastAPI dependency returning the process-wide task context."""
    return get_task_context()


def _error(status_code: int, code: ErrorCode, message: str, **kwargs) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail=create_error_response(code, message, status_code=status_code, **kwargs),
    )


def _pipeline_error(e: TaskPipelineError) -> HTTPException:
    status_code = error_code_to_http_status(e.code)
    return _error(status_code, e.code, e.message)


def _not_found(task_id: str) -> HTTPException:
    return _error(status.HTTP_404_NOT_FOUND, ErrorCode.NOT_FOUND, f"Task not found: {task_id}")


@router.get("", response_model=TaskListResponse, response_model_exclude_none=True, response_model_by_alias=True)
async def list_tasks(context: TaskContext = Depends(get_context)):
    """
    List all tasks.

    Returns:
        TaskListResponse with every task in the table
    """
    logger.info("GET /tasks")

    try:
        tasks = await context.service.list_tasks()
    except TaskPipelineError as e:
        raise _pipeline_error(e)

    return TaskListResponse(
        tasks=[TaskResponse.from_task(task) for task in tasks],
        total=len(tasks),
    )


@router.get("/{task_id}", response_model=TaskResponse, response_model_exclude_none=True, response_model_by_alias=True)
async def get_task(task_id: str, context: TaskContext = Depends(get_context)):
    """
    Retrieve a task by id.

    Raises:
        HTTPException:
            - 404 if the task does not exist
            - 503 if the table is unavailable
    """
    logger.info(f"GET /tasks/{task_id}")

    try:
        task = await context.service.get_task(task_id)
    except TaskPipelineError as e:
        raise _pipeline_error(e)

    if task is None:
        raise _not_found(task_id)
    return TaskResponse.from_task(task)


@router.post(
    "",
    response_model=TaskResponse,
    response_model_exclude_none=True,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_task(request: CreateTaskRequest, context: TaskContext = Depends(get_context)):
    """Create a task directly (synchronous path)."""
    logger.info("POST /tasks")

    try:
        task = await context.service.create_task(request)
    except TaskPipelineError as e:
        raise _pipeline_error(e)

    return TaskResponse.from_task(task)


@router.put("/{task_id}", response_model=TaskResponse, response_model_exclude_none=True, response_model_by_alias=True)
async def update_task(
    task_id: str,
    request: UpdateTaskRequest,
    context: TaskContext = Depends(get_context),
):
    """
    Replace a task's fields.

    ``detail`` and ``dueAt`` omitted from the body are removed from the task.

    Raises:
        HTTPException:
            - 404 if the task does not exist
            - 503 if the table is unavailable
    """
    logger.info(f"PUT /tasks/{task_id}")

    try:
        task = await context.service.update_task(task_id, request)
    except TaskPipelineError as e:
        raise _pipeline_error(e)

    if task is None:
        raise _not_found(task_id)
    return TaskResponse.from_task(task)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(task_id: str, context: TaskContext = Depends(get_context)):
    """Delete a task; 404 when it does not exist."""
    logger.info(f"DELETE /tasks/{task_id}")

    try:
        deleted = await context.service.delete_task(task_id)
    except TaskPipelineError as e:
        raise _pipeline_error(e)

    if not deleted:
        raise _not_found(task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/upload", response_model=UploadTasksResponse, response_model_by_alias=True)
async def upload_tasks_csv(http_request: Request, context: TaskContext = Depends(get_context)):
    """
    Validate an uploaded CSV of tasks and fan its rows out to the create-task queue.

    The body is the raw CSV text. Send ``Content-Transfer-Encoding: base64``
    when the body is base64 encoded.

    Returns:
        UploadTasksResponse with the number of accepted tasks and message ids

    Raises:
        HTTPException:
            - 400 if the body is empty, cannot be parsed, or any row is invalid
            - 500 if the create-task queue is not configured
            - 503 if publishing to the queue fails
    """
    logger.info("POST /tasks/upload")

    raw = await http_request.body()
    if not raw:
        raise _error(status.HTTP_400_BAD_REQUEST, ErrorCode.BAD_REQUEST, "Request body is required")

    try:
        if http_request.headers.get("content-transfer-encoding", "").lower() == "base64":
            raw = base64.b64decode(raw, validate=True)
        csv_content = raw.decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        logger.warning("Failed to decode uploaded CSV content")
        raise _error(status.HTTP_400_BAD_REQUEST, ErrorCode.BAD_REQUEST, "Failed to decode file content")

    if not csv_content.strip():
        raise _error(status.HTTP_400_BAD_REQUEST, ErrorCode.BAD_REQUEST, "CSV content is empty")

    try:
        requests = parse_tasks_csv(csv_content)
    except CsvValidationError as e:
        logger.warning(f"CSV validation error: {e.message}")
        raise _error(
            status.HTTP_400_BAD_REQUEST,
            ErrorCode.VALIDATION_ERROR,
            "CSV validation failed",
            metadata={"errors": [error.model_dump() for error in e.errors]},
        )
    except CsvParseError as e:
        logger.warning(f"CSV parse error: {e.message}")
        raise _error(status.HTTP_400_BAD_REQUEST, ErrorCode.PARSE_ERROR, e.message)

    queue_url = context.config.create_task_queue_url
    if not queue_url:
        logger.error("CREATE_TASK_QUEUE_URL is not configured")
        raise _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            ErrorCode.CONFIGURATION_ERROR,
            "Server configuration error: create task queue is not configured",
        )

    try:
        message_ids = await fan_out_create_tasks(requests, context.publisher, queue_url)
    except FanOutError as e:
        raise _error(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            e.code,
            "Failed to queue tasks; retry the upload",
            detail=e.message,
            metadata={"failedRows": [index + FIRST_DATA_ROW for index in sorted(e.failures)]},
        )

    logger.info(f"Accepted CSV upload with {len(requests)} tasks")
    return UploadTasksResponse(
        message=f"{len(requests)} tasks accepted",
        task_count=len(requests),
        message_ids=message_ids,
    )
