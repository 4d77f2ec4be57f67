"""Shared error models and utilities for consistent error handling across the task pipeline"""

from enum import Enum
from typing import Optional, Dict, Any, List
from pydantic import BaseModel

from botocore.exceptions import ClientError


class ErrorCode(str, Enum):
    """Standard error codes for API responses and pipeline failures"""

    # Client errors (4xx)
    BAD_REQUEST = "bad_request"
    NOT_FOUND = "not_found"
    VALIDATION_ERROR = "validation_error"
    PARSE_ERROR = "parse_error"
    MALFORMED_MESSAGE = "malformed_message"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"

    # Server errors (5xx)
    INTERNAL_ERROR = "internal_error"
    SERVICE_UNAVAILABLE = "service_unavailable"
    CONFIGURATION_ERROR = "configuration_error"


# DynamoDB / SQS error codes that indicate throttling
THROTTLING_ERROR_CODES = frozenset({
    "ProvisionedThroughputExceededException",
    "ThrottlingException",
    "RequestLimitExceeded",
    "Throttling",
    "AWS.SimpleQueueService.RequestThrottled",
})


class ErrorDetail(BaseModel):
    """Structured error detail for API responses"""

    code: ErrorCode
    message: str
    detail: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    class Config:
        use_enum_values = True


class TaskPipelineError(Exception):
    """Base error for the task pipeline.

    Every error carries an ErrorCode kind so callers branch on the kind,
    never on message text.
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    retryable: bool = False

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        retryable: Optional[bool] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if retryable is not None:
            self.retryable = retryable


class ConfigError(TaskPipelineError, ValueError):
    """Required configuration is missing or invalid."""

    code = ErrorCode.CONFIGURATION_ERROR


class StoreError(TaskPipelineError):
    """Infrastructure failure talking to the task table."""

    code = ErrorCode.SERVICE_UNAVAILABLE
    retryable = True


class QueuePublishError(TaskPipelineError):
    """A message could not be published to a queue."""

    code = ErrorCode.SERVICE_UNAVAILABLE
    retryable = True


class FanOutError(TaskPipelineError):
    """One or more records of a fan-out could not be published."""

    code = ErrorCode.SERVICE_UNAVAILABLE
    retryable = True

    def __init__(self, failures: Dict[int, str], total: int):
        self.failures = failures
        self.total = total
        super().__init__(
            f"Failed to publish {len(failures)} of {total} messages "
            f"(indexes: {sorted(failures)})"
        )


class CsvParseError(TaskPipelineError):
    """The CSV payload could not be parsed at all (no usable header, bad shape)."""

    code = ErrorCode.PARSE_ERROR


class RowError(BaseModel):
    """A single field violation within an uploaded CSV row."""

    row: int
    field: str
    message: str


class CsvValidationError(TaskPipelineError):
    """One or more CSV rows failed validation; the whole upload is rejected."""

    code = ErrorCode.VALIDATION_ERROR

    def __init__(self, errors: List[RowError]):
        self.errors = errors
        summary = "; ".join(f"Row {e.row}: {e.field}: {e.message}" for e in errors)
        super().__init__(f"CSV validation failed: {summary}")


class MalformedMessageError(TaskPipelineError):
    """A queued message body or attribute could not be parsed or validated."""

    code = ErrorCode.MALFORMED_MESSAGE
    retryable = True


def classify_client_error(error: ClientError) -> ErrorCode:
    """Map a botocore ClientError to an ErrorCode using its structured error code."""
    aws_code = error.response.get("Error", {}).get("Code", "")

    if aws_code == "ConditionalCheckFailedException":
        return ErrorCode.NOT_FOUND
    if aws_code in THROTTLING_ERROR_CODES:
        return ErrorCode.RATE_LIMIT_EXCEEDED
    if aws_code == "ValidationException":
        # Malformed request built by this service
        return ErrorCode.INTERNAL_ERROR
    return ErrorCode.SERVICE_UNAVAILABLE


def is_conditional_check_failure(error: ClientError) -> bool:
    """True when a conditional write/delete failed its precondition."""
    return classify_client_error(error) == ErrorCode.NOT_FOUND


def create_error_response(
    code: ErrorCode,
    message: str,
    detail: Optional[str] = None,
    status_code: int = 500,
    metadata: Optional[Dict[str, Any]] = None
) -> dict:
    """
    Create a standardized error response dictionary.

    Args:
        code: Error code from ErrorCode enum
        message: User-friendly error message
        detail: Optional technical detail for debugging
        status_code: HTTP status code
        metadata: Optional additional error context

    Returns:
        Dictionary suitable for HTTPException detail
    """
    error = ErrorDetail(
        code=code,
        message=message,
        detail=detail,
        metadata=metadata
    )

    return {
        "error": error.model_dump(exclude_none=True),
        "status_code": status_code
    }


def error_code_to_http_status(code: ErrorCode) -> int:
    """Map an ErrorCode kind to the HTTP status used by the task API"""

    mapping = {
        ErrorCode.BAD_REQUEST: 400,
        ErrorCode.PARSE_ERROR: 400,
        ErrorCode.VALIDATION_ERROR: 400,
        ErrorCode.MALFORMED_MESSAGE: 400,
        ErrorCode.NOT_FOUND: 404,
        ErrorCode.RATE_LIMIT_EXCEEDED: 429,
        ErrorCode.SERVICE_UNAVAILABLE: 503,
    }

    return mapping.get(code, 500)
