"""Pytest configuration and fixtures for the task pipeline test suite."""

import sys
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest
from botocore.exceptions import ClientError

# Add backend/src to Python path for imports
# This file is in backend/tests/, so we need to go up one level to backend/
BACKEND_DIR = Path(__file__).parent.parent
SRC_DIR = BACKEND_DIR / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from apis.shared.tasks.config import TaskServiceConfig, build_task_context  # noqa: E402
from apis.shared.tasks.repository import TaskRepository  # noqa: E402

CREATE_QUEUE_URL = "https://sqs.us-east-1.amazonaws.com/123456789012/create-task-queue"
NOTIFICATION_QUEUE_URL = "https://sqs.us-east-1.amazonaws.com/123456789012/notification-queue"


def client_error(code: str, operation: str = "Operation") -> ClientError:
    """Build a botocore ClientError with the given AWS error code."""
    return ClientError({"Error": {"Code": code, "Message": f"{code} raised"}}, operation)


class FakeTable:
    """
    In-memory stand-in for a boto3 DynamoDB Table keyed by ``pk``.

    Understands the condition and update expressions the repository sends.
    ``failures`` maps an operation name to an exception raised on its next call.
    """

    def __init__(self, page_size: int = 100):
        self.items: Dict[str, Dict[str, Any]] = {}
        self.page_size = page_size
        self.failures: Dict[str, Exception] = {}
        self.calls: List[tuple] = []
        self._lock = threading.Lock()

    def _maybe_fail(self, operation: str) -> None:
        error = self.failures.pop(operation, None)
        if error is not None:
            raise error

    def put_item(self, Item, ConditionExpression=None):
        with self._lock:
            self.calls.append(("put_item", Item, ConditionExpression))
            self._maybe_fail("put_item")
            pk = Item["pk"]
            if ConditionExpression == "attribute_not_exists(pk)" and pk in self.items:
                raise client_error("ConditionalCheckFailedException", "PutItem")
            self.items[pk] = dict(Item)
            return {}

    def get_item(self, Key):
        with self._lock:
            self.calls.append(("get_item", Key))
            self._maybe_fail("get_item")
            item = self.items.get(Key["pk"])
            return {"Item": dict(item)} if item else {}

    def scan(self, ExclusiveStartKey=None):
        with self._lock:
            self.calls.append(("scan", ExclusiveStartKey))
            self._maybe_fail("scan")
            keys = sorted(self.items)
            start = 0
            if ExclusiveStartKey:
                start = keys.index(ExclusiveStartKey["pk"]) + 1
            page = keys[start:start + self.page_size]
            response = {"Items": [dict(self.items[k]) for k in page]}
            if start + self.page_size < len(keys):
                response["LastEvaluatedKey"] = {"pk": page[-1]}
            return response

    def update_item(
        self,
        Key,
        UpdateExpression,
        ExpressionAttributeValues,
        ConditionExpression=None,
        ReturnValues=None,
    ):
        with self._lock:
            self.calls.append(("update_item", Key, UpdateExpression))
            self._maybe_fail("update_item")
            pk = Key["pk"]
            if ConditionExpression == "attribute_exists(pk)" and pk not in self.items:
                raise client_error("ConditionalCheckFailedException", "UpdateItem")

            item = dict(self.items.get(pk, {"pk": pk}))
            set_part, _, remove_part = UpdateExpression.partition(" REMOVE ")
            for assignment in set_part[len("SET "):].split(", "):
                name, value_ref = assignment.split(" = ")
                item[name] = ExpressionAttributeValues[value_ref]
            for name in remove_part.split(", ") if remove_part else []:
                item.pop(name.strip(), None)

            self.items[pk] = item
            return {"Attributes": dict(item)} if ReturnValues == "ALL_NEW" else {}

    def delete_item(self, Key, ConditionExpression=None, ReturnValues=None):
        with self._lock:
            self.calls.append(("delete_item", Key))
            self._maybe_fail("delete_item")
            pk = Key["pk"]
            if ConditionExpression == "attribute_exists(pk)" and pk not in self.items:
                raise client_error("ConditionalCheckFailedException", "DeleteItem")
            old = self.items.pop(pk, None)
            if ReturnValues == "ALL_OLD" and old:
                return {"Attributes": old}
            return {}


class FakeSqsClient:
    """In-memory stand-in for a boto3 SQS client recording sent messages."""

    def __init__(self):
        self.sent: List[Dict[str, Any]] = []
        self.fail_when: Optional[Callable[[Dict[str, Any]], bool]] = None
        self._counter = 0
        self._lock = threading.Lock()

    def send_message(self, QueueUrl, MessageBody, MessageAttributes=None):
        params = {
            "QueueUrl": QueueUrl,
            "MessageBody": MessageBody,
            "MessageAttributes": MessageAttributes,
        }
        if self.fail_when is not None and self.fail_when(params):
            raise client_error("AWS.SimpleQueueService.RequestThrottled", "SendMessage")
        with self._lock:
            self._counter += 1
            message_id = f"msg-{self._counter}"
            self.sent.append({**params, "MessageId": message_id})
        return {"MessageId": message_id}

    def messages_to(self, queue_url: str) -> List[Dict[str, Any]]:
        return [m for m in self.sent if m["QueueUrl"] == queue_url]


class FakeLambdaContext:
    """Minimal Lambda context with a controllable time budget."""

    def __init__(self, remaining_ms: int = 30000):
        self.remaining_ms = remaining_ms
        self.aws_request_id = "test-aws-request-id"
        self.function_name = "test-function"

    def get_remaining_time_in_millis(self) -> int:
        return self.remaining_ms


def sqs_record(
    message_id: str,
    body: str,
    attributes: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """Build one SQS record as Lambda delivers it."""
    return {
        "messageId": message_id,
        "receiptHandle": f"receipt-{message_id}",
        "body": body,
        "attributes": {},
        "messageAttributes": {
            name: {"stringValue": value, "dataType": "String"}
            for name, value in (attributes or {}).items()
        },
        "md5OfBody": "md5",
        "eventSource": "aws:sqs",
        "eventSourceARN": "arn:aws:sqs:us-east-1:123456789012:test-queue",
        "awsRegion": "us-east-1",
    }


@pytest.fixture
def table() -> FakeTable:
    return FakeTable()


@pytest.fixture
def sqs_client() -> FakeSqsClient:
    return FakeSqsClient()


@pytest.fixture
def repository(table: FakeTable) -> TaskRepository:
    return TaskRepository(table)


@pytest.fixture
def config() -> TaskServiceConfig:
    return TaskServiceConfig(
        tasks_table="tasks-table",
        create_task_queue_url=CREATE_QUEUE_URL,
    )


@pytest.fixture
def task_context(config: TaskServiceConfig, table: FakeTable, sqs_client: FakeSqsClient):
    return build_task_context(config, table=table, sqs_client=sqs_client)
