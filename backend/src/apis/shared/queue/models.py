"""SQS event and partial-batch response models"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, StrictStr


class MessageAttributeValue(BaseModel):
    """A single SQS message attribute as delivered to Lambda"""
    string_value: Optional[str] = Field(None, alias="stringValue")
    data_type: Optional[str] = Field(None, alias="dataType")

    model_config = {"populate_by_name": True}


class SqsRecord(BaseModel):
    """One queued message in a Lambda SQS event"""
    message_id: StrictStr = Field(..., alias="messageId", min_length=1)
    body: StrictStr
    receipt_handle: Optional[str] = Field(None, alias="receiptHandle")
    message_attributes: Dict[str, MessageAttributeValue] = Field(
        default_factory=dict, alias="messageAttributes"
    )

    model_config = {"populate_by_name": True}

    def attribute(self, name: str) -> Optional[str]:
        """Return the string value of a message attribute, if present."""
        value = self.message_attributes.get(name)
        return value.string_value if value else None


class SqsEvent(BaseModel):
    """The batch envelope: at least one record"""
    records: List[SqsRecord] = Field(..., alias="Records", min_length=1)

    model_config = {"populate_by_name": True}


@dataclass
class BatchResult:
    """
    Outcome of processing one batch.

    Only ``failed_message_ids`` are redelivered by the queue; every other
    message in the batch is acknowledged.
    """

    failed_message_ids: List[str] = field(default_factory=list)
    total: int = 0

    @property
    def success_count(self) -> int:
        return max(self.total - len(self.failed_message_ids), 0)

    def to_response(self) -> Dict[str, Any]:
        """Lambda partial batch response (ReportBatchItemFailures)."""
        return {
            "batchItemFailures": [
                {"itemIdentifier": message_id} for message_id in self.failed_message_ids
            ]
        }


def message_ids_from_raw_event(event: Any) -> List[str]:
    """
    Best-effort extraction of message ids from an event that failed validation.

    Records without a usable id cannot be reported and are skipped.
    """
    if not isinstance(event, dict):
        return []
    records = event.get("Records")
    if not isinstance(records, list):
        return []

    message_ids: List[str] = []
    for record in records:
        if not isinstance(record, dict):
            continue
        message_id = record.get("messageId")
        if isinstance(message_id, str) and message_id and message_id not in message_ids:
            message_ids.append(message_id)
    return message_ids
