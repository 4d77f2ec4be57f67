"""SQS publishing and partial-batch consumption."""

from .models import SqsEvent, SqsRecord, BatchResult
from .batch import BatchProcessor, parse_record, run_batch
from .sqs_client import QueuePublisher

__all__ = [
    "SqsEvent",
    "SqsRecord",
    "BatchResult",
    "BatchProcessor",
    "parse_record",
    "run_batch",
    "QueuePublisher",
]
