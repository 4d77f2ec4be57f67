"""Partial-batch processing for SQS-triggered Lambda functions."""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from apis.shared.errors import MalformedMessageError

from .models import BatchResult, SqsEvent, SqsRecord, message_ids_from_raw_event

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

RecordHandler = Callable[[SqsRecord], Awaitable[Any]]


def parse_json_body(record: SqsRecord) -> Any:
    """Decode a record body as JSON."""
    try:
        return json.loads(record.body)
    except json.JSONDecodeError as e:
        raise MalformedMessageError(
            f"Message {record.message_id} body is not valid JSON: {e}"
        ) from e


def parse_record(record: SqsRecord, model: Type[ModelT]) -> ModelT:
    """Decode a record body and validate it against a pydantic model."""
    payload = parse_json_body(record)
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise MalformedMessageError(
            f"Message {record.message_id} failed validation: {e}"
        ) from e


class BatchProcessor:
    """
    Runs a per-record handler over an SQS batch and reports failed records.

    Per message: received -> parsed -> validated -> applied, ending as
    acknowledged or retry-requested. Records run concurrently. A handler
    exception only fails its own record. Invalid envelopes and unexpected
    errors fail every record; this class never raises to the invoker.
    """

    def __init__(
        self,
        handler: RecordHandler,
        name: str = "BatchProcessor",
        deadline_margin_ms: int = 1000,
    ):
        self.handler = handler
        self.name = name
        self.deadline_margin_ms = deadline_margin_ms

    async def process(self, event: Any, context: Any = None) -> BatchResult:
        """
        Process one batch.

        Args:
            event: Raw Lambda SQS event
            context: Optional Lambda context (used for the time budget)

        Returns:
            BatchResult with the ids that must be retried
        """
        try:
            try:
                batch = SqsEvent.model_validate(event)
            except ValidationError as e:
                failed = message_ids_from_raw_event(event)
                logger.error(
                    f"[{self.name}] Invalid SQS event structure, failing {len(failed)} records: {e}"
                )
                return BatchResult(failed_message_ids=failed, total=len(failed))

            result = await self._process_records(batch.records, self._time_budget(context))

            logger.info(
                f"[{self.name}] Processed batch: total={result.total}, "
                f"succeeded={result.success_count}, failed={len(result.failed_message_ids)}"
            )
            return result

        except Exception as e:
            failed = message_ids_from_raw_event(event)
            logger.error(
                f"[{self.name}] Unexpected error processing batch, failing all records: {e}",
                exc_info=True,
            )
            return BatchResult(failed_message_ids=failed, total=len(failed))

    def _time_budget(self, context: Any) -> Optional[float]:
        """Seconds left for per-record work, or None when there is no deadline."""
        get_remaining = getattr(context, "get_remaining_time_in_millis", None)
        if not callable(get_remaining):
            return None
        remaining_ms = get_remaining() - self.deadline_margin_ms
        return max(remaining_ms, 0) / 1000

    async def _process_records(
        self, records: List[SqsRecord], budget: Optional[float]
    ) -> BatchResult:
        tasks = [asyncio.create_task(self._process_record(record)) for record in records]

        _, pending = await asyncio.wait(tasks, timeout=budget)
        if pending:
            logger.warning(
                f"[{self.name}] Deadline reached with {len(pending)} records unfinished"
            )
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        failed: List[str] = []
        for record, task in zip(records, tasks):
            succeeded = (
                task not in pending
                and not task.cancelled()
                and task.exception() is None
                and task.result() is True
            )
            if not succeeded and record.message_id not in failed:
                logger.warning(f"[{self.name}] Adding message {record.message_id} to batch item failures")
                failed.append(record.message_id)

        return BatchResult(failed_message_ids=failed, total=len(records))

    async def _process_record(self, record: SqsRecord) -> bool:
        logger.info(f"[{self.name}] Processing message {record.message_id}")
        try:
            await self.handler(record)
        except Exception as e:
            logger.error(
                f"[{self.name}] Failed to process message {record.message_id}: {e}",
                exc_info=not isinstance(e, MalformedMessageError),
            )
            return False
        return True


def run_batch(processor: BatchProcessor, event: Any, context: Any = None) -> dict:
    """
    Synchronous Lambda entry: run the processor and return the batch response.

    The loop is closed without joining its default executor, so a blocking
    call abandoned at the deadline never holds the response back.
    """
    loop = asyncio.new_event_loop()
    try:
        result = loop.run_until_complete(processor.process(event, context))
        loop.run_until_complete(loop.shutdown_asyncgens())
    finally:
        loop.close()
    return result.to_response()
