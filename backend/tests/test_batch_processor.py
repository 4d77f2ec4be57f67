"""Tests for partial-batch SQS processing."""

import asyncio
import json
import time

import pytest

from apis.shared.errors import MalformedMessageError
from apis.shared.queue.batch import BatchProcessor, parse_json_body, parse_record, run_batch
from apis.shared.queue.models import BatchResult, SqsRecord, message_ids_from_raw_event
from apis.shared.tasks.models import CreateTaskRequest

from conftest import FakeLambdaContext, sqs_record


def _event(*records):
    return {"Records": list(records)}


class TestBatchProcessor:
    """Only failing records are reported back to the queue."""

    async def test_all_records_succeed(self) -> None:
        seen = []

        async def handler(record: SqsRecord) -> None:
            seen.append(record.message_id)

        result = await BatchProcessor(handler).process(
            _event(sqs_record("m1", "{}"), sqs_record("m2", "{}"))
        )

        assert result.failed_message_ids == []
        assert result.success_count == 2
        assert result.to_response() == {"batchItemFailures": []}
        assert sorted(seen) == ["m1", "m2"]

    async def test_only_failed_record_is_reported(self) -> None:
        async def handler(record: SqsRecord) -> None:
            if record.message_id == "msg2":
                raise RuntimeError("store unavailable")

        result = await BatchProcessor(handler).process(
            _event(sqs_record("msg1", "{}"), sqs_record("msg2", "{}"), sqs_record("msg3", "{}"))
        )

        assert result.to_response() == {"batchItemFailures": [{"itemIdentifier": "msg2"}]}
        assert result.total == 3
        assert result.success_count == 2

    async def test_records_run_concurrently(self) -> None:
        active = 0
        peak = 0

        async def handler(record: SqsRecord) -> None:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1

        await BatchProcessor(handler).process(
            _event(*(sqs_record(f"m{i}", "{}") for i in range(5)))
        )

        assert peak == 5

    async def test_invalid_envelope_fails_known_ids(self) -> None:
        called = False

        async def handler(record: SqsRecord) -> None:
            nonlocal called
            called = True

        event = {"Records": [{"messageId": "m1"}, {"messageId": "m2", "body": 5}]}

        result = await BatchProcessor(handler).process(event)

        assert result.failed_message_ids == ["m1", "m2"]
        assert called is False

    @pytest.mark.parametrize("event", [{}, {"Records": []}, None, "not an event"])
    async def test_empty_or_missing_records(self, event) -> None:
        async def handler(record: SqsRecord) -> None:
            raise AssertionError("handler must not run")

        result = await BatchProcessor(handler).process(event)

        assert result.to_response() == {"batchItemFailures": []}

    async def test_deadline_fails_unfinished_records(self) -> None:
        async def handler(record: SqsRecord) -> None:
            if record.message_id == "slow":
                await asyncio.sleep(10)

        processor = BatchProcessor(handler, deadline_margin_ms=1000)

        result = await processor.process(
            _event(sqs_record("fast", "{}"), sqs_record("slow", "{}")),
            FakeLambdaContext(remaining_ms=1100),
        )

        assert result.failed_message_ids == ["slow"]

    async def test_exhausted_budget_fails_everything(self) -> None:
        async def handler(record: SqsRecord) -> None:
            await asyncio.sleep(1)

        result = await BatchProcessor(handler, deadline_margin_ms=1000).process(
            _event(sqs_record("m1", "{}"), sqs_record("m2", "{}")),
            FakeLambdaContext(remaining_ms=500),
        )

        assert sorted(result.failed_message_ids) == ["m1", "m2"]

    def test_run_batch_returns_lambda_response(self) -> None:
        async def handler(record: SqsRecord) -> None:
            raise MalformedMessageError("bad")

        response = run_batch(BatchProcessor(handler), _event(sqs_record("m1", "{}")))

        assert response == {"batchItemFailures": [{"itemIdentifier": "m1"}]}

    def test_run_batch_returns_at_deadline_despite_blocking_call(self) -> None:
        async def handler(record: SqsRecord) -> None:
            if record.message_id == "slow":
                await asyncio.to_thread(time.sleep, 1.5)

        started = time.monotonic()
        response = run_batch(
            BatchProcessor(handler, deadline_margin_ms=1000),
            _event(sqs_record("fast", "{}"), sqs_record("slow", "{}")),
            FakeLambdaContext(remaining_ms=1100),
        )
        elapsed = time.monotonic() - started

        assert response == {"batchItemFailures": [{"itemIdentifier": "slow"}]}
        assert elapsed < 1.0


class TestRecordParsing:

    def test_parse_json_body(self) -> None:
        record = SqsRecord.model_validate(sqs_record("m1", '{"a": 1}'))

        assert parse_json_body(record) == {"a": 1}

    def test_invalid_json(self) -> None:
        record = SqsRecord.model_validate(sqs_record("m1", "{not json"))

        with pytest.raises(MalformedMessageError):
            parse_json_body(record)

    def test_parse_record_validates_model(self) -> None:
        record = SqsRecord.model_validate(sqs_record("m1", json.dumps({"title": ""})))

        with pytest.raises(MalformedMessageError) as exc_info:
            parse_record(record, CreateTaskRequest)

        assert "m1" in exc_info.value.message

    def test_record_attribute(self) -> None:
        record = SqsRecord.model_validate(sqs_record("m1", "{}", {"event": "task_created"}))

        assert record.attribute("event") == "task_created"
        assert record.attribute("missing") is None


class TestBatchModels:

    def test_message_ids_from_raw_event(self) -> None:
        event = {"Records": [{"messageId": "a"}, {"messageId": ""}, "junk", {"messageId": "a"}, {"messageId": "b"}]}

        assert message_ids_from_raw_event(event) == ["a", "b"]

    def test_batch_result_counts(self) -> None:
        result = BatchResult(failed_message_ids=["x"], total=3)

        assert result.success_count == 2
