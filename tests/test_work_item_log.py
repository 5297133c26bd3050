from __future__ import annotations

import json

import pytest

from work_pipeline.contracts import ProcessedOutcome, WorkItem
from work_pipeline.work_item_log import WorkItemLogRepository


class FakeDatabase:
    def __init__(self, *, error: Exception | None = None) -> None:
        self.error = error
        self.execute_calls: list[tuple[object, ...]] = []

    async def execute(self, query: str, *args: object):
        self.execute_calls.append((query, *args))
        if self.error is not None:
            raise self.error
        return "INSERT 0 1"


@pytest.mark.asyncio
async def test_ensure_schema_creates_log_table() -> None:
    database = FakeDatabase()

    await WorkItemLogRepository(database).ensure_schema()  # type: ignore[arg-type]

    assert "CREATE TABLE IF NOT EXISTS work_item_log" in str(database.execute_calls[0][0])


@pytest.mark.asyncio
async def test_record_serializes_payload_for_jsonb() -> None:
    database = FakeDatabase()
    repository = WorkItemLogRepository(database)  # type: ignore[arg-type]
    outcome = ProcessedOutcome.succeeded(WorkItem(id=5, type="backup_task"), "WORK-9")

    await repository.record(outcome, payload={"database": "main", "retention": 7}, duration_ms=12)

    query, *args = database.execute_calls[0]
    assert "INSERT INTO work_item_log" in str(query)
    assert args[:4] == [5, "backup_task", "WORK-9", "success"]
    assert json.loads(str(args[4])) == {"database": "main", "retention": 7}
    assert args[5:] == [12, None]


@pytest.mark.asyncio
async def test_record_stores_null_work_id_for_undecoded_messages() -> None:
    database = FakeDatabase()
    outcome = ProcessedOutcome.failed(message_id="WORK-3", error="invalid work item body: x")

    await WorkItemLogRepository(database).record(outcome, payload=None, duration_ms=0)  # type: ignore[arg-type]

    _, work_id, work_type, _, status, payload, _, error = database.execute_calls[0]
    assert work_id is None
    assert (work_type, status, payload, error) == ("unknown", "error", "{}", "invalid work item body: x")


@pytest.mark.asyncio
async def test_record_failure_does_not_propagate() -> None:
    database = FakeDatabase(error=ConnectionError("database went away"))
    outcome = ProcessedOutcome.failed(message_id="WORK-3", error="boom")

    await WorkItemLogRepository(database).record(outcome, payload=None, duration_ms=0)  # type: ignore[arg-type]

    assert len(database.execute_calls) == 1
