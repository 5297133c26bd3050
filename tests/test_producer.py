from __future__ import annotations

import json

import pytest

from tests.conftest import FakeMetricsConnector, FakeMetricsSink, FakeQueue, FakeSecretStore
from work_pipeline.errors import CredentialParseError
from work_pipeline.producer import Producer, ProducerService
from work_pipeline.work_items import default_work_items


def _build_service(
    queue: FakeQueue,
    *,
    secret_store: FakeSecretStore | None = None,
    connector: FakeMetricsConnector | None = None,
) -> ProducerService:
    return ProducerService(
        secret_store=secret_store or FakeSecretStore(),
        metrics_connector=connector or FakeMetricsConnector(),
        queue=queue,
        metrics_secret_id="metrics-credentials",
        environment="test",
    )


@pytest.mark.asyncio
async def test_publishes_each_item_with_type_and_id_attributes(fake_queue: FakeQueue, metrics_sink: FakeMetricsSink) -> None:
    items = default_work_items()

    result = await Producer(queue=fake_queue, metrics=metrics_sink).publish_batch(items)

    assert result.ok
    assert [attributes for _, attributes in fake_queue.published] == [
        {"type": item.type, "id": str(item.id)} for item in items
    ]
    assert json.loads(fake_queue.published[0][0]) == {
        "id": 1,
        "type": "data_processing",
        "payload": {"userId": 123, "action": "update_profile"},
    }
    assert [p.fields["message_id"] for p in metrics_sink.points_for("queue_messages")] == [
        f"msg-{n}" for n in range(1, 6)
    ]


@pytest.mark.asyncio
async def test_publish_failure_stops_the_batch_and_keeps_earlier_outcomes(metrics_sink: FakeMetricsSink) -> None:
    queue = FakeQueue(fail_on_work_id=3)

    result = await Producer(queue=queue, metrics=metrics_sink).publish_batch(default_work_items())

    assert not result.ok
    assert result.error == "failed to publish work item 3: queue unavailable"
    assert [outcome.work_id for outcome in result.outcomes] == [1, 2]
    assert queue.attempts == 3


@pytest.mark.asyncio
async def test_cron_run_publishes_five_items_with_distinct_ids(fake_queue: FakeQueue) -> None:
    connector = FakeMetricsConnector()

    response = await _build_service(fake_queue, connector=connector).run(default_work_items())

    assert response.status_code == 200
    assert response.cron_job.success is True
    assert response.cron_job.error is None
    sent = response.cron_job.processed_data.messages_sent
    assert len(sent) == 5
    assert len({outcome.message_id for outcome in sent}) == 5
    assert [outcome.type for outcome in sent] == [
        "data_processing",
        "email_notification",
        "data_cleanup",
        "report_generation",
        "backup_task",
    ]
    statuses = [p.tags["status"] for p in connector.sink.points_for("cron_job_execution")]
    assert statuses == ["started", "completed"]
    assert connector.sink.flush_calls == 1
    assert connector.sink.closed is True


@pytest.mark.asyncio
async def test_cron_run_surfaces_partial_enqueue_on_failure() -> None:
    queue = FakeQueue(fail_on_work_id=4)
    connector = FakeMetricsConnector()

    response = await _build_service(queue, connector=connector).run(default_work_items())

    assert response.status_code == 500
    assert response.cron_job.success is False
    assert response.cron_job.error == "failed to publish work item 4: queue unavailable"
    assert [o.work_id for o in response.cron_job.processed_data.messages_sent] == [1, 2, 3]
    [error_point] = [p for p in connector.sink.points_for("cron_job_execution") if p.tags["status"] == "error"]
    assert error_point.fields["error_message"] == response.cron_job.error


@pytest.mark.asyncio
async def test_preflight_failure_publishes_nothing(fake_queue: FakeQueue) -> None:
    error = CredentialParseError("failed to parse credentials in secret metrics-credentials: token: Field required")
    service = _build_service(fake_queue, secret_store=FakeSecretStore(error=error))

    response = await service.run(default_work_items())

    assert response.status_code == 500
    assert response.cron_job.error == str(error)
    assert response.cron_job.processed_data is None
    assert fake_queue.attempts == 0


@pytest.mark.asyncio
async def test_response_payload_matches_wire_shape(fake_queue: FakeQueue) -> None:
    response = await _build_service(fake_queue).run(default_work_items()[:1])

    payload = response.to_payload()

    assert payload["statusCode"] == 200
    assert payload["environment"] == "test"
    assert payload["cronJob"]["success"] is True
    assert payload["cronJob"]["error"] is None
    processed = payload["cronJob"]["processedData"]
    assert processed["messagesSent"] == [{"workId": 1, "messageId": "msg-1", "type": "data_processing"}]
    assert isinstance(processed["executionTimeMs"], int)
    assert "timestamp" in processed
