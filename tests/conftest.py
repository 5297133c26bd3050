"""Shared fakes for the collaborators the producer and worker depend on."""

from __future__ import annotations

import json
from datetime import datetime

import pytest

from work_pipeline.contracts import Credentials, MetricPoint, QueueMessage
from work_pipeline.errors import FlushError, PublishError


class FakeMetricsSink:
    def __init__(self, *, fail_flush: bool = False) -> None:
        self.points: list[MetricPoint] = []
        self.fail_flush = fail_flush
        self.flush_calls = 0
        self.closed = False

    def write_point(
        self,
        measurement: str,
        *,
        tags: dict[str, str] | None = None,
        fields: dict[str, object] | None = None,
        timestamp: datetime | None = None,
    ) -> None:
        self.points.append(MetricPoint(measurement=measurement, tags=dict(tags or {}), fields=dict(fields or {})))

    async def flush(self) -> None:
        self.flush_calls += 1
        if self.fail_flush:
            raise FlushError("metrics sink unavailable")

    async def close(self) -> None:
        self.closed = True

    def measurements(self) -> list[str]:
        return [point.measurement for point in self.points]

    def points_for(self, measurement: str) -> list[MetricPoint]:
        return [point for point in self.points if point.measurement == measurement]


class FakeMetricsConnector:
    def __init__(self, sink: FakeMetricsSink | None = None, *, error: Exception | None = None) -> None:
        self.sink = sink or FakeMetricsSink()
        self.error = error
        self.tokens: list[str] = []

    async def connect(self, token: str) -> FakeMetricsSink:
        self.tokens.append(token)
        if self.error is not None:
            raise self.error
        return self.sink


class FakeSecretStore:
    def __init__(self, token: str = "metrics-token", *, error: Exception | None = None) -> None:
        self.token = token
        self.error = error
        self.requested: list[str] = []

    async def get_secret(self, secret_id: str) -> Credentials:
        self.requested.append(secret_id)
        if self.error is not None:
            raise self.error
        return Credentials(token=self.token)


class FakeQueue:
    def __init__(self, *, fail_on_work_id: int | None = None) -> None:
        self.fail_on_work_id = fail_on_work_id
        self.published: list[tuple[bytes, dict[str, str]]] = []
        self.attempts = 0

    async def publish(self, body: bytes, attributes: dict[str, str]) -> str:
        self.attempts += 1
        if self.fail_on_work_id is not None and attributes.get("id") == str(self.fail_on_work_id):
            raise PublishError("queue unavailable")
        self.published.append((body, attributes))
        return f"msg-{len(self.published)}"


class StubRandom:
    """Deterministic stand-in for ``random.Random``: always returns the lower bound plus ``offset``."""

    def __init__(self, offset: int = 0) -> None:
        self.offset = offset
        self.calls: list[tuple[int, int | None]] = []

    def randrange(self, start: int, stop: int | None = None) -> int:
        self.calls.append((start, stop))
        low = 0 if stop is None else start
        return low + self.offset


async def no_sleep(_: float) -> None:
    return None


def make_message(
    message_id: str,
    body: dict[str, object] | bytes,
    attributes: dict[str, str] | None = None,
) -> QueueMessage:
    raw = body if isinstance(body, bytes) else json.dumps(body).encode("utf-8")
    return QueueMessage(message_id=message_id, body=raw, attributes=attributes or {})


def email_item(work_id: int = 2) -> dict[str, object]:
    return {
        "id": work_id,
        "type": "email_notification",
        "payload": {"email": "user@example.com", "template": "welcome"},
    }


@pytest.fixture
def metrics_sink() -> FakeMetricsSink:
    return FakeMetricsSink()


@pytest.fixture
def fake_queue() -> FakeQueue:
    return FakeQueue()
