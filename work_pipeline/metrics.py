from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

import nats

from work_pipeline.contracts import MetricPoint, MetricValue
from work_pipeline.errors import FlushError, MetricsConnectionError

logger = logging.getLogger(__name__)


class NatsMetricsSink:
    """Buffers metric points for one invocation and publishes them on flush."""

    def __init__(
        self,
        publish: Callable[[str, bytes], Awaitable[Any]],
        *,
        subject: str,
        default_tags: dict[str, str] | None = None,
        close: Callable[[], Awaitable[None]] | None = None,
    ) -> None:
        self._publish = publish
        self._subject = subject
        self._default_tags = dict(default_tags or {})
        self._close = close
        self._buffer: list[MetricPoint] = []

    @property
    def pending(self) -> int:
        return len(self._buffer)

    def write_point(
        self,
        measurement: str,
        *,
        tags: dict[str, str] | None = None,
        fields: dict[str, MetricValue] | None = None,
        timestamp: datetime | None = None,
    ) -> None:
        point_tags = {**self._default_tags, **(tags or {})}
        if timestamp is None:
            point = MetricPoint(measurement=measurement, tags=point_tags, fields=dict(fields or {}))
        else:
            point = MetricPoint(measurement=measurement, tags=point_tags, fields=dict(fields or {}), timestamp=timestamp)
        self._buffer.append(point)

    async def flush(self) -> None:
        points, self._buffer = self._buffer, []
        undelivered = 0
        last_error: Exception | None = None
        for point in points:
            try:
                await self._publish(self._subject, json.dumps(point.to_dict()).encode("utf-8"))
            except Exception as exc:  # noqa: BLE001
                undelivered += 1
                last_error = exc

        if undelivered:
            raise FlushError(f"{undelivered} of {len(points)} metric points undelivered: {last_error}")
        logger.debug("flushed metric points", extra={"count": len(points), "subject": self._subject})

    async def close(self) -> None:
        if self._close is not None:
            await self._close()
            self._close = None


class NatsMetricsConnector:
    def __init__(self, *, url: str, subject: str, default_tags: dict[str, str] | None = None) -> None:
        self._url = url
        self._subject = subject
        self._default_tags = default_tags or {}

    async def connect(self, token: str) -> NatsMetricsSink:
        try:
            nc = await nats.connect(self._url, token=token)
        except Exception as exc:  # noqa: BLE001
            raise MetricsConnectionError(f"failed to connect to metrics sink at {self._url}: {exc}") from exc

        logger.info("connected to metrics sink", extra={"url": self._url, "subject": self._subject})
        return NatsMetricsSink(nc.publish, subject=self._subject, default_tags=self._default_tags, close=nc.drain)
