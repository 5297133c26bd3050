from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from uuid import uuid4

from work_pipeline.contracts import (
    MetricsConnectorProtocol,
    MetricsSinkProtocol,
    PublishOutcome,
    QueuePublisherProtocol,
    SecretStoreProtocol,
    WorkItem,
)
from work_pipeline.errors import PreflightError, PublishError
from work_pipeline.preflight import flush_and_close, open_metrics_sink
from work_pipeline.reporting import (
    ProcessedData,
    ProducerResponse,
    build_producer_error_response,
    build_producer_response,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PublishBatchResult:
    outcomes: tuple[PublishOutcome, ...]
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Producer:
    """Publishes work items in order and stops at the first publish failure."""

    def __init__(self, *, queue: QueuePublisherProtocol, metrics: MetricsSinkProtocol) -> None:
        self._queue = queue
        self._metrics = metrics

    async def publish_batch(self, items: Sequence[WorkItem]) -> PublishBatchResult:
        outcomes: list[PublishOutcome] = []
        for item in items:
            try:
                message_id = await self._queue.publish(item.to_body(), {"type": item.type, "id": str(item.id)})
            except PublishError as exc:
                error = f"failed to publish work item {item.id}: {exc}"
                logger.error(
                    "publish failed, aborting remaining work items",
                    extra={"work_id": item.id, "work_type": item.type, "already_sent": len(outcomes), "error": str(exc)},
                )
                return PublishBatchResult(outcomes=tuple(outcomes), error=error)

            outcomes.append(PublishOutcome(work_id=item.id, message_id=message_id, type=item.type))
            logger.info("published work item", extra={"work_id": item.id, "work_type": item.type, "message_id": message_id})
            self._metrics.write_point(
                "queue_messages",
                tags={"work_type": item.type, "status": "sent"},
                fields={"work_id": item.id, "message_id": message_id},
            )

        return PublishBatchResult(outcomes=tuple(outcomes))


class ProducerService:
    """One scheduled producer run: pre-flight, publish the batch, report."""

    def __init__(
        self,
        *,
        secret_store: SecretStoreProtocol,
        metrics_connector: MetricsConnectorProtocol,
        queue: QueuePublisherProtocol,
        metrics_secret_id: str,
        environment: str,
        job_name: str = "work-producer",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._secret_store = secret_store
        self._metrics_connector = metrics_connector
        self._queue = queue
        self._metrics_secret_id = metrics_secret_id
        self._environment = environment
        self._job_name = job_name
        self._clock = clock

    async def run(self, items: Sequence[WorkItem]) -> ProducerResponse:
        started = self._clock()
        invocation_id = str(uuid4())
        logger.info("producer run started", extra={"invocation_id": invocation_id, "items": len(items)})

        try:
            metrics = await open_metrics_sink(self._secret_store, self._metrics_connector, self._metrics_secret_id)
        except PreflightError as exc:
            logger.error("producer pre-flight failed", extra={"invocation_id": invocation_id, "error": str(exc)})
            return build_producer_error_response(str(exc), environment=self._environment)

        tags = {"function_name": self._job_name}
        try:
            metrics.write_point("cron_job_execution", tags={**tags, "status": "started"}, fields={"invocation_id": invocation_id})

            result = await Producer(queue=self._queue, metrics=metrics).publish_batch(items)
            elapsed_ms = int((self._clock() - started) * 1000)
            processed = ProcessedData(messages_sent=result.outcomes, execution_time_ms=elapsed_ms)

            if result.ok:
                metrics.write_point(
                    "cron_job_execution",
                    tags={**tags, "status": "completed"},
                    fields={
                        "messages_sent": len(result.outcomes),
                        "execution_duration_ms": elapsed_ms,
                        "invocation_id": invocation_id,
                    },
                )
                response = build_producer_response(processed, environment=self._environment)
            else:
                metrics.write_point(
                    "cron_job_execution",
                    tags={**tags, "status": "error"},
                    fields={
                        "error_message": result.error,
                        "messages_sent": len(result.outcomes),
                        "invocation_id": invocation_id,
                    },
                )
                response = build_producer_error_response(result.error, environment=self._environment, processed_data=processed)
        finally:
            await flush_and_close(metrics)

        logger.info(
            "producer run finished",
            extra={"invocation_id": invocation_id, "status_code": response.status_code, "messages_sent": len(result.outcomes)},
        )
        return response
