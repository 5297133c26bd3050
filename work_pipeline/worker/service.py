from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable, Sequence

from work_pipeline.contracts import (
    MetricsConnectorProtocol,
    QueueMessage,
    SecretStoreProtocol,
    WorkItemLogProtocol,
)
from work_pipeline.errors import PreflightError
from work_pipeline.preflight import flush_and_close, open_metrics_sink
from work_pipeline.reporting import WorkerResponse, build_worker_error_response, build_worker_response
from work_pipeline.worker.batch_processor import BatchProcessor, preflight_summary
from work_pipeline.worker.handler_registry import HandlerRegistry

logger = logging.getLogger(__name__)


class WorkerService:
    """One worker invocation per delivered batch: pre-flight, process, report."""

    def __init__(
        self,
        *,
        secret_store: SecretStoreProtocol,
        metrics_connector: MetricsConnectorProtocol,
        registry: HandlerRegistry,
        metrics_secret_id: str,
        environment: str,
        concurrency: int = 1,
        work_log: WorkItemLogProtocol | None = None,
        rng: random.Random | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._secret_store = secret_store
        self._metrics_connector = metrics_connector
        self._registry = registry
        self._metrics_secret_id = metrics_secret_id
        self._environment = environment
        self._concurrency = concurrency
        self._work_log = work_log
        self._rng = rng
        self._sleep = sleep

    def attach_work_log(self, work_log: WorkItemLogProtocol) -> None:
        self._work_log = work_log

    async def handle_batch(
        self,
        messages: Sequence[QueueMessage],
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> WorkerResponse:
        logger.info("worker invocation started", extra={"batch_size": len(messages)})

        try:
            metrics = await open_metrics_sink(self._secret_store, self._metrics_connector, self._metrics_secret_id)
        except PreflightError as exc:
            logger.error("worker pre-flight failed", extra={"error": str(exc), "batch_size": len(messages)})
            return build_worker_error_response(preflight_summary(messages, str(exc)), environment=self._environment)

        try:
            processor = BatchProcessor(
                registry=self._registry,
                metrics=metrics,
                rng=self._rng,
                sleep=self._sleep,
                concurrency=self._concurrency,
                work_log=self._work_log,
            )
            summary = await processor.process_batch(messages, cancel_event=cancel_event)
        finally:
            await flush_and_close(metrics)

        response = build_worker_response(summary, environment=self._environment)
        logger.info(
            "worker processing completed",
            extra={
                "status_code": response.status_code,
                "total": summary.total,
                "successful": summary.successful,
                "failed": summary.failed,
                "result": summary.result.value,
            },
        )
        return response
