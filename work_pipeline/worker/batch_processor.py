from __future__ import annotations

import asyncio
import logging
import random
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from typing import Any

from work_pipeline.contracts import (
    UNKNOWN,
    MetricsSinkProtocol,
    OutcomeStatus,
    ProcessedOutcome,
    ProcessingSummary,
    QueueMessage,
    WorkItem,
    WorkItemLogProtocol,
)
from work_pipeline.errors import DecodeError, InvocationTimeoutError, ProcessingError
from work_pipeline.worker.handler_registry import HandlerContext, HandlerRegistry

logger = logging.getLogger(__name__)


def outcome_from_attributes(message: QueueMessage, error: str) -> ProcessedOutcome:
    """Failed outcome for a message that was never decoded; identity comes from publish-time attributes."""

    work_id: int | str = UNKNOWN
    raw_id = message.attributes.get("id")
    if raw_id is not None:
        try:
            work_id = int(raw_id)
        except ValueError:
            work_id = UNKNOWN
    return ProcessedOutcome.failed(
        message_id=message.message_id,
        error=error,
        work_id=work_id,
        type=message.attributes.get("type") or UNKNOWN,
    )


def summarize(total: int, outcomes: Iterable[ProcessedOutcome]) -> ProcessingSummary:
    processed: list[ProcessedOutcome] = []
    failed: list[ProcessedOutcome] = []
    for outcome in outcomes:
        (processed if outcome.status is OutcomeStatus.SUCCESS else failed).append(outcome)
    return ProcessingSummary(total=total, processed_items=tuple(processed), failed_items=tuple(failed))


def preflight_summary(messages: Sequence[QueueMessage], error: str) -> ProcessingSummary:
    return summarize(len(messages), (outcome_from_attributes(message, error) for message in messages))


class BatchProcessor:
    """Decode, dispatch and record every message of one batch independently.

    A failing message becomes a failed outcome and never stops the rest of the batch.
    With ``concurrency > 1`` messages are dispatched in parallel, bounded by a semaphore.
    """

    def __init__(
        self,
        *,
        registry: HandlerRegistry,
        metrics: MetricsSinkProtocol,
        rng: random.Random | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        concurrency: int = 1,
        work_log: WorkItemLogProtocol | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._registry = registry
        self._metrics = metrics
        self._context = HandlerContext(metrics=metrics, rng=rng or random.Random(), sleep=sleep)
        self._concurrency = concurrency
        self._work_log = work_log
        self._clock = clock

    async def process_batch(
        self,
        messages: Sequence[QueueMessage],
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> ProcessingSummary:
        if self._concurrency == 1:
            outcomes = [await self._process_message(message, cancel_event) for message in messages]
        else:
            guard = asyncio.Semaphore(self._concurrency)

            async def bounded(message: QueueMessage) -> ProcessedOutcome:
                async with guard:
                    return await self._process_message(message, cancel_event)

            outcomes = await asyncio.gather(*(bounded(message) for message in messages))

        return summarize(len(messages), outcomes)

    async def _process_message(self, message: QueueMessage, cancel_event: asyncio.Event | None) -> ProcessedOutcome:
        if cancel_event is not None and cancel_event.is_set():
            logger.warning("skipping work item after invocation deadline", extra={"message_id": message.message_id})
            outcome = outcome_from_attributes(message, str(InvocationTimeoutError()))
            await self._record(outcome, payload=None, duration_ms=0)
            return outcome

        started = self._clock()
        item: WorkItem | None = None
        try:
            item = WorkItem.from_body(message.body)
        except DecodeError as exc:
            logger.error("failed to decode work item", extra={"message_id": message.message_id, "error": str(exc)})
            outcome = ProcessedOutcome.failed(message_id=message.message_id, error=str(exc))
        else:
            outcome = await self._dispatch(item, message)

        duration_ms = int((self._clock() - started) * 1000)
        await self._record(outcome, payload=item.payload if item is not None else None, duration_ms=duration_ms)
        return outcome

    async def _dispatch(self, item: WorkItem, message: QueueMessage) -> ProcessedOutcome:
        log_extra = {"work_id": item.id, "work_type": item.type, "message_id": message.message_id}
        logger.info("processing work item", extra=log_extra)
        started = self._clock()

        try:
            await self._registry.dispatch(item, self._context)
        except ProcessingError as exc:
            logger.error("failed to process work item", extra={**log_extra, "error": str(exc)})
            return ProcessedOutcome.failed(message_id=message.message_id, error=str(exc), work_id=item.id, type=item.type)
        except Exception as exc:  # noqa: BLE001
            logger.exception("work item handler raised", extra=log_extra)
            return ProcessedOutcome.failed(
                message_id=message.message_id,
                error=str(exc) or type(exc).__name__,
                work_id=item.id,
                type=item.type,
            )

        self._metrics.write_point(
            "work_item_completed",
            tags={"work_type": item.type},
            fields={"work_id": item.id, "processing_duration_ms": int((self._clock() - started) * 1000)},
        )
        logger.info("work item processed", extra=log_extra)
        return ProcessedOutcome.succeeded(item, message.message_id)

    async def _record(self, outcome: ProcessedOutcome, *, payload: Mapping[str, Any] | None, duration_ms: int) -> None:
        fields: dict[str, int | str] = {
            "work_id": 0 if outcome.work_id == UNKNOWN else outcome.work_id,
            "duration_ms": duration_ms,
        }
        if outcome.error is not None:
            fields["error_message"] = outcome.error
        self._metrics.write_point(
            "work_item_processing",
            tags={"work_type": outcome.type, "status": outcome.status.value, "message_id": outcome.message_id},
            fields=fields,
        )

        if self._work_log is not None:
            await self._work_log.record(outcome, payload=payload, duration_ms=duration_ms)
