from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import Field

from work_pipeline.contracts import UNKNOWN, CamelModel, ProcessedOutcome, ProcessingSummary, PublishOutcome

STATUS_OK = 200
STATUS_PARTIAL = 207
STATUS_ERROR = 500


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProcessedData(CamelModel):
    messages_sent: tuple[PublishOutcome, ...] = ()
    execution_time_ms: int = Field(ge=0)
    timestamp: datetime = Field(default_factory=_utcnow)


class CronJobResult(CamelModel):
    success: bool
    error: str | None = None
    processed_data: ProcessedData | None = None


class ProducerResponse(CamelModel):
    status_code: int
    timestamp: datetime = Field(default_factory=_utcnow)
    environment: str
    cron_job: CronJobResult

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ProcessingReport(CamelModel):
    total_messages: int
    successful_messages: int
    failed_messages: int
    processed_items: tuple[ProcessedOutcome, ...]
    failed_items: tuple[ProcessedOutcome, ...]

    @classmethod
    def from_summary(cls, summary: ProcessingSummary) -> ProcessingReport:
        return cls(
            total_messages=summary.total,
            successful_messages=summary.successful,
            failed_messages=summary.failed,
            processed_items=summary.processed_items,
            failed_items=summary.failed_items,
        )


class WorkerResponse(CamelModel):
    status_code: int
    timestamp: datetime = Field(default_factory=_utcnow)
    environment: str
    processing: ProcessingReport

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def status_code_for(summary: ProcessingSummary) -> int:
    # counts only: any failure, including a fully failed batch, is multi-status
    return STATUS_OK if summary.failed == 0 else STATUS_PARTIAL


def build_worker_response(summary: ProcessingSummary, *, environment: str, now: datetime | None = None) -> WorkerResponse:
    return WorkerResponse(
        status_code=status_code_for(summary),
        timestamp=now or _utcnow(),
        environment=environment or UNKNOWN,
        processing=ProcessingReport.from_summary(summary),
    )


def build_worker_error_response(
    summary: ProcessingSummary,
    *,
    environment: str,
    now: datetime | None = None,
) -> WorkerResponse:
    return WorkerResponse(
        status_code=STATUS_ERROR,
        timestamp=now or _utcnow(),
        environment=environment or UNKNOWN,
        processing=ProcessingReport.from_summary(summary),
    )


def build_producer_response(
    processed_data: ProcessedData,
    *,
    environment: str,
    now: datetime | None = None,
) -> ProducerResponse:
    return ProducerResponse(
        status_code=STATUS_OK,
        timestamp=now or _utcnow(),
        environment=environment or UNKNOWN,
        cron_job=CronJobResult(success=True, error=None, processed_data=processed_data),
    )


def build_producer_error_response(
    error: str,
    *,
    environment: str,
    processed_data: ProcessedData | None = None,
    now: datetime | None = None,
) -> ProducerResponse:
    """Failed producer run; ``processed_data`` lists whatever was enqueued before the failure."""

    return ProducerResponse(
        status_code=STATUS_ERROR,
        timestamp=now or _utcnow(),
        environment=environment or UNKNOWN,
        cron_job=CronJobResult(success=False, error=error, processed_data=processed_data),
    )
