from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Literal, Protocol, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    StrictFloat,
    StrictInt,
    StrictStr,
    ValidationError,
    field_serializer,
    field_validator,
    model_serializer,
    model_validator,
)
from pydantic.alias_generators import to_camel

from work_pipeline.errors import DecodeError

UNKNOWN = "unknown"

Numeric = Union[StrictInt, StrictFloat]
MetricValue = Union[int, float, str, bool]


def describe_validation_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first['msg']}" if location else first["msg"]


class WorkItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: StrictInt
    type: StrictStr
    payload: Mapping[str, Any] = Field(default_factory=lambda: MappingProxyType({}))

    @field_validator("payload", mode="before")
    @classmethod
    def _null_payload_is_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("payload")
    @classmethod
    def _read_only_payload(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return MappingProxyType(dict(value))

    @field_serializer("payload")
    def _payload_as_dict(self, value: Mapping[str, Any]) -> dict[str, Any]:
        return dict(value)

    def to_body(self) -> bytes:
        return self.model_dump_json().encode("utf-8")

    @classmethod
    def from_body(cls, body: bytes | str) -> WorkItem:
        try:
            return cls.model_validate_json(body)
        except ValueError as exc:
            detail = describe_validation_error(exc) if isinstance(exc, ValidationError) else str(exc)
            raise DecodeError(f"invalid work item body: {detail}") from exc


class _PayloadModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class DataProcessingPayload(_PayloadModel):
    action: StrictStr
    # checked by the handler, only update_profile needs it
    user_id: Any = Field(default=None, alias="userId")


class EmailNotificationPayload(_PayloadModel):
    email: StrictStr
    template: StrictStr


class DataCleanupPayload(_PayloadModel):
    table: StrictStr
    days: Numeric


class ReportGenerationPayload(_PayloadModel):
    report_type: StrictStr = Field(alias="reportType")
    user_id: Numeric = Field(alias="userId")


class BackupTaskPayload(_PayloadModel):
    database: StrictStr
    retention: Numeric


@dataclass(frozen=True)
class QueueMessage:
    message_id: str
    body: bytes
    attributes: dict[str, str] = field(default_factory=dict)


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class BatchResult(str, Enum):
    ALL_SUCCEEDED = "all_succeeded"
    PARTIAL = "partial"
    ALL_FAILED = "all_failed"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class ProcessedOutcome(CamelModel):
    work_id: Union[StrictInt, Literal["unknown"]]
    message_id: str
    type: str
    status: OutcomeStatus
    error: str | None = None

    @model_validator(mode="after")
    def _error_only_on_failure(self) -> ProcessedOutcome:
        if (self.status is OutcomeStatus.ERROR) != (self.error is not None):
            raise ValueError("error must be set exactly when status is error")
        return self

    @model_serializer(mode="wrap")
    def _omit_missing_error(self, handler):
        data = handler(self)
        if self.error is None:
            data.pop("error", None)
        return data

    @classmethod
    def succeeded(cls, item: WorkItem, message_id: str) -> ProcessedOutcome:
        return cls(work_id=item.id, message_id=message_id, type=item.type, status=OutcomeStatus.SUCCESS)

    @classmethod
    def failed(
        cls,
        *,
        message_id: str,
        error: str,
        work_id: int | str = UNKNOWN,
        type: str = UNKNOWN,
    ) -> ProcessedOutcome:
        return cls(work_id=work_id, message_id=message_id, type=type, status=OutcomeStatus.ERROR, error=error)


class PublishOutcome(CamelModel):
    work_id: int
    message_id: str
    type: str


class ProcessingSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: int = Field(ge=0)
    processed_items: tuple[ProcessedOutcome, ...] = ()
    failed_items: tuple[ProcessedOutcome, ...] = ()

    @model_validator(mode="after")
    def _counts_add_up(self) -> ProcessingSummary:
        if any(item.status is not OutcomeStatus.SUCCESS for item in self.processed_items):
            raise ValueError("processed_items may only hold successful outcomes")
        if any(item.status is not OutcomeStatus.ERROR for item in self.failed_items):
            raise ValueError("failed_items may only hold failed outcomes")
        if self.total != len(self.processed_items) + len(self.failed_items):
            raise ValueError("total must equal successful + failed")
        return self

    @property
    def successful(self) -> int:
        return len(self.processed_items)

    @property
    def failed(self) -> int:
        return len(self.failed_items)

    @property
    def result(self) -> BatchResult:
        if self.failed == 0:
            return BatchResult.ALL_SUCCEEDED
        if self.successful == 0:
            return BatchResult.ALL_FAILED
        return BatchResult.PARTIAL


@dataclass(frozen=True)
class MetricPoint:
    measurement: str
    tags: dict[str, str] = field(default_factory=dict)
    fields: dict[str, MetricValue] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "measurement": self.measurement,
            "tags": dict(self.tags),
            "fields": dict(self.fields),
            "timestamp": self.timestamp.isoformat(),
        }


class Credentials(BaseModel):
    token: SecretStr


class QueuePublisherProtocol(Protocol):
    async def publish(self, body: bytes, attributes: dict[str, str]) -> str:
        """Durably enqueue one message and return the queue-assigned message id."""


class QueueConsumerProtocol(Protocol):
    async def receive_batch(self) -> list[QueueMessage]:
        """Return the next batch of delivered messages, or an empty list when none arrived."""

    async def acknowledge(self, messages: Sequence[QueueMessage]) -> None:
        """Mark messages as consumed so they are not redelivered."""

    async def reject(self, messages: Sequence[QueueMessage]) -> None:
        """Hand messages back to the queue for redelivery."""


class MetricsSinkProtocol(Protocol):
    def write_point(
        self,
        measurement: str,
        *,
        tags: dict[str, str] | None = None,
        fields: dict[str, MetricValue] | None = None,
        timestamp: datetime | None = None,
    ) -> None:
        """Buffer one point. Never raises."""

    async def flush(self) -> None:
        """Deliver buffered points, raising ``FlushError`` when any could not be sent."""

    async def close(self) -> None:
        """Release the sink's connection."""


class MetricsConnectorProtocol(Protocol):
    async def connect(self, token: str) -> MetricsSinkProtocol:
        """Open an authenticated metrics sink."""


class SecretStoreProtocol(Protocol):
    async def get_secret(self, secret_id: str) -> Credentials:
        """Look up the credentials stored under ``secret_id``."""


class WorkItemLogProtocol(Protocol):
    async def record(
        self,
        outcome: ProcessedOutcome,
        *,
        payload: Mapping[str, Any] | None,
        duration_ms: int,
    ) -> None:
        """Persist one processing attempt."""
