from __future__ import annotations


class PipelineError(Exception):
    """Base class for every error raised by the work pipeline."""


class ConfigError(PipelineError):
    """Required configuration is missing; aborts before any work starts."""


class PreflightError(PipelineError):
    """Failure before any work item is touched (credentials, metrics connection)."""


class SecretRetrievalError(PreflightError):
    pass


class CredentialParseError(PreflightError):
    pass


class MetricsConnectionError(PreflightError):
    pass


class PublishError(PipelineError):
    """The queue did not accept a message."""


class FlushError(PipelineError):
    """Buffered metric points could not be delivered. Never fails a job."""


class ItemError(PipelineError):
    """Failure scoped to a single queue message; captured as an outcome, never raised past a batch."""


class DecodeError(ItemError):
    pass


class InvocationTimeoutError(ItemError):
    def __init__(self) -> None:
        super().__init__("invocation deadline exceeded before item was processed")


class ProcessingError(ItemError):
    """Raised from dispatch or from inside a work-type handler."""


class UnknownTypeError(ProcessingError):
    def __init__(self, type_tag: str) -> None:
        super().__init__(f"unknown work item type: {type_tag}")
        self.type_tag = type_tag


class MissingFieldError(ProcessingError):
    def __init__(self, field_name: str) -> None:
        super().__init__(f"missing or invalid {field_name} in payload")
        self.field_name = field_name
