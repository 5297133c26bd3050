from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import nats
from nats.errors import TimeoutError as NatsTimeoutError
from nats.js.errors import BadRequestError

from work_pipeline.contracts import QueueMessage
from work_pipeline.errors import PublishError

logger = logging.getLogger(__name__)


async def connect_jetstream(nats_url: str, token: str | None = None) -> tuple[Any, Any]:
    options: dict[str, Any] = {}
    if token:
        options["token"] = token
    nc = await nats.connect(nats_url, **options)
    return nc, nc.jetstream()


async def ensure_work_stream(js: Any, name: str, subjects: list[str]) -> None:
    try:
        await js.add_stream(name=name, subjects=subjects)
    except BadRequestError:
        # stream already exists with a different config; leave it to ops
        logger.warning("work stream exists with different config", extra={"stream": name})


def _message_id(stream: str, sequence: int) -> str:
    return f"{stream}-{sequence}"


class JetStreamWorkQueue:
    """Work queue backed by a JetStream stream and a durable pull consumer."""

    def __init__(
        self,
        js: Any,
        *,
        subject_prefix: str,
        stream: str,
        durable: str,
        batch_size: int = 10,
        fetch_timeout_seconds: float = 5.0,
    ) -> None:
        self._js = js
        self._subject_prefix = subject_prefix
        self._stream = stream
        self._durable = durable
        self._batch_size = batch_size
        self._fetch_timeout_seconds = fetch_timeout_seconds
        self._subscription: Any = None
        self._in_flight: dict[str, Any] = {}

    def subject_for(self, work_type: str) -> str:
        return f"{self._subject_prefix}.{work_type}.requested"

    async def publish(self, body: bytes, attributes: dict[str, str]) -> str:
        work_type = attributes.get("type", "unknown")
        try:
            ack = await self._js.publish(self.subject_for(work_type), body, headers=dict(attributes))
        except Exception as exc:  # noqa: BLE001
            raise PublishError(str(exc) or type(exc).__name__) from exc
        return _message_id(ack.stream, ack.seq)

    async def receive_batch(self) -> list[QueueMessage]:
        if self._subscription is None:
            self._subscription = await self._js.pull_subscribe(
                f"{self._subject_prefix}.*.requested",
                durable=self._durable,
                stream=self._stream,
            )

        try:
            raw_messages = await self._subscription.fetch(self._batch_size, timeout=self._fetch_timeout_seconds)
        except NatsTimeoutError:
            return []

        messages: list[QueueMessage] = []
        for raw in raw_messages:
            metadata = raw.metadata
            message_id = _message_id(metadata.stream, metadata.sequence.stream)
            self._in_flight[message_id] = raw
            messages.append(QueueMessage(message_id=message_id, body=raw.data, attributes=dict(raw.headers or {})))
        logger.debug("received work batch", extra={"size": len(messages), "durable": self._durable})
        return messages

    async def acknowledge(self, messages: Sequence[QueueMessage]) -> None:
        for message in messages:
            raw = self._in_flight.pop(message.message_id, None)
            if raw is not None:
                await raw.ack()

    async def reject(self, messages: Sequence[QueueMessage]) -> None:
        for message in messages:
            raw = self._in_flight.pop(message.message_id, None)
            if raw is not None:
                await raw.nak()
