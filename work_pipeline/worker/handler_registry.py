from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ValidationError

from work_pipeline.contracts import MetricsSinkProtocol, WorkItem
from work_pipeline.errors import MissingFieldError, UnknownTypeError

Handler = Callable[[Any, "HandlerContext"], Awaitable[None]]


async def skip_sleep(_seconds: float) -> None:
    """Stand-in for ``asyncio.sleep`` when simulated handler latency is disabled."""


@dataclass(frozen=True)
class HandlerContext:
    """Collaborators a handler may touch while processing one payload."""

    metrics: MetricsSinkProtocol
    rng: random.Random = field(default_factory=random.Random)
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep


@dataclass(frozen=True)
class RegisteredHandler:
    payload_model: type[BaseModel]
    handle: Handler


class HandlerRegistry:
    """Maps work-type tags to a payload schema and a handler coroutine.

    Populated once at startup, then frozen; dispatch never mutates it.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, RegisteredHandler] = {}
        self._frozen = False

    def register(self, type_tag: str, payload_model: type[BaseModel], handler: Handler) -> None:
        if self._frozen:
            raise RuntimeError("handler registry is frozen")
        if type_tag in self._handlers:
            raise ValueError(f"handler already registered for work type '{type_tag}'")
        self._handlers[type_tag] = RegisteredHandler(payload_model=payload_model, handle=handler)

    def freeze(self) -> HandlerRegistry:
        self._frozen = True
        return self

    @property
    def types(self) -> tuple[str, ...]:
        return tuple(self._handlers)

    def __contains__(self, type_tag: object) -> bool:
        return type_tag in self._handlers

    async def dispatch(self, item: WorkItem, context: HandlerContext) -> None:
        registered = self._handlers.get(item.type)
        if registered is None:
            raise UnknownTypeError(item.type)

        payload = self._validate_payload(registered.payload_model, item.payload)
        await registered.handle(payload, context)

    @staticmethod
    def _validate_payload(payload_model: type[BaseModel], payload: Mapping[str, Any]) -> BaseModel:
        try:
            return payload_model.model_validate(dict(payload))
        except ValidationError as exc:
            raise MissingFieldError(_offending_field(payload_model, exc)) from exc


def _offending_field(payload_model: type[BaseModel], exc: ValidationError) -> str:
    errors = exc.errors()
    loc = errors[0].get("loc", ()) if errors else ()
    if not loc:
        return "payload"
    name = str(loc[0])
    model_field = payload_model.model_fields.get(name)
    if model_field is not None and model_field.alias:
        return model_field.alias
    return name
