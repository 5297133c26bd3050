from __future__ import annotations

from work_pipeline.worker.handler_registry import HandlerRegistry
from work_pipeline.worker.handlers import (
    backup_task,
    data_cleanup,
    data_processing,
    email_notification,
    report_generation,
)

BUILTIN_HANDLER_MODULES = (
    data_processing,
    email_notification,
    data_cleanup,
    report_generation,
    backup_task,
)


def register_builtin_handlers(registry: HandlerRegistry) -> HandlerRegistry:
    for module in BUILTIN_HANDLER_MODULES:
        registry.register(module.WORK_TYPE, module.PAYLOAD_MODEL, module.handle)
    return registry


def build_default_registry() -> HandlerRegistry:
    return register_builtin_handlers(HandlerRegistry()).freeze()
