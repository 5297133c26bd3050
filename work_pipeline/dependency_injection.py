from __future__ import annotations

import asyncio

import punq

from work_pipeline.contracts import (
    MetricsConnectorProtocol,
    QueueConsumerProtocol,
    QueuePublisherProtocol,
    SecretStoreProtocol,
)
from work_pipeline.metrics import NatsMetricsConnector
from work_pipeline.producer import ProducerService
from work_pipeline.secret_store import FileSecretStore
from work_pipeline.settings import Settings
from work_pipeline.worker.handler_registry import HandlerRegistry, skip_sleep
from work_pipeline.worker.handlers import build_default_registry
from work_pipeline.worker.service import WorkerService


def build_container(settings: Settings) -> punq.Container:
    container = punq.Container()
    container.register(Settings, instance=settings)

    container.register(
        SecretStoreProtocol,
        factory=lambda: FileSecretStore(settings.secrets_dir),
        scope=punq.Scope.singleton,
    )
    container.register(
        MetricsConnectorProtocol,
        factory=lambda: NatsMetricsConnector(
            url=settings.metrics_url or "",
            subject=settings.metrics_subject,
            default_tags={"host": "work-pipeline", "environment": settings.environment},
        ),
        scope=punq.Scope.singleton,
    )
    container.register(HandlerRegistry, factory=lambda: build_default_registry(), scope=punq.Scope.singleton)
    container.register(
        WorkerService,
        factory=lambda: WorkerService(
            secret_store=container.resolve(SecretStoreProtocol),
            metrics_connector=container.resolve(MetricsConnectorProtocol),
            registry=container.resolve(HandlerRegistry),
            metrics_secret_id=settings.metrics_secret_id or "",
            environment=settings.environment,
            concurrency=settings.worker_concurrency,
            sleep=asyncio.sleep if settings.simulate_handler_latency else skip_sleep,
        ),
        scope=punq.Scope.singleton,
    )
    container.register(
        ProducerService,
        factory=lambda: ProducerService(
            secret_store=container.resolve(SecretStoreProtocol),
            metrics_connector=container.resolve(MetricsConnectorProtocol),
            queue=container.resolve(QueuePublisherProtocol),
            metrics_secret_id=settings.metrics_secret_id or "",
            environment=settings.environment,
        ),
        scope=punq.Scope.singleton,
    )

    return container


def register_queue(container: punq.Container, queue: object) -> None:
    container.register(QueuePublisherProtocol, instance=queue)
    container.register(QueueConsumerProtocol, instance=queue)
