from __future__ import annotations

import asyncio
import json
import logging
import signal

from work_pipeline.contracts import QueueConsumerProtocol
from work_pipeline.database import Database
from work_pipeline.dependency_injection import build_container, register_queue
from work_pipeline.errors import ConfigError
from work_pipeline.jetstream import JetStreamWorkQueue, connect_jetstream, ensure_work_stream
from work_pipeline.logging import configure_logging
from work_pipeline.reporting import STATUS_ERROR
from work_pipeline.settings import REQUIRED_FOR_WORKER, get_settings
from work_pipeline.work_item_log import WorkItemLogRepository
from work_pipeline.worker import WorkerService

settings = get_settings()
configure_logging(settings.effective_log_level)
logger = logging.getLogger(__name__)


async def run_invocation(worker: WorkerService, queue: QueueConsumerProtocol, messages, timeout_seconds: float) -> None:
    deadline = asyncio.Event()
    timer = asyncio.get_running_loop().call_later(timeout_seconds, deadline.set)
    try:
        response = await worker.handle_batch(messages, cancel_event=deadline)
    finally:
        timer.cancel()

    if response.status_code == STATUS_ERROR:
        # pre-flight failure: nothing was attempted, let the queue redeliver
        await queue.reject(messages)
    else:
        await queue.acknowledge(messages)

    logger.info(
        "worker batch finished",
        extra={"status_code": response.status_code, "batch_size": len(messages)},
    )
    logger.debug("worker response: %s", json.dumps(response.to_payload()))


async def main() -> None:
    logger.info("starting worker", extra={"app_env": settings.app_env, "log_level": settings.effective_log_level})

    try:
        settings.require(*REQUIRED_FOR_WORKER)
    except ConfigError as exc:
        logger.error("worker configuration invalid", extra={"error": str(exc)})
        raise SystemExit(1) from None

    nc, js = await connect_jetstream(settings.work_queue_url)
    await ensure_work_stream(js, settings.work_stream_name, [f"{settings.work_subject_prefix}.>"])
    logger.info("worker nats connected", extra={"nats_url": settings.work_queue_url})

    queue = JetStreamWorkQueue(
        js,
        subject_prefix=settings.work_subject_prefix,
        stream=settings.work_stream_name,
        durable=settings.worker_consumer_durable,
        batch_size=settings.worker_batch_size,
        fetch_timeout_seconds=settings.worker_fetch_timeout_seconds,
    )
    container = build_container(settings)
    register_queue(container, queue)
    worker = container.resolve(WorkerService)

    database: Database | None = None
    if settings.work_item_log_db_dsn:
        database = Database(settings.work_item_log_db_dsn)
        await database.connect()
        work_log = WorkItemLogRepository(database)
        await work_log.ensure_schema()
        worker.attach_work_log(work_log)
        logger.info("work item log database connected")

    stop_event = asyncio.Event()

    def request_shutdown() -> None:
        if not stop_event.is_set():
            stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, request_shutdown)
        except NotImplementedError:
            pass

    logger.info(
        "worker started",
        extra={
            "subject": settings.work_queue_subject,
            "durable": settings.worker_consumer_durable,
            "batch_size": settings.worker_batch_size,
            "concurrency": settings.worker_concurrency,
        },
    )

    try:
        while not stop_event.is_set():
            messages = await queue.receive_batch()
            if not messages:
                continue
            await run_invocation(worker, queue, messages, settings.worker_invocation_timeout_seconds)
    finally:
        await nc.drain()
        if database is not None:
            await database.close()
        logger.info("worker shutdown complete")


def cli() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    cli()
