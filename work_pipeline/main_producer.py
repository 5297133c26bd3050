from __future__ import annotations

import argparse
import asyncio
import json
import logging

from work_pipeline.dependency_injection import build_container, register_queue
from work_pipeline.errors import ConfigError
from work_pipeline.jetstream import JetStreamWorkQueue, connect_jetstream, ensure_work_stream
from work_pipeline.logging import configure_logging
from work_pipeline.producer import ProducerService
from work_pipeline.reporting import STATUS_OK, ProducerResponse, build_producer_error_response
from work_pipeline.settings import REQUIRED_FOR_PRODUCER, get_settings
from work_pipeline.work_items import default_work_items, load_work_items

settings = get_settings()
configure_logging(settings.effective_log_level)
logger = logging.getLogger(__name__)


def _emit(response: ProducerResponse) -> int:
    print(json.dumps(response.to_payload(), indent=2))
    return 0 if response.status_code == STATUS_OK else 1


async def main(work_items_file: str | None = None) -> int:
    logger.info("starting producer run", extra={"app_env": settings.app_env, "environment": settings.environment})

    try:
        settings.require(*REQUIRED_FOR_PRODUCER)
        items = load_work_items(work_items_file) if work_items_file else default_work_items()
    except ConfigError as exc:
        logger.error("producer configuration invalid", extra={"error": str(exc)})
        return _emit(build_producer_error_response(str(exc), environment=settings.environment))

    try:
        nc, js = await connect_jetstream(settings.work_queue_url)
        await ensure_work_stream(js, settings.work_stream_name, [f"{settings.work_subject_prefix}.>"])
    except Exception as exc:  # noqa: BLE001
        logger.exception("failed to connect to work queue", extra={"url": settings.work_queue_url})
        return _emit(build_producer_error_response(f"failed to connect to work queue: {exc}", environment=settings.environment))

    queue = JetStreamWorkQueue(
        js,
        subject_prefix=settings.work_subject_prefix,
        stream=settings.work_stream_name,
        durable=settings.worker_consumer_durable,
    )
    container = build_container(settings)
    register_queue(container, queue)

    try:
        response = await container.resolve(ProducerService).run(items)
    finally:
        await nc.drain()

    return _emit(response)


def cli() -> None:
    parser = argparse.ArgumentParser(description="Publish one batch of work items to the work queue")
    parser.add_argument("--work-items", default=None, help="YAML file listing work items (defaults to WORK_ITEMS_FILE)")
    args = parser.parse_args()

    raise SystemExit(asyncio.run(main(args.work_items or settings.work_items_file)))


if __name__ == "__main__":
    cli()
