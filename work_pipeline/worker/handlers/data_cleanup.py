from __future__ import annotations

import logging

from work_pipeline.contracts import DataCleanupPayload
from work_pipeline.worker.handler_registry import HandlerContext

logger = logging.getLogger(__name__)

WORK_TYPE = "data_cleanup"
PAYLOAD_MODEL = DataCleanupPayload
SIMULATED_COST_MS = 150


async def handle(payload: DataCleanupPayload, context: HandlerContext) -> None:
    await context.sleep(SIMULATED_COST_MS / 1000)
    days = int(payload.days)
    records_deleted = context.rng.randrange(100)
    logger.info(
        "cleaned up table",
        extra={"table": payload.table, "retention_days": days, "records_deleted": records_deleted},
    )

    context.metrics.write_point(
        "data_cleanup",
        tags={"table": payload.table},
        fields={"records_deleted": records_deleted, "retention_days": days, "cleanup_time_ms": SIMULATED_COST_MS},
    )
