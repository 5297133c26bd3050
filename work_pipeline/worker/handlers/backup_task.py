from __future__ import annotations

import logging

from work_pipeline.contracts import BackupTaskPayload
from work_pipeline.worker.handler_registry import HandlerContext

logger = logging.getLogger(__name__)

WORK_TYPE = "backup_task"
PAYLOAD_MODEL = BackupTaskPayload
SIMULATED_COST_MS = 500


async def handle(payload: BackupTaskPayload, context: HandlerContext) -> None:
    await context.sleep(SIMULATED_COST_MS / 1000)
    retention = int(payload.retention)
    backup_size_mb = context.rng.randrange(1000, 11000)
    logger.info(
        "database backup completed",
        extra={"database": payload.database, "retention_days": retention, "backup_size_mb": backup_size_mb},
    )

    context.metrics.write_point(
        "database_backup",
        tags={"database": payload.database},
        fields={"backup_size_mb": backup_size_mb, "retention_days": retention, "backup_time_ms": SIMULATED_COST_MS},
    )
