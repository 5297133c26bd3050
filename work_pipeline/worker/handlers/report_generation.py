from __future__ import annotations

import logging

from work_pipeline.contracts import ReportGenerationPayload
from work_pipeline.worker.handler_registry import HandlerContext

logger = logging.getLogger(__name__)

WORK_TYPE = "report_generation"
PAYLOAD_MODEL = ReportGenerationPayload
SIMULATED_COST_MS = 300


async def handle(payload: ReportGenerationPayload, context: HandlerContext) -> None:
    await context.sleep(SIMULATED_COST_MS / 1000)
    user_id = int(payload.user_id)
    report_size_kb = context.rng.randrange(100, 1100)
    logger.info(
        "generated report",
        extra={"report_type": payload.report_type, "user_id": user_id, "report_size_kb": report_size_kb},
    )

    context.metrics.write_point(
        "report_generation",
        tags={"report_type": payload.report_type},
        fields={"user_id": user_id, "report_size_kb": report_size_kb, "generation_time_ms": SIMULATED_COST_MS},
    )
