from __future__ import annotations

import logging

from work_pipeline.contracts import DataProcessingPayload
from work_pipeline.errors import MissingFieldError
from work_pipeline.worker.handler_registry import HandlerContext

logger = logging.getLogger(__name__)

WORK_TYPE = "data_processing"
PAYLOAD_MODEL = DataProcessingPayload
SIMULATED_COST_MS = 100


async def handle(payload: DataProcessingPayload, context: HandlerContext) -> None:
    """Only ``update_profile`` does work; any other action is accepted as a no-op."""

    if payload.action != "update_profile":
        logger.debug("ignoring data processing action", extra={"action": payload.action})
        return
    if isinstance(payload.user_id, bool) or not isinstance(payload.user_id, (int, float)):
        raise MissingFieldError("userId")

    await context.sleep(SIMULATED_COST_MS / 1000)
    user_id = int(payload.user_id)
    logger.info("updated user profile", extra={"user_id": user_id})

    context.metrics.write_point(
        "user_activity",
        tags={"action": payload.action},
        fields={"user_id": user_id, "processing_time_ms": SIMULATED_COST_MS},
    )
