from __future__ import annotations

import logging

from work_pipeline.contracts import EmailNotificationPayload
from work_pipeline.worker.handler_registry import HandlerContext

logger = logging.getLogger(__name__)

WORK_TYPE = "email_notification"
PAYLOAD_MODEL = EmailNotificationPayload
SIMULATED_COST_MS = 200


async def handle(payload: EmailNotificationPayload, context: HandlerContext) -> None:
    # stands in for the mail provider call
    await context.sleep(SIMULATED_COST_MS / 1000)
    logger.info("email notification sent", extra={"recipient": payload.email, "template": payload.template})

    context.metrics.write_point(
        "email_notifications",
        tags={"template": payload.template, "status": "sent"},
        fields={"recipient": payload.email, "delivery_time_ms": SIMULATED_COST_MS},
    )
