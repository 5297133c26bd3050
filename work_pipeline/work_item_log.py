from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from work_pipeline.contracts import UNKNOWN, ProcessedOutcome
from work_pipeline.database import Database

logger = logging.getLogger(__name__)


class WorkItemLogRepository:
    """Append-only Postgres log with one row per processed queue message."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def ensure_schema(self) -> None:
        await self._db.execute(
            """
            CREATE TABLE IF NOT EXISTS work_item_log (
                id SERIAL PRIMARY KEY,
                work_id INTEGER,
                work_type VARCHAR(50),
                message_id VARCHAR(255),
                status VARCHAR(20) DEFAULT 'processing',
                payload JSONB,
                processed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                processing_duration_ms INTEGER,
                error_message TEXT
            )
            """
        )

    async def record(self, outcome: ProcessedOutcome, *, payload: Mapping[str, Any] | None, duration_ms: int) -> None:
        try:
            await self._db.execute(
                """
                INSERT INTO work_item_log (work_id, work_type, message_id, status, payload, processing_duration_ms, error_message)
                VALUES ($1, $2, $3, $4, $5::jsonb, $6, $7)
                """,
                None if outcome.work_id == UNKNOWN else outcome.work_id,
                outcome.type,
                outcome.message_id,
                outcome.status.value,
                json.dumps(dict(payload or {})),
                duration_ms,
                outcome.error,
            )
        except Exception:  # noqa: BLE001
            logger.exception("failed to record work item processing", extra={"message_id": outcome.message_id})
