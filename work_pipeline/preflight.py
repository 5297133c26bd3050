from __future__ import annotations

import logging

from work_pipeline.contracts import MetricsConnectorProtocol, MetricsSinkProtocol, SecretStoreProtocol
from work_pipeline.errors import FlushError

logger = logging.getLogger(__name__)


async def open_metrics_sink(
    secret_store: SecretStoreProtocol,
    connector: MetricsConnectorProtocol,
    secret_id: str,
) -> MetricsSinkProtocol:
    """Look up the metrics token and connect the sink. Raises ``PreflightError``."""

    credentials = await secret_store.get_secret(secret_id)
    return await connector.connect(credentials.token.get_secret_value())


async def flush_and_close(metrics: MetricsSinkProtocol) -> None:
    try:
        await metrics.flush()
    except FlushError as exc:
        logger.warning("failed to flush metrics", extra={"error": str(exc)})
    except Exception:  # noqa: BLE001
        logger.exception("unexpected error while flushing metrics")

    try:
        await metrics.close()
    except Exception:  # noqa: BLE001
        logger.exception("error closing metrics sink")
