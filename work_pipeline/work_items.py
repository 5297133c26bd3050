from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import ValidationError

from work_pipeline.contracts import WorkItem, describe_validation_error
from work_pipeline.errors import ConfigError


def default_work_items() -> list[WorkItem]:
    """Sample batch covering every built-in work type."""

    return [
        WorkItem(id=1, type="data_processing", payload={"userId": 123, "action": "update_profile"}),
        WorkItem(id=2, type="email_notification", payload={"email": "user@example.com", "template": "welcome"}),
        WorkItem(id=3, type="data_cleanup", payload={"table": "old_logs", "days": 30}),
        WorkItem(id=4, type="report_generation", payload={"reportType": "monthly", "userId": 456}),
        WorkItem(id=5, type="backup_task", payload={"database": "main", "retention": 7}),
    ]


def load_work_items(path: str) -> list[WorkItem]:
    try:
        parsed = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"cannot read work items file {path}: {exc}") from exc

    if isinstance(parsed, dict):
        parsed = parsed.get("items")
    if not isinstance(parsed, list):
        raise ConfigError(f"work items file {path} must contain a list of items")

    items: list[WorkItem] = []
    for index, raw in enumerate(parsed):
        if not isinstance(raw, dict):
            raise ConfigError(f"work item #{index} in {path} must be a map")
        try:
            items.append(WorkItem.model_validate(raw))
        except ValidationError as exc:
            raise ConfigError(f"work item #{index} in {path} is invalid: {describe_validation_error(exc)}") from exc

    ids = [item.id for item in items]
    if len(ids) != len(set(ids)):
        raise ConfigError(f"work item ids in {path} must be unique within a batch")
    return items
