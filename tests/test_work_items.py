from __future__ import annotations

from pathlib import Path

import pytest

from work_pipeline.errors import ConfigError
from work_pipeline.work_items import default_work_items, load_work_items


def test_default_batch_covers_every_builtin_type_with_unique_ids() -> None:
    items = default_work_items()

    assert [item.id for item in items] == [1, 2, 3, 4, 5]
    assert {item.type for item in items} == {
        "data_processing",
        "email_notification",
        "data_cleanup",
        "report_generation",
        "backup_task",
    }


def test_loads_items_from_yaml_list(tmp_path: Path) -> None:
    path = tmp_path / "items.yaml"
    path.write_text(
        """
- id: 10
  type: backup_task
  payload:
    database: main
    retention: 14
- id: 11
  type: data_cleanup
""",
        encoding="utf-8",
    )

    items = load_work_items(str(path))

    assert [(item.id, item.type) for item in items] == [(10, "backup_task"), (11, "data_cleanup")]
    assert items[0].payload == {"database": "main", "retention": 14}
    assert items[1].payload == {}


def test_loads_items_from_items_key(tmp_path: Path) -> None:
    path = tmp_path / "items.yaml"
    path.write_text("items:\n  - {id: 1, type: email_notification}\n", encoding="utf-8")

    assert [item.id for item in load_work_items(str(path))] == [1]


@pytest.mark.parametrize(
    ("content", "message"),
    [
        ("id: 1\n", "must contain a list of items"),
        ("- just-a-string\n", "must be a map"),
        ("- {id: one, type: backup_task}\n", "is invalid: id:"),
        ("- {id: 1}\n", "is invalid: type:"),
        ("- {id: 1, type: a}\n- {id: 1, type: b}\n", "must be unique"),
        ("- [unclosed\n", "cannot read work items file"),
    ],
)
def test_rejects_malformed_files(tmp_path: Path, content: str, message: str) -> None:
    path = tmp_path / "items.yaml"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ConfigError) as exc_info:
        load_work_items(str(path))

    assert message in str(exc_info.value)


def test_missing_file_is_a_config_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_work_items(str(tmp_path / "absent.yaml"))
