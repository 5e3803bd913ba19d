from pathlib import Path

import pytest

from sql_review.analyzer import analyze
from sql_review.history import HistoryNotFound, HistoryStore, build_preview, new_request_id


def _store(tmp_path: Path) -> HistoryStore:
    return HistoryStore(str(tmp_path / "data" / "history.db"))


def test_save_list_get_delete(tmp_path: Path):
    store = _store(tmp_path)
    first_script = "DELETE FROM orders;"
    first = analyze("mysql", first_script, ["select_star"])
    second = analyze("mongodb", "db.users.find({})")

    first_id = store.save(first, first_script, source="file", file_name="cleanup.sql")
    second_id = store.save(second, "db.users.find({})", source="stdin", request_id="req-1")
    assert second_id > first_id

    items, total = store.list()
    assert total == 2
    assert [item.id for item in items] == [second_id, first_id]
    assert items[0].engine == "mongodb"
    assert items[0].request_id == "req-1"
    assert items[1].file_name == "cleanup.sql"
    assert items[1].summary["errorCount"] == first.summary.error_count
    assert items[1].sql_preview == first_script

    detail = store.get(first_id)
    assert detail.sql_text == first_script
    assert detail.disabled_rules == ["select_star"]
    assert detail.check_result["rulesVersion"] == "v1.3"
    assert detail.to_dict()["checkResult"]["summary"] == first.summary.to_dict()

    assert store.delete([first_id, first_id, 0, -3]) == 1
    with pytest.raises(HistoryNotFound):
        store.get(first_id)
    assert store.delete([]) == 0
    store.close()


def test_list_clamps_limit_and_offset(tmp_path: Path):
    store = _store(tmp_path)
    result = analyze("mysql", "SELECT 1;")
    for _ in range(3):
        store.save(result, "SELECT 1;")

    items, total = store.list(limit=0, offset=-5)
    assert total == 3
    assert len(items) == 3
    items, _ = store.list(limit=1, offset=1)
    assert len(items) == 1
    items, _ = store.list(limit=1000)
    assert len(items) == 3
    store.close()


def test_preview_is_flattened_and_cut():
    preview = build_preview("SELECT 1;\r\n" * 40)
    assert "\n" not in preview and "\r" not in preview
    assert preview.endswith("...")
    assert len(preview) == 203
    assert build_preview("SELECT 1;") == "SELECT 1;"


def test_request_ids_are_prefixed():
    assert new_request_id().startswith("req-")
