from __future__ import annotations

from json_store import atomic_write_json, read_json


def test_atomic_write_creates_parents_and_leaves_no_temp_file(tmp_path):
    path = tmp_path / "nested" / "doc.json"
    atomic_write_json(path, {"b": 1, "a": "ü"})

    assert read_json(path) == {"b": 1, "a": "ü"}
    assert path.read_text(encoding="utf-8") == '{\n  "b": 1,\n  "a": "ü"\n}\n'
    assert [p.name for p in path.parent.iterdir()] == ["doc.json"]


def test_read_json_returns_none_for_unusable_files(tmp_path):
    assert read_json(tmp_path / "missing.json") is None

    empty = tmp_path / "empty.json"
    empty.write_text("   \n", encoding="utf-8")
    assert read_json(empty) is None

    broken = tmp_path / "broken.json"
    broken.write_text('{"half": ', encoding="utf-8")
    assert read_json(broken) is None
