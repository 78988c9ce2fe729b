import json

import pytest

from widgetforge import store


@pytest.fixture(autouse=True)
def data_dir(monkeypatch, tmp_path):
    monkeypatch.setenv("DATA_DIR", str(tmp_path))
    return tmp_path


def test_prompts_roundtrip(data_dir):
    assert store.list_prompts() == []
    first = store.add_prompt("a weather card")
    second = store.add_prompt("a todo list")
    assert isinstance(first["id"], int)
    assert first["id"] != second["id"]
    assert first["createdAt"].endswith("Z")
    assert [p["content"] for p in store.list_prompts()] == ["a weather card", "a todo list"]
    assert store.get_prompt(second["id"]) == second
    on_disk = json.loads((data_dir / "prompts.json").read_text(encoding="utf-8"))
    assert on_disk == [first, second]
    assert not list(data_dir.glob("*.tmp"))


def test_missing_prompt_raises_key_error():
    with pytest.raises(KeyError):
        store.get_prompt(123)


def test_widgets_filter_by_prompt():
    a = store.save_widget("A", {"html": "<p>a</p>", "css": "", "javascript": ""}, prompt_id=1)
    b = store.save_widget("B", {"html": "<p>b</p>"})
    assert "promptId" not in b
    assert b["data"] == {"html": "<p>b</p>", "css": "", "javascript": ""}
    assert [w["id"] for w in store.list_widgets()] == [a["id"], b["id"]]
    assert store.list_widgets(prompt_id=1) == [a]
    assert store.list_widgets(prompt_id=2) == []


def test_update_preserves_id_and_merges_data():
    w = store.save_widget("A", {"html": "<p>a</p>", "css": "p{}", "javascript": ""})
    updated = store.update_widget(w["id"], {"name": "Renamed", "data": {"css": "p{color:red}"}})
    assert updated["id"] == w["id"]
    assert updated["createdAt"] == w["createdAt"]
    assert updated["name"] == "Renamed"
    assert updated["data"] == {"html": "<p>a</p>", "css": "p{color:red}", "javascript": ""}
    assert store.get_widget(w["id"]) == updated


def test_update_and_delete_missing_widget():
    with pytest.raises(KeyError):
        store.update_widget("nope", {"name": "x"})
    with pytest.raises(KeyError):
        store.delete_widget("nope")


def test_delete_widget():
    w = store.save_widget("A", {})
    store.delete_widget(w["id"])
    with pytest.raises(KeyError):
        store.get_widget(w["id"])
    assert store.list_widgets() == []


def test_corrupt_file_reads_as_empty(data_dir):
    (data_dir / "widgets.json").write_text("{not json", encoding="utf-8")
    assert store.list_widgets() == []
