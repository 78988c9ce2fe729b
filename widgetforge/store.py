"""JSON-file persistence for saved prompts and widgets."""

from __future__ import annotations

import json
import logging
import os
import threading
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

log = logging.getLogger(__name__)

DATA_DIR = Path(os.getenv("DATA_DIR", "data"))

_LOCK = threading.Lock()


def _data_dir() -> Path:
    # Read at call time so tests can point DATA_DIR at tmp_path
    d = Path(os.getenv("DATA_DIR", str(DATA_DIR)))
    d.mkdir(parents=True, exist_ok=True)
    return d


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _read(name: str) -> List[Dict[str, Any]]:
    path = _data_dir() / name
    if not path.exists():
        return []
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except ValueError:
        log.warning("store.read: unparseable %s, treating as empty", path.name)
        return []
    return data if isinstance(data, list) else []


def _write(name: str, records: List[Dict[str, Any]]) -> None:
    path = _data_dir() / name
    tmp = path.with_suffix(".json.tmp")
    tmp.write_text(json.dumps(records, ensure_ascii=False, indent=2), encoding="utf-8")
    tmp.replace(path)


# Prompts

def list_prompts() -> List[Dict[str, Any]]:
    with _LOCK:
        return _read("prompts.json")


def add_prompt(content: str) -> Dict[str, Any]:
    with _LOCK:
        prompts = _read("prompts.json")
        new_id = int(time.time() * 1000)
        # Millisecond ids collide under fast successive calls
        taken = {p.get("id") for p in prompts}
        while new_id in taken:
            new_id += 1
        prompt = {"id": new_id, "content": content, "createdAt": _now_iso()}
        prompts.append(prompt)
        _write("prompts.json", prompts)
    log.info("store.add_prompt id=%d len=%d", prompt["id"], len(content))
    return prompt


def get_prompt(prompt_id: int) -> Dict[str, Any]:
    for p in list_prompts():
        if p.get("id") == prompt_id:
            return p
    raise KeyError(prompt_id)


# Widgets

def list_widgets(prompt_id: Optional[int] = None) -> List[Dict[str, Any]]:
    with _LOCK:
        widgets = _read("widgets.json")
    if prompt_id is None:
        return widgets
    return [w for w in widgets if w.get("promptId") == prompt_id]


def get_widget(widget_id: str) -> Dict[str, Any]:
    for w in list_widgets():
        if w.get("id") == widget_id:
            return w
    raise KeyError(widget_id)


def save_widget(name: str, data: Dict[str, Any], prompt_id: Optional[int] = None) -> Dict[str, Any]:
    widget: Dict[str, Any] = {
        "id": uuid.uuid4().hex,
        "name": name,
        "createdAt": _now_iso(),
        "data": {
            "html": data.get("html", ""),
            "css": data.get("css", ""),
            "javascript": data.get("javascript", ""),
        },
    }
    if prompt_id is not None:
        widget["promptId"] = prompt_id
    with _LOCK:
        widgets = _read("widgets.json")
        widgets.append(widget)
        _write("widgets.json", widgets)
    log.info("store.save_widget id=%s name=%r", widget["id"], name)
    return widget


def update_widget(widget_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
    """Merge ``changes`` into a stored widget. The id and createdAt never change."""
    with _LOCK:
        widgets = _read("widgets.json")
        for i, w in enumerate(widgets):
            if w.get("id") != widget_id:
                continue
            updated = dict(w)
            if changes.get("name") is not None:
                updated["name"] = changes["name"]
            if changes.get("promptId") is not None:
                updated["promptId"] = changes["promptId"]
            if changes.get("data") is not None:
                updated["data"] = {**w.get("data", {}), **changes["data"]}
            widgets[i] = updated
            _write("widgets.json", widgets)
            log.info("store.update_widget id=%s", widget_id)
            return updated
    raise KeyError(widget_id)


def delete_widget(widget_id: str) -> None:
    with _LOCK:
        widgets = _read("widgets.json")
        remaining = [w for w in widgets if w.get("id") != widget_id]
        if len(remaining) == len(widgets):
            raise KeyError(widget_id)
        _write("widgets.json", remaining)
    log.info("store.delete_widget id=%s", widget_id)
