from __future__ import annotations

import logging
from typing import Any, Dict, List

from jsonschema.validators import Draft202012Validator

from widgetforge.errors import ValidationError
from widgetforge.models import GeneratedComponent

log = logging.getLogger(__name__)

_NON_EMPTY = {"type": "string", "minLength": 1}

THEME_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["primary", "secondary", "gradient"],
    "properties": {
        "primary": _NON_EMPTY,
        "secondary": _NON_EMPTY,
        "gradient": _NON_EMPTY,
    },
}

COMPONENT_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["html", "css", "javascript", "imageDescription"],
    "properties": {
        "html": _NON_EMPTY,
        "css": _NON_EMPTY,
        # Empty script is fine; a missing or null one is not
        "javascript": {"type": "string"},
        "imageDescription": _NON_EMPTY,
        "theme": THEME_SCHEMA,
    },
}

# Plain generation never looks at theme; the image variant requires a full one
_PLAIN_SCHEMA: Dict[str, Any] = {
    **COMPONENT_SCHEMA,
    "properties": {k: v for k, v in COMPONENT_SCHEMA["properties"].items() if k != "theme"},
}

_theme_validator = Draft202012Validator(THEME_SCHEMA)
_validators = {
    False: Draft202012Validator(_PLAIN_SCHEMA),
    True: Draft202012Validator({**COMPONENT_SCHEMA, "required": COMPONENT_SCHEMA["required"] + ["theme"]}),
}

_FIELD_ORDER = ["html", "css", "javascript", "imageDescription", "theme"]


def _path(parts: List[Any]) -> str:
    return ".".join(str(p) for p in parts) or "(root)"


def collect_errors(obj: Any, require_theme: bool = False) -> List[Dict[str, str]]:
    """
    Return every violation as {"path": "...", "message": "..."}.
    Each message names the offending field so callers see all of them at once.
    """
    if not isinstance(obj, dict):
        return [{"path": "(root)", "message": "component must be an object"}]

    errors: List[Dict[str, str]] = []
    seen = set()
    for err in _validators[bool(require_theme)].iter_errors(obj):
        base = list(err.absolute_path)
        if err.validator == "required":
            present = err.instance if isinstance(err.instance, dict) else {}
            found = [(_path(base + [name]), f"required property '{_path(base + [name])}' is missing")
                     for name in err.validator_value if name not in present]
        elif err.validator == "minLength":
            found = [(_path(base), f"required property '{_path(base)}' must be a non-empty string")]
        elif err.validator == "type":
            found = [(_path(base), f"property '{_path(base)}' must be of type {err.validator_value}")]
        else:
            found = [(_path(base), f"property '{_path(base)}': {err.message}")]
        for path, message in found:
            if (path, message) in seen:
                continue
            seen.add((path, message))
            errors.append({"path": path, "message": message})

    def _rank(e: Dict[str, str]) -> int:
        head = e["path"].split(".")[0]
        return _FIELD_ORDER.index(head) if head in _FIELD_ORDER else len(_FIELD_ORDER)

    return sorted(errors, key=_rank)


def validate_component(obj: Any, require_theme: bool = False) -> GeneratedComponent:
    """
    Raise ValidationError listing every problem; otherwise return the typed component.
    """
    errs = collect_errors(obj, require_theme=require_theme)
    if errs:
        message = "Invalid component structure: " + "; ".join(e["message"] for e in errs)
        presence = {}
        if isinstance(obj, dict):
            presence = {f"has_{k}": bool(obj.get(k)) for k in _FIELD_ORDER}
        log.error("validators.component failed errors=%d %s presence=%s", len(errs), message, presence)
        raise ValidationError(message, errs, context=presence)

    if not require_theme and "theme" in obj and not _theme_validator.is_valid(obj["theme"]):
        log.info("validators.component dropping incomplete theme=%r", obj["theme"])
        obj = {k: v for k, v in obj.items() if k != "theme"}

    component = GeneratedComponent.model_validate(obj)
    log.info(
        "validators.component ok html_len=%d css_len=%d js_len=%d image_desc_len=%d theme=%s",
        len(component.html),
        len(component.css),
        len(component.javascript),
        len(component.image_description),
        component.theme is not None,
    )
    return component
