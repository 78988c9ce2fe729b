from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Tuple

from widgetforge.errors import JsonRecoveryError, NoJsonFound

log = logging.getLogger(__name__)

SAMPLE_CHARS = 200

_FENCED_OBJECT_RE = re.compile(r"```(?:json)?\s*(\{[\s\S]*?\})\s*```", re.IGNORECASE)
_LINE_ENDING_RE = re.compile(r"\r\n?")
_BLANK_LINES_RE = re.compile(r"\n\s*\n")
_LEADING_JUNK_RE = re.compile(r"^[\s\ufeff]+")

_BARE_KEY_RE = re.compile(r"([{,]\s*)([A-Za-z_$][\w$]*)(\s*:)")
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")
# Balanced parens up to two deep, so rgba(...) inside linear-gradient(...) stays one value;
# a stray paren is still taken as plain text
_PAREN = r"\((?:[^()]|\([^()]*\))*\)"
_BARE_VALUE_RE = re.compile(
    r"(:\s*)((?:[^\s\"{\[\]},:()]|" + _PAREN + r"|[()])(?:[^,}\]()]|" + _PAREN + r"|[()])*?)(\s*(?:[,}\]]|$))"
)
_WS_RE = re.compile(r"\s+")
_NUMBER_RE = re.compile(r"-?(?:0|[1-9]\d*)(?:\.\d+)?(?:[eE][+-]?\d+)?")
_JSON_LITERALS = {"true", "false", "null"}


def extract_json_block(text: str) -> str:
    """Return the candidate object text from a raw completion.

    A fenced ```json block wins; otherwise everything from the first ``{`` to
    the last ``}`` inclusive. Raises NoJsonFound when there is no such region.
    """
    t = (text or "").strip()
    m = _FENCED_OBJECT_RE.search(t)
    if m:
        log.debug("llm_parsing.extract source=fence len=%d", len(m.group(1)))
        return m.group(1)
    start = t.find("{")
    end = t.rfind("}")
    if start == -1 or end == -1 or end < start:
        log.error("llm_parsing.extract no_json raw_len=%d sample=%r", len(t), t[:SAMPLE_CHARS])
        raise NoJsonFound(
            "Failed to extract JSON block from model response",
            context={"raw_length": len(t), "sample": t[:SAMPLE_CHARS]},
        )
    log.debug("llm_parsing.extract source=braces start=%d end=%d", start, end)
    return t[start : end + 1]


def normalize_text(text: str) -> str:
    """Strip BOMs, unify line endings, collapse blank lines. Idempotent."""
    s = _LINE_ENDING_RE.sub("\n", text or "")
    s = _BLANK_LINES_RE.sub("\n", s)
    s = _LEADING_JUNK_RE.sub("", s)
    return s.rstrip()


def _split_string_literals(text: str) -> List[Tuple[bool, str]]:
    """Split text into (is_string_literal, chunk) pieces.

    String literals keep their quotes. An unterminated literal runs to the end.
    """
    parts: List[Tuple[bool, str]] = []
    buf: List[str] = []
    in_str = False
    esc = False
    for ch in text:
        if in_str:
            buf.append(ch)
            if esc:
                esc = False
            elif ch == "\\":
                esc = True
            elif ch == '"':
                parts.append((True, "".join(buf)))
                buf = []
                in_str = False
            continue
        if ch == '"':
            if buf:
                parts.append((False, "".join(buf)))
            buf = [ch]
            in_str = True
            continue
        buf.append(ch)
    if buf:
        parts.append((in_str, "".join(buf)))
    return parts


def _quote_bare_value(m: re.Match[str]) -> str:
    value = m.group(2).rstrip()
    if value in _JSON_LITERALS or _NUMBER_RE.fullmatch(value):
        return m.group(0)
    return f"{m.group(1)}{json.dumps(value)}{m.group(3)}"


def _collapse_literal_whitespace(literal: str) -> str:
    # Raw newlines/tabs are illegal inside JSON strings; plain spaces are content.
    return re.sub(r"[ \t]*[\r\n\t][\s]*", " ", literal)


def repair_json(text: str) -> str:
    """Apply the ordered syntax repairs to a candidate object string.

    (a) trim to the outermost braces, (b) quote bare keys, (c) drop trailing
    commas, (d) quote bare scalar values, (e) collapse whitespace. Rules (b)
    to (e) only touch text outside string literals.
    """
    s = text or ""
    start = s.find("{")
    end = s.rfind("}")
    if start != -1 and end > start:
        s = s[start : end + 1]

    out: List[str] = []
    for is_literal, chunk in _split_string_literals(s):
        if is_literal:
            out.append(_collapse_literal_whitespace(chunk))
            continue
        chunk = _BARE_KEY_RE.sub(r'\1"\2"\3', chunk)
        chunk = _TRAILING_COMMA_RE.sub(r"\1", chunk)
        chunk = _BARE_VALUE_RE.sub(_quote_bare_value, chunk)
        chunk = _WS_RE.sub(" ", chunk)
        out.append(chunk)
    return "".join(out)


def _failure_cause(raw: str, parser_message: str) -> str:
    if "```" in raw:
        return "Contains markdown code blocks"
    if "`" in raw:
        return "Contains unescaped backticks"
    return parser_message


def recover_json(raw: str) -> Dict[str, Any]:
    """Recover one JSON object from free-form model output or raise.

    Strict parsing is always tried first so that valid JSON never goes
    through the regex repairs.
    """
    candidate = normalize_text(extract_json_block(raw))
    try:
        parsed = json.loads(candidate)
        log.debug("llm_parsing.parse pass=strict ok len=%d", len(candidate))
        return parsed
    except json.JSONDecodeError as first_err:
        log.debug("llm_parsing.parse pass=strict failed err=%s", first_err)

    repaired = repair_json(candidate)
    try:
        parsed = json.loads(repaired)
    except json.JSONDecodeError as err:
        parser_message = str(err)
        has_fences = "```" in (raw or "")
        has_backticks = "`" in (raw or "")
        sample = repaired[:SAMPLE_CHARS]
        message = (
            f"Invalid JSON format - {_failure_cause(raw or '', parser_message)} "
            f"(sample: {sample!r})"
        )
        log.error(
            "llm_parsing.parse failed length=%d fences=%s backticks=%s err=%s sample=%r",
            len(repaired),
            has_fences,
            has_backticks,
            parser_message,
            sample,
        )
        raise JsonRecoveryError(
            message,
            parser_message=parser_message,
            has_fences=has_fences,
            has_backticks=has_backticks,
            sample=sample,
            context={"length": len(repaired), "raw_length": len(raw or "")},
        ) from err
    log.debug("llm_parsing.parse pass=repaired ok len=%d", len(repaired))
    return parsed
