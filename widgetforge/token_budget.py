from __future__ import annotations

import logging
import math
import os

log = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4
MIN_CONTEXT_CHARS = 1000
try:
    TOKEN_CEILING = int(os.getenv("TOKEN_CEILING", "14000"))
except ValueError:
    TOKEN_CEILING = 14000


def estimate_tokens(*texts: str) -> int:
    """Rough token count: 1 token ~ 4 characters. Not a tokenizer."""
    total = sum(len(t or "") for t in texts)
    return math.ceil(total / CHARS_PER_TOKEN)


def fit_context(
    prompt: str,
    additional_context: str,
    system_prompt_length: int,
    ceiling: int | None = None,
) -> str:
    """Return ``additional_context``, truncated when the request would exceed the ceiling.

    The prompt itself is never shortened; only the auxiliary context gives way,
    and it always keeps at least MIN_CONTEXT_CHARS characters.
    """
    limit = TOKEN_CEILING if ceiling is None else ceiling
    context = additional_context or ""
    prompt_len = len(prompt or "")
    estimate = math.ceil((prompt_len + len(context) + system_prompt_length) / CHARS_PER_TOKEN)
    if estimate <= limit:
        return context
    max_chars = max(MIN_CONTEXT_CHARS, limit * CHARS_PER_TOKEN - prompt_len - system_prompt_length)
    log.warning(
        "token_budget.truncate estimate=%d ceiling=%d context_len=%d -> %d",
        estimate,
        limit,
        len(context),
        min(len(context), max_chars),
    )
    return context[:max_chars]
