"""Fixed-window request limiting per (bucket, client).

Windows are aligned to multiples of WINDOW_SECONDS so the in-process counter
here and the Redis counter in redis_ratelimit agree on when a window resets.
Every attempt is counted; a client is allowed while its count is within
MAX_REQUESTS.
"""

from __future__ import annotations

import os
import threading
import time
from typing import Dict, Tuple

try:
    WINDOW_SECONDS: int = int(os.getenv("RATE_WINDOW_SECONDS", "3600"))
except ValueError:
    WINDOW_SECONDS = 3600
try:
    MAX_REQUESTS: int = int(os.getenv("RATE_MAX_REQUESTS", "30"))
except ValueError:
    MAX_REQUESTS = 30

# counter key -> (count, reset_ts)
_store: Dict[str, Tuple[int, int]] = {}
_lock = threading.Lock()


def window_bounds(now: int, window_seconds: int) -> Tuple[int, int]:
    """(window_start, reset_ts) of the window containing ``now``."""
    start = now - (now % window_seconds)
    return start, start + window_seconds


def counter_key(bucket: str, key: str, window_start: int) -> str:
    bucket = (bucket or "").strip() or "default"
    key = (key or "").strip() or "anon"
    return f"widgetforge:rl:{bucket}:{key}:{window_start}"


def decide(count: int, limit: int) -> Tuple[bool, int]:
    """(allowed, remaining) after the ``count``-th attempt in a window."""
    return count <= limit, max(0, limit - count)


def _prune(now: int) -> None:
    for k in [k for k, (_, reset_ts) in _store.items() if reset_ts <= now]:
        del _store[k]


def check_and_increment(bucket: str, key: str, now: int | None = None) -> Tuple[bool, int, int]:
    """Count one attempt; returns (allowed, remaining, reset_ts)."""
    ts = int(time.time()) if now is None else now
    window_start, reset_ts = window_bounds(ts, WINDOW_SECONDS)
    k = counter_key(bucket, key, window_start)
    with _lock:
        if k not in _store:
            _prune(ts)
        count = _store.get(k, (0, reset_ts))[0] + 1
        _store[k] = (count, reset_ts)
    allowed, remaining = decide(count, MAX_REQUESTS)
    return allowed, remaining, reset_ts


def _reset() -> None:
    """Used by tests to clear state."""
    with _lock:
        _store.clear()
