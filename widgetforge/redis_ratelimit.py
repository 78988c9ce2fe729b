import os
import time
from typing import Any, Optional, Tuple

import redis

from widgetforge import ratelimit

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")


class RedisRateLimiter:
    """
    The ratelimit window and key scheme, counted in Redis so that every API
    process shares one budget per client. Limits come from widgetforge.ratelimit.
    """

    def __init__(self, redis_url: Optional[str] = None, client: Optional[Any] = None) -> None:
        if client is None:
            # from_url is lazy; no connection until the first command
            client = redis.from_url((redis_url or REDIS_URL).strip() or REDIS_URL, decode_responses=True)
        self._client = client

    def check_and_increment(self, bucket: str, key: str, now: Optional[int] = None) -> Tuple[bool, int, int]:
        ts = int(time.time()) if now is None else now
        window_start, reset_ts = ratelimit.window_bounds(ts, ratelimit.WINDOW_SECONDS)
        counter = ratelimit.counter_key(bucket, key, window_start)
        pipe = self._client.pipeline(transaction=True)
        pipe.incr(counter)
        # The counter dies with its window
        pipe.expireat(counter, reset_ts)
        count, _ = pipe.execute()
        allowed, remaining = ratelimit.decide(int(count), ratelimit.MAX_REQUESTS)
        return allowed, remaining, reset_ts
