"""Fixed-window rate limiting on top of the KV store's atomic increment.

Each (scope, client, window) gets its own counter key, so a request is one
``incr`` and there is no read-modify-write for concurrent requests to race on.
KV failures fail open: a broken counter must not lock everyone out.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from starlette.requests import Request

from audiotext.kv import KeyValueStore

log = logging.getLogger(__name__)


def client_ip(request: Request) -> str:
    ip = request.headers.get("CF-Connecting-IP")
    if ip:
        return ip.strip()
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimiter:
    def __init__(self, kv: KeyValueStore, *, window_sec: int = 60, clock: Callable[[], float] = time.time):
        self.kv = kv
        self.window_sec = window_sec
        self._clock = clock

    def hit(self, scope: str, client: str, limit: int) -> bool:
        """Count one request; ``False`` once ``limit`` requests were seen in the current window."""
        window = int(self._clock() // self.window_sec)
        key = f"rate:{scope}:{client}:{window}"
        try:
            count = self.kv.incr(key, ttl=self.window_sec)
        except Exception as e:
            log.warning("rate limit check failed (scope=%s): %s", scope, e)
            return True
        if count > limit:
            log.info("rate limit exceeded scope=%s client=%s count=%d", scope, client, count)
            return False
        return True

    def check_request(self, request: Request, scope: str, limit: Optional[int]) -> bool:
        if not limit:
            return True
        return self.hit(scope, client_ip(request), limit)
