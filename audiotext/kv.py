"""Key-value store with TTL.

Sessions, password-reset tokens and rate-limit counters live here. Two
backends: Redis for anything shared between processes, and an in-process
store for development and tests.

Redis keys:
- session:{session_id}       - JSON session record
- user_sessions:{user_id}    - JSON list of session ids
- password_reset:{token}     - JSON reset record
- rate:{scope}:{client}:{n}  - fixed-window counter
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Dict, Optional, Protocol, Tuple

log = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def put(self, key: str, value: str, ttl: Optional[int] = None) -> None: ...

    def delete(self, key: str) -> None: ...

    def incr(self, key: str, ttl: int) -> int:
        """Atomically increment ``key`` and return the new value.

        The TTL is applied when the key is created by this call.
        """
        ...


class MemoryKeyValueStore:
    """Lock-guarded dict with lazy expiry. Single process only."""

    def __init__(self, clock=time.monotonic):
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def _live(self, key: str) -> Optional[Tuple[str, Optional[float]]]:
        item = self._data.get(key)
        if item is None:
            return None
        _, expires_at = item
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return None
        return item

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            item = self._live(key)
            return item[0] if item else None

    def put(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        expires_at = self._clock() + ttl if ttl else None
        with self._lock:
            self._data[key] = (value, expires_at)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def incr(self, key: str, ttl: int) -> int:
        with self._lock:
            item = self._live(key)
            if item is None:
                count, expires_at = 1, self._clock() + ttl
            else:
                count, expires_at = int(item[0]) + 1, item[1]
            self._data[key] = (str(count), expires_at)
            return count

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None


class RedisKeyValueStore:
    def __init__(self, redis_client):
        self._redis = redis_client

    @classmethod
    def from_url(cls, url: str) -> "RedisKeyValueStore":
        import redis

        return cls(redis.Redis.from_url(url, decode_responses=True))

    def get(self, key: str) -> Optional[str]:
        value = self._redis.get(key)
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def put(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        self._redis.set(key, value, ex=ttl)

    def delete(self, key: str) -> None:
        self._redis.delete(key)

    def incr(self, key: str, ttl: int) -> int:
        pipe = self._redis.pipeline()
        pipe.incr(key)
        pipe.expire(key, ttl, nx=True)
        results = pipe.execute()
        return int(results[0])


def make_kv_store(redis_url: Optional[str]) -> KeyValueStore:
    if redis_url:
        log.info("KV store: redis at %s", redis_url.split("@")[-1])
        return RedisKeyValueStore.from_url(redis_url)
    log.warning("KV store: in-process memory store (REDIS_URL unset); not for multi-worker deployments")
    return MemoryKeyValueStore()
