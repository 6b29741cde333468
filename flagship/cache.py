import os
import threading
from typing import Dict, Optional, Protocol

import redis

REDIS_URL = os.getenv("FLAGSHIP_REDIS_URL", "redis://localhost:6379/0")

KEY_PREFIX = "flagship:snapshot"


class SnapshotCache(Protocol):
    """Durable copy of the last accepted payload, keyed by API key."""

    def load(self, api_key: str) -> Optional[str]: ...

    def save(self, api_key: str, payload: str) -> None: ...

    def clear(self, api_key: str) -> None: ...


class MemorySnapshotCache:
    def __init__(self):
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def load(self, api_key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(api_key)

    def save(self, api_key: str, payload: str) -> None:
        with self._lock:
            self._data[api_key] = payload

    def clear(self, api_key: str) -> None:
        with self._lock:
            self._data.pop(api_key, None)


class RedisSnapshotCache:
    def __init__(self, client: Optional[redis.Redis] = None, url: str = REDIS_URL):
        self._redis = client if client is not None else redis.Redis.from_url(url, decode_responses=True)

    @staticmethod
    def _key(api_key: str) -> str:
        return f"{KEY_PREFIX}:{api_key}"

    def load(self, api_key: str) -> Optional[str]:
        data = self._redis.get(self._key(api_key))
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        return data or None

    def save(self, api_key: str, payload: str) -> None:
        self._redis.set(self._key(api_key), payload)

    def clear(self, api_key: str) -> None:
        self._redis.delete(self._key(api_key))
