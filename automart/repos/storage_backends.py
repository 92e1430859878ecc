# automart/repos/storage_backends.py
import json
import re
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List

import redis
from redis.exceptions import RedisError

from automart.utils.logging import get_logger
from automart.utils.retry import redis_retry
from automart.utils.settings import REDIS_URL, STORAGE_PREFIX

logger = get_logger(__name__)

# what a store may swallow (log + report) instead of crashing the caller
BACKEND_ERRORS = (RedisError, OSError)

_GLOB_CHARS = re.compile(r"([*?\[\]\\])")


@dataclass(frozen=True)
class StorageEvent:
    key: str  # full, prefixed key
    origin: str | None = None


Listener = Callable[[StorageEvent], None]


class MemoryBackend:
    """
    Process-local backend. Several stores sharing one instance behave like
    browser tabs sharing localStorage: writes are pushed to every listener.
    """

    def __init__(self):
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()
        self._listeners: List[Listener] = []

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            return [k for k in self._data if k.startswith(prefix)]

    def publish(self, event: StorageEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(event)

    def listen(self, callback: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(callback)

        def stop():
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return stop


class RedisBackend:
    """
    Shared backend for separate processes (shop client, celery worker).
    Change events go over a pub/sub channel, received on a listener thread.
    """

    def __init__(
        self,
        url: str | None = None,
        client: redis.Redis | None = None,
        channel: str | None = None,
    ):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )
        self.channel = channel or f"{STORAGE_PREFIX}storage-events"

    @redis_retry()
    def get(self, key: str) -> str | None:
        return self.redis.get(key)

    @redis_retry()
    def set(self, key: str, value: str) -> None:
        self.redis.set(key, value)

    @redis_retry()
    def delete(self, key: str) -> bool:
        return bool(self.redis.delete(key))

    @redis_retry()
    def keys(self, prefix: str = "") -> List[str]:
        pattern = _GLOB_CHARS.sub(r"\\\1", prefix) + "*"
        return list(self.redis.scan_iter(match=pattern))

    @redis_retry()
    def publish(self, event: StorageEvent) -> None:
        self.redis.publish(
            self.channel,
            json.dumps({"key": event.key, "origin": event.origin}),
        )

    def listen(self, callback: Listener) -> Callable[[], None]:
        pubsub = self.redis.pubsub(ignore_subscribe_messages=True)

        def handler(message):
            try:
                data = json.loads(message["data"])
                event = StorageEvent(key=data["key"], origin=data.get("origin"))
            except (TypeError, ValueError, KeyError) as e:
                logger.warning(f"Ignoring malformed storage event on {self.channel}: {e}")
                return
            callback(event)

        pubsub.subscribe(**{self.channel: handler})
        thread = pubsub.run_in_thread(sleep_time=0.1, daemon=True)
        logger.info(f"Listening for storage events on {self.channel}")

        def stop():
            thread.stop()
            pubsub.close()

        return stop
