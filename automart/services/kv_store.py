# automart/services/kv_store.py
import json
import threading
import uuid
from typing import Any, Callable, List

from automart.repos.storage_backends import BACKEND_ERRORS, StorageEvent
from automart.utils.logging import get_logger
from automart.utils.settings import STORAGE_PREFIX

logger = get_logger(__name__)

ChangeCallback = Callable[[str], None]


class KeyValueStore:
    """
    Namespaced JSON key/value store (localStorage semantics).

    - every key is stored as <prefix><key>
    - backend failures are logged, reads fall back to the default and
      writes return False
    - subscribe() delivers changes made by *other* stores on the same
      backend; a store never sees its own writes
    """

    def __init__(self, backend, prefix: str = STORAGE_PREFIX):
        self.backend = backend
        self.prefix = prefix
        self.origin = uuid.uuid4().hex
        self._subscribers: List[ChangeCallback] = []
        self._stop_listening: Callable[[], None] | None = None
        self._lock = threading.Lock()

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get(self, key: str, default: Any = None) -> Any:
        try:
            raw = self.backend.get(self._key(key))
        except BACKEND_ERRORS as e:
            logger.error(f"Storage get error for {key}: {e}")
            return default

        if raw is None:
            return default

        try:
            return json.loads(raw)
        except ValueError as e:
            logger.error(f"Corrupt value under {self._key(key)}: {e}")
            return default

    def set(self, key: str, value: Any) -> bool:
        try:
            raw = json.dumps(value)
        except (TypeError, ValueError) as e:
            logger.error(f"Value for {key} is not JSON serialisable: {e}")
            return False

        try:
            self.backend.set(self._key(key), raw)
            self.backend.publish(StorageEvent(self._key(key), self.origin))
        except BACKEND_ERRORS as e:
            logger.error(f"Storage set error for {key}: {e}")
            return False
        return True

    def remove(self, key: str) -> bool:
        try:
            self.backend.delete(self._key(key))
            self.backend.publish(StorageEvent(self._key(key), self.origin))
        except BACKEND_ERRORS as e:
            logger.error(f"Storage remove error for {key}: {e}")
            return False
        return True

    def keys(self, prefix: str = "") -> List[str]:
        """Unprefixed keys of this store starting with prefix."""
        try:
            full_keys = self.backend.keys(self._key(prefix))
        except BACKEND_ERRORS as e:
            logger.error(f"Storage keys error for {prefix}: {e}")
            return []
        return [k[len(self.prefix):] for k in full_keys]

    def clear(self) -> bool:
        """Removes only the keys under this store's prefix."""
        try:
            for full_key in self.backend.keys(self.prefix):
                self.backend.delete(full_key)
                self.backend.publish(StorageEvent(full_key, self.origin))
        except BACKEND_ERRORS as e:
            logger.error(f"Storage clear error: {e}")
            return False
        return True

    # =====================================================
    # change notification
    # =====================================================
    def subscribe(self, callback: ChangeCallback) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(callback)
            if self._stop_listening is None:
                self._stop_listening = self.backend.listen(self._on_event)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _on_event(self, event: StorageEvent) -> None:
        if event.origin == self.origin or not event.key.startswith(self.prefix):
            return

        key = event.key[len(self.prefix):]
        with self._lock:
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback(key)
            except Exception:
                logger.exception(f"Storage change subscriber failed for {key}")

    def close(self) -> None:
        with self._lock:
            stop, self._stop_listening = self._stop_listening, None
            self._subscribers.clear()
        if stop:
            stop()
