# automart/services/offline_queue.py
import time
from typing import Any, Dict, List, Mapping

from automart.domain.errors import OfflineQueueError
from automart.domain.schemas import CheckoutPayload
from automart.services.kv_store import KeyValueStore
from automart.utils.logging import get_logger

logger = get_logger(__name__)


class OfflineOrderQueue:
    """
    Orders that could not be submitted, kept in the shared store until the
    background sync confirms them.

    One key per order (offline_orders:<orderId>): the shop client enqueues
    and the worker removes from separate processes, and neither rewrites
    entries of the other.
    """

    KEY_PREFIX = "offline_orders:"

    def __init__(self, store: KeyValueStore):
        self.store = store

    def _key(self, order_id: str) -> str:
        return f"{self.KEY_PREFIX}{order_id}"

    def enqueue(self, order: CheckoutPayload | Mapping[str, Any]) -> str:
        """Raises OfflineQueueError when the order could not be persisted."""
        data = order.to_wire() if isinstance(order, CheckoutPayload) else dict(order)
        order_id = data.get("orderId")
        if not order_id:
            raise ValueError("Offline order needs an orderId")

        entry = {"queuedAt": time.time(), "order": data}
        if not self.store.set(self._key(order_id), entry):
            raise OfflineQueueError(f"Order {order_id} could not be persisted in the offline queue")

        logger.info(f"Order {order_id} queued for background sync")
        return order_id

    def pending(self) -> List[Dict[str, Any]]:
        """Queued orders, oldest first."""
        entries = []
        for key in self.store.keys(self.KEY_PREFIX):
            entry = self.store.get(key)
            # removed between listing and reading
            if isinstance(entry, dict) and isinstance(entry.get("order"), dict):
                entries.append(entry)
        entries.sort(key=lambda e: e.get("queuedAt") or 0)
        return [e["order"] for e in entries]

    def remove(self, order_id: str) -> bool:
        key = self._key(order_id)
        if self.store.get(key) is None:
            return False
        return self.store.remove(key)

    def __len__(self) -> int:
        return len(self.store.keys(self.KEY_PREFIX))
