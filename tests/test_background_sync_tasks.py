from unittest.mock import MagicMock, patch

import pytest

from automart.client import ShopApp
from automart.domain.errors import NetworkError
from automart.tasks import background_sync
from automart.tasks.background_sync import (
    NETWORK_STATE_KEY,
    check_connectivity_task,
    sync_offline_orders_task,
)


@pytest.fixture
def shop():
    app = ShopApp.in_memory(manifest=[])
    app.api = app.cache_manager.api = MagicMock()
    with patch.object(background_sync, "get_shop", return_value=app):
        yield app
    app.close()


def queue_orders(shop, *order_ids):
    for order_id in order_ids:
        shop.queue.enqueue({"orderId": order_id, "lockerId": "locker-001"})


class TestSyncTask:
    def test_confirmed_orders_are_removed(self, shop):
        queue_orders(shop, "ORD-1", "ORD-2")
        shop.api.complete_order.return_value = {"status": "ok"}

        result = sync_offline_orders_task()

        assert result == {"synced": ["ORD-1", "ORD-2"], "failed": []}
        assert len(shop.queue) == 0

    def test_failures_stay_for_next_run(self, shop):
        queue_orders(shop, "ORD-1")
        shop.api.complete_order.side_effect = NetworkError("still offline")

        result = sync_offline_orders_task()

        assert result == {"synced": [], "failed": ["ORD-1"]}
        assert len(shop.queue) == 1


class TestConnectivityTask:
    def test_coming_online_with_queued_orders_triggers_sync(self, shop):
        queue_orders(shop, "ORD-1")
        shop.store.set(NETWORK_STATE_KEY, {"isOnline": False, "lastSync": None})
        shop.api.health_check.return_value = True

        with patch.object(sync_offline_orders_task, "delay") as delay:
            result = check_connectivity_task()

        assert result == {"online": True, "restored": True}
        delay.assert_called_once_with()
        state = shop.store.get(NETWORK_STATE_KEY)
        assert state["isOnline"] is True
        assert isinstance(state["lastSync"], int)

    def test_staying_online_does_not_trigger_sync(self, shop):
        queue_orders(shop, "ORD-1")
        shop.store.set(NETWORK_STATE_KEY, {"isOnline": True, "lastSync": 1})
        shop.api.health_check.return_value = True

        with patch.object(sync_offline_orders_task, "delay") as delay:
            result = check_connectivity_task()

        assert result["restored"] is False
        delay.assert_not_called()

    def test_empty_queue_does_not_trigger_sync(self, shop):
        shop.api.health_check.return_value = True

        with patch.object(sync_offline_orders_task, "delay") as delay:
            assert check_connectivity_task()["restored"] is True

        delay.assert_not_called()

    def test_offline_keeps_last_sync(self, shop):
        shop.store.set(NETWORK_STATE_KEY, {"isOnline": True, "lastSync": 42})
        shop.api.health_check.return_value = False

        with patch.object(sync_offline_orders_task, "delay") as delay:
            result = check_connectivity_task()

        assert result == {"online": False, "restored": False}
        assert shop.store.get(NETWORK_STATE_KEY) == {"isOnline": False, "lastSync": 42}
        delay.assert_not_called()
