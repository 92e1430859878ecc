# automart/tasks/background_sync.py
from automart.celery_worker import celery_app
from automart.client import ShopApp
from automart.services.checkout_service import now_ms
from automart.services.offline_cache import SYNC_TAG
from automart.utils.logging import get_logger

logger = get_logger(__name__)

NETWORK_STATE_KEY = "network_state"

_shop: ShopApp | None = None


def get_shop() -> ShopApp:
    """One shop per worker process, sharing the redis store with the clients."""
    global _shop
    if _shop is None:
        _shop = ShopApp.from_settings()
    return _shop


@celery_app.task(name="automart.tasks.background_sync.sync_offline_orders_task")
def sync_offline_orders_task():
    shop = get_shop()
    pending = len(shop.queue)
    logger.info(f"Sync offline orders task started, {pending} pending")

    report = shop.cache_manager.on_sync(SYNC_TAG)
    return {"synced": report.synced, "failed": report.failed}


@celery_app.task(name="automart.tasks.background_sync.check_connectivity_task")
def check_connectivity_task():
    """
    Connectivity watchdog. An offline -> online transition is the signal
    that starts the background sync of queued orders.
    """
    shop = get_shop()
    previous = shop.store.get(NETWORK_STATE_KEY) or {}
    was_online = previous.get("isOnline")

    online = shop.api.health_check()
    state = {
        "isOnline": online,
        "lastSync": now_ms() if online else previous.get("lastSync"),
    }
    shop.store.set(NETWORK_STATE_KEY, state)

    restored = online and was_online is not True
    if restored and len(shop.queue):
        logger.info("Connectivity restored, triggering background sync")
        sync_offline_orders_task.delay()
    elif not online:
        logger.warning("Backend is not responding, orders stay queued")

    return {"online": online, "restored": restored}
