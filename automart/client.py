# automart/client.py
"""
Application root of the shop client. Builds every service once and hands
them to each other explicitly; nothing here is a module level singleton.
"""
import requests

from automart.repos.cache_storage import CacheStorage
from automart.repos.storage_backends import MemoryBackend, RedisBackend
from automart.services.api_client import ApiClient
from automart.services.cart_service import CartService
from automart.services.checkout_service import CheckoutService
from automart.services.kv_store import KeyValueStore
from automart.services.offline_cache import CachingAdapter, OfflineCacheManager
from automart.services.offline_queue import OfflineOrderQueue
from automart.services.preferences_service import PreferencesService
from automart.utils.logging import get_logger
from automart.utils.settings import API_BASE_URL, STORAGE_PREFIX

logger = get_logger(__name__)


class ShopApp:
    def __init__(self, backend, base_url: str | None = None, session: requests.Session | None = None, manifest=None):
        self.backend = backend
        self.store = KeyValueStore(backend, prefix=STORAGE_PREFIX)

        self.api = ApiClient(base_url=base_url or API_BASE_URL, session=session)
        self.queue = OfflineOrderQueue(self.store)
        self.preferences = PreferencesService(self.store)
        self.cart = CartService(self.store)
        self.checkout = CheckoutService(self.cart, self.api, self.queue, self.preferences)

        # background context; its network is the plain session, before mounting
        self.cache_manager = OfflineCacheManager(
            CacheStorage(backend),
            api=self.api,
            queue=self.queue,
            manifest=manifest,
        )

    @classmethod
    def from_settings(cls) -> "ShopApp":
        return cls(RedisBackend())

    @classmethod
    def in_memory(cls, **kwargs) -> "ShopApp":
        return cls(MemoryBackend(), **kwargs)

    def enable_offline_cache(self) -> None:
        """Installs/activates the cache layer and routes API reads through it."""
        self.cache_manager.start()
        adapter = CachingAdapter(self.cache_manager)
        self.api.session.mount("http://", adapter)
        self.api.session.mount("https://", adapter)
        logger.info("Offline cache enabled for API session")

    def close(self) -> None:
        self.cart.close()
        self.cache_manager.close()
        self.store.close()
        self.api.session.close()
