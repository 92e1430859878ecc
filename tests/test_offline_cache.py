from concurrent.futures import Executor, Future
from unittest.mock import MagicMock

import pytest
import requests

from automart.domain.errors import CacheInstallError, NetworkError, ServerError
from automart.repos.cache_storage import CachedResponse, CacheStorage
from automart.repos.storage_backends import MemoryBackend
from automart.services.kv_store import KeyValueStore
from automart.services.offline_cache import (
    SYNC_TAG,
    CachingAdapter,
    FetchRequest,
    OfflineCacheManager,
    to_requests_response,
)
from automart.services.offline_queue import OfflineOrderQueue

ORIGIN = "http://shop.test"
STATIC = "static-v2"
DYNAMIC = "dynamic-v2"


class FakeNetwork:
    """Network stub: canned responses per URL, records every call."""

    def __init__(self, responses=None, offline=False):
        self.responses = dict(responses or {})
        self.offline = offline
        self.calls = []

    def __call__(self, request):
        self.calls.append(request.url)
        if self.offline:
            raise NetworkError(f"offline: {request.url}")
        if request.url not in self.responses:
            return CachedResponse(url=request.url, status=404, body=b"not found")
        status, body = self.responses[request.url]
        return CachedResponse(url=request.url, status=status, body=body)


class InlineExecutor(Executor):
    """Runs submitted work right away, on the calling thread."""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        future.set_result(fn(*args, **kwargs))
        return future


class KeyCountingBackend(MemoryBackend):
    def __init__(self):
        super().__init__()
        self.key_listings = 0

    def keys(self, prefix=""):
        self.key_listings += 1
        return super().keys(prefix)


def never_called(request):
    raise AssertionError(f"network must not be used for {request.url}")


@pytest.fixture
def storage(backend):
    return CacheStorage(backend)


def make_manager(storage, network, **kwargs):
    manager = OfflineCacheManager(
        storage,
        network=network,
        origin=ORIGIN,
        static_cache=STATIC,
        dynamic_cache=DYNAMIC,
        cache_name="automart-test",
        manifest=kwargs.pop("manifest", []),
        **kwargs,
    )
    manager.activate()
    return manager


def cached(url, body=b"cached", status=200):
    return CachedResponse(url=url, status=status, body=body)


# ============= strategy selection =============


class TestStrategySelection:
    @pytest.fixture
    def manager(self, storage):
        return make_manager(storage, never_called)

    @pytest.mark.parametrize(
        "url, method, expected",
        [
            ("/order/complete", "POST", "passthrough"),
            ("/api/order/complete", "GET", "passthrough"),
            ("/health", "GET", "passthrough"),
            ("/health/live", "GET", "passthrough"),
            ("/healthy-snacks.html", "GET", "stale_while_revalidate"),
            ("/api-docs.html", "GET", "stale_while_revalidate"),
            ("https://www.google-analytics.com/collect", "GET", "passthrough"),
            ("/css/style.css", "GET", "cache_first"),
            ("/js/app.js", "GET", "cache_first"),
            ("/img/logo.PNG", "GET", "cache_first"),
            ("https://fonts.googleapis.com/css2?family=Inter", "GET", "cache_first"),
            ("/products?category=all", "GET", "network_first"),
            ("/orders/ORD-1", "GET", "network_first"),
            ("/locations", "GET", "network_first"),
            ("/", "GET", "stale_while_revalidate"),
            ("/about.html", "GET", "stale_while_revalidate"),
            ("/data.json", "GET", "stale_while_revalidate"),
        ],
    )
    def test_first_match_wins(self, manager, url, method, expected):
        request = FetchRequest(url=ORIGIN + url if url.startswith("/") else url, method=method)
        assert manager.select_strategy(request).__name__ == expected


# ============= cache first =============


class TestCacheFirst:
    def test_cached_asset_needs_no_network(self, storage):
        url = f"{ORIGIN}/css/style.css"
        storage.open(STATIC).put(url, cached(url, b"body{}"))
        manager = make_manager(storage, never_called)

        response = manager.handle(FetchRequest(url="/css/style.css"))

        assert response.body == b"body{}"

    def test_miss_fetches_and_stores_200(self, storage):
        url = f"{ORIGIN}/js/app.js"
        network = FakeNetwork({url: (200, b"console.log(1)")})
        manager = make_manager(storage, network)

        first = manager.handle(FetchRequest(url=url))
        second = manager.handle(FetchRequest(url=url))

        assert first.body == second.body == b"console.log(1)"
        assert network.calls == [url]
        assert storage.open(STATIC).match(url) is not None

    def test_non_200_is_not_stored(self, storage):
        url = f"{ORIGIN}/js/missing.js"
        manager = make_manager(storage, FakeNetwork())

        assert manager.handle(FetchRequest(url=url)).status == 404
        assert storage.open(STATIC).match(url) is None

    def test_offline_navigation_falls_back_to_root_document(self, storage):
        root = f"{ORIGIN}/index.html"
        storage.open(STATIC).put(root, cached(root, b"<html>shop</html>"))
        manager = make_manager(storage, FakeNetwork(offline=True))

        response = manager.handle(FetchRequest(url="/fonts/inter.woff2", destination="document"))

        assert response.body == b"<html>shop</html>"

    def test_offline_non_navigation_propagates(self, storage):
        root = f"{ORIGIN}/index.html"
        storage.open(STATIC).put(root, cached(root))
        manager = make_manager(storage, FakeNetwork(offline=True))

        with pytest.raises(NetworkError):
            manager.handle(FetchRequest(url="/css/style.css"))

    def test_lookups_do_not_list_the_keyspace(self):
        backend = KeyCountingBackend()
        storage = CacheStorage(backend)
        url = f"{ORIGIN}/css/style.css"
        storage.open(STATIC).put(url, cached(url, b"body{}"))
        manager = make_manager(storage, never_called)
        backend.key_listings = 0

        for _ in range(10):
            assert manager.handle(FetchRequest(url=url)).body == b"body{}"

        assert backend.key_listings == 0


# ============= network first =============


class TestNetworkFirst:
    def test_success_refreshes_dynamic_cache(self, storage):
        url = f"{ORIGIN}/products"
        manager = make_manager(storage, FakeNetwork({url: (200, b"[1]")}))

        assert manager.handle(FetchRequest(url=url)).body == b"[1]"
        assert storage.open(DYNAMIC).match(url).body == b"[1]"

    def test_network_failure_falls_back_to_cache(self, storage):
        url = f"{ORIGIN}/products"
        storage.open(DYNAMIC).put(url, cached(url, b"[old]"))
        manager = make_manager(storage, FakeNetwork(offline=True))

        assert manager.handle(FetchRequest(url=url)).body == b"[old]"

    def test_network_failure_without_cache_propagates(self, storage):
        manager = make_manager(storage, FakeNetwork(offline=True))

        with pytest.raises(NetworkError):
            manager.handle(FetchRequest(url="/orders"))


# ============= stale while revalidate =============


class TestStaleWhileRevalidate:
    def test_cached_copy_returned_and_refreshed_for_next_time(self, storage):
        url = f"{ORIGIN}/about.html"
        storage.open(DYNAMIC).put(url, cached(url, b"old"))
        network = FakeNetwork({url: (200, b"new")})
        manager = make_manager(storage, network)

        response = manager.handle(FetchRequest(url=url))
        manager.drain(timeout=5)

        assert response.body == b"old"
        assert network.calls == [url]
        assert storage.open(DYNAMIC).match(url).body == b"new"

    def test_without_cache_caller_waits_for_network(self, storage):
        url = f"{ORIGIN}/about.html"
        manager = make_manager(storage, FakeNetwork({url: (200, b"fresh")}))

        assert manager.handle(FetchRequest(url=url)).body == b"fresh"
        assert storage.open(DYNAMIC).match(url).body == b"fresh"

    def test_background_failure_keeps_cached_copy(self, storage):
        url = f"{ORIGIN}/about.html"
        storage.open(DYNAMIC).put(url, cached(url, b"old"))
        manager = make_manager(storage, FakeNetwork(offline=True))

        assert manager.handle(FetchRequest(url=url)).body == b"old"
        manager.drain(timeout=5)
        assert storage.open(DYNAMIC).match(url).body == b"old"

    def test_finished_revalidations_are_not_retained(self, storage):
        url = f"{ORIGIN}/about.html"
        storage.open(DYNAMIC).put(url, cached(url, b"old"))
        manager = make_manager(storage, FakeNetwork({url: (200, b"new")}), executor=InlineExecutor())

        for _ in range(100):
            manager.handle(FetchRequest(url=url))

        assert manager.pending_revalidations == 0


# ============= lifecycle =============


class TestLifecycle:
    def test_not_controlling_before_activation(self, storage):
        url = f"{ORIGIN}/css/style.css"
        storage.open(STATIC).put(url, cached(url, b"cached"))
        network = FakeNetwork({url: (200, b"network")})
        manager = OfflineCacheManager(storage, network=network, origin=ORIGIN, manifest=[])

        assert manager.handle(FetchRequest(url=url)).body == b"network"

    def test_install_seeds_static_cache(self, storage):
        manifest = ["/", "/index.html", "/css/style.css"]
        network = FakeNetwork({ORIGIN + u: (200, u.encode()) for u in manifest})
        manager = OfflineCacheManager(
            storage, network=network, origin=ORIGIN,
            static_cache=STATIC, dynamic_cache=DYNAMIC, manifest=manifest,
        )

        manager.install()

        assert manager.state == "installed"
        assert sorted(storage.open(STATIC).keys()) == sorted(ORIGIN + u for u in manifest)

    def test_install_is_all_or_nothing(self, storage):
        manifest = ["/", "/index.html", "/css/broken.css"]
        network = FakeNetwork({ORIGIN + "/": (200, b"root"), ORIGIN + "/index.html": (200, b"index")})
        manager = OfflineCacheManager(
            storage, network=network, origin=ORIGIN,
            static_cache=STATIC, dynamic_cache=DYNAMIC, manifest=manifest,
        )

        with pytest.raises(CacheInstallError):
            manager.install()

        assert storage.open(STATIC).keys() == []
        assert manager.controlling is False

    def test_install_fails_when_offline(self, storage):
        manager = OfflineCacheManager(
            storage, network=FakeNetwork(offline=True), origin=ORIGIN, manifest=["/"],
        )

        with pytest.raises(CacheInstallError):
            manager.install()

    def test_activate_deletes_old_versions_and_claims(self, storage):
        storage.open("static-v1").put("u", cached("u"))
        storage.open("dynamic-v1").put("u", cached("u"))
        storage.open(STATIC).put("u", cached("u"))
        manager = OfflineCacheManager(
            storage, network=never_called, origin=ORIGIN,
            static_cache=STATIC, dynamic_cache=DYNAMIC, manifest=[],
        )

        manager.activate()

        assert storage.keys() == [STATIC]
        assert manager.controlling is True
        assert manager.state == "activated"

    def test_start_installs_and_activates(self, storage):
        manager = OfflineCacheManager(
            storage, network=FakeNetwork({ORIGIN + "/": (200, b"root")}),
            origin=ORIGIN, manifest=["/"],
        )

        manager.start()

        assert manager.state == "activated"

    def test_messages(self, storage):
        manager = OfflineCacheManager(
            storage, network=FakeNetwork({ORIGIN + "/": (200, b"root")}),
            origin=ORIGIN, cache_name="automart-v9", manifest=["/"],
        )
        manager.install()

        assert manager.handle_message({"type": "GET_VERSION"}) == {"version": "automart-v9"}
        assert manager.handle_message({"type": "SKIP_WAITING"}) is None
        assert manager.state == "activated"
        assert manager.handle_message({"type": "UNKNOWN"}) is None


# ============= background sync =============


class TestBackgroundSync:
    @pytest.fixture
    def queue(self, backend):
        q = OfflineOrderQueue(KeyValueStore(backend, prefix="sync_"))
        q.enqueue({"orderId": "ORD-1", "lockerId": "locker-001"})
        q.enqueue({"orderId": "ORD-2", "lockerId": "locker-001"})
        q.enqueue({"orderId": "ORD-3", "lockerId": "locker-002"})
        return q

    def test_only_confirmed_orders_leave_the_queue(self, storage, queue):
        api = MagicMock()

        def complete(order):
            if order["orderId"] == "ORD-2":
                raise NetworkError("still offline")
            return {"status": "ok"}

        api.complete_order.side_effect = complete
        manager = make_manager(storage, never_called, api=api, queue=queue)

        report = manager.on_sync(SYNC_TAG)

        assert report.synced == ["ORD-1", "ORD-3"]
        assert report.failed == ["ORD-2"]
        assert [o["orderId"] for o in queue.pending()] == ["ORD-2"]
        assert api.complete_order.call_count == 3

    def test_server_rejection_keeps_the_order(self, storage, queue):
        api = MagicMock()
        api.complete_order.side_effect = ServerError("HTTP 500", status_code=500)
        manager = make_manager(storage, never_called, api=api, queue=queue)

        report = manager.sync_offline_orders()

        assert report.synced == []
        assert len(queue) == 3

    def test_other_tags_are_ignored(self, storage, queue):
        api = MagicMock()
        manager = make_manager(storage, never_called, api=api, queue=queue)

        assert manager.on_sync("something-else") is None
        api.complete_order.assert_not_called()


# ============= requests adapter =============


class TestCachingAdapter:
    def test_session_reads_are_served_from_cache(self, storage):
        url = f"{ORIGIN}/css/style.css"
        storage.open(STATIC).put(url, CachedResponse(url=url, status=200, headers={"Content-Type": "text/css; charset=utf-8"}, body=b"body{}"))
        manager = make_manager(storage, never_called)
        session = requests.Session()
        session.mount("http://", CachingAdapter(manager))

        resp = session.get(url)

        assert resp.status_code == 200
        assert resp.text == "body{}"
        assert resp.headers["content-type"].startswith("text/css")

    def test_offline_without_cache_raises_connection_error(self, storage, monkeypatch):
        manager = make_manager(storage, never_called)
        adapter = CachingAdapter(manager)

        def offline_send(self, request, **kwargs):
            raise requests.ConnectionError("no route to host")

        monkeypatch.setattr(requests.adapters.HTTPAdapter, "send", offline_send)
        session = requests.Session()
        session.mount("http://", adapter)

        with pytest.raises(requests.ConnectionError):
            session.get(f"{ORIGIN}/orders")


def test_to_requests_response_round_trip():
    resp = to_requests_response(
        CachedResponse(url="http://x/a", status=200, headers={"Content-Type": "application/json"}, body=b'{"a": 1}')
    )

    assert resp.ok
    assert resp.json() == {"a": 1}
    assert resp.reason == "OK"
