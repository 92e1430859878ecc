# automart/services/offline_cache.py
"""
Offline cache manager of the background context.

Every outgoing request passes through handle(), which picks one strategy
per request (first match wins):

    non-GET / non-cacheable   -> passthrough
    static asset              -> cache first   (static partition)
    API call                  -> network first (dynamic partition)
    anything else             -> stale while revalidate (dynamic partition)

Cache writes are last-writer-wins per URL; entries are snapshots of a
response, so concurrent requests may overwrite each other freely.
"""
import dataclasses
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Callable, Dict, List, Mapping, Set
from urllib.parse import urljoin, urlparse

import requests
from requests import RequestException
from requests.adapters import HTTPAdapter
from requests.structures import CaseInsensitiveDict
from requests.utils import get_encoding_from_headers

from automart.domain.errors import (
    AutomartError,
    CacheInstallError,
    NetworkError,
    RequestTimeoutError,
    TransientError,
)
from automart.repos.cache_storage import CachedResponse, CacheStorage
from automart.repos.storage_backends import BACKEND_ERRORS
from automart.utils.logging import get_logger
from automart.utils.settings import (
    API_TIMEOUT_SECONDS,
    APP_ORIGIN,
    CACHE_NAME,
    DYNAMIC_CACHE,
    STATIC_CACHE,
)

logger = get_logger(__name__)

STATIC_ASSETS = [
    "/",
    "/index.html",
    "/css/style.css",
    "/css/components.css",
    "/css/responsive.css",
    "/js/config.js",
    "/js/api.js",
    "/js/cart.js",
    "/js/products.js",
    "/js/ui.js",
    "/js/app.js",
    "https://cdn.jsdelivr.net/npm/@fortawesome/fontawesome-free@6.4.0/css/all.min.css",
    "https://fonts.googleapis.com/css2?family=Inter:wght@300;400;500;600;700&display=swap",
]

# paths match whole segments: "/health" and "/health/x", not "/healthy-snacks.html"
NO_CACHE_PATHS = ("/api", "/health")
NO_CACHE_HOSTS = ("analytics.google.com", "google-analytics.com")

STATIC_EXTENSIONS = (".css", ".js", ".png", ".jpg", ".jpeg", ".svg", ".woff", ".woff2")
STATIC_HOSTS = ("fonts.googleapis.com", "fonts.gstatic.com", "fontawesome")

API_PATH_PREFIXES = ("/order/", "/orders", "/products", "/pickup/", "/locations")

ROOT_DOCUMENT = "/index.html"
SYNC_TAG = "background-sync-orders"

# hop-by-hop / body encoding headers do not describe the stored body
_DROPPED_HEADERS = {"content-encoding", "transfer-encoding", "content-length", "connection"}


@dataclass(frozen=True)
class FetchRequest:
    url: str
    method: str = "GET"
    destination: str = ""  # "document" for navigations
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def is_navigation(self) -> bool:
        return self.destination == "document"


@dataclass
class SyncReport:
    synced: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


Network = Callable[[FetchRequest], CachedResponse]


def snapshot_response(resp: requests.Response) -> CachedResponse:
    return CachedResponse(
        url=resp.url,
        status=resp.status_code,
        headers={k: v for k, v in resp.headers.items() if k.lower() not in _DROPPED_HEADERS},
        body=resp.content,
    )


def to_requests_response(cached: CachedResponse, request: requests.PreparedRequest | None = None) -> requests.Response:
    resp = requests.Response()
    resp.status_code = cached.status
    resp.headers = CaseInsensitiveDict(cached.headers)
    resp._content = cached.body
    resp._content_consumed = True
    resp.url = cached.url
    resp.request = request
    try:
        resp.reason = HTTPStatus(cached.status).phrase
    except ValueError:
        resp.reason = ""
    resp.encoding = get_encoding_from_headers(resp.headers)
    return resp


class RequestsFetcher:
    """Plain network access for the manager, errors in the shop taxonomy."""

    def __init__(self, session: requests.Session | None = None, timeout: float = API_TIMEOUT_SECONDS):
        self.session = session or requests.Session()
        self.timeout = timeout

    def __call__(self, request: FetchRequest) -> CachedResponse:
        try:
            resp = self.session.request(
                request.method,
                request.url,
                headers=request.headers or None,
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise RequestTimeoutError(f"Timeout fetching {request.url}") from e
        except RequestException as e:
            raise NetworkError(f"Network error fetching {request.url}: {e}") from e
        return snapshot_response(resp)


class OfflineCacheManager:
    def __init__(
        self,
        storage: CacheStorage,
        network: Network | None = None,
        api=None,
        queue=None,
        origin: str = APP_ORIGIN,
        static_cache: str = STATIC_CACHE,
        dynamic_cache: str = DYNAMIC_CACHE,
        cache_name: str = CACHE_NAME,
        manifest: List[str] | None = None,
        executor: Executor | None = None,
    ):
        self.storage = storage
        self.network = network or RequestsFetcher()
        self.api = api
        self.queue = queue
        self.origin = origin
        self.static_cache = static_cache
        self.dynamic_cache = dynamic_cache
        self.cache_name = cache_name
        self.manifest = list(STATIC_ASSETS if manifest is None else manifest)
        self.executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="revalidate")

        self.state = "parsed"
        self.controlling = False
        self.skip_waiting = False
        self._revalidations: Set[Future] = set()
        self._revalidations_lock = threading.Lock()

        # first match wins, stale-while-revalidate when nothing matches
        self.routes = [
            (self.is_passthrough, self.passthrough),
            (self.is_static_asset, self.cache_first),
            (self.is_api_request, self.network_first),
        ]

    def _url(self, url: str) -> str:
        return urljoin(self.origin, url)

    def _match(self, url: str) -> CachedResponse | None:
        return self.storage.match(url, cache_names=(self.static_cache, self.dynamic_cache))

    # =====================================================
    # request classification
    # =====================================================
    def is_passthrough(self, request: FetchRequest) -> bool:
        if request.method.upper() != "GET":
            return True
        parsed = urlparse(request.url)
        if any(parsed.hostname and parsed.hostname.endswith(host) for host in NO_CACHE_HOSTS):
            return True
        return any(
            parsed.path == path or parsed.path.startswith(path + "/") for path in NO_CACHE_PATHS
        )

    def is_static_asset(self, request: FetchRequest) -> bool:
        path = urlparse(request.url).path.lower()
        return path.endswith(STATIC_EXTENSIONS) or any(h in request.url for h in STATIC_HOSTS)

    def is_api_request(self, request: FetchRequest) -> bool:
        path = urlparse(request.url).path
        return path.startswith(API_PATH_PREFIXES)

    def select_strategy(self, request: FetchRequest):
        for matches, strategy in self.routes:
            if matches(request):
                return strategy
        return self.stale_while_revalidate

    def handle(self, request: FetchRequest, network: Network | None = None) -> CachedResponse:
        network = network or self.network
        request = dataclasses.replace(request, url=self._url(request.url))

        # not in control of clients yet, behave as if there was no cache layer
        if not self.controlling:
            return network(request)

        strategy = self.select_strategy(request)
        logger.debug(f"{strategy.__name__}: {request.method} {request.url}")
        return strategy(request, network)

    # =====================================================
    # strategies
    # =====================================================
    def _put(self, cache_name: str, url: str, response: CachedResponse) -> None:
        try:
            self.storage.open(cache_name).put(url, response)
        except BACKEND_ERRORS as e:
            logger.error(f"Could not store {url} in {cache_name}: {e}")

    def passthrough(self, request: FetchRequest, network: Network) -> CachedResponse:
        return network(request)

    def cache_first(self, request: FetchRequest, network: Network) -> CachedResponse:
        try:
            cached = self._match(request.url)
            if cached is not None:
                return cached

            response = network(request)
            if response.status == 200:
                self._put(self.static_cache, request.url, response)
            return response

        except TransientError as e:
            logger.error(f"Cache first failed for {request.url}: {e}")
            if request.is_navigation:
                fallback = self._match(self._url(ROOT_DOCUMENT))
                if fallback is not None:
                    return fallback
            raise

    def network_first(self, request: FetchRequest, network: Network) -> CachedResponse:
        try:
            response = network(request)
        except TransientError:
            logger.info(f"Network failed for {request.url}, trying cache")
            cached = self._match(request.url)
            if cached is not None:
                return cached
            raise

        if response.status == 200:
            self._put(self.dynamic_cache, request.url, response)
        return response

    def stale_while_revalidate(self, request: FetchRequest, network: Network) -> CachedResponse:
        cached = self.storage.open(self.dynamic_cache).match(request.url)

        if cached is None:
            return self._revalidate(request, network)

        future = self.executor.submit(self._revalidate_in_background, request, network)
        with self._revalidations_lock:
            self._revalidations.add(future)
        future.add_done_callback(self._forget_revalidation)
        return cached

    def _forget_revalidation(self, future: Future) -> None:
        with self._revalidations_lock:
            self._revalidations.discard(future)

    @property
    def pending_revalidations(self) -> int:
        with self._revalidations_lock:
            return len(self._revalidations)

    def _revalidate(self, request: FetchRequest, network: Network) -> CachedResponse:
        response = network(request)
        if response.status == 200:
            self._put(self.dynamic_cache, request.url, response)
        return response

    def _revalidate_in_background(self, request: FetchRequest, network: Network) -> None:
        try:
            self._revalidate(request, network)
        except (TransientError, *BACKEND_ERRORS) as e:
            logger.error(f"Background revalidation of {request.url} failed: {e}")

    def drain(self, timeout: float | None = None) -> None:
        """Waits for background revalidations started so far."""
        with self._revalidations_lock:
            pending = list(self._revalidations)
        wait(pending, timeout=timeout)

    # =====================================================
    # lifecycle
    # =====================================================
    def install(self) -> None:
        """
        Seeds the static partition with the manifest. All or nothing:
        nothing is stored unless every URL was fetched with HTTP 200.
        """
        self.state = "installing"
        logger.info(f"Installing {self.cache_name}, caching {len(self.manifest)} static assets")

        fetched = []
        for url in self.manifest:
            full_url = self._url(url)
            try:
                response = self.network(FetchRequest(url=full_url))
            except TransientError as e:
                self.state = "redundant"
                raise CacheInstallError(full_url, str(e)) from e
            if response.status != 200:
                self.state = "redundant"
                raise CacheInstallError(full_url, f"HTTP {response.status}")
            fetched.append((full_url, response))

        cache = self.storage.open(self.static_cache)
        for url, response in fetched:
            cache.put(url, response)

        self.state = "installed"
        if self.skip_waiting:
            self.activate()

    def activate(self) -> None:
        self.state = "activating"
        current = {self.static_cache, self.dynamic_cache}

        for name in self.storage.keys():
            if name not in current:
                logger.info(f"Deleting old cache {name}")
                self.storage.delete(name)

        # take over open clients right away, no waiting for a navigation
        self.controlling = True
        self.state = "activated"
        logger.info(f"{self.cache_name} activated")

    def start(self) -> None:
        self.skip_waiting = True
        self.install()

    def handle_message(self, message: Mapping[str, Any]) -> Dict[str, Any] | None:
        kind = (message or {}).get("type")

        if kind == "SKIP_WAITING":
            self.skip_waiting = True
            if self.state == "installed":
                self.activate()
            return None

        if kind == "GET_VERSION":
            return {"version": self.cache_name}

        logger.debug(f"Ignoring message {message}")
        return None

    # =====================================================
    # background sync
    # =====================================================
    def on_sync(self, tag: str) -> SyncReport | None:
        logger.info(f"Background sync triggered: {tag}")
        if tag != SYNC_TAG:
            return None
        return self.sync_offline_orders()

    def sync_offline_orders(self) -> SyncReport:
        """
        Resubmits every queued order. An order leaves the queue only after
        the backend confirmed it; one failure does not stop the others.
        """
        if self.api is None or self.queue is None:
            raise RuntimeError("Background sync needs an API client and an offline queue")

        report = SyncReport()
        for order in self.queue.pending():
            order_id = order.get("orderId")
            try:
                self.api.complete_order(order)
            except AutomartError as e:
                logger.error(f"Failed to sync order {order_id}: {e}")
                report.failed.append(order_id)
                continue

            self.queue.remove(order_id)
            report.synced.append(order_id)

        logger.info(f"Background sync done: {len(report.synced)} synced, {len(report.failed)} left")
        return report

    def close(self) -> None:
        self.drain()
        self.executor.shutdown(wait=False)


class CachingAdapter(HTTPAdapter):
    """
    Puts an OfflineCacheManager in front of a requests.Session:

        session.mount("http://", CachingAdapter(manager))
    """

    def __init__(self, manager: OfflineCacheManager, **kwargs):
        super().__init__(**kwargs)
        self.manager = manager

    def send(self, request, stream=False, timeout=None, verify=True, cert=None, proxies=None):
        def network(_fetch_request: FetchRequest) -> CachedResponse:
            try:
                resp = HTTPAdapter.send(
                    self, request, stream=False, timeout=timeout,
                    verify=verify, cert=cert, proxies=proxies,
                )
            except requests.Timeout as e:
                raise RequestTimeoutError(str(e)) from e
            except RequestException as e:
                raise NetworkError(str(e)) from e
            return snapshot_response(resp)

        accept = request.headers.get("Accept", "")
        fetch_request = FetchRequest(
            url=request.url,
            method=request.method,
            destination="document" if "text/html" in accept else "",
            headers=dict(request.headers),
        )

        try:
            cached = self.manager.handle(fetch_request, network=network)
        except RequestTimeoutError as e:
            raise requests.Timeout(str(e), request=request) from e
        except NetworkError as e:
            raise requests.ConnectionError(str(e), request=request) from e

        return to_requests_response(cached, request)
