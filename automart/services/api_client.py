# automart/services/api_client.py
from dataclasses import dataclass
from typing import Any, Mapping

import requests
from requests import RequestException

from automart.domain.errors import (
    AutomartError,
    NetworkError,
    RequestTimeoutError,
    ServerError,
    ValidationError,
)
from automart.domain.schemas import CheckoutPayload
from automart.services.checkout_service import now_ms
from automart.utils.logging import get_logger
from automart.utils.retry import http_retry
from automart.utils.settings import (
    API_BASE_URL,
    API_TIMEOUT_SECONDS,
    DEFAULT_CUSTOMER_NAME,
    DEFAULT_LOCATION,
)

logger = get_logger(__name__)


@dataclass
class ApiResponse:
    success: bool
    data: Any
    status: int


class ApiClient:
    """
    HTTP client of the shop client context.

    Every transport problem is translated here, before it reaches callers:
    timeout -> RequestTimeoutError, no connectivity -> NetworkError,
    non-2xx or garbage body -> ServerError.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ):
        self.base_url = (base_url or API_BASE_URL).rstrip("/")
        self.timeout = API_TIMEOUT_SECONDS if timeout is None else timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
        )

    def request(
        self,
        method: str,
        endpoint: str,
        json: Any = None,
        params: Mapping[str, Any] | None = None,
    ) -> ApiResponse:
        url = f"{self.base_url}{endpoint}"
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        logger.debug(f"API {method} {url}")

        try:
            resp = self.session.request(
                method,
                url,
                json=json,
                params=params,
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            logger.error(f"Request timeout: {method} {url}")
            raise RequestTimeoutError(f"Request to {endpoint} timed out after {self.timeout}s") from e
        except RequestException as e:
            logger.error(f"API network error: {method} {url}: {e}")
            raise NetworkError(f"Network error while calling {endpoint}: {e}") from e

        if not resp.ok:
            logger.error(f"API error: {method} {url} -> HTTP {resp.status_code}")
            raise ServerError(f"HTTP {resp.status_code}: {resp.reason}", status_code=resp.status_code)

        try:
            data = resp.json()
        except ValueError as e:
            raise ServerError(f"Invalid JSON from {endpoint}", status_code=resp.status_code) from e

        return ApiResponse(success=True, data=data, status=resp.status_code)

    @http_retry()
    def get(self, endpoint: str, params: Mapping[str, Any] | None = None) -> ApiResponse:
        return self.request("GET", endpoint, params=params)

    def post(self, endpoint: str, data: Any = None) -> ApiResponse:
        return self.request("POST", endpoint, json=data if data is not None else {})

    def put(self, endpoint: str, data: Any = None) -> ApiResponse:
        return self.request("PUT", endpoint, json=data if data is not None else {})

    def delete(self, endpoint: str) -> ApiResponse:
        return self.request("DELETE", endpoint)

    # =====================================================
    # orders
    # =====================================================
    def complete_order(self, order: CheckoutPayload | Mapping[str, Any]) -> dict:
        data = order.to_wire() if isinstance(order, CheckoutPayload) else dict(order)

        if not data.get("orderId") or not data.get("lockerId"):
            raise ValidationError("Incomplete order data: orderId and lockerId are required")

        payload = {
            **data,
            "product": data.get("product") or "mixed",
            "items": data.get("items") or [],
            "total": data.get("total") or 0,
            "customer": data.get("customer") or DEFAULT_CUSTOMER_NAME,
            "location": data.get("location") or DEFAULT_LOCATION,
            "timestamp": now_ms(),
            "compartment": data.get("compartment") or "mixed",
            "quantity": data.get("quantity") or 1,
        }

        logger.info(f"Completing order {payload['orderId']} at {payload['lockerId']}")
        response = self.post("/order/complete", payload)
        return response.data

    def get_orders(self, page: int = 1, limit: int = 10) -> dict:
        return self.get("/orders", params={"page": page, "limit": limit}).data

    def get_order(self, order_id: str) -> dict:
        return self.get(f"/orders/{order_id}").data

    def open_pickup(self, order_id: str, locker_id: str) -> dict:
        payload = {
            "orderId": order_id,
            "lockerId": locker_id,
            "action": "open",
            "timestamp": now_ms(),
        }
        logger.info(f"Opening pickup for order {order_id} at {locker_id}")
        return self.post("/pickup/open", payload).data

    # =====================================================
    # catalog
    # =====================================================
    def get_products(self, category: str = "all", page: int = 1, limit: int = 20) -> dict:
        return self.get(
            "/products",
            params={"category": category, "page": page, "limit": limit},
        ).data

    def get_product(self, product_id: str) -> dict:
        return self.get(f"/products/{product_id}").data

    def get_locations(self) -> list:
        return self.get("/locations").data

    def health_check(self) -> bool:
        try:
            return self.request("GET", "/health").success
        except AutomartError as e:
            logger.warning(f"Backend health check failed: {e}")
            return False
