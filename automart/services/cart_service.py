# automart/services/cart_service.py
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping

from pydantic import ValidationError as PydanticValidationError

from automart.data.catalog import LOCATIONS
from automart.domain.errors import (
    EmptyCartError,
    InvalidLocationError,
    LocationRequiredError,
    NotFoundError,
    ValidationError,
)
from automart.domain.schemas import (
    CartLineItem,
    CartValidation,
    CartView,
    CheckoutPayload,
    Location,
    Product,
)
from automart.services.checkout_service import assemble_checkout_payload
from automart.services.kv_store import KeyValueStore
from automart.utils.formatters import format_price
from automart.utils.logging import get_logger
from automart.utils.settings import CART_MAX_ITEMS, CART_MAX_QUANTITY_PER_ITEM

logger = get_logger(__name__)

CartListener = Callable[[CartView], None]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class CartService:
    """
    Cart engine of the shop client.

    commands (add, update, remove, clear) persist the whole cart and
    notify listeners, queries (view, totals, checkout data) are read-only.
    Changes written to the same store by another process are picked up
    through the store's change notifications.
    """

    STORAGE_KEY = "cart_items"

    def __init__(
        self,
        store: KeyValueStore,
        locations: Dict[str, Location] | None = None,
        max_items: int = CART_MAX_ITEMS,
        max_quantity: int = CART_MAX_QUANTITY_PER_ITEM,
    ):
        self.store = store
        self.locations = LOCATIONS if locations is None else locations
        self.max_items = max_items
        self.max_quantity = max_quantity

        self.items: List[CartLineItem] = []
        self._listeners: List[CartListener] = []
        # _lock guards self.items; _save_lock orders writes to the store.
        # The store is written without holding _lock, because a shared
        # backend delivers the change to other carts on this thread.
        self._lock = threading.RLock()
        self._save_lock = threading.RLock()

        self.load_from_storage()
        self._unsubscribe_storage = store.subscribe(self._on_storage_change)

    # =====================================================
    # listeners
    # =====================================================
    def subscribe(self, listener: CartListener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: CartListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def notify_listeners(self) -> None:
        view = self.get_cart_view()
        for listener in list(self._listeners):
            try:
                listener(view)
            except Exception:
                logger.exception("Cart listener error")

    def _on_storage_change(self, key: str) -> None:
        if key != self.STORAGE_KEY:
            return
        logger.debug("Cart changed in another context, reloading")
        self.reload()

    # =====================================================
    # persistence
    # =====================================================
    def load_from_storage(self) -> None:
        stored = self.store.get(self.STORAGE_KEY)
        with self._lock:
            if not isinstance(stored, list):
                self.items = []
                return
            try:
                self.items = [CartLineItem.model_validate(raw) for raw in stored]
            except PydanticValidationError as e:
                logger.error(f"Failed to load cart from storage: {e}")
                self.items = []

    def save_to_storage(self) -> None:
        with self._save_lock:
            with self._lock:
                snapshot = [i.to_wire() for i in self.items]
            self._persist(snapshot)

    def _persist(self, snapshot: List[dict]) -> None:
        saved = self.store.set(self.STORAGE_KEY, snapshot)
        if not saved:
            logger.error("Failed to save cart to storage")

    def reload(self) -> None:
        self.load_from_storage()
        self.notify_listeners()

    def close(self) -> None:
        self._unsubscribe_storage()
        self._listeners.clear()

    @contextmanager
    def _mutation(self):
        """Changes self.items under the lock, then persists and notifies without it."""
        with self._save_lock:
            with self._lock:
                yield
                snapshot = [i.to_wire() for i in self.items]
            self._persist(snapshot)
            self.notify_listeners()

    # =====================================================
    # commands
    # =====================================================
    def _check_quantity(self, quantity: Any, minimum: int) -> None:
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValidationError("Quantity must be an integer")
        if quantity < minimum or quantity > self.max_quantity:
            raise ValidationError(
                f"Quantity must be between {minimum} and {self.max_quantity}"
            )

    def _index_of(self, line_id: str) -> int:
        for index, item in enumerate(self.items):
            if item.id == line_id:
                return index
        raise NotFoundError(f"Cart line {line_id} not found")

    def add_item(self, product: Product | Mapping[str, Any], quantity: int = 1) -> CartLineItem:
        """
        Adds a product, or sums the quantity into its existing line.
        A sum above the per-item maximum is rejected, never clamped.
        Returns the line that was created or changed.
        """
        if product is None:
            raise ValidationError("Invalid product")
        if not isinstance(product, Product):
            try:
                product = Product.model_validate(product)
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid product: {e.errors()[0]['msg']}") from e

        self._check_quantity(quantity, minimum=1)

        with self._mutation():
            if self.get_total_item_count() + quantity > self.max_items:
                raise ValidationError(f"At most {self.max_items} items allowed in the cart")

            line = next((i for i in self.items if i.product.id == product.id), None)

            if line:
                new_quantity = line.quantity + quantity
                if new_quantity > self.max_quantity:
                    raise ValidationError(
                        f"At most {self.max_quantity} pieces of {product.name} allowed"
                    )
                line.quantity = new_quantity
                line.updated_at = _now()
            else:
                line = CartLineItem(
                    id=f"item_{uuid.uuid4().hex[:12]}",
                    product=product.model_copy(deep=True),
                    quantity=quantity,
                    added_at=_now(),
                )
                self.items.append(line)

        logger.info(f"Added {quantity}x {product.name} to cart")
        return line

    def update_item_quantity(self, line_id: str, quantity: int) -> bool:
        """Quantity 0 removes the line."""
        self._check_quantity(quantity, minimum=0)

        if quantity == 0:
            self.remove_item(line_id)
            return True

        with self._mutation():
            line = self.items[self._index_of(line_id)]
            new_total = self.get_total_item_count() - line.quantity + quantity
            if new_total > self.max_items:
                raise ValidationError(f"At most {self.max_items} items allowed in the cart")

            line.quantity = quantity
            line.updated_at = _now()

        logger.info(f"Updated cart line {line_id} quantity to {quantity}")
        return True

    def remove_item(self, line_id: str) -> CartLineItem:
        with self._mutation():
            removed = self.items.pop(self._index_of(line_id))

        logger.info(f"Removed cart line {line_id} ({removed.product.name})")
        return removed

    def clear(self) -> None:
        with self._mutation():
            self.items = []
        logger.info("Cart cleared")

    # =====================================================
    # queries
    # =====================================================
    def get_items(self) -> List[CartLineItem]:
        return [i.model_copy(deep=True) for i in self.items]

    def get_item_count(self) -> int:
        return len(self.items)

    def get_total_item_count(self) -> int:
        return sum(i.quantity for i in self.items)

    def get_total_price(self) -> Decimal:
        return sum((i.product.price * i.quantity for i in self.items), Decimal("0.00"))

    def get_original_total_price(self) -> Decimal:
        return sum(
            ((i.product.original_price or i.product.price) * i.quantity for i in self.items),
            Decimal("0.00"),
        )

    def get_total_savings(self) -> Decimal:
        return self.get_original_total_price() - self.get_total_price()

    def is_empty(self) -> bool:
        return not self.items

    def get_cart_view(self) -> CartView:
        with self._lock:
            total = self.get_total_price()
            savings = self.get_total_savings()
            return CartView(
                items=self.get_items(),
                item_count=self.get_item_count(),
                total_items=self.get_total_item_count(),
                total_price=total,
                original_total_price=self.get_original_total_price(),
                total_savings=savings,
                is_empty=self.is_empty(),
                formatted_total=format_price(total),
                formatted_savings=format_price(savings),
            )

    def generate_checkout_data(
        self,
        location_key: str | None,
        time_slot: str | None = None,
        payment_method: str | None = None,
        customer: str | None = None,
    ) -> CheckoutPayload:
        with self._lock:
            if self.is_empty():
                raise EmptyCartError()

            if not location_key:
                raise LocationRequiredError()

            location = self.locations.get(location_key)
            if location is None:
                raise InvalidLocationError(location_key)

            payload = assemble_checkout_payload(
                self.items,
                location,
                time_slot=time_slot,
                payment_method=payment_method,
                customer=customer,
            )

        logger.debug(f"Generated checkout data for order {payload.order_id}")
        return payload

    def validate(self) -> CartValidation:
        errors = []

        if self.is_empty():
            errors.append("Cart is empty")

        for position, item in enumerate(self.items, start=1):
            if not item.product.id:
                errors.append(f"Item {position}: invalid product data")
            if item.quantity <= 0 or item.quantity > self.max_quantity:
                errors.append(f"Item {position}: invalid quantity")

        if self.get_total_item_count() > self.max_items:
            errors.append(f"Too many items in the cart (max: {self.max_items})")

        return CartValidation(is_valid=not errors, errors=errors)
