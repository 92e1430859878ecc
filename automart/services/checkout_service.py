# automart/services/checkout_service.py
import secrets
import time
from collections import Counter
from decimal import Decimal
from typing import Iterable, Sequence

from automart.data.catalog import PAYMENT_METHODS, TIME_SLOTS
from automart.domain.errors import OfflineQueueError, TransientError
from automart.domain.schemas import (
    CartLineItem,
    CheckoutLine,
    CheckoutPayload,
    Location,
    OrderResult,
)
from automart.utils.logging import get_logger
from automart.utils.settings import DEFAULT_CUSTOMER_NAME

logger = get_logger(__name__)

DEFAULT_COMPARTMENT = "mixed"


def dominant_compartment(compartments: Iterable[str]) -> str:
    """
    Most frequent compartment; on a tie the one seen first wins,
    an empty input gives 'mixed'.
    """
    counts = Counter()
    best, best_count = DEFAULT_COMPARTMENT, 0
    for compartment in compartments:
        counts[compartment] += 1
        # strictly greater: a later compartment has to overtake, not tie
        if counts[compartment] > best_count:
            best, best_count = compartment, counts[compartment]
    return best


def now_ms() -> int:
    return int(time.time() * 1000)


def generate_order_id() -> str:
    return f"ORD-{now_ms()}-{secrets.token_hex(3).upper()}"


def assemble_checkout_payload(
    items: Sequence[CartLineItem],
    location: Location,
    time_slot: str | None = None,
    payment_method: str | None = None,
    customer: str | None = None,
) -> CheckoutPayload:
    main_compartment = dominant_compartment(i.product.compartment for i in items)

    return CheckoutPayload(
        order_id=generate_order_id(),
        locker_id=location.lockers[0],  # first locker of the location
        location=location.id,
        location_name=location.name,
        customer=customer or DEFAULT_CUSTOMER_NAME,
        time_slot=time_slot or TIME_SLOTS[0],
        payment_method=payment_method or PAYMENT_METHODS[0].id,
        items=[
            CheckoutLine(
                product_id=i.product.id,
                name=i.product.name,
                price=i.product.price,
                quantity=i.quantity,
                compartment=i.product.compartment,
            )
            for i in items
        ],
        total=sum((i.product.price * i.quantity for i in items), Decimal("0.00")),
        product=main_compartment,
        compartment=main_compartment,
        quantity=sum(i.quantity for i in items),
        timestamp=now_ms(),
    )


class CheckoutService:
    """
    Checkout flow of the shop client:
    cart snapshot -> payload -> submit -> clear cart,
    or queue the payload for background sync when the backend is unreachable.
    """

    def __init__(self, cart, api, queue, preferences):
        self.cart = cart
        self.api = api
        self.queue = queue
        self.preferences = preferences

    def place_order(
        self,
        location_key: str | None = None,
        time_slot: str | None = None,
        payment_method: str | None = None,
    ) -> OrderResult:
        prefs = self.preferences.load()

        payload = self.cart.generate_checkout_data(
            location_key or prefs.location,
            time_slot,
            payment_method,
            customer=prefs.name,
        )

        try:
            response = self.api.complete_order(payload)
        except TransientError as e:
            try:
                self.queue.enqueue(payload)
            except OfflineQueueError:
                logger.error(f"Order {payload.order_id} could neither be sent nor queued, cart kept")
                raise e

            logger.warning(f"Order {payload.order_id} could not be sent ({e}), queued for background sync")
            self.cart.clear()
            return OrderResult(
                status="queued",
                order_id=payload.order_id,
                locker_id=payload.locker_id,
            )

        self.cart.clear()
        logger.info(f"Order {payload.order_id} completed, locker {payload.locker_id}")

        return OrderResult(
            status="completed",
            order_id=payload.order_id,
            locker_id=payload.locker_id,
            response=response,
        )
