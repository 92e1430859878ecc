# automart/services/order_service.py
from typing import Any, Dict, List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from automart.data.models.order import OrderModel
from automart.domain.errors import NotFoundError, ValidationError
from automart.domain.schemas import (
    OrderCompleteIn,
    OrderCompleteOut,
    OrderOut,
    OrderPage,
    PickupOpenIn,
)
from automart.repos.order_repo import OrderRepo
from automart.services.locker_service import LockerCommandService
from automart.utils.formatters import format_date
from automart.utils.logging import get_logger
from automart.utils.settings import DEFAULT_CUSTOMER_NAME, DEFAULT_LOCATION

logger = get_logger(__name__)

STATUS_RECEIVED = "RECEIVED"
STATUS_OPEN_SENT = "OPEN_SENT"
STATUS_PUBLISH_FAILED = "PUBLISH_FAILED"


class OrderService:
    """
    Backend side of the order flow: record the order, then tell the
    locker to open. Resubmissions of the same orderId are expected
    (background sync is at-least-once) and do not create duplicates.
    """

    def __init__(self, db: Session, locker_service: LockerCommandService):
        self.db = db
        self.repo = OrderRepo(db)
        self.locker_service = locker_service

    @staticmethod
    def products_of(payload: OrderCompleteIn) -> List[Dict[str, Any]]:
        if payload.products:
            return payload.products
        if payload.items:
            return [
                {
                    "productId": i.product_id,
                    "name": i.name,
                    "quantity": i.quantity,
                    "compartment": i.compartment,
                }
                for i in payload.items
            ]
        return [
            {
                "product": payload.product or payload.compartment or "mixed",
                "quantity": payload.quantity or 1,
            }
        ]

    def _record(self, payload: OrderCompleteIn, products: List[Dict[str, Any]]) -> OrderModel:
        order = OrderModel(
            order_id=payload.order_id,
            locker_id=payload.locker_id,
            customer=payload.customer or DEFAULT_CUSTOMER_NAME,
            location=payload.location or DEFAULT_LOCATION,
            compartment=payload.compartment or "mixed",
            quantity=payload.quantity or sum(int(p.get("quantity", 1)) for p in products),
            total=payload.total,
            products=products,
            status=STATUS_RECEIVED,
        )
        try:
            return self.repo.create_order(order)
        except IntegrityError:
            # the same order arrived twice at once, keep the first one
            self.db.rollback()
            return self.repo.get_order(payload.order_id)

    def complete_order(self, payload: OrderCompleteIn) -> OrderCompleteOut:
        logger.info(f"POST /order/complete {payload.order_id} -> {payload.locker_id}")

        order = self.repo.get_order(payload.order_id)

        if order and order.locker_id != payload.locker_id:
            raise ValidationError(
                f"Order {payload.order_id} belongs to locker {order.locker_id}"
            )

        if order and order.status == STATUS_OPEN_SENT:
            logger.info(f"Order {payload.order_id} already sent to its locker, not sending again")
            return OrderCompleteOut(
                order_id=order.order_id,
                locker_id=order.locker_id,
                products=order.products,
            )

        if not order:
            order = self._record(payload, self.products_of(payload))

        sent = self.locker_service.publish_open(order.locker_id, order.order_id, order.products)
        self.repo.update_order_status(
            order.order_id,
            STATUS_OPEN_SENT if sent else STATUS_PUBLISH_FAILED,
        )

        return OrderCompleteOut(
            order_id=order.order_id,
            locker_id=order.locker_id,
            products=order.products,
        )

    def open_pickup(self, payload: PickupOpenIn) -> bool:
        order = self.repo.get_order(payload.order_id)
        if not order:
            raise NotFoundError(f"Order {payload.order_id} not found")
        if order.locker_id != payload.locker_id:
            raise ValidationError(f"Order {payload.order_id} is not stored in {payload.locker_id}")

        return self.locker_service.publish_open(order.locker_id, order.order_id, order.products)

    # =====================================================
    # queries
    # =====================================================
    @staticmethod
    def to_out(order: OrderModel) -> OrderOut:
        return OrderOut(
            id=order.order_id,
            locker_id=order.locker_id,
            location=order.location,
            customer=order.customer,
            compartment=order.compartment,
            items=len(order.products or []),
            quantity=order.quantity,
            total=order.total,
            status=order.status,
            date=format_date(order.created_at),
            created_at=order.created_at,
        )

    def get_order(self, order_id: str) -> OrderOut:
        order = self.repo.get_order(order_id)
        if not order:
            raise NotFoundError(f"Order {order_id} not found")
        return self.to_out(order)

    def list_orders(self, page: int = 1, limit: int = 10) -> OrderPage:
        orders = self.repo.list_orders(offset=(page - 1) * limit, limit=limit)
        return OrderPage(
            orders=[self.to_out(o) for o in orders],
            total=self.repo.count_orders(),
            page=page,
            limit=limit,
        )
