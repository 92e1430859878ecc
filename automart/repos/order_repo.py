# automart/repos/order_repo.py
from typing import List

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from automart.data.models.order import OrderModel


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def create_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.commit()
        self.db.refresh(order)
        return order

    def get_order(self, order_id: str) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel).where(OrderModel.order_id == order_id)
        ).scalar_one_or_none()

    def list_orders(self, offset: int, limit: int) -> List[OrderModel]:
        return list(
            self.db.execute(
                select(OrderModel)
                .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
                .offset(offset)
                .limit(limit)
            ).scalars()
        )

    def count_orders(self) -> int:
        return self.db.execute(select(func.count(OrderModel.id))).scalar_one()

    def update_order_status(self, order_id: str, status: str) -> OrderModel | None:
        order = self.get_order(order_id)
        if order:
            order.status = status
            self.db.commit()
            self.db.refresh(order)
        return order
