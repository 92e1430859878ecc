# automart/data/models/order.py
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Integer, Numeric, String

from automart.data.database import Base


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    order_id = Column(String(64), nullable=False, unique=True, index=True)
    locker_id = Column(String(64), nullable=False)

    customer = Column(String, nullable=False)
    location = Column(String, nullable=False)
    compartment = Column(String(16), nullable=False, default="mixed")
    quantity = Column(Integer, nullable=False, default=1)
    total = Column(Numeric(10, 2), nullable=False)
    products = Column(JSON, nullable=False, default=list)

    status = Column(String(20), nullable=False, default="RECEIVED")  # RECEIVED, OPEN_SENT, PUBLISH_FAILED
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
