# automart/api/routers/dependencies.py
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from automart.data.database import get_db
from automart.services.locker_service import LockerCommandService
from automart.services.order_service import OrderService


@lru_cache
def get_locker_service() -> LockerCommandService:
    return LockerCommandService()


def get_order_service(
    db: Session = Depends(get_db),
    locker_service: LockerCommandService = Depends(get_locker_service),
) -> OrderService:
    return OrderService(db, locker_service)
