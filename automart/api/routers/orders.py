# automart/api/routers/orders.py
from fastapi import APIRouter, Depends, HTTPException, Query

from automart.api.routers.dependencies import get_order_service
from automart.domain.errors import NotFoundError, ValidationError
from automart.domain.schemas import (
    OrderCompleteIn,
    OrderCompleteOut,
    OrderOut,
    OrderPage,
    PickupOpenIn,
)
from automart.services.order_service import OrderService

router = APIRouter(tags=["orders"])


@router.post("/order/complete", response_model=OrderCompleteOut)
def complete_order(
    payload: OrderCompleteIn,
    svc: OrderService = Depends(get_order_service),
):
    """
    Records the order and sends the open command to its locker.
    A locker sink outage does not fail the request.
    """
    try:
        return svc.complete_order(payload)
    except ValidationError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post("/pickup/open")
def open_pickup(
    payload: PickupOpenIn,
    svc: OrderService = Depends(get_order_service),
):
    try:
        sent = svc.open_pickup(payload)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not sent:
        raise HTTPException(status_code=503, detail="Locker is not reachable")
    return {"status": "ok", "orderId": payload.order_id, "lockerId": payload.locker_id}


@router.get("/orders", response_model=OrderPage)
def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    svc: OrderService = Depends(get_order_service),
):
    return svc.list_orders(page, limit)


@router.get("/orders/{order_id}", response_model=OrderOut)
def get_order(
    order_id: str,
    svc: OrderService = Depends(get_order_service),
):
    try:
        return svc.get_order(order_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
