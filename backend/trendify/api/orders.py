"""
Orders API Endpoints
Checkout, the customer's order history, public tracking and cancellation
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Response, status
from pydantic import EmailStr
from sqlalchemy.orm import Session

from trendify.core.auth import get_current_account, get_current_account_optional
from trendify.core.database import get_db
from trendify.domain.common import paginate
from trendify.domain.order import Order as OrderOut, OrderCreate, OrderTracking
from trendify.models import User
from trendify.services.order_service import OrderService

router = APIRouter()


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_order(
    payload: OrderCreate,
    response: Response,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key", max_length=255),
    account: Optional[User] = Depends(get_current_account_optional),
    db: Session = Depends(get_db)
):
    """
    Create an order from the checkout form

    Signed-in customers or guests (with `email`). Stock is reserved until the
    payment settles or the reservation expires.

    Returns 201 for a new order, 200 when an identical pending order from the
    last few minutes (or the same Idempotency-Key) is returned instead.
    """
    order, created = OrderService(db).create_order(payload, account=account, idempotency_key=idempotency_key)
    if not created:
        response.status_code = status.HTTP_200_OK

    return {
        "status": "success",
        "created": created,
        "data": OrderOut.model_validate(order).to_dict(),
    }


@router.get("/")
async def get_my_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    account: User = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    """The caller's orders, newest first"""
    orders, total = OrderService(db).list_my_orders(account, page=page, limit=limit)
    return {
        "status": "success",
        "data": [OrderOut.model_validate(o).to_dict() for o in orders],
        **paginate(total, page, limit),
    }


@router.get("/track")
async def track_order(
    order_number: str = Query(..., min_length=1),
    email: EmailStr = Query(..., description="E-mail the order was placed with"),
    db: Session = Depends(get_db)
):
    """Public order tracking (status fields only)"""
    order = OrderService(db).track_order(order_number, email)
    return {"status": "success", "data": OrderTracking.model_validate(order).model_dump()}


@router.get("/{order_number}")
async def get_my_order(
    order_number: str,
    account: User = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    order = OrderService(db).get_my_order(account, order_number)
    return {"status": "success", "data": OrderOut.model_validate(order).to_dict()}


@router.post("/{order_number}/cancel")
async def cancel_order(
    order_number: str,
    account: User = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    """Cancel a pending, unpaid order (reserved stock is released)"""
    order = OrderService(db).cancel_order(account, order_number)
    return {"status": "success", "data": OrderOut.model_validate(order).to_dict()}
