"""
Delivery API Endpoints
Delivery options and fee quotes for checkout
"""
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from trendify.core.database import get_db
from trendify.services.delivery_service import DeliveryService

router = APIRouter()


@router.get("/options")
async def get_delivery_options(db: Session = Depends(get_db)):
    """Active cities with their door fee and active pickup points"""
    return {"status": "success", "data": DeliveryService(db).delivery_options()}


@router.get("/fee")
async def get_delivery_fee(
    method: Literal["pickup", "door"] = Query("door"),
    city: Optional[str] = Query(None, description="Delivery city (case-insensitive)"),
    db: Session = Depends(get_db)
):
    fee = DeliveryService(db).compute_delivery_fee(method, city)
    return {
        "status": "success",
        "data": {"method": method, "city": city, "fee": float(fee)},
    }
