"""
Coupons API Endpoints
Strict coupon validation for the cart/checkout preview
"""
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from trendify.core.auth import get_current_account_optional
from trendify.core.database import get_db
from trendify.domain.coupon import CouponValidateRequest
from trendify.models import User
from trendify.services.coupon_service import CouponService

router = APIRouter()


@router.post("/validate")
async def validate_coupon(
    request: CouponValidateRequest,
    account: Optional[User] = Depends(get_current_account_optional),
    db: Session = Depends(get_db)
):
    """
    Check a coupon against a subtotal

    Returns the discount, or 404/400 with the first rule the coupon fails.
    Per-customer limits are only checked for signed-in callers.
    """
    coupon, discount = CouponService(db).validate_coupon(
        request.code,
        request.subtotal,
        user_id=account.id if account else None,
    )

    return {
        "status": "success",
        "data": {
            "code": coupon.code,
            "type": coupon.type,
            "value": float(coupon.value),
            "discount": float(discount),
            "subtotal_after_discount": float(request.subtotal - discount),
        }
    }
