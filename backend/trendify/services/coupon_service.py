"""
Coupon Service
Discount arithmetic, validity rules and admin CRUD for coupons

Two validation modes:
- validate_coupon: strict, reports the first failing rule (cart preview)
- apply_coupon: lenient, a failing coupon is simply ignored (checkout)
"""
import logging
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session

from trendify.core.database import utcnow
from trendify.core.errors import ConflictError, CouponError, NotFoundError
from trendify.domain.common import quantize
from trendify.domain.coupon import CouponCreate, CouponUpdate
from trendify.models import Coupon
from trendify.repositories import OrderRepository

logger = logging.getLogger(__name__)


def compute_discount(coupon: Coupon, subtotal) -> Decimal:
    """
    Discount for a subtotal

    percentage: subtotal * value / 100, capped at max_discount
    fixed_amount: value, capped at the subtotal
    """
    subtotal = Decimal(str(subtotal))
    value = Decimal(str(coupon.value))

    if coupon.type == "percentage":
        discount = subtotal * value / Decimal(100)
        if coupon.max_discount is not None:
            discount = min(discount, Decimal(str(coupon.max_discount)))
    else:
        discount = value

    discount = min(discount, subtotal)
    return max(quantize(discount), Decimal("0.00"))


class CouponService:
    """Service for coupon business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.orders = OrderRepository(db)

    def find_by_code(self, code: str) -> Optional[Coupon]:
        stmt = select(Coupon).where(Coupon.code == code.strip().upper())
        return self.db.scalars(stmt).first()

    def check_rules(self, coupon: Coupon, subtotal, user_id: Optional[int] = None):
        """Raise CouponError for the first rule the coupon fails"""
        now = utcnow()

        if not coupon.is_active:
            raise CouponError("Coupon is not active")

        if coupon.start_date and coupon.start_date > now:
            raise CouponError("Coupon is not yet active")

        if coupon.end_date and coupon.end_date < now:
            raise CouponError("Coupon has expired")

        if coupon.usage_limit is not None and coupon.usage_count >= coupon.usage_limit:
            raise CouponError("Coupon usage limit has been reached")

        if coupon.per_user_limit is not None and user_id is not None:
            used = self.orders.count_coupon_uses(user_id, coupon.id)
            if used >= coupon.per_user_limit:
                raise CouponError("You have already used this coupon the maximum number of times")

        if coupon.min_purchase is not None and Decimal(str(subtotal)) < Decimal(str(coupon.min_purchase)):
            raise CouponError(f"Minimum purchase of {quantize(coupon.min_purchase)} required for this coupon")

    def validate_coupon(self, code: str, subtotal, user_id: Optional[int] = None) -> Tuple[Coupon, Decimal]:
        """
        Strict validation

        Raises:
            NotFoundError: Unknown code
            CouponError: First failing rule
        """
        coupon = self.find_by_code(code)
        if coupon is None:
            raise NotFoundError("Coupon", code)

        self.check_rules(coupon, subtotal, user_id)
        return coupon, compute_discount(coupon, subtotal)

    def apply_coupon(self, code: Optional[str], subtotal, user_id: Optional[int] = None) -> Tuple[Optional[Coupon], Decimal]:
        """Lenient validation used during checkout: (None, 0) when the coupon does not apply"""
        if not code:
            return None, Decimal("0.00")

        try:
            return self.validate_coupon(code, subtotal, user_id)
        except (NotFoundError, CouponError) as e:
            logger.warning(f"Ignoring coupon {code!r} at checkout: {e.message}")
            return None, Decimal("0.00")

    def increment_usage(self, coupon_id: int) -> bool:
        """
        Count one use (runs inside the order transaction)

        Guarded on usage_limit, so two checkouts racing for the last use
        cannot both win. Returns False when the limit is already reached.
        """
        result = self.db.execute(
            update(Coupon)
            .where(
                Coupon.id == coupon_id,
                or_(Coupon.usage_limit.is_(None), Coupon.usage_count < Coupon.usage_limit),
            )
            .values(usage_count=Coupon.usage_count + 1)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    def list_coupons(self, page: int = 1, limit: int = 50) -> Tuple[List[Coupon], int]:
        total = self.db.scalar(select(func.count(Coupon.id)))
        stmt = select(Coupon).order_by(Coupon.created_at.desc(), Coupon.id.desc()).limit(limit).offset((page - 1) * limit)
        return list(self.db.scalars(stmt)), total

    def get_coupon(self, coupon_id: int) -> Coupon:
        coupon = self.db.get(Coupon, coupon_id)
        if coupon is None:
            raise NotFoundError("Coupon", coupon_id)
        return coupon

    def create_coupon(self, data: CouponCreate) -> Coupon:
        if self.find_by_code(data.code):
            raise ConflictError(f"Coupon code {data.code} already exists")
        if data.type == "percentage" and data.value > 100:
            raise CouponError("Percentage coupons cannot exceed 100")

        coupon = Coupon(**dict(data), usage_count=0)
        self.db.add(coupon)
        self.db.commit()
        self.db.refresh(coupon)
        logger.info(f"Coupon created: {coupon.code}")
        return coupon

    def update_coupon(self, coupon_id: int, data: CouponUpdate) -> Coupon:
        coupon = self.get_coupon(coupon_id)
        for field in data.model_fields_set:
            setattr(coupon, field, getattr(data, field))
        if coupon.type == "percentage" and Decimal(str(coupon.value)) > 100:
            self.db.rollback()
            raise CouponError("Percentage coupons cannot exceed 100")
        self.db.commit()
        self.db.refresh(coupon)
        return coupon

    def delete_coupon(self, coupon_id: int):
        """Deactivate (orders keep their coupon link)"""
        coupon = self.get_coupon(coupon_id)
        coupon.is_active = False
        self.db.commit()
        logger.info(f"Coupon deactivated: {coupon.code}")
