"""
Discount coupons
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Numeric

from trendify.core.database import Base, utcnow

COUPON_TYPES = ("percentage", "fixed_amount")


class Coupon(Base):
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, nullable=False, index=True)  # stored upper-case
    description = Column(String(255))

    type = Column(String(20), nullable=False)  # 'percentage' | 'fixed_amount'
    value = Column(Numeric(12, 2), nullable=False)
    min_purchase = Column(Numeric(12, 2))
    max_discount = Column(Numeric(12, 2))

    usage_limit = Column(Integer)
    usage_count = Column(Integer, nullable=False, default=0)
    per_user_limit = Column(Integer)

    start_date = Column(DateTime)
    end_date = Column(DateTime)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=utcnow)
