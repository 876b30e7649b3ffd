"""
Payment row (one per order)
"""
from sqlalchemy import Column, Integer, String, DateTime, Text, Numeric, JSON, ForeignKey
from sqlalchemy.orm import relationship

from trendify.core.database import Base, utcnow

PAYMENT_STATUSES = ("unpaid", "paid", "failed", "refunded", "partially_refunded")

# Once a payment reaches one of these, gateway callbacks no longer change it
TERMINAL_PAYMENT_STATUSES = ("paid", "failed", "refunded", "partially_refunded")
OPEN_PAYMENT_STATUSES = ("unpaid",)


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), unique=True, nullable=False)

    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    method = Column(String(20), nullable=False, default="paystack")
    status = Column(String(20), nullable=False, default="unpaid", index=True)

    # Paystack reference of the latest transaction for this order
    transaction_id = Column(String(255), index=True)
    gateway_fee = Column(Numeric(12, 2))

    paid_at = Column(DateTime)
    failed_at = Column(DateTime)
    failure_reason = Column(Text)

    # Gateway snapshots: {"init": {...}, "verify": {...}}
    details = Column("metadata", JSON, default=dict)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    order = relationship("Order", back_populates="payment")
