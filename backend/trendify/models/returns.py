"""
Customer return requests
"""
from sqlalchemy import Column, Integer, String, DateTime, Text, Numeric, JSON, ForeignKey
from sqlalchemy.orm import relationship

from trendify.core.database import Base, utcnow

RETURN_STATUSES = ("pending", "approved", "received", "rejected", "completed")

# action -> (statuses it applies to, resulting status)
RETURN_TRANSITIONS = {
    "approve": (("pending",), "approved"),
    "reject": (("pending",), "rejected"),
    "receive": (("approved",), "received"),
    "complete": (("approved", "received"), "completed"),
}


class ReturnRequest(Base):
    __tablename__ = "returns"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)

    order_item_ids = Column(JSON, nullable=False)
    reason = Column(String(255), nullable=False)
    reason_details = Column(Text)

    # refund_amount = item totals - restock_fee - shipping_cost (never below 0)
    refund_amount = Column(Numeric(12, 2), nullable=False)
    restock_fee = Column(Numeric(12, 2), nullable=False, default=0)
    shipping_cost = Column(Numeric(12, 2), nullable=False, default=0)
    return_label = Column(String(500))

    status = Column(String(20), nullable=False, default="pending", index=True)
    admin_notes = Column(Text)
    received_at = Column(DateTime)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    order = relationship("Order", back_populates="returns")
