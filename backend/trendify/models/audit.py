"""
Audit trail of state changes on orders, payments and returns
"""
from sqlalchemy import Column, Integer, String, DateTime, JSON

from trendify.core.database import Base, utcnow


class Audit(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)

    # Who (null user_id for gateway/system changes)
    user_id = Column(Integer, index=True)
    user_email = Column(String(255))

    # What
    action = Column(String(50), nullable=False, index=True)  # 'PAYMENT_PAID', 'ORDER_STATUS_CHANGED', ...
    entity_type = Column(String(50), nullable=False, index=True)
    entity_id = Column(String(50), nullable=False, index=True)
    old_value = Column(JSON)
    new_value = Column(JSON)

    created_at = Column(DateTime, default=utcnow, index=True)
