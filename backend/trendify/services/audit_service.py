"""
Audit Service
Writes and lists the audit trail of order, payment and return changes
"""
from typing import Any, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from trendify.models import Audit, User


def record_audit(
    db: Session,
    action: str,
    entity_type: str,
    entity_id,
    old_value: Optional[Any] = None,
    new_value: Optional[Any] = None,
    user: Optional[User] = None,
) -> Audit:
    """
    Add an audit row to the current transaction (the caller commits)

    Args:
        action: e.g. 'PAYMENT_PAID', 'ORDER_STATUS_CHANGED'
        entity_type: 'order', 'payment', 'return', 'product'
        entity_id: Primary key of the entity
        user: Acting user; None for gateway and system changes
    """
    entry = Audit(
        user_id=user.id if user is not None else None,
        user_email=user.email if user is not None else None,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        old_value=old_value,
        new_value=new_value,
    )
    db.add(entry)
    return entry


def list_audit(
    db: Session,
    action: Optional[str] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
) -> Tuple[List[Audit], int]:
    conditions = []
    if action:
        conditions.append(Audit.action == action)
    if entity_type:
        conditions.append(Audit.entity_type == entity_type)
    if entity_id:
        conditions.append(Audit.entity_id == str(entity_id))

    total = db.scalar(select(func.count(Audit.id)).where(*conditions))
    stmt = (
        select(Audit)
        .where(*conditions)
        .order_by(Audit.created_at.desc(), Audit.id.desc())
        .limit(limit)
        .offset((page - 1) * limit)
    )
    return list(db.scalars(stmt)), total
