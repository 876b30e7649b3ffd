"""
Order Repository - Data Access Layer for Orders

Handles all database queries for orders and their payment rows.
"""
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from trendify.models import Order, Payment, User


class OrderRepository:
    """
    Repository for Order data access

    All order queries are centralized here. Every loader eagerly fetches
    items, shipping address and payment so serialization never lazy-loads.
    """

    def __init__(self, db: Session):
        self.db = db

    def _base_query(self):
        return select(Order).options(
            selectinload(Order.items),
            selectinload(Order.shipping_address),
            selectinload(Order.payment),
            selectinload(Order.user),
        )

    def find_by_id(self, order_id: int, user_id: Optional[int] = None, for_update: bool = False) -> Optional[Order]:
        """
        Find order by ID

        Args:
            order_id: Internal order ID
            user_id: Restrict to this customer's orders
            for_update: Lock the order row until the transaction ends (PostgreSQL)

        Returns:
            Order or None if not found
        """
        stmt = self._base_query().where(Order.id == order_id)
        if user_id is not None:
            stmt = stmt.where(Order.user_id == user_id)
        if for_update:
            stmt = stmt.with_for_update(of=Order)
        return self.db.scalars(stmt).first()

    def find_by_number(self, order_number: str, user_id: Optional[int] = None) -> Optional[Order]:
        stmt = self._base_query().where(Order.order_number == order_number)
        if user_id is not None:
            stmt = stmt.where(Order.user_id == user_id)
        return self.db.scalars(stmt).first()

    def find_all(
        self,
        status: Optional[str] = None,
        payment_status: Optional[str] = None,
        user_id: Optional[int] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20
    ) -> Tuple[List[Order], int]:
        """
        Find orders with filters

        Args:
            status: Filter by order status
            payment_status: Filter by payment status
            user_id: Filter by customer
            search: Search by order number or customer e-mail/name
            page: 1-based page number
            limit: Page size

        Returns:
            Tuple of (list of orders, total count)
        """
        conditions = []

        if status:
            conditions.append(Order.status == status)

        if payment_status:
            conditions.append(Order.payment_status == payment_status)

        if user_id is not None:
            conditions.append(Order.user_id == user_id)

        if search:
            pattern = f"%{search}%"
            conditions.append(or_(
                Order.order_number.ilike(pattern),
                User.email.ilike(pattern),
                User.name.ilike(pattern),
            ))

        count_stmt = select(func.count(Order.id)).join(User, Order.user_id == User.id).where(*conditions)
        total = self.db.scalar(count_stmt)

        stmt = (
            self._base_query()
            .join(User, Order.user_id == User.id)
            .where(*conditions)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        return list(self.db.scalars(stmt)), total

    def lock_customer(self, user_id: int):
        """
        Row-lock the customer for the rest of the transaction

        Serializes checkouts of one customer so the replay lookup and the
        order insert cannot interleave. SQLite ignores FOR UPDATE.
        """
        self.db.execute(select(User.id).where(User.id == user_id).with_for_update())

    def find_replayable(self, user_id: int, idempotency_key: str, since: datetime) -> Optional[Order]:
        """
        Most recent still-unpaid order created from the same checkout request
        """
        stmt = (
            self._base_query()
            .where(
                Order.user_id == user_id,
                Order.idempotency_key == idempotency_key,
                Order.status == "pending",
                Order.payment_status == "unpaid",
                Order.created_at >= since,
            )
            .order_by(Order.created_at.desc())
        )
        return self.db.scalars(stmt).first()

    def count_coupon_uses(self, user_id: int, coupon_id: int) -> int:
        """Orders of this customer that applied the coupon (canceled ones excluded)"""
        stmt = select(func.count(Order.id)).where(
            Order.user_id == user_id,
            Order.coupon_id == coupon_id,
            Order.status != "canceled",
        )
        return self.db.scalar(stmt) or 0

    def find_expired_reservations(self, cutoff: datetime, limit: int = 200) -> List[Order]:
        """Pending unpaid orders created before cutoff (oldest first)"""
        stmt = (
            select(Order)
            .where(
                Order.status == "pending",
                Order.payment_status == "unpaid",
                Order.created_at <= cutoff,
            )
            .order_by(Order.created_at.asc())
            .limit(limit)
        )
        return list(self.db.scalars(stmt))

    def find_payment(self, order_id: int) -> Optional[Payment]:
        return self.db.scalars(select(Payment).where(Payment.order_id == order_id)).first()
