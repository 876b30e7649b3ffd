"""
Return Service
Customer return requests and their admin review
"""
import logging
from datetime import timedelta
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from trendify.core.config import get_settings
from trendify.core.database import utcnow
from trendify.core.errors import ConflictError, NotFoundError, ValidationError
from trendify.domain.common import quantize
from trendify.domain.returns import ReturnCreate, ReturnReview
from trendify.models import Order, ReturnRequest, User
from trendify.models.returns import RETURN_TRANSITIONS
from trendify.repositories import OrderRepository, ProductRepository
from trendify.services.audit_service import record_audit

logger = logging.getLogger(__name__)

REVIEW_ACTIONS = {
    "approve": "RETURN_APPROVED",
    "reject": "RETURN_REJECTED",
    "receive": "RETURN_RECEIVED",
    "complete": "RETURN_COMPLETED",
}


class ReturnService:
    """Service for return business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.orders = OrderRepository(db)
        self.products = ProductRepository(db)
        self.settings = get_settings()

    def _items_already_returned(self, order_id: int) -> set:
        """Item ids covered by any return that was not rejected"""
        stmt = select(ReturnRequest.order_item_ids).where(
            ReturnRequest.order_id == order_id,
            ReturnRequest.status != "rejected",
        )
        taken = set()
        for item_ids in self.db.scalars(stmt):
            taken.update(item_ids or [])
        return taken

    def create_return(self, user: User, data: ReturnCreate) -> ReturnRequest:
        """
        Open a return for items of a delivered order

        Raises:
            NotFoundError: Unknown order or not the caller's
            ValidationError: Not delivered, outside the return window or foreign items
            ConflictError: An item is already part of another return
        """
        order = self.orders.find_by_id(data.order_id, user_id=user.id)
        if order is None:
            raise NotFoundError("Order", data.order_id)

        if order.status != "delivered":
            raise ValidationError("Only delivered orders can be returned")

        delivered_at = order.delivered_at or order.updated_at or order.created_at
        if utcnow() - delivered_at > timedelta(days=self.settings.RETURN_WINDOW_DAYS):
            raise ValidationError(f"Returns are accepted within {self.settings.RETURN_WINDOW_DAYS} days of delivery")

        item_ids = sorted(set(data.order_item_ids))
        items = {item.id: item for item in order.items}
        unknown = [item_id for item_id in item_ids if item_id not in items]
        if unknown:
            raise ValidationError(f"Items {unknown} do not belong to this order")

        overlap = sorted(self._items_already_returned(order.id).intersection(item_ids))
        if overlap:
            raise ConflictError(f"Items {overlap} already have a return request")

        refund = quantize(sum((Decimal(str(items[i].total_price)) for i in item_ids), Decimal("0")))
        request = ReturnRequest(
            order_id=order.id,
            order_item_ids=item_ids,
            reason=data.reason,
            reason_details=data.reason_details,
            refund_amount=refund,
            status="pending",
        )
        self.db.add(request)
        self.db.flush()
        record_audit(
            self.db, "RETURN_REQUESTED", "return", request.id,
            new_value={"order_id": order.id, "items": item_ids, "refund_amount": float(refund)},
            user=user,
        )
        self.db.commit()
        self.db.refresh(request)
        logger.info(f"Return {request.id} requested for order {order.order_number}")
        return request

    def list_my_returns(self, user: User, page: int = 1, limit: int = 20) -> Tuple[List[ReturnRequest], int]:
        condition = Order.user_id == user.id
        total = self.db.scalar(
            select(func.count(ReturnRequest.id)).join(Order, ReturnRequest.order_id == Order.id).where(condition)
        )
        stmt = (
            select(ReturnRequest)
            .join(Order, ReturnRequest.order_id == Order.id)
            .where(condition)
            .order_by(ReturnRequest.created_at.desc(), ReturnRequest.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        return list(self.db.scalars(stmt)), total

    def list_returns(self, status: Optional[str] = None, page: int = 1, limit: int = 20) -> Tuple[List[ReturnRequest], int]:
        conditions = [ReturnRequest.status == status] if status else []
        total = self.db.scalar(select(func.count(ReturnRequest.id)).where(*conditions))
        stmt = (
            select(ReturnRequest)
            .where(*conditions)
            .order_by(ReturnRequest.created_at.desc(), ReturnRequest.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        return list(self.db.scalars(stmt)), total

    def review_return(self, return_id: int, review: ReturnReview, actor: Optional[User] = None) -> ReturnRequest:
        """
        approve / reject a pending return, receive an approved one, complete
        an approved or received one

        Approving may deduct a restock fee and return shipping from the
        refund. Completing restocks the returned items and moves the payment to
        refunded (all completed refunds cover the order total) or
        partially_refunded.

        Raises:
            NotFoundError: Unknown return
            ConflictError: Action not allowed from the current status
        """
        request = self.db.get(ReturnRequest, return_id)
        if request is None:
            raise NotFoundError("Return request", return_id)

        allowed_from, target = RETURN_TRANSITIONS[review.action]
        if request.status not in allowed_from:
            raise ConflictError(f"Cannot {review.action} a return that is {request.status}")

        old = {"status": request.status}
        request.status = target
        if review.notes:
            request.admin_notes = review.notes

        new = {"status": target, "notes": review.notes}
        if review.action == "approve":
            new.update(self._apply_terms(request, review))
        elif review.action == "receive":
            request.received_at = utcnow()
        elif review.action == "complete":
            new["payment_status"] = self._complete(request)

        record_audit(self.db, REVIEW_ACTIONS[review.action], "return", request.id, old_value=old, new_value=new, user=actor)
        self.db.commit()
        self.db.refresh(request)
        logger.info(f"Return {request.id}: {old['status']} -> {target}")
        return request

    def _apply_terms(self, request: ReturnRequest, review: ReturnReview) -> dict:
        """Deduct the fees from the item total; the refund never goes below zero"""
        restock_fee = quantize(review.restock_fee or 0)
        shipping_cost = quantize(review.shipping_cost or 0)
        refund = max(quantize(Decimal(str(request.refund_amount)) - restock_fee - shipping_cost), Decimal("0.00"))

        request.restock_fee = restock_fee
        request.shipping_cost = shipping_cost
        request.refund_amount = refund
        if review.return_label:
            request.return_label = review.return_label
        return {
            "restock_fee": float(restock_fee),
            "shipping_cost": float(shipping_cost),
            "refund_amount": float(refund),
        }

    def _complete(self, request: ReturnRequest) -> str:
        order = self.orders.find_by_id(request.order_id)
        items = {item.id: item for item in order.items}

        for item_id in request.order_item_ids:
            item = items.get(item_id)
            if item is not None:
                self.products.release_stock(item.product_id, item.variant_id, item.quantity)

        self.db.flush()
        refunded = self.db.scalar(
            select(func.coalesce(func.sum(ReturnRequest.refund_amount), 0)).where(
                ReturnRequest.order_id == order.id,
                ReturnRequest.status == "completed",
            )
        )
        covered = Decimal(str(refunded)) >= Decimal(str(order.total_amount))
        payment_status = "refunded" if covered else "partially_refunded"

        order.payment_status = payment_status
        if order.payment is not None:
            order.payment.status = payment_status
        return payment_status
