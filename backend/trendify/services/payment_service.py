"""
Payment Service
Paystack checkout and the reconciliation of order, payment and stock state

Every path that learns a payment outcome (client verify, redirect landing,
webhook, reservation sweeper, customer/admin cancel) goes through
finalize_order_payment. It is safe to call any number of times, in any order
and concurrently for the same order:

- terminal payments are replayed without writes
- the move out of 'unpaid' is a conditional UPDATE; the request whose UPDATE
  matches no row lost the race and reports the winner's state
"""
import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from trendify.connectors.paystack_connector import (
    PaystackConnector,
    outcome_for_status,
    verify_webhook_signature,
)
from trendify.core.config import get_settings
from trendify.core.database import utcnow
from trendify.core.errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    TrendifyError,
    ValidationError,
)
from trendify.domain.common import from_minor, to_minor
from trendify.domain.order import Order as OrderOut, OrderTracking
from trendify.domain.payment import FinalizeResult, PaymentOutcome
from trendify.models import Order, Payment, User
from trendify.models.payment import OPEN_PAYMENT_STATUSES, TERMINAL_PAYMENT_STATUSES
from trendify.repositories import OrderRepository, ProductRepository
from trendify.services.audit_service import record_audit
from trendify.services.cart_service import CartService
from trendify.services.delivery_service import DeliveryService

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_REASONS = {
    PaymentOutcome.FAILED: "Payment failed",
    PaymentOutcome.ABANDONED: "Payment abandoned",
}


def raise_for_result(result: FinalizeResult):
    """Turn a failed FinalizeResult into the matching domain error"""
    if result.ok:
        return
    if result.status == 404:
        raise NotFoundError("Order", result.order_id)
    if result.status == 400:
        raise ValidationError(result.error)
    raise TrendifyError(result.error or "Payment reconciliation failed")


def parse_paid_at(value) -> datetime:
    """Paystack timestamps are ISO-8601 with a trailing Z; stored as naive UTC"""
    if isinstance(value, datetime):
        parsed = value
    elif value:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            logger.warning(f"Unparseable paid_at from gateway: {value!r}")
            return utcnow()
    else:
        return utcnow()

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


class PaymentService:
    """Service for payment business logic"""

    def __init__(self, db: Session, connector: Optional[PaystackConnector] = None):
        self.db = db
        self.connector = connector
        self.orders = OrderRepository(db)
        self.products = ProductRepository(db)
        self.settings = get_settings()

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def _ensure_payment(self, order: Order, currency: Optional[str]) -> Payment:
        """Payment row for the order, created 'unpaid' when missing"""
        payment = self.orders.find_payment(order.id)
        if payment is not None:
            return payment

        payment = Payment(
            order_id=order.id,
            amount=order.total_amount,
            currency=(currency or self.settings.paystack_currency).upper(),
            method="paystack",
            status="unpaid",
            details={},
        )
        self.db.add(payment)
        try:
            self.db.flush()
        except IntegrityError:
            # Created concurrently by another request
            self.db.rollback()
            payment = self.orders.find_payment(order.id)
        return payment

    def _current(self, order_id: int, replayed: bool) -> FinalizeResult:
        self.db.expire_all()
        order = self.orders.find_by_id(order_id)
        payment = order.payment
        return FinalizeResult(
            ok=True,
            status=200,
            order_id=order.id,
            payment_status=payment.status if payment else None,
            order_status=order.status,
            order_payment_status=order.payment_status,
            replayed=replayed,
        )

    def _claim(self, payment: Payment, values: Dict[str, Any]) -> bool:
        """Move the payment out of an open status; False if another request already did"""
        stmt = (
            update(Payment)
            .where(Payment.id == payment.id, Payment.status.in_(OPEN_PAYMENT_STATUSES))
            .values(updated_at=utcnow(), **values)
            .execution_options(synchronize_session="fetch")
        )
        return self.db.execute(stmt).rowcount == 1

    def finalize_order_payment(
        self,
        order_id: int,
        reference: Optional[str],
        outcome: PaymentOutcome,
        currency: Optional[str] = None,
        paid_amount_minor: Optional[int] = None,
        gateway_fee_minor: Optional[int] = None,
        paid_at=None,
        failure_reason: Optional[str] = None,
        verify_payload: Optional[dict] = None,
    ) -> FinalizeResult:
        """
        Apply a payment outcome to an order (idempotent)

        Args:
            order_id: Order to reconcile
            reference: Paystack transaction reference
            outcome: paid, failed, abandoned or unknown
            currency: Transaction currency
            paid_amount_minor: Amount the gateway reports as charged
            gateway_fee_minor: Paystack fee
            paid_at: Gateway timestamp (ISO string or datetime)
            failure_reason: Gateway message for failed/abandoned payments
            verify_payload: Raw verify response, kept as metadata.verify

        Returns:
            FinalizeResult; ok=False with status 404 (unknown order) or
            400 (underpayment), otherwise the statuses after the call
        """
        outcome = PaymentOutcome(outcome)
        order = self.orders.find_by_id(order_id, for_update=True)
        if order is None:
            return FinalizeResult(ok=False, status=404, order_id=order_id, error="Order not found")

        payment = self._ensure_payment(order, currency)
        if payment.status in TERMINAL_PAYMENT_STATUSES:
            logger.info(f"Order {order_id}: payment already {payment.status}, replaying")
            self.db.commit()
            return self._current(order_id, replayed=True)

        details = dict(payment.details or {})
        if verify_payload is not None:
            details["verify"] = verify_payload
        currency = (currency or payment.currency).upper()
        reference = reference or payment.transaction_id

        if outcome == PaymentOutcome.PAID:
            return self._mark_paid(order, payment, reference, currency, details,
                                   paid_amount_minor, gateway_fee_minor, paid_at)

        if outcome in (PaymentOutcome.FAILED, PaymentOutcome.ABANDONED):
            reason = failure_reason or DEFAULT_FAILURE_REASONS[outcome]
            return self._mark_failed(order, payment, reference, currency, details, reason)

        # Unknown: keep what the gateway told us, change no status
        payment.transaction_id = reference
        payment.currency = currency
        payment.details = details
        self.db.commit()
        logger.info(f"Order {order_id}: payment outcome unknown, metadata stored")
        return self._current(order_id, replayed=False)

    def _mark_paid(self, order, payment, reference, currency, details,
                   paid_amount_minor, gateway_fee_minor, paid_at) -> FinalizeResult:
        expected_minor = to_minor(order.total_amount)
        if paid_amount_minor is not None and int(paid_amount_minor) < expected_minor:
            logger.warning(
                f"Order {order.id}: underpayment {paid_amount_minor} < {expected_minor} (ref {reference})"
            )
            self.db.rollback()
            return FinalizeResult(
                ok=False,
                status=400,
                order_id=order.id,
                error="Paid amount is less than the order total",
            )

        claimed = self._claim(payment, {
            "status": "paid",
            "transaction_id": reference,
            "currency": currency,
            "gateway_fee": from_minor(gateway_fee_minor) if gateway_fee_minor is not None else None,
            "paid_at": parse_paid_at(paid_at),
            "details": details,
        })
        if not claimed:
            self.db.rollback()
            logger.info(f"Order {order.id}: concurrent finalization won, returning current state")
            return self._current(order.id, replayed=True)

        old = {"status": order.status, "payment_status": order.payment_status}
        order.payment_status = "paid"
        if order.status == "pending":
            order.status = "processing"

        record_audit(
            self.db, "PAYMENT_PAID", "order", order.id,
            old_value=old,
            new_value={"status": order.status, "payment_status": "paid", "reference": reference},
        )
        self.db.commit()
        logger.info(f"Order {order.id} paid (ref {reference})")
        return self._current(order.id, replayed=False)

    def _mark_failed(self, order, payment, reference, currency, details, reason) -> FinalizeResult:
        claimed = self._claim(payment, {
            "status": "failed",
            "transaction_id": reference,
            "currency": currency,
            "failed_at": utcnow(),
            "failure_reason": reason,
            "details": details,
        })
        if not claimed:
            self.db.rollback()
            logger.info(f"Order {order.id}: concurrent finalization won, returning current state")
            return self._current(order.id, replayed=True)

        old = {"status": order.status, "payment_status": order.payment_status}
        order.payment_status = "failed"
        if order.status == "pending":
            order.status = "canceled"

        for item in order.items:
            self.products.release_stock(item.product_id, item.variant_id, item.quantity)

        record_audit(
            self.db, "PAYMENT_FAILED", "order", order.id,
            old_value=old,
            new_value={"status": order.status, "payment_status": "failed", "reason": reason, "reference": reference},
        )
        self.db.commit()
        logger.info(f"Order {order.id} payment failed: {reason}")
        return self._current(order.id, replayed=False)

    # ------------------------------------------------------------------
    # Gateway flows
    # ------------------------------------------------------------------

    async def initialize_payment(self, order_id: int, email: str,
                                 callback_url: Optional[str] = None,
                                 user: Optional[User] = None) -> dict:
        """
        Start a Paystack checkout for an unpaid order

        Guests must supply the e-mail the order was placed with; signed-in
        customers may only pay their own orders.

        Raises:
            NotFoundError: Unknown order (or not the caller's)
            ConflictError: Order already paid or canceled
            ValidationError: Nothing to charge
            PaymentGatewayError: Paystack rejected or could not be reached
        """
        order = self.orders.find_by_id(order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        if user is not None:
            if order.user_id != user.id:
                raise NotFoundError("Order", order_id)
        elif order.user.email.lower() != email.strip().lower():
            raise NotFoundError("Order", order_id)

        if order.payment_status == "paid":
            raise ConflictError("Order is already paid")
        if order.status == "canceled":
            raise ConflictError("Order has been canceled")

        amount_minor = to_minor(order.total_amount)
        if amount_minor <= 0:
            raise ValidationError("Order total must be greater than zero")

        payment = self._ensure_payment(order, None)
        if payment.status in TERMINAL_PAYMENT_STATUSES:
            raise ConflictError(f"Payment is already {payment.status}")
        self.db.commit()

        reference = f"{order.order_number}-{int(time.time() * 1000)}"
        metadata = {
            "order_id": order.id,
            "reference": reference,
            "delivery": {
                "method": order.delivery_method,
                "pickup_city": order.pickup_city,
                "pickup_location": order.pickup_location,
            },
        }
        init = await self.connector.initialize_transaction(
            email=email,
            amount_minor=amount_minor,
            currency=payment.currency,
            reference=reference,
            callback_url=callback_url or f"{self.settings.APP_URL.rstrip('/')}/checkout/confirm",
            metadata=metadata,
        )

        payment = self.orders.find_payment(order.id)
        details = dict(payment.details or {})
        details["init"] = init.model_dump()
        payment.transaction_id = init.reference or reference
        payment.details = details
        self.db.commit()
        logger.info(f"Payment initialized for order {order.id} (ref {payment.transaction_id})")

        return {
            "authorization_url": init.authorization_url,
            "access_code": init.access_code,
            "reference": payment.transaction_id,
            "amount": float(order.total_amount),
            "currency": payment.currency,
        }

    def _finalize_transaction(self, order_id: int, transaction, reference: str) -> FinalizeResult:
        """Finalize an order from a gateway verify response"""
        outcome = outcome_for_status(transaction.status)
        return self.finalize_order_payment(
            order_id,
            reference=transaction.reference or reference,
            outcome=outcome,
            currency=transaction.currency,
            paid_amount_minor=transaction.amount if outcome == PaymentOutcome.PAID else None,
            gateway_fee_minor=transaction.fees,
            paid_at=transaction.paid_at,
            failure_reason=transaction.gateway_response,
            verify_payload=transaction.model_dump(mode="json"),
        )

    async def verify_payment(self, user: User, reference: str, order_id: int) -> dict:
        """
        Client-side polling after checkout

        Raises:
            NotFoundError: Unknown order or not the caller's
            ValidationError: Reference belongs to another order, or the
                transaction did not succeed (failures are still finalized)
        """
        order = self.orders.find_by_id(order_id, user_id=user.id)
        if order is None:
            raise NotFoundError("Order", order_id)

        transaction = await self.connector.verify_transaction(reference)
        meta_order_id = transaction.meta.get("order_id")
        if meta_order_id is not None and str(meta_order_id) != str(order.id):
            logger.warning(f"Reference {reference} belongs to order {meta_order_id}, not {order.id}")
            raise ValidationError("Reference does not belong to this order")

        result = self._finalize_transaction(order.id, transaction, reference)
        raise_for_result(result)

        if result.payment_status != "paid":
            logger.warning(f"Verification for order {order.id} not successful: {transaction.status}")
            raise ValidationError("Payment verification failed")

        self._clear_cart(user)
        return {
            "order_id": order.id,
            "order_number": order.order_number,
            "status": result.order_status,
            "payment_status": result.order_payment_status,
        }

    async def verify_by_reference(self, reference: str, user: Optional[User] = None) -> dict:
        """
        Redirect landing: the order is located through the transaction metadata

        The order's owner gets the full order back, anyone else the tracking view.

        Raises:
            ValidationError: Metadata has no order_id, or the pickup selection is invalid
            NotFoundError: Unknown order
        """
        transaction = await self.connector.verify_transaction(reference)
        meta = transaction.meta

        try:
            order_id = int(meta.get("order_id"))
        except (TypeError, ValueError):
            raise ValidationError("Transaction metadata is missing order_id")

        if self.orders.find_by_id(order_id) is None:
            raise NotFoundError("Order", order_id)

        delivery = meta.get("delivery")
        if isinstance(delivery, dict) and delivery.get("method") == "pickup":
            DeliveryService(self.db).validate_pickup(delivery.get("pickup_city"), delivery.get("pickup_location"))

        result = self._finalize_transaction(order_id, transaction, reference)
        raise_for_result(result)

        order = self.orders.find_by_id(order_id)
        owner = user is not None and order.user_id == user.id
        if owner and result.payment_status == "paid":
            self._clear_cart(user)

        if owner:
            order_view = OrderOut.model_validate(order).to_dict()
        else:
            order_view = OrderTracking.model_validate(order).model_dump()

        return {
            "transaction": {
                "reference": transaction.reference,
                "status": transaction.status,
                "amount": float(from_minor(transaction.amount)),
                "currency": transaction.currency,
                "paid_at": transaction.paid_at,
                "gateway_response": transaction.gateway_response,
            },
            "order": order_view,
        }

    async def handle_webhook(self, raw_body: bytes, signature: Optional[str]) -> dict:
        """
        Paystack webhook

        Authentication and payload errors raise; once the order is known,
        gateway and reconciliation failures are logged and acknowledged so
        Paystack stops retrying (the next verify or the sweeper reconciles).
        """
        secret = self.settings.PAYSTACK_SECRET_KEY
        if not secret:
            raise TrendifyError("Webhook secret is not configured")
        if not signature:
            raise ValidationError("Missing x-paystack-signature header")
        if not verify_webhook_signature(raw_body, signature, secret):
            logger.warning("Rejected Paystack webhook with invalid signature")
            raise AuthenticationError("Invalid webhook signature")

        try:
            payload = json.loads(raw_body)
        except ValueError:
            raise ValidationError("Invalid JSON payload")

        if not isinstance(payload, dict) or not payload.get("event") or not isinstance(payload.get("data"), dict):
            raise ValidationError("Webhook payload must include event and data")

        data = payload["data"]
        metadata = data.get("metadata") if isinstance(data.get("metadata"), dict) else {}
        reference = data.get("reference")
        order_id = metadata.get("order_id")
        if not reference or order_id is None:
            raise ValidationError("Webhook data is missing reference or metadata.order_id")

        try:
            order_id = int(order_id)
        except (TypeError, ValueError):
            raise ValidationError("Webhook metadata.order_id is not a valid id")

        if self.orders.find_by_id(order_id) is None:
            raise NotFoundError("Order", order_id)

        logger.info(
            f"Paystack webhook {payload['event']} for order {order_id}",
            extra={"context": {"reference": reference, "status": data.get("status"), "amount": data.get("amount")}},
        )
        try:
            transaction = await self.connector.verify_transaction(reference)
            result = self._finalize_transaction(order_id, transaction, reference)
            if not result.ok:
                logger.warning(f"Webhook reconciliation for order {order_id} rejected: {result.error}")
        except Exception as e:
            self.db.rollback()
            logger.error(f"Webhook processing failed for order {order_id}: {e}")

        return {"ok": True}

    def _clear_cart(self, user: User):
        try:
            CartService(self.db, user).clear_cart()
        except Exception as e:
            self.db.rollback()
            logger.warning(f"Could not clear cart for user {user.id}: {e}")
