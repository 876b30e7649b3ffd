"""
Order Service
Checkout (order creation with stock reservation), customer order views,
admin status changes and the expired-reservation sweeper
"""
import hashlib
import json
import logging
import secrets
import string
import time
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from trendify.core.config import get_settings
from trendify.core.database import utcnow
from trendify.core.errors import (
    ConflictError,
    CouponError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from trendify.domain.common import quantize
from trendify.domain.order import OrderCreate, OrderStatusUpdate
from trendify.domain.payment import PaymentOutcome
from trendify.models import Address, Order, OrderItem, Payment, ShippingAddress, User
from trendify.models.order import ORDER_TRANSITIONS
from trendify.repositories import OrderRepository, ProductRepository
from trendify.services.audit_service import record_audit
from trendify.services.coupon_service import CouponService
from trendify.services.delivery_service import DeliveryService
from trendify.services.driver_service import DriverService
from trendify.services.payment_service import PaymentService
from trendify.services.user_service import find_or_create_guest

logger = logging.getLogger(__name__)

ORDER_NUMBER_ALPHABET = string.ascii_uppercase + string.digits


def generate_order_number() -> str:
    """ORD-<epoch ms>-<5 random alphanumerics>"""
    suffix = "".join(secrets.choice(ORDER_NUMBER_ALPHABET) for _ in range(5))
    return f"ORD-{int(time.time() * 1000)}-{suffix}"


def checkout_signature(user_id: int, payload: OrderCreate) -> str:
    """
    SHA-256 of the canonical checkout request

    Two submissions that would produce the same order (same customer, items,
    tax, coupon, delivery and address) share a signature.
    """
    items = sorted(
        ([item.product_id, item.variant_id, item.quantity] for item in payload.items),
        key=lambda row: (row[0], row[1] or 0, row[2]),
    )
    address = payload.shipping_address.model_dump() if payload.shipping_address else None
    canonical = {
        "user": user_id,
        "items": items,
        "shipping": address,
        "tax": str(quantize(payload.tax)),
        "coupon": (payload.coupon_code or "").strip().upper() or None,
        "delivery": payload.delivery.model_dump(),
        "address_id": payload.address_id,
    }
    encoded = json.dumps(canonical, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(encoded.encode()).hexdigest()


def header_signature(idempotency_key: str) -> str:
    """Client-supplied Idempotency-Key, hashed to a fixed-width column value"""
    return hashlib.sha256(f"header:{idempotency_key.strip()}".encode()).hexdigest()


class OrderService:
    """Service for order business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.orders = OrderRepository(db)
        self.products = ProductRepository(db)
        self.coupons = CouponService(db)
        self.delivery = DeliveryService(db)
        self.drivers = DriverService(db)
        self.payments = PaymentService(db)
        self.settings = get_settings()

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    def _resolve_customer(self, payload: OrderCreate, account: Optional[User]) -> User:
        if account is not None:
            return account
        if not payload.email:
            raise ValidationError("Email is required for guest checkout")
        return find_or_create_guest(self.db, payload.email)

    def _resolve_address(self, payload: OrderCreate, customer: User) -> Optional[dict]:
        if payload.address_id is not None:
            stmt = select(Address).where(Address.id == payload.address_id, Address.user_id == customer.id)
            saved = self.db.scalars(stmt).first()
            if saved is None:
                raise NotFoundError("Address", payload.address_id)
            return {
                "full_name": saved.full_name,
                "street": saved.street,
                "city": saved.city,
                "state": saved.state or "",
                "zip_code": saved.zip_code or "",
                "country": saved.country or "GH",
                "phone": saved.phone or "",
            }

        if payload.shipping_address is not None:
            return payload.shipping_address.model_dump()

        return None

    def _price_items(self, payload: OrderCreate) -> Tuple[List[dict], Decimal]:
        """
        Validate each requested item against the catalog

        Returns:
            (line dicts, subtotal); prices always come from the catalog
        """
        lines = []
        subtotal = Decimal("0.00")

        for item in payload.items:
            product = self.products.find_by_id(item.product_id)
            if product is None:
                raise NotFoundError("Product", item.product_id)
            if not product.is_active:
                raise ValidationError(f"{product.name} is no longer available")

            variant = None
            if item.variant_id:
                variant = self.products.find_variant(product.id, item.variant_id)
                if variant is None:
                    raise NotFoundError("Variant", item.variant_id)

            available = variant.stock if variant else product.stock
            name = f"{product.name} - {variant.name}" if variant else product.name
            if item.quantity > available:
                raise InsufficientStockError(name, available)

            unit_price = quantize(variant.price if variant else product.price)
            total_price = quantize(unit_price * item.quantity)
            subtotal += total_price
            lines.append({
                "product_id": product.id,
                "variant_id": variant.id if variant else None,
                "product_name": name,
                "product_sku": (variant.sku if variant and variant.sku else product.sku),
                "quantity": item.quantity,
                "unit_price": unit_price,
                "total_price": total_price,
            })

        return lines, quantize(subtotal)

    def create_order(self, payload: OrderCreate, account: Optional[User] = None,
                     idempotency_key: Optional[str] = None) -> Tuple[Order, bool]:
        """
        Create an order from a checkout request

        Args:
            payload: Items, address, delivery, tax and coupon
            account: Signed-in customer (None for guest checkout)
            idempotency_key: Optional Idempotency-Key header value

        Returns:
            (order, created): created is False when a recent identical
            pending order was replayed instead

        Raises:
            ValidationError / NotFoundError: Invalid request
            InsufficientStockError: Not enough stock (also when another
                checkout takes the last units first)
            CouponError: Another checkout used up the coupon in the meantime
        """
        customer = self._resolve_customer(payload, account)
        address = self._resolve_address(payload, customer)
        selection = payload.delivery

        if selection.method == "pickup":
            city, location = self.delivery.validate_pickup(selection.pickup_city, selection.pickup_location)
            pickup_city, pickup_location = city.name, location.name
        else:
            pickup_city = pickup_location = None
            if address is None:
                raise ValidationError("Shipping address is required for door delivery")

        signature = header_signature(idempotency_key) if idempotency_key else checkout_signature(customer.id, payload)
        window = timedelta(minutes=self.settings.ORDER_IDEMPOTENCY_WINDOW_MINUTES)
        self.orders.lock_customer(customer.id)
        existing = self.orders.find_replayable(customer.id, signature, utcnow() - window)
        if existing is not None:
            logger.info(f"Replaying order {existing.order_number} for duplicate checkout")
            self.db.commit()
            return existing, False

        lines, subtotal = self._price_items(payload)
        tax = quantize(payload.tax)
        shipping = self.delivery.compute_delivery_fee(selection.method, address["city"] if address else None)
        coupon, discount = self.coupons.apply_coupon(payload.coupon_code, subtotal, customer.id)
        total = max(quantize(subtotal + tax + shipping - discount), Decimal("0.00"))
        currency = (payload.currency or self.settings.paystack_currency).upper()
        now = utcnow()

        try:
            for line in lines:
                if not self.products.reserve_stock(line["product_id"], line["variant_id"], line["quantity"]):
                    raise InsufficientStockError(line["product_name"])

            order = Order(
                order_number=generate_order_number(),
                user_id=customer.id,
                status="pending",
                payment_status="unpaid",
                subtotal=subtotal,
                tax=tax,
                shipping=shipping,
                discount=discount,
                total_amount=total,
                coupon_id=coupon.id if coupon else None,
                delivery_method=selection.method,
                pickup_city=pickup_city,
                pickup_location=pickup_location,
                estimated_delivery=now + timedelta(days=self.settings.ESTIMATED_DELIVERY_DAYS),
                idempotency_key=signature,
                created_at=now,
                updated_at=now,
            )
            order.items = [OrderItem(**line) for line in lines]
            if address is not None:
                order.shipping_address = ShippingAddress(**address)
            order.payment = Payment(
                amount=total,
                currency=currency,
                method=payload.payment_method,
                status="unpaid",
                details={},
            )
            self.db.add(order)
            self.db.flush()

            if coupon is not None and not self.coupons.increment_usage(coupon.id):
                raise CouponError(f"Coupon {coupon.code} has reached its usage limit")

            record_audit(
                self.db, "ORDER_CREATED", "order", order.id,
                new_value={"order_number": order.order_number, "total_amount": float(total)},
                user=customer,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Order {order.order_number} created for user {customer.id} (total {total} {currency})")
        return self.orders.find_by_id(order.id), True

    # ------------------------------------------------------------------
    # Customer views
    # ------------------------------------------------------------------

    def list_my_orders(self, user: User, page: int = 1, limit: int = 20) -> Tuple[List[Order], int]:
        return self.orders.find_all(user_id=user.id, page=page, limit=limit)

    def get_my_order(self, user: User, order_number: str) -> Order:
        order = self.orders.find_by_number(order_number, user_id=user.id)
        if order is None:
            raise NotFoundError("Order", order_number)
        return order

    def track_order(self, order_number: str, email: str) -> Order:
        """Public lookup; the e-mail must match the order's customer"""
        order = self.orders.find_by_number(order_number)
        if order is None or order.user.email.lower() != email.strip().lower():
            raise NotFoundError("Order", order_number)
        return order

    def cancel_order(self, user: User, order_number: str) -> Order:
        """
        Customer cancellation, only while the order is pending and unpaid

        Raises:
            NotFoundError: Unknown order or not the caller's
            ConflictError: Order already paid, shipped or canceled
        """
        order = self.get_my_order(user, order_number)
        if order.status != "pending" or order.payment_status != "unpaid":
            raise ConflictError("Only pending, unpaid orders can be canceled")

        result = self.payments.finalize_order_payment(
            order.id, None, PaymentOutcome.FAILED, failure_reason="Canceled by customer"
        )
        if result.order_status != "canceled":
            raise ConflictError("Order was paid before it could be canceled")

        record_audit(
            self.db, "ORDER_CANCELED", "order", order.id,
            old_value={"status": "pending"}, new_value={"status": "canceled"}, user=user,
        )
        self.db.commit()
        logger.info(f"Order {order.order_number} canceled by customer {user.id}")
        return self.orders.find_by_id(order.id)

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    def list_orders(self, status: Optional[str] = None, payment_status: Optional[str] = None,
                    user_id: Optional[int] = None, search: Optional[str] = None,
                    page: int = 1, limit: int = 20) -> Tuple[List[Order], int]:
        return self.orders.find_all(
            status=status,
            payment_status=payment_status,
            user_id=user_id,
            search=search,
            page=page,
            limit=limit,
        )

    def get_order(self, order_id: int) -> Order:
        order = self.orders.find_by_id(order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        return order

    def update_status(self, order_id: int, update: OrderStatusUpdate, actor: Optional[User] = None) -> Order:
        """
        Admin status change along ORDER_TRANSITIONS

        Canceling an unpaid order (pending or processing) goes through the
        payment finalizer so the reserved stock is restored exactly once.
        Shipping hands the order to the requested driver, or the least busy
        active one.

        Raises:
            NotFoundError: Unknown order
            ConflictError: Transition not allowed
            ValidationError: Unknown or inactive driver
        """
        order = self.get_order(order_id)
        old = {"status": order.status, "tracking_number": order.tracking_number}
        new_status = update.status

        if new_status != order.status and new_status not in ORDER_TRANSITIONS.get(order.status, set()):
            raise ConflictError(f"Cannot change order status from {order.status} to {new_status}")

        if new_status == "canceled" and order.payment_status == "unpaid":
            result = self.payments.finalize_order_payment(
                order.id, None, PaymentOutcome.FAILED, failure_reason="Canceled by staff"
            )
            if result.payment_status != "failed":
                raise ConflictError("Order was paid before it could be canceled")
            # The finalizer only cancels pending orders; processing ones are canceled below
            order = self.get_order(order_id)

        if new_status == "shipped" and (update.driver_id is not None or order.driver_id is None):
            self.drivers.assign(order, update.driver_id)

        order.status = new_status
        if update.tracking_number:
            order.tracking_number = update.tracking_number
        if new_status == "delivered" and order.delivered_at is None:
            order.delivered_at = utcnow()
        if update.notes:
            order.notes = f"{order.notes}\n{update.notes}" if order.notes else update.notes

        record_audit(
            self.db, "ORDER_STATUS_CHANGED", "order", order.id,
            old_value=old,
            new_value={
                "status": new_status,
                "tracking_number": order.tracking_number,
                "notes": update.notes,
                "driver_id": order.driver_id,
            },
            user=actor,
        )
        self.db.commit()
        logger.info(f"Order {order.order_number}: {old['status']} -> {new_status}")
        return self.get_order(order_id)

    # ------------------------------------------------------------------
    # Scheduled
    # ------------------------------------------------------------------

    def release_expired_reservations(self, now: Optional[datetime] = None, limit: int = 200) -> dict:
        """
        Abandon pending unpaid orders older than RESERVATION_TTL_MINUTES

        Each order goes through the payment finalizer, which restores stock
        and cancels the order; orders settled concurrently are skipped.
        """
        now = now or utcnow()
        cutoff = now - timedelta(minutes=self.settings.RESERVATION_TTL_MINUTES)
        expired = self.orders.find_expired_reservations(cutoff, limit=limit)
        order_ids = [order.id for order in expired]

        released = []
        for order_id in order_ids:
            result = self.payments.finalize_order_payment(
                order_id, None, PaymentOutcome.ABANDONED, failure_reason="Reservation expired"
            )
            if result.ok and not result.replayed and result.order_status == "canceled":
                released.append(order_id)

        if released:
            logger.info(f"Released {len(released)} expired reservation(s): {released}")
        return {"checked": len(order_ids), "released": len(released), "order_ids": released}
