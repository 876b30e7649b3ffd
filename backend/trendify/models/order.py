"""
Order models: orders, their line items and shipping address
"""
from sqlalchemy import Column, Integer, String, DateTime, Text, Numeric, ForeignKey
from sqlalchemy.orm import relationship

from trendify.core.database import Base, utcnow

ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "canceled")

# Admin status changes; anything else is rejected with 409
ORDER_TRANSITIONS = {
    "pending": {"processing", "canceled"},
    "processing": {"shipped", "canceled"},
    "shipped": {"delivered"},
    "delivered": set(),
    "canceled": set(),
}


class Order(Base):
    """
    Orders table

    status tracks fulfilment, payment_status mirrors the Payment row.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(50), unique=True, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Status
    status = Column(String(20), nullable=False, default="pending", index=True)
    payment_status = Column(String(20), nullable=False, default="unpaid", index=True)

    # Amounts
    subtotal = Column(Numeric(12, 2), nullable=False)
    tax = Column(Numeric(12, 2), nullable=False, default=0)
    shipping = Column(Numeric(12, 2), nullable=False, default=0)
    discount = Column(Numeric(12, 2), nullable=False, default=0)
    total_amount = Column(Numeric(12, 2), nullable=False)
    coupon_id = Column(Integer, ForeignKey("coupons.id"))

    # Delivery
    delivery_method = Column(String(10), nullable=False, default="door")  # 'door' | 'pickup'
    pickup_city = Column(String(100))
    pickup_location = Column(String(255))
    driver_id = Column(Integer, ForeignKey("drivers.id", ondelete="SET NULL"), index=True)
    tracking_number = Column(String(100))
    estimated_delivery = Column(DateTime)
    delivered_at = Column(DateTime)

    # Checkout request signature, used to replay duplicate submissions
    idempotency_key = Column(String(128), index=True)
    notes = Column(Text)

    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    user = relationship("User", back_populates="orders")
    coupon = relationship("Coupon")
    driver = relationship("Driver", back_populates="orders")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id")
    shipping_address = relationship(
        "ShippingAddress", back_populates="order", uselist=False, cascade="all, delete-orphan"
    )
    payment = relationship("Payment", back_populates="order", uselist=False, cascade="all, delete-orphan")
    returns = relationship("ReturnRequest", back_populates="order", cascade="all, delete-orphan")


class OrderItem(Base):
    """
    Order line, with the product name/SKU as they were at purchase time
    """
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), index=True, nullable=False)
    variant_id = Column(Integer, ForeignKey("product_variants.id"))

    product_name = Column(String(255), nullable=False)
    product_sku = Column(String(100))

    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    total_price = Column(Numeric(12, 2), nullable=False)

    order = relationship("Order", back_populates="items")
    product = relationship("Product")


class ShippingAddress(Base):
    __tablename__ = "shipping_addresses"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), unique=True, nullable=False)

    full_name = Column(String(255), nullable=False)
    street = Column(String(255), nullable=False)
    city = Column(String(100), nullable=False)
    state = Column(String(100), default="")
    zip_code = Column(String(20), default="")
    country = Column(String(2), default="GH")
    phone = Column(String(50), default="")

    order = relationship("Order", back_populates="shipping_address")
