"""
Order Domain Models

Represents order-related entities in the Trendify system: checkout input,
the order read model returned by the API and admin status updates.
"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from trendify.domain.common import Money
from trendify.domain.delivery import DeliverySelection


class AddressIn(BaseModel):
    """Inline shipping address submitted at checkout"""
    full_name: str = Field(..., min_length=1)
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = ""
    zip_code: str = ""
    country: str = "GH"
    phone: str = ""


class OrderItemIn(BaseModel):
    product_id: int
    variant_id: Optional[int] = None
    quantity: int = Field(..., ge=1)


class OrderCreate(BaseModel):
    """
    Checkout payload

    Guests send `email`; signed-in customers may omit it. Prices are never
    taken from the client, only product ids and quantities.
    """
    email: Optional[EmailStr] = None
    items: List[OrderItemIn] = Field(..., min_length=1)
    shipping_address: Optional[AddressIn] = None
    address_id: Optional[int] = None
    delivery: DeliverySelection = Field(default_factory=DeliverySelection)
    tax: Money = Field(0, ge=0)
    coupon_code: Optional[str] = None
    payment_method: Literal["paystack"] = "paystack"
    currency: Optional[str] = None


class OrderItem(BaseModel):
    """
    Order Item domain model - a line item as purchased

    Fields:
        product_name / product_sku: Snapshot at purchase time
        unit_price: Catalog (or variant) price at purchase time
        total_price: unit_price * quantity
    """

    id: int = Field(..., description="Order item ID")
    product_id: int = Field(..., description="Product catalog ID")
    variant_id: Optional[int] = Field(None, description="Variant ID")
    product_name: str = Field(..., description="Product name at order time")
    product_sku: Optional[str] = Field(None, description="Product SKU at order time")
    quantity: int = Field(..., description="Quantity ordered", ge=1)
    unit_price: Money = Field(..., description="Price per unit", ge=0)
    total_price: Money = Field(..., description="Total for line item", ge=0)

    model_config = ConfigDict(from_attributes=True)


class ShippingAddress(BaseModel):
    full_name: str
    street: str
    city: str
    state: Optional[str] = ""
    zip_code: Optional[str] = ""
    country: Optional[str] = ""
    phone: Optional[str] = ""

    model_config = ConfigDict(from_attributes=True)


class Payment(BaseModel):
    id: int
    amount: Money
    currency: str
    method: str
    status: str
    transaction_id: Optional[str] = None
    gateway_fee: Optional[Money] = None
    paid_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    failure_reason: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class Order(BaseModel):
    """
    Order domain model - represents a customer order

    Fields:
        order_number: Human-readable number (ORD-<ms>-<XXXXX>)
        status: pending, processing, shipped, delivered, canceled
        payment_status: unpaid, paid, failed, refunded, partially_refunded

        # Amounts
        subtotal: Sum of line totals
        tax / shipping / discount: Adjustments
        total_amount: subtotal + tax + shipping - discount

        # Related data
        items: Order lines
        shipping_address: Present for door delivery
        payment: The order's payment row
    """

    id: int = Field(..., description="Internal order ID")
    order_number: str = Field(..., description="Order number")
    user_id: int = Field(..., description="Customer ID")

    status: str = Field(..., description="Order status")
    payment_status: str = Field(..., description="Payment status")

    subtotal: Money = Field(..., ge=0)
    tax: Money = Field(0, ge=0)
    shipping: Money = Field(0, ge=0)
    discount: Money = Field(0, ge=0)
    total_amount: Money = Field(..., ge=0)
    coupon_id: Optional[int] = None

    delivery_method: str = "door"
    pickup_city: Optional[str] = None
    pickup_location: Optional[str] = None
    driver_id: Optional[int] = None
    tracking_number: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    delivered_at: Optional[datetime] = None

    created_at: datetime
    updated_at: Optional[datetime] = None

    items: List[OrderItem] = Field(default_factory=list)
    shipping_address: Optional[ShippingAddress] = None
    payment: Optional[Payment] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def is_paid(self) -> bool:
        return self.payment_status == "paid"

    def to_dict(self) -> dict:
        """Serialize with computed fields"""
        data = self.model_dump()
        data["item_count"] = self.item_count
        data["is_paid"] = self.is_paid
        return data


class OrderTracking(BaseModel):
    """Public tracking view: status fields only, no address or payment details"""
    order_number: str
    status: str
    payment_status: str
    delivery_method: str
    tracking_number: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrderStatusUpdate(BaseModel):
    """Admin status change"""
    status: Literal["pending", "processing", "shipped", "delivered", "canceled"]
    tracking_number: Optional[str] = None
    notes: Optional[str] = None
    driver_id: Optional[int] = Field(None, description="Driver to hand the order to; least busy when omitted")

    @model_validator(mode="after")
    def tracking_only_when_shipping(self):
        if self.tracking_number and self.status not in ("shipped", "delivered"):
            raise ValueError("tracking_number can only be set when shipping or delivering")
        if self.driver_id is not None and self.status != "shipped":
            raise ValueError("driver_id can only be set when shipping")
        return self
