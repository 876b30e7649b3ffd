"""
Database models
"""
from .user import User, Address
from .product import Product, ProductVariant
from .cart import Cart, CartItem
from .coupon import Coupon
from .delivery import DeliveryCity, PickupLocation, Driver
from .order import Order, OrderItem, ShippingAddress
from .payment import Payment
from .returns import ReturnRequest
from .review import Review
from .audit import Audit

__all__ = [
    "User",
    "Address",
    "Product",
    "ProductVariant",
    "Cart",
    "CartItem",
    "Coupon",
    "DeliveryCity",
    "PickupLocation",
    "Driver",
    "Order",
    "OrderItem",
    "ShippingAddress",
    "Payment",
    "ReturnRequest",
    "Review",
    "Audit",
]
