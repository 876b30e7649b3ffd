"""
Domain Layer - Business Entities

This layer contains Pydantic models representing business entities.
These models enforce type safety and validation across the application.
"""
from trendify.domain.product import Product, ProductVariant
from trendify.domain.cart import Cart, CartLine
from trendify.domain.coupon import Coupon
from trendify.domain.delivery import DeliveryCity, DeliverySelection, PickupLocation
from trendify.domain.order import Order, OrderItem, OrderTracking, ShippingAddress, Payment
from trendify.domain.payment import PaymentOutcome, PaystackTransaction, FinalizeResult
from trendify.domain.returns import ReturnRequest
from trendify.domain.audit import AuditEntry

__all__ = [
    'Product', 'ProductVariant',
    'Cart', 'CartLine',
    'Coupon',
    'DeliveryCity', 'DeliverySelection', 'PickupLocation',
    'Order', 'OrderItem', 'OrderTracking', 'ShippingAddress', 'Payment',
    'PaymentOutcome', 'PaystackTransaction', 'FinalizeResult',
    'ReturnRequest',
    'AuditEntry',
]
