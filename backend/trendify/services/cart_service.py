"""
Cart Service
One cart per customer; lines priced from the catalog, never from the client
"""
import logging
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, selectinload

from trendify.core.errors import InsufficientStockError, NotFoundError, ValidationError
from trendify.domain.cart import Cart as CartOut, CartItemAdd, CartLine
from trendify.models import Cart, CartItem, User
from trendify.repositories import ProductRepository

logger = logging.getLogger(__name__)


class CartService:
    """Service for cart business logic"""

    def __init__(self, db: Session, user: User):
        self.db = db
        self.user = user
        self.products = ProductRepository(db)

    def _get_or_create(self) -> Cart:
        stmt = select(Cart).options(selectinload(Cart.items)).where(Cart.user_id == self.user.id)
        cart = self.db.scalars(stmt).first()
        if cart is None:
            cart = Cart(user_id=self.user.id)
            self.db.add(cart)
            self.db.flush()
        return cart

    def get_cart(self) -> dict:
        """Cart lines with item count and subtotal"""
        cart = self._get_or_create()
        return CartOut(items=[CartLine.model_validate(line) for line in cart.items]).to_dict()

    def _available(self, product_id: int, variant_id: Optional[int]):
        """(product, variant, units available, unit price, display name)"""
        product = self.products.find_by_id(product_id)
        if product is None or not product.is_active:
            raise NotFoundError("Product", product_id)

        if variant_id:
            variant = self.products.find_variant(product_id, variant_id)
            if variant is None:
                raise NotFoundError("Variant", variant_id)
            return product, variant, variant.stock, variant.price, f"{product.name} - {variant.name}"

        return product, None, product.stock, product.price, product.name

    def add_item(self, data: CartItemAdd) -> dict:
        """
        Add a line or merge into the matching one (same product, variant, color, size)

        Raises:
            InsufficientStockError: Merged quantity exceeds available stock
        """
        product, variant, available, unit_price, name = self._available(data.product_id, data.variant_id)
        cart = self._get_or_create()

        line = next(
            (
                item for item in cart.items
                if item.product_id == data.product_id
                and item.variant_id == data.variant_id
                and item.color == data.color
                and item.size == data.size
            ),
            None,
        )
        quantity = data.quantity + (line.quantity if line else 0)
        if quantity > available:
            raise InsufficientStockError(name, available)

        if line is None:
            line = CartItem(
                cart_id=cart.id,
                product_id=product.id,
                variant_id=variant.id if variant else None,
                color=data.color,
                size=data.size,
            )
            cart.items.append(line)

        line.name = name
        line.unit_price = unit_price
        line.image = product.image
        line.quantity = quantity

        self.db.commit()
        logger.info(f"Cart {cart.id}: {name} x{quantity}")
        return self.get_cart()

    def _find_line(self, item_id: int) -> CartItem:
        cart = self._get_or_create()
        line = next((item for item in cart.items if item.id == item_id), None)
        if line is None:
            raise NotFoundError("Cart item", item_id)
        return line

    def update_quantity(self, item_id: int, quantity: int) -> dict:
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")

        line = self._find_line(item_id)
        _, _, available, unit_price, name = self._available(line.product_id, line.variant_id)
        if quantity > available:
            raise InsufficientStockError(name, available)

        line.quantity = quantity
        line.unit_price = unit_price
        self.db.commit()
        return self.get_cart()

    def remove_item(self, item_id: int) -> dict:
        line = self._find_line(item_id)
        self.db.delete(line)
        self.db.commit()
        self.db.expire_all()
        return self.get_cart()

    def clear_cart(self):
        cart = self._get_or_create()
        self.db.execute(delete(CartItem).where(CartItem.cart_id == cart.id))
        self.db.commit()
        self.db.expire_all()
