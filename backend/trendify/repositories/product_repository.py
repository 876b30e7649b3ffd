"""
Product Repository - Data Access Layer for the catalog

Handles catalog queries and the guarded stock updates used for reservations.
"""
from typing import List, Optional, Tuple

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session, selectinload

from trendify.models import Product, ProductVariant


class ProductRepository:
    """
    Repository for Product data access

    Stock is only ever changed through reserve_stock/release_stock/adjust_stock,
    which issue single conditional UPDATE statements so concurrent checkouts
    cannot drive stock below zero.
    """

    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, product_id: int, include_deleted: bool = False) -> Optional[Product]:
        stmt = (
            select(Product)
            .options(selectinload(Product.variants))
            .where(Product.id == product_id)
        )
        if not include_deleted:
            stmt = stmt.where(Product.is_deleted.is_(False))
        return self.db.scalars(stmt).first()

    def find_by_slug(self, slug: str) -> Optional[Product]:
        stmt = (
            select(Product)
            .options(selectinload(Product.variants))
            .where(Product.slug == slug, Product.is_deleted.is_(False))
        )
        return self.db.scalars(stmt).first()

    def find_variant(self, product_id: int, variant_id: int) -> Optional[ProductVariant]:
        """Live (not deleted) variant belonging to the product"""
        stmt = select(ProductVariant).where(
            ProductVariant.id == variant_id,
            ProductVariant.product_id == product_id,
            ProductVariant.deleted_at.is_(None),
        )
        return self.db.scalars(stmt).first()

    def find_all(
        self,
        category: Optional[str] = None,
        search: Optional[str] = None,
        include_inactive: bool = False,
        page: int = 1,
        limit: int = 20
    ) -> Tuple[List[Product], int]:
        """
        Find products with filters

        Args:
            category: Filter by category (case-insensitive)
            search: Search by name, SKU or description
            include_inactive: Admin listings also see inactive products
            page: 1-based page number
            limit: Page size

        Returns:
            Tuple of (list of products, total count)
        """
        conditions = [Product.is_deleted.is_(False)]

        if not include_inactive:
            conditions.append(Product.is_active.is_(True))

        if category:
            conditions.append(func.lower(Product.category) == category.lower())

        if search:
            pattern = f"%{search}%"
            conditions.append(or_(
                Product.name.ilike(pattern),
                Product.sku.ilike(pattern),
                Product.description.ilike(pattern),
            ))

        total = self.db.scalar(select(func.count(Product.id)).where(*conditions))

        stmt = (
            select(Product)
            .options(selectinload(Product.variants))
            .where(*conditions)
            .order_by(Product.created_at.desc(), Product.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        return list(self.db.scalars(stmt)), total

    def find_low_stock(self, threshold: Optional[int] = None) -> List[Product]:
        """Active products at or below their own threshold (or the given one)"""
        limit_col = threshold if threshold is not None else Product.low_stock_threshold
        stmt = (
            select(Product)
            .where(
                Product.is_deleted.is_(False),
                Product.is_active.is_(True),
                Product.stock <= limit_col,
            )
            .order_by(Product.stock.asc(), Product.name)
        )
        return list(self.db.scalars(stmt))

    # ------------------------------------------------------------------
    # Stock
    # ------------------------------------------------------------------

    def _target(self, product_id: int, variant_id: Optional[int]):
        if variant_id:
            return ProductVariant, ProductVariant.id == variant_id
        return Product, Product.id == product_id

    def reserve_stock(self, product_id: int, variant_id: Optional[int], quantity: int) -> bool:
        """
        Decrement stock only if enough units remain.

        Returns:
            False when the guard did not match (another checkout took the units)
        """
        model, where = self._target(product_id, variant_id)
        stmt = (
            update(model)
            .where(where, model.stock >= quantity)
            .values(stock=model.stock - quantity)
            .execution_options(synchronize_session="fetch")
        )
        return self.db.execute(stmt).rowcount == 1

    def release_stock(self, product_id: int, variant_id: Optional[int], quantity: int):
        """Give reserved units back (failed payment, cancellation, return)"""
        model, where = self._target(product_id, variant_id)
        stmt = (
            update(model)
            .where(where)
            .values(stock=model.stock + quantity)
            .execution_options(synchronize_session="fetch")
        )
        self.db.execute(stmt)

    def adjust_stock(self, product_id: int, variant_id: Optional[int], delta: int) -> bool:
        """Manual adjustment; refuses to go below zero"""
        if delta >= 0:
            self.release_stock(product_id, variant_id, delta)
            return True
        return self.reserve_stock(product_id, variant_id, -delta)
