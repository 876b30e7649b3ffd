"""
Catalog Service
Product listing for the storefront and product management for admins
"""
import logging
import re
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from trendify.core.database import utcnow
from trendify.core.errors import ConflictError, NotFoundError, ValidationError
from trendify.domain.product import (
    Product as ProductOut,
    ProductCreate,
    ProductUpdate,
    ProductVariant as ProductVariantOut,
    StockAdjustment,
)
from trendify.models import Product, ProductVariant, User
from trendify.repositories import ProductRepository
from trendify.services.audit_service import record_audit

logger = logging.getLogger(__name__)


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    return slug or "product"


def serialize_product(product: Product) -> dict:
    """API view of a product; deleted variants are never exposed"""
    data = ProductOut.model_validate(product)
    data.variants = [
        ProductVariantOut.model_validate(v) for v in product.variants if v.deleted_at is None
    ]
    return data.to_dict()


class CatalogService:
    """Service for catalog business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.products = ProductRepository(db)

    def list_products(
        self,
        category: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
        include_inactive: bool = False
    ) -> Tuple[List[Product], int]:
        return self.products.find_all(
            category=category,
            search=search,
            include_inactive=include_inactive,
            page=page,
            limit=limit,
        )

    def get_product(self, id_or_slug: str, include_inactive: bool = False) -> Product:
        """Look up by numeric id or slug; 404 when missing, deleted or inactive"""
        product = None
        if str(id_or_slug).isdigit():
            product = self.products.find_by_id(int(id_or_slug))
        if product is None:
            product = self.products.find_by_slug(str(id_or_slug))

        if product is None or (not product.is_active and not include_inactive):
            raise NotFoundError("Product", id_or_slug)
        return product

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    def _unique_slug(self, base: str, exclude_id: Optional[int] = None) -> str:
        slug = base
        suffix = 2
        while True:
            stmt = select(Product.id).where(Product.slug == slug)
            if exclude_id is not None:
                stmt = stmt.where(Product.id != exclude_id)
            if self.db.scalar(stmt) is None:
                return slug
            slug = f"{base}-{suffix}"
            suffix += 1

    def create_product(self, data: ProductCreate, actor: Optional[User] = None) -> Product:
        slug = self._unique_slug(slugify(data.slug or data.name))

        product = Product(
            name=data.name,
            slug=slug,
            sku=data.sku,
            description=data.description,
            category=data.category,
            image=data.image,
            price=data.price,
            stock=data.stock,
            low_stock_threshold=data.low_stock_threshold,
            is_active=data.is_active,
            is_deleted=False,
        )
        for variant in data.variants:
            product.variants.append(ProductVariant(
                name=variant.name, sku=variant.sku, price=variant.price, stock=variant.stock
            ))

        self.db.add(product)
        self.db.flush()
        record_audit(self.db, "PRODUCT_CREATED", "product", product.id, new_value={"name": product.name, "slug": slug}, user=actor)
        self.db.commit()
        logger.info(f"Product created: {product.id} ({slug})")
        return self.products.find_by_id(product.id)

    def update_product(self, product_id: int, data: ProductUpdate, actor: Optional[User] = None) -> Product:
        product = self.products.find_by_id(product_id)
        if product is None:
            raise NotFoundError("Product", product_id)

        changes = {field: getattr(data, field) for field in data.model_fields_set}
        old = {field: _jsonable(getattr(product, field)) for field in changes}
        for field, value in changes.items():
            setattr(product, field, value)

        record_audit(
            self.db, "PRODUCT_UPDATED", "product", product.id,
            old_value=old, new_value={k: _jsonable(v) for k, v in changes.items()}, user=actor
        )
        self.db.commit()
        return self.products.find_by_id(product_id)

    def delete_product(self, product_id: int, actor: Optional[User] = None):
        """Soft delete: the row stays for order history"""
        product = self.products.find_by_id(product_id)
        if product is None:
            raise NotFoundError("Product", product_id)

        product.is_deleted = True
        product.is_active = False
        record_audit(self.db, "PRODUCT_DELETED", "product", product.id, user=actor)
        self.db.commit()
        logger.info(f"Product soft-deleted: {product_id}")

    def delete_variant(self, product_id: int, variant_id: int, actor: Optional[User] = None):
        variant = self.products.find_variant(product_id, variant_id)
        if variant is None:
            raise NotFoundError("Variant", variant_id)
        variant.deleted_at = utcnow()
        record_audit(self.db, "VARIANT_DELETED", "product", product_id, new_value={"variant_id": variant_id}, user=actor)
        self.db.commit()

    def adjust_stock(self, product_id: int, adjustment: StockAdjustment, actor: Optional[User] = None) -> Product:
        """
        Manual stock change

        Raises:
            NotFoundError: Unknown product or variant
            ConflictError: The adjustment would take stock below zero
        """
        product = self.products.find_by_id(product_id)
        if product is None:
            raise NotFoundError("Product", product_id)

        target = product
        if adjustment.variant_id:
            target = self.products.find_variant(product_id, adjustment.variant_id)
            if target is None:
                raise NotFoundError("Variant", adjustment.variant_id)

        if adjustment.delta == 0:
            raise ValidationError("Stock adjustment cannot be zero")

        before = target.stock
        if not self.products.adjust_stock(product_id, adjustment.variant_id, adjustment.delta):
            self.db.rollback()
            raise ConflictError(f"Stock cannot go below zero (current: {before})")

        record_audit(
            self.db, "STOCK_ADJUSTED", "product", product_id,
            old_value={"stock": before, "variant_id": adjustment.variant_id},
            new_value={"stock": before + adjustment.delta, "reason": adjustment.reason},
            user=actor,
        )
        self.db.commit()
        logger.info(f"Stock adjusted for product {product_id}: {adjustment.delta:+d}")
        self.db.expire_all()
        return self.products.find_by_id(product_id)

    def low_stock_report(self, threshold: Optional[int] = None) -> List[dict]:
        return [
            {
                "id": p.id,
                "name": p.name,
                "sku": p.sku,
                "stock": p.stock,
                "low_stock_threshold": p.low_stock_threshold,
            }
            for p in self.products.find_low_stock(threshold)
        ]


def _jsonable(value):
    """Audit JSON cannot hold Decimal"""
    return float(value) if isinstance(value, Decimal) else value
