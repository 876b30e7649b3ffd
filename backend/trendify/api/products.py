"""
Products API Endpoints
Public catalog: listing with filters and product detail
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from trendify.core.database import get_db
from trendify.domain.common import paginate
from trendify.services.catalog_service import CatalogService, serialize_product

router = APIRouter()


@router.get("/")
async def get_products(
    category: Optional[str] = Query(None, description="Filter by category"),
    search: Optional[str] = Query(None, description="Search by name, SKU or description"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db)
):
    """
    Get active products with optional filters

    Deleted and inactive products are never listed.
    """
    products, total = CatalogService(db).list_products(
        category=category,
        search=search,
        page=page,
        limit=limit,
    )

    return {
        "status": "success",
        "data": [serialize_product(p) for p in products],
        **paginate(total, page, limit),
    }


@router.get("/{id_or_slug}")
async def get_product(id_or_slug: str, db: Session = Depends(get_db)):
    """Get a single product by numeric ID or slug"""
    product = CatalogService(db).get_product(id_or_slug)
    return {
        "status": "success",
        "data": serialize_product(product),
    }
