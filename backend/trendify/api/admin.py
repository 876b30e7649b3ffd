"""
Admin API - Back-office Endpoints

Catalog, coupons, delivery settings, drivers and review moderation require
the admin role; order and return handling is open to staff. Every state
change is written to the audit trail with the acting user.
"""
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from trendify.core.auth import require_admin_account, require_staff_account
from trendify.core.database import get_db
from trendify.domain.audit import AuditEntry
from trendify.domain.common import paginate
from trendify.domain.coupon import Coupon as CouponOut, CouponCreate, CouponUpdate
from trendify.domain.delivery import (
    DeliveryCityCreate,
    DeliveryCityUpdate,
    DriverCreate,
    DriverUpdate,
    PickupLocationCreate,
)
from trendify.domain.order import Order as OrderOut, OrderStatusUpdate
from trendify.domain.product import ProductCreate, ProductUpdate, StockAdjustment
from trendify.domain.returns import ReturnRequest as ReturnOut, ReturnReview
from trendify.domain.review import Review as ReviewOut, ReviewModeration
from trendify.models import User
from trendify.services.audit_service import list_audit
from trendify.services.catalog_service import CatalogService, serialize_product
from trendify.services.coupon_service import CouponService
from trendify.services.delivery_service import DeliveryService, serialize_city, serialize_location
from trendify.services.driver_service import DriverService, serialize_driver
from trendify.services.order_service import OrderService
from trendify.services.return_service import ReturnService
from trendify.services.review_service import ReviewService

router = APIRouter()


# ============================================================================
# Catalog
# ============================================================================

@router.get("/products")
async def list_products(
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    admin: User = Depends(require_admin_account),
    db: Session = Depends(get_db)
):
    """All non-deleted products, including inactive ones"""
    products, total = CatalogService(db).list_products(
        category=category, search=search, page=page, limit=limit, include_inactive=True
    )
    return {
        "status": "success",
        "data": [serialize_product(p) for p in products],
        **paginate(total, page, limit),
    }


@router.get("/products/low-stock")
async def low_stock_report(
    threshold: Optional[int] = Query(None, ge=0, description="Override each product's own threshold"),
    admin: User = Depends(require_admin_account),
    db: Session = Depends(get_db)
):
    return {"status": "success", "data": CatalogService(db).low_stock_report(threshold)}


@router.post("/products", status_code=status.HTTP_201_CREATED)
async def create_product(
    product: ProductCreate,
    admin: User = Depends(require_admin_account),
    db: Session = Depends(get_db)
):
    created = CatalogService(db).create_product(product, actor=admin)
    return {"status": "success", "data": serialize_product(created)}


@router.patch("/products/{product_id}")
async def update_product(
    product_id: int,
    update: ProductUpdate,
    admin: User = Depends(require_admin_account),
    db: Session = Depends(get_db)
):
    updated = CatalogService(db).update_product(product_id, update, actor=admin)
    return {"status": "success", "data": serialize_product(updated)}


@router.delete("/products/{product_id}")
async def delete_product(
    product_id: int,
    admin: User = Depends(require_admin_account),
    db: Session = Depends(get_db)
):
    """Soft delete; existing orders keep referencing the product"""
    CatalogService(db).delete_product(product_id, actor=admin)
    return {"status": "success", "message": f"Product {product_id} deleted"}


@router.delete("/products/{product_id}/variants/{variant_id}")
async def delete_variant(
    product_id: int,
    variant_id: int,
    admin: User = Depends(require_admin_account),
    db: Session = Depends(get_db)
):
    CatalogService(db).delete_variant(product_id, variant_id, actor=admin)
    return {"status": "success", "message": f"Variant {variant_id} deleted"}


@router.post("/products/{product_id}/stock")
async def adjust_stock(
    product_id: int,
    adjustment: StockAdjustment,
    admin: User = Depends(require_admin_account),
    db: Session = Depends(get_db)
):
    """Add (positive delta) or remove (negative delta) units; never below zero"""
    product = CatalogService(db).adjust_stock(product_id, adjustment, actor=admin)
    return {"status": "success", "data": serialize_product(product)}


# ============================================================================
# Coupons
# ============================================================================

@router.get("/coupons")
async def list_coupons(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    admin: User = Depends(require_admin_account),
    db: Session = Depends(get_db)
):
    coupons, total = CouponService(db).list_coupons(page=page, limit=limit)
    return {
        "status": "success",
        "data": [CouponOut.model_validate(c).model_dump() for c in coupons],
        **paginate(total, page, limit),
    }


@router.post("/coupons", status_code=status.HTTP_201_CREATED)
async def create_coupon(
    coupon: CouponCreate,
    admin: User = Depends(require_admin_account),
    db: Session = Depends(get_db)
):
    created = CouponService(db).create_coupon(coupon)
    return {"status": "success", "data": CouponOut.model_validate(created).model_dump()}


@router.patch("/coupons/{coupon_id}")
async def update_coupon(
    coupon_id: int,
    update: CouponUpdate,
    admin: User = Depends(require_admin_account),
    db: Session = Depends(get_db)
):
    updated = CouponService(db).update_coupon(coupon_id, update)
    return {"status": "success", "data": CouponOut.model_validate(updated).model_dump()}


@router.delete("/coupons/{coupon_id}")
async def delete_coupon(
    coupon_id: int,
    admin: User = Depends(require_admin_account),
    db: Session = Depends(get_db)
):
    """Deactivates the coupon"""
    CouponService(db).delete_coupon(coupon_id)
    return {"status": "success", "message": f"Coupon {coupon_id} deactivated"}


# ============================================================================
# Delivery
# ============================================================================

@router.get("/delivery/cities")
async def list_delivery_cities(
    admin: User = Depends(require_admin_account),
    db: Session = Depends(get_db)
):
    """All cities, including inactive ones and inactive pickup points"""
    return {"status": "success", "data": [serialize_city(c) for c in DeliveryService(db).list_cities()]}


@router.post("/delivery/cities", status_code=status.HTTP_201_CREATED)
async def create_delivery_city(
    city: DeliveryCityCreate,
    admin: User = Depends(require_admin_account),
    db: Session = Depends(get_db)
):
    created = DeliveryService(db).create_city(city)
    return {"status": "success", "data": serialize_city(created)}


@router.patch("/delivery/cities/{city_id}")
async def update_delivery_city(
    city_id: int,
    update: DeliveryCityUpdate,
    admin: User = Depends(require_admin_account),
    db: Session = Depends(get_db)
):
    updated = DeliveryService(db).update_city(city_id, update)
    return {"status": "success", "data": serialize_city(updated)}


@router.delete("/delivery/cities/{city_id}")
async def delete_delivery_city(
    city_id: int,
    admin: User = Depends(require_admin_account),
    db: Session = Depends(get_db)
):
    DeliveryService(db).delete_city(city_id)
    return {"status": "success", "message": f"City {city_id} deleted"}


@router.post("/delivery/cities/{city_id}/pickup-locations", status_code=status.HTTP_201_CREATED)
async def add_pickup_location(
    city_id: int,
    location: PickupLocationCreate,
    admin: User = Depends(require_admin_account),
    db: Session = Depends(get_db)
):
    created = DeliveryService(db).add_pickup_location(city_id, location)
    return {"status": "success", "data": serialize_location(created)}


@router.delete("/delivery/pickup-locations/{location_id}")
async def delete_pickup_location(
    location_id: int,
    admin: User = Depends(require_admin_account),
    db: Session = Depends(get_db)
):
    DeliveryService(db).delete_pickup_location(location_id)
    return {"status": "success", "message": f"Pickup location {location_id} deleted"}


# ============================================================================
# Drivers
# ============================================================================

@router.get("/drivers")
async def list_drivers(
    search: Optional[str] = Query(None, description="Name, phone or licence number"),
    active: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    admin: User = Depends(require_admin_account),
    db: Session = Depends(get_db)
):
    drivers, total = DriverService(db).list_drivers(search=search, active=active, page=page, limit=limit)
    return {
        "status": "success",
        "data": [serialize_driver(d) for d in drivers],
        **paginate(total, page, limit),
    }


@router.get("/drivers/{driver_id}")
async def get_driver(
    driver_id: int,
    admin: User = Depends(require_admin_account),
    db: Session = Depends(get_db)
):
    return {"status": "success", "data": serialize_driver(DriverService(db).get_driver(driver_id))}


@router.post("/drivers", status_code=status.HTTP_201_CREATED)
async def create_driver(
    driver: DriverCreate,
    admin: User = Depends(require_admin_account),
    db: Session = Depends(get_db)
):
    created = DriverService(db).create_driver(driver)
    return {"status": "success", "data": serialize_driver(created)}


@router.patch("/drivers/{driver_id}")
async def update_driver(
    driver_id: int,
    update: DriverUpdate,
    admin: User = Depends(require_admin_account),
    db: Session = Depends(get_db)
):
    """service_city_ids, when sent, replaces the driver's service areas"""
    updated = DriverService(db).update_driver(driver_id, update)
    return {"status": "success", "data": serialize_driver(updated)}


@router.delete("/drivers/{driver_id}")
async def delete_driver(
    driver_id: int,
    admin: User = Depends(require_admin_account),
    db: Session = Depends(get_db)
):
    """Orders the driver carried keep their history without a driver"""
    DriverService(db).delete_driver(driver_id)
    return {"status": "success", "message": f"Driver {driver_id} deleted"}


# ============================================================================
# Orders
# ============================================================================

@router.get("/orders")
async def list_orders(
    status: Optional[str] = Query(None, description="Filter by order status"),
    payment_status: Optional[str] = Query(None, description="Filter by payment status"),
    user_id: Optional[int] = Query(None, description="Filter by customer"),
    search: Optional[str] = Query(None, description="Search by order number, customer name or email"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    staff: User = Depends(require_staff_account),
    db: Session = Depends(get_db)
):
    orders, total = OrderService(db).list_orders(
        status=status,
        payment_status=payment_status,
        user_id=user_id,
        search=search,
        page=page,
        limit=limit,
    )
    return {
        "status": "success",
        "data": [OrderOut.model_validate(o).to_dict() for o in orders],
        **paginate(total, page, limit),
    }


@router.get("/orders/{order_id}")
async def get_order(
    order_id: int,
    staff: User = Depends(require_staff_account),
    db: Session = Depends(get_db)
):
    order = OrderService(db).get_order(order_id)
    return {"status": "success", "data": OrderOut.model_validate(order).to_dict()}


@router.patch("/orders/{order_id}/status")
async def update_order_status(
    order_id: int,
    update: OrderStatusUpdate,
    staff: User = Depends(require_staff_account),
    db: Session = Depends(get_db)
):
    """
    Move an order along pending -> processing -> shipped -> delivered

    pending and processing orders can also be canceled; 409 for any other
    transition.
    """
    order = OrderService(db).update_status(order_id, update, actor=staff)
    return {"status": "success", "data": OrderOut.model_validate(order).to_dict()}


# ============================================================================
# Returns
# ============================================================================

@router.get("/returns")
async def list_returns(
    status: Optional[str] = Query(None, description="pending, approved, received, rejected or completed"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    staff: User = Depends(require_staff_account),
    db: Session = Depends(get_db)
):
    returns, total = ReturnService(db).list_returns(status=status, page=page, limit=limit)
    return {
        "status": "success",
        "data": [ReturnOut.model_validate(r).model_dump() for r in returns],
        **paginate(total, page, limit),
    }


@router.post("/returns/{return_id}/review")
async def review_return(
    return_id: int,
    review: ReturnReview,
    staff: User = Depends(require_staff_account),
    db: Session = Depends(get_db)
):
    """
    approve / reject a pending return, receive an approved one, complete
    an approved or received one

    Approving accepts restock_fee, shipping_cost (both deducted from the
    refund) and return_label.
    """
    updated = ReturnService(db).review_return(return_id, review, actor=staff)
    return {"status": "success", "data": ReturnOut.model_validate(updated).model_dump()}


# ============================================================================
# Reviews
# ============================================================================

@router.get("/reviews")
async def list_reviews(
    status: Optional[Literal["pending", "approved"]] = Query(None),
    search: Optional[str] = Query(None, description="Comment, title or author e-mail"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    admin: User = Depends(require_admin_account),
    db: Session = Depends(get_db)
):
    """Reviews awaiting or past moderation, with pending/approved counts"""
    reviews, total, stats = ReviewService(db).list_reviews(status=status, search=search, page=page, limit=limit)
    return {
        "status": "success",
        "data": [ReviewOut.model_validate(r).model_dump() for r in reviews],
        "stats": stats,
        **paginate(total, page, limit),
    }


@router.post("/reviews/{review_id}/moderate")
async def moderate_review(
    review_id: int,
    moderation: ReviewModeration,
    admin: User = Depends(require_admin_account),
    db: Session = Depends(get_db)
):
    """approve or reject (hide) a review, or delete it"""
    review = ReviewService(db).moderate(review_id, moderation, actor=admin)
    if moderation.action == "delete":
        return {"status": "success", "message": f"Review {review_id} deleted"}
    return {"status": "success", "data": ReviewOut.model_validate(review).model_dump()}


# ============================================================================
# Audit trail
# ============================================================================

@router.get("/audit")
async def get_audit_log(
    action: Optional[str] = Query(None, description="e.g. PAYMENT_PAID"),
    entity_type: Optional[str] = Query(None, description="order, return, product"),
    entity_id: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    admin: User = Depends(require_admin_account),
    db: Session = Depends(get_db)
):
    entries, total = list_audit(
        db, action=action, entity_type=entity_type, entity_id=entity_id, page=page, limit=limit
    )
    return {
        "status": "success",
        "data": [AuditEntry.model_validate(e).model_dump() for e in entries],
        **paginate(total, page, limit),
    }
