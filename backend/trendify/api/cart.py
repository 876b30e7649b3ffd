"""
Cart API Endpoints
The signed-in customer's cart
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from trendify.core.auth import get_current_account
from trendify.core.database import get_db
from trendify.domain.cart import CartItemAdd, CartItemUpdate
from trendify.models import User
from trendify.services.cart_service import CartService

router = APIRouter()


@router.get("/")
async def get_cart(account: User = Depends(get_current_account), db: Session = Depends(get_db)):
    """Cart lines, item count and subtotal"""
    return {"status": "success", "data": CartService(db, account).get_cart()}


@router.post("/items")
async def add_cart_item(
    item: CartItemAdd,
    account: User = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    """
    Add a product (or variant) to the cart

    The quantity merges into an existing line with the same product, variant,
    color and size. Price and name are always taken from the catalog.
    """
    return {"status": "success", "data": CartService(db, account).add_item(item)}


@router.patch("/items/{item_id}")
async def update_cart_item(
    item_id: int,
    update: CartItemUpdate,
    account: User = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    return {"status": "success", "data": CartService(db, account).update_quantity(item_id, update.quantity)}


@router.delete("/items/{item_id}")
async def remove_cart_item(
    item_id: int,
    account: User = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    return {"status": "success", "data": CartService(db, account).remove_item(item_id)}


@router.delete("/")
async def clear_cart(account: User = Depends(get_current_account), db: Session = Depends(get_db)):
    service = CartService(db, account)
    service.clear_cart()
    return {"status": "success", "data": service.get_cart()}
