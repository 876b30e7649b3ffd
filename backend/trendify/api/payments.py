"""
Payments API Endpoints
Paystack checkout initialization and verification

Flow:
1. POST /initialize    -> authorization_url (customer pays on Paystack)
2. Paystack redirects to APP_URL/checkout/confirm?reference=...
3. GET /verify?reference=... (redirect landing) or POST /verify (polling)
The webhook (see webhooks.py) reconciles the same order independently.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from trendify.connectors.paystack_connector import PaystackConnector, get_paystack_connector
from trendify.core.auth import get_current_account, get_current_account_optional
from trendify.core.database import get_db
from trendify.domain.payment import PaymentInitRequest, PaymentVerifyRequest
from trendify.models import User
from trendify.services.payment_service import PaymentService

router = APIRouter()


@router.post("/initialize")
async def initialize_payment(
    request: PaymentInitRequest,
    account: Optional[User] = Depends(get_current_account_optional),
    connector: PaystackConnector = Depends(get_paystack_connector),
    db: Session = Depends(get_db)
):
    """
    Start a Paystack checkout for an unpaid order

    Returns the authorization URL to redirect the customer to.
    """
    data = await PaymentService(db, connector).initialize_payment(
        request.order_id,
        request.email,
        callback_url=request.callback_url,
        user=account,
    )
    return {"status": "success", "data": data}


@router.post("/verify")
async def verify_payment(
    request: PaymentVerifyRequest,
    account: User = Depends(get_current_account),
    connector: PaystackConnector = Depends(get_paystack_connector),
    db: Session = Depends(get_db)
):
    """
    Verify a transaction for one of the caller's orders

    On success the caller's cart is cleared. A failed or abandoned payment
    cancels the order, releases its stock and returns 400.
    """
    data = await PaymentService(db, connector).verify_payment(account, request.reference, request.order_id)
    return {"status": "success", "data": data}


@router.get("/verify")
async def verify_by_reference(
    reference: str = Query(..., min_length=1),
    account: Optional[User] = Depends(get_current_account_optional),
    connector: PaystackConnector = Depends(get_paystack_connector),
    db: Session = Depends(get_db)
):
    """Redirect landing: the order is found through the transaction metadata"""
    data = await PaymentService(db, connector).verify_by_reference(reference, user=account)
    return {"status": "success", "data": data}
