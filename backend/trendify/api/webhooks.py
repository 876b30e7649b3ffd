"""
Webhooks API Endpoints
Paystack event notifications

The signature (HMAC-SHA512 of the raw body with the secret key) is checked
before the body is parsed. The route is exempt from the global rate limit.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.orm import Session

from trendify.connectors.paystack_connector import PaystackConnector, get_paystack_connector
from trendify.core.database import get_db
from trendify.services.payment_service import PaymentService

router = APIRouter()


@router.post("/paystack")
async def paystack_webhook(
    request: Request,
    x_paystack_signature: Optional[str] = Header(None, alias="x-paystack-signature"),
    connector: PaystackConnector = Depends(get_paystack_connector),
    db: Session = Depends(get_db)
):
    """
    Receive a Paystack event

    500 when no secret is configured, 400 without a signature header or with
    a malformed payload, 401 on a signature mismatch, 404 for an unknown
    order. Anything after that is acknowledged with {"ok": true}.
    """
    raw_body = await request.body()
    return await PaymentService(db, connector).handle_webhook(raw_body, x_paystack_signature)
