"""
Cron API - Scheduled maintenance endpoints
Designed to be called by a scheduler (Vercel cron, cron-job.org or similar)

Endpoints:
- POST /api/v1/cron/release-reservations  - Cancel expired unpaid orders and release their stock

Security:
- Requires `Authorization: Bearer <CRON_SECRET>`
"""
import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.orm import Session

from trendify.core.config import get_settings
from trendify.core.database import get_db
from trendify.services.order_service import OrderService

logger = logging.getLogger(__name__)
router = APIRouter()


async def verify_cron_secret(authorization: Optional[str] = Header(None)):
    """
    Verify the scheduler's bearer secret.

    Unlike the public API, a missing CRON_SECRET disables the endpoints.
    """
    secret = get_settings().CRON_SECRET
    if not secret:
        logger.error("CRON_SECRET not configured - cron endpoints are disabled")
        raise HTTPException(status_code=500, detail="CRON_SECRET is not configured")

    if not authorization or not authorization.startswith("Bearer "):
        logger.warning("Cron request without bearer secret")
        raise HTTPException(status_code=401, detail="Missing cron secret")

    if not hmac.compare_digest(authorization[len("Bearer "):].strip(), secret):
        logger.warning("Invalid cron secret attempt")
        raise HTTPException(status_code=401, detail="Invalid cron secret")


@router.post("/release-reservations", dependencies=[Depends(verify_cron_secret)])
async def release_reservations(db: Session = Depends(get_db)):
    """
    Cancel pending, unpaid orders older than RESERVATION_TTL_MINUTES

    Each order is finalized as abandoned: stock is restored and the order
    canceled. Orders paid in the meantime are left alone.
    """
    summary = OrderService(db).release_expired_reservations()
    return {"status": "success", "data": summary}
