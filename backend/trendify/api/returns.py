"""
Returns API Endpoints
Customer return requests for delivered orders
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from trendify.core.auth import get_current_account
from trendify.core.database import get_db
from trendify.core.rate_limit import rate_limit
from trendify.domain.common import paginate
from trendify.domain.returns import ReturnCreate, ReturnRequest as ReturnOut
from trendify.models import User
from trendify.services.return_service import ReturnService

router = APIRouter()


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_return(
    request: ReturnCreate,
    account: User = Depends(get_current_account),
    _: None = Depends(rate_limit(3, 3600, "return")),
    db: Session = Depends(get_db)
):
    """
    Request a return for items of a delivered order

    Limited to 3 requests per hour per customer.
    """
    created = ReturnService(db).create_return(account, request)
    return {"status": "success", "data": ReturnOut.model_validate(created).model_dump()}


@router.get("/")
async def get_my_returns(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    account: User = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    returns, total = ReturnService(db).list_my_returns(account, page=page, limit=limit)
    return {
        "status": "success",
        "data": [ReturnOut.model_validate(r).model_dump() for r in returns],
        **paginate(total, page, limit),
    }
