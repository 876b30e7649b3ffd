"""
Reviews API Endpoints
Approved product reviews and customer review submission
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from trendify.core.auth import get_current_account, get_current_account_optional
from trendify.core.database import get_db
from trendify.core.rate_limit import rate_limit
from trendify.domain.common import paginate
from trendify.domain.review import Review as ReviewOut, ReviewCreate
from trendify.models import User
from trendify.services.review_service import ReviewService

router = APIRouter()


@router.get("/")
async def get_product_reviews(
    product_id: int = Query(..., description="Product to list reviews for"),
    include_mine: bool = Query(False, description="Also return the caller's own review, approved or not"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    account: Optional[User] = Depends(get_current_account_optional),
    db: Session = Depends(get_db)
):
    """
    Approved reviews of a product with its rating summary

    `my_review` is only filled for signed-in callers passing include_mine.
    """
    service = ReviewService(db)
    reviews, total = service.list_product_reviews(product_id, page=page, limit=limit)

    mine = None
    if include_mine and account is not None:
        own = service.my_review(account, product_id)
        mine = ReviewOut.model_validate(own).model_dump() if own else None

    return {
        "status": "success",
        "data": [ReviewOut.model_validate(r).model_dump() for r in reviews],
        "summary": service.rating_summary(product_id),
        "my_review": mine,
        **paginate(total, page, limit),
    }


@router.post("/", status_code=status.HTTP_201_CREATED)
async def submit_review(
    review: ReviewCreate,
    response: Response,
    account: User = Depends(get_current_account),
    _: None = Depends(rate_limit(10, 60, "review")),
    db: Session = Depends(get_db)
):
    """
    Create (201) or edit (200) the caller's review of a product

    The review is hidden until approved. Limited to 10 submissions per minute.
    """
    saved, created = ReviewService(db).submit_review(account, review)
    if not created:
        response.status_code = status.HTTP_200_OK
    return {"status": "success", "data": ReviewOut.model_validate(saved).model_dump()}
