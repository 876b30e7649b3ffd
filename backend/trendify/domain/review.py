"""
Review Domain Models
"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, HttpUrl


class ReviewCreate(BaseModel):
    """Submitting again for the same product edits the customer's review"""
    product_id: int
    rating: int = Field(..., ge=1, le=5)
    title: Optional[str] = Field(None, max_length=255)
    comment: Optional[str] = None
    images: List[HttpUrl] = Field(default_factory=list, max_length=10)


class ReviewModeration(BaseModel):
    action: Literal["approve", "reject", "delete"]
    admin_notes: Optional[str] = None


class ReviewAuthor(BaseModel):
    id: int
    name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class Review(BaseModel):
    """
    Review domain model

    Fields:
        is_verified: The author bought the product (paid order)
        is_approved: Visible on the storefront
    """
    id: int
    product_id: int
    user_id: int
    rating: int
    title: Optional[str] = None
    comment: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    is_verified: bool = False
    is_approved: bool = False
    admin_notes: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    user: Optional[ReviewAuthor] = None

    model_config = ConfigDict(from_attributes=True)


class RatingSummary(BaseModel):
    """Approved reviews of one product"""
    count: int = 0
    average: Optional[float] = None
    breakdown: dict = Field(default_factory=dict)
