"""
Coupon Domain Models
"""
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from trendify.domain.common import Money


class Coupon(BaseModel):
    id: int
    code: str
    description: Optional[str] = None
    type: str
    value: Money
    min_purchase: Optional[Money] = None
    max_discount: Optional[Money] = None
    usage_limit: Optional[int] = None
    usage_count: int = 0
    per_user_limit: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: bool = True

    model_config = ConfigDict(from_attributes=True)


class CouponCreate(BaseModel):
    code: str = Field(..., min_length=2, max_length=50)
    description: Optional[str] = None
    type: Literal["percentage", "fixed_amount"]
    value: Money = Field(..., gt=0)
    min_purchase: Optional[Money] = Field(None, ge=0)
    max_discount: Optional[Money] = Field(None, ge=0)
    usage_limit: Optional[int] = Field(None, ge=1)
    per_user_limit: Optional[int] = Field(None, ge=1)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: bool = True

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.strip().upper()


class CouponUpdate(BaseModel):
    description: Optional[str] = None
    value: Optional[Money] = Field(None, gt=0)
    min_purchase: Optional[Money] = Field(None, ge=0)
    max_discount: Optional[Money] = Field(None, ge=0)
    usage_limit: Optional[int] = Field(None, ge=1)
    per_user_limit: Optional[int] = Field(None, ge=1)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: Optional[bool] = None


class CouponValidateRequest(BaseModel):
    code: str = Field(..., min_length=1)
    subtotal: Money = Field(..., ge=0)
