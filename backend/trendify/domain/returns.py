"""
Return Request Domain Models
"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from trendify.domain.common import Money


class ReturnCreate(BaseModel):
    order_id: int
    order_item_ids: List[int] = Field(..., min_length=1)
    reason: str = Field(..., min_length=1)
    reason_details: Optional[str] = None


class ReturnReview(BaseModel):
    """
    Admin decision on a return

    restock_fee, shipping_cost and return_label are only accepted when
    approving; the fees are deducted from the refund.
    """
    action: Literal["approve", "reject", "receive", "complete"]
    notes: Optional[str] = None
    restock_fee: Optional[Money] = Field(None, ge=0)
    shipping_cost: Optional[Money] = Field(None, ge=0)
    return_label: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def terms_only_when_approving(self):
        terms = (self.restock_fee, self.shipping_cost, self.return_label)
        if self.action != "approve" and any(value is not None for value in terms):
            raise ValueError("restock_fee, shipping_cost and return_label can only be set when approving")
        return self


class ReturnRequest(BaseModel):
    id: int
    order_id: int
    order_item_ids: List[int]
    reason: str
    reason_details: Optional[str] = None
    refund_amount: Money
    restock_fee: Money = 0
    shipping_cost: Money = 0
    return_label: Optional[str] = None
    status: str
    admin_notes: Optional[str] = None
    received_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
