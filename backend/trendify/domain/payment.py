"""
Payment Domain Models

Paystack transaction shape (only the fields we read; the gateway sends many
more and they are preserved as-is in the verify snapshot), API payloads and
the result of a finalization attempt.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class PaymentOutcome(str, Enum):
    PAID = "paid"
    FAILED = "failed"
    ABANDONED = "abandoned"
    UNKNOWN = "unknown"


class PaystackTransaction(BaseModel):
    """Transaction as returned by GET /transaction/verify/:reference"""
    id: Optional[int] = None
    status: str
    reference: str
    amount: int = Field(0, description="Amount in minor units")
    currency: Optional[str] = None
    fees: Optional[int] = Field(None, description="Gateway fee in minor units")
    paid_at: Optional[str] = None
    gateway_response: Optional[str] = None
    message: Optional[str] = None
    channel: Optional[str] = None
    customer: Optional[Dict[str, Any]] = None
    metadata: Optional[Any] = None

    model_config = ConfigDict(extra="allow")

    @property
    def meta(self) -> dict:
        # Paystack returns "" or a JSON string when no dict metadata was sent
        return self.metadata if isinstance(self.metadata, dict) else {}


class PaystackInit(BaseModel):
    authorization_url: str
    access_code: str
    reference: str


class PaymentInitRequest(BaseModel):
    order_id: int
    email: EmailStr
    callback_url: Optional[str] = None


class PaymentVerifyRequest(BaseModel):
    reference: str = Field(..., min_length=1)
    order_id: int


@dataclass
class FinalizeResult:
    """
    Outcome of finalize_order_payment

    ok=False carries an HTTP-style status and error message; ok=True carries
    the statuses after the call (unchanged when replayed).
    """
    ok: bool
    status: int
    order_id: Optional[int] = None
    payment_status: Optional[str] = None
    order_status: Optional[str] = None
    order_payment_status: Optional[str] = None
    replayed: bool = False
    error: Optional[str] = None
