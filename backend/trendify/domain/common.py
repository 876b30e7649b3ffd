"""
Shared field types for the domain layer
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Annotated

from pydantic import PlainSerializer

# Decimal in Python, float in API responses
Money = Annotated[Decimal, PlainSerializer(lambda v: float(v), return_type=float)]

CENTS = Decimal("0.01")


def quantize(value) -> Decimal:
    """Round a monetary amount to 2 decimals (half up)"""
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def to_minor(value) -> int:
    """Major units (cedis/naira) to minor units (pesewas/kobo)"""
    return int((Decimal(str(value)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor(value) -> Decimal:
    return quantize(Decimal(int(value)) / 100)


def paginate(total: int, page: int, limit: int) -> dict:
    """Pagination block used by every listing endpoint"""
    return {
        "total": total,
        "page": page,
        "limit": limit,
        "pages": (total + limit - 1) // limit if limit else 0,
    }
