"""
Cart Domain Models
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from trendify.domain.common import Money


class CartItemAdd(BaseModel):
    """Add-to-cart payload. Price and name are always taken from the catalog."""
    product_id: int
    variant_id: Optional[int] = None
    quantity: int = Field(1, ge=1)
    color: Optional[str] = None
    size: Optional[str] = None


class CartItemUpdate(BaseModel):
    quantity: int = Field(..., ge=1)


class CartLine(BaseModel):
    id: int
    product_id: int
    variant_id: Optional[int] = None
    name: str
    unit_price: Money
    quantity: int
    image: Optional[str] = None
    color: Optional[str] = None
    size: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def line_total(self):
        return self.unit_price * self.quantity


class Cart(BaseModel):
    items: List[CartLine] = Field(default_factory=list)

    def to_dict(self) -> dict:
        items = []
        for line in self.items:
            data = line.model_dump()
            data["line_total"] = float(line.line_total)
            items.append(data)

        return {
            "items": items,
            "item_count": sum(line.quantity for line in self.items),
            "subtotal": float(sum((line.line_total for line in self.items), 0)),
        }
