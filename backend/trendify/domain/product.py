"""
Product Domain Models

Catalog entities as exposed by the API, plus admin write schemas.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from trendify.domain.common import Money


class ProductVariant(BaseModel):
    id: int
    name: str
    sku: Optional[str] = None
    price: Money
    stock: int

    model_config = ConfigDict(from_attributes=True)


class Product(BaseModel):
    """
    Product domain model

    Fields:
        id: Internal product ID
        name / slug / sku: Identification
        price: Base price (variants may override)
        stock: Units available for new orders (reserved units already deducted)
        low_stock_threshold: Level at which the product shows in the low-stock report
        variants: Live (not deleted) variants
    """

    id: int = Field(..., description="Product ID")
    name: str = Field(..., description="Product name")
    slug: str = Field(..., description="URL slug")
    sku: Optional[str] = Field(None, description="Stock keeping unit")
    description: Optional[str] = None
    category: Optional[str] = None
    image: Optional[str] = None
    price: Money = Field(..., description="Base price", ge=0)
    stock: int = Field(..., description="Units available", ge=0)
    low_stock_threshold: int = 5
    is_active: bool = True
    created_at: Optional[datetime] = None
    variants: List[ProductVariant] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)

    @property
    def in_stock(self) -> bool:
        if self.variants:
            return any(v.stock > 0 for v in self.variants)
        return self.stock > 0

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= self.low_stock_threshold

    def to_dict(self) -> dict:
        """Serialize with computed fields"""
        data = self.model_dump()
        data["in_stock"] = self.in_stock
        data["is_low_stock"] = self.is_low_stock
        return data


class VariantCreate(BaseModel):
    name: str = Field(..., min_length=1)
    sku: Optional[str] = None
    price: Money = Field(..., ge=0)
    stock: int = Field(0, ge=0)


class ProductCreate(BaseModel):
    """Schema for creating a product"""
    name: str = Field(..., min_length=1)
    slug: Optional[str] = None
    sku: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    image: Optional[str] = None
    price: Money = Field(..., ge=0)
    stock: int = Field(0, ge=0)
    low_stock_threshold: int = Field(5, ge=0)
    is_active: bool = True
    variants: List[VariantCreate] = Field(default_factory=list)


class ProductUpdate(BaseModel):
    """Schema for updating a product (partial)"""
    name: Optional[str] = None
    sku: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    image: Optional[str] = None
    price: Optional[Money] = Field(None, ge=0)
    low_stock_threshold: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class StockAdjustment(BaseModel):
    delta: int = Field(..., description="Units to add (positive) or remove (negative)")
    variant_id: Optional[int] = None
    reason: Optional[str] = None
