"""
Delivery Domain Models
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from trendify.domain.common import Money


class DeliverySelection(BaseModel):
    """How the customer receives the order"""
    method: Literal["pickup", "door"] = "door"
    pickup_city: Optional[str] = None
    pickup_location: Optional[str] = None


class PickupLocation(BaseModel):
    id: int
    name: str
    address: Optional[str] = None
    is_active: bool = True

    model_config = ConfigDict(from_attributes=True)


class DeliveryCity(BaseModel):
    id: int
    name: str
    door_fee: Money
    is_active: bool = True
    pickup_locations: List[PickupLocation] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class DeliveryCityCreate(BaseModel):
    name: str = Field(..., min_length=1)
    door_fee: Money = Field(..., ge=0)
    is_active: bool = True


class DeliveryCityUpdate(BaseModel):
    name: Optional[str] = None
    door_fee: Optional[Money] = Field(None, ge=0)
    is_active: Optional[bool] = None


class PickupLocationCreate(BaseModel):
    name: str = Field(..., min_length=1)
    address: Optional[str] = None
    is_active: bool = True


class DriverCreate(BaseModel):
    name: str = Field(..., min_length=2)
    phone: str = Field(..., min_length=10)
    email: Optional[EmailStr] = None
    license_no: str = Field(..., min_length=3)
    vehicle_type: str = Field(..., min_length=2)
    vehicle_no: str = Field(..., min_length=2)
    is_active: bool = True
    service_city_ids: List[int] = Field(default_factory=list)


class DriverUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2)
    phone: Optional[str] = Field(None, min_length=10)
    email: Optional[EmailStr] = None
    license_no: Optional[str] = Field(None, min_length=3)
    vehicle_type: Optional[str] = Field(None, min_length=2)
    vehicle_no: Optional[str] = Field(None, min_length=2)
    is_active: Optional[bool] = None
    rating: Optional[Decimal] = Field(None, ge=0, le=5)
    service_city_ids: Optional[List[int]] = None


class ServiceCity(BaseModel):
    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)


class Driver(BaseModel):
    id: int
    name: str
    phone: str
    email: Optional[str] = None
    license_no: str
    vehicle_type: str
    vehicle_no: str
    is_active: bool = True
    rating: Optional[float] = None
    total_trips: int = 0
    service_cities: List[ServiceCity] = Field(default_factory=list)
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
