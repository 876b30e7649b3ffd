"""
Delivery Service
Delivery fees, pickup validation and admin CRUD for cities and pickup points
"""
import logging
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from trendify.core.config import get_settings
from trendify.core.errors import ConflictError, NotFoundError, ValidationError
from trendify.domain.common import quantize
from trendify.domain.delivery import (
    DeliveryCity as DeliveryCityOut,
    DeliveryCityCreate,
    DeliveryCityUpdate,
    PickupLocation as PickupLocationOut,
    PickupLocationCreate,
)
from trendify.models import DeliveryCity, PickupLocation

logger = logging.getLogger(__name__)


class DeliveryService:
    """Service for delivery business logic"""

    def __init__(self, db: Session):
        self.db = db

    def find_city(self, name: Optional[str], active_only: bool = True) -> Optional[DeliveryCity]:
        """Case-insensitive lookup by city name"""
        if not name or not name.strip():
            return None
        stmt = (
            select(DeliveryCity)
            .options(selectinload(DeliveryCity.pickup_locations))
            .where(func.lower(DeliveryCity.name) == name.strip().lower())
        )
        if active_only:
            stmt = stmt.where(DeliveryCity.is_active.is_(True))
        return self.db.scalars(stmt).first()

    def delivery_options(self) -> List[dict]:
        """Active cities with their active pickup points"""
        stmt = (
            select(DeliveryCity)
            .options(selectinload(DeliveryCity.pickup_locations))
            .where(DeliveryCity.is_active.is_(True))
            .order_by(DeliveryCity.name)
        )
        options = []
        for city in self.db.scalars(stmt):
            data = DeliveryCityOut.model_validate(city)
            data.pickup_locations = [loc for loc in data.pickup_locations if loc.is_active]
            options.append(data.model_dump())
        return options

    def compute_delivery_fee(self, method: str, city: Optional[str]) -> Decimal:
        """
        pickup: free
        door: the active city's fee, or DEFAULT_DOOR_FEE for unlisted cities
        """
        if method == "pickup":
            return Decimal("0.00")

        row = self.find_city(city)
        if row is not None:
            return quantize(row.door_fee)
        return quantize(get_settings().DEFAULT_DOOR_FEE)

    def validate_pickup(self, city: Optional[str], location: Optional[str]) -> Tuple[DeliveryCity, PickupLocation]:
        """
        Both the city and the pickup point must exist and be active

        Raises:
            ValidationError: Unknown or inactive city/location
        """
        if not city or not location:
            raise ValidationError("Pickup city and location are required")

        row = self.find_city(city)
        if row is None:
            raise ValidationError(f"Pickup is not available in {city}")

        wanted = location.strip().lower()
        for loc in row.pickup_locations:
            if loc.is_active and loc.name.lower() == wanted:
                return row, loc

        raise ValidationError(f"Invalid pickup location for {row.name}: {location}")

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    def list_cities(self) -> List[DeliveryCity]:
        stmt = select(DeliveryCity).options(selectinload(DeliveryCity.pickup_locations)).order_by(DeliveryCity.name)
        return list(self.db.scalars(stmt))

    def get_city(self, city_id: int) -> DeliveryCity:
        city = self.db.get(DeliveryCity, city_id)
        if city is None:
            raise NotFoundError("Delivery city", city_id)
        return city

    def create_city(self, data: DeliveryCityCreate) -> DeliveryCity:
        if self.find_city(data.name, active_only=False):
            raise ConflictError(f"Delivery city {data.name} already exists")
        city = DeliveryCity(name=data.name.strip(), door_fee=data.door_fee, is_active=data.is_active)
        self.db.add(city)
        self.db.commit()
        self.db.refresh(city)
        logger.info(f"Delivery city created: {city.name}")
        return city

    def update_city(self, city_id: int, data: DeliveryCityUpdate) -> DeliveryCity:
        city = self.get_city(city_id)
        for field in data.model_fields_set:
            setattr(city, field, getattr(data, field))
        self.db.commit()
        self.db.refresh(city)
        return city

    def delete_city(self, city_id: int):
        city = self.get_city(city_id)
        self.db.delete(city)
        self.db.commit()
        logger.info(f"Delivery city deleted: {city_id}")

    def add_pickup_location(self, city_id: int, data: PickupLocationCreate) -> PickupLocation:
        city = self.get_city(city_id)
        location = PickupLocation(city_id=city.id, name=data.name.strip(), address=data.address, is_active=data.is_active)
        self.db.add(location)
        self.db.commit()
        self.db.refresh(location)
        return location

    def delete_pickup_location(self, location_id: int):
        location = self.db.get(PickupLocation, location_id)
        if location is None:
            raise NotFoundError("Pickup location", location_id)
        self.db.delete(location)
        self.db.commit()


def serialize_city(city: DeliveryCity) -> dict:
    return DeliveryCityOut.model_validate(city).model_dump()


def serialize_location(location: PickupLocation) -> dict:
    return PickupLocationOut.model_validate(location).model_dump()
