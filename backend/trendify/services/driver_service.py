"""
Driver Service
Admin CRUD for delivery drivers and their assignment to shipped orders
"""
import logging
from typing import List, Optional, Tuple

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session, selectinload

from trendify.core.errors import NotFoundError, ValidationError
from trendify.domain.delivery import Driver as DriverOut, DriverCreate, DriverUpdate
from trendify.models import DeliveryCity, Driver, Order

logger = logging.getLogger(__name__)


class DriverService:
    """Service for driver business logic"""

    def __init__(self, db: Session):
        self.db = db

    def _cities(self, city_ids: List[int]) -> List[DeliveryCity]:
        wanted = sorted(set(city_ids))
        if not wanted:
            return []
        cities = list(self.db.scalars(select(DeliveryCity).where(DeliveryCity.id.in_(wanted))))
        missing = sorted(set(wanted) - {city.id for city in cities})
        if missing:
            raise ValidationError(f"Unknown delivery cities: {missing}")
        return cities

    def list_drivers(self, search: Optional[str] = None, active: Optional[bool] = None,
                     page: int = 1, limit: int = 20) -> Tuple[List[Driver], int]:
        """Newest first; search matches name, phone or licence number"""
        conditions = []
        if search:
            term = f"%{search.strip()}%"
            conditions.append(or_(
                Driver.name.ilike(term),
                Driver.phone.ilike(term),
                Driver.license_no.ilike(term),
            ))
        if active is not None:
            conditions.append(Driver.is_active.is_(active))

        total = self.db.scalar(select(func.count(Driver.id)).where(*conditions))
        stmt = (
            select(Driver)
            .options(selectinload(Driver.service_cities))
            .where(*conditions)
            .order_by(Driver.created_at.desc(), Driver.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        return list(self.db.scalars(stmt)), total

    def get_driver(self, driver_id: int) -> Driver:
        driver = self.db.get(Driver, driver_id)
        if driver is None:
            raise NotFoundError("Driver", driver_id)
        return driver

    def create_driver(self, data: DriverCreate) -> Driver:
        driver = Driver(**data.model_dump(exclude={"service_city_ids"}))
        driver.service_cities = self._cities(data.service_city_ids)
        self.db.add(driver)
        self.db.commit()
        self.db.refresh(driver)
        logger.info(f"Driver created: {driver.id} ({driver.name})")
        return driver

    def update_driver(self, driver_id: int, data: DriverUpdate) -> Driver:
        driver = self.get_driver(driver_id)
        for field in data.model_fields_set - {"service_city_ids"}:
            setattr(driver, field, getattr(data, field))
        if data.service_city_ids is not None:
            driver.service_cities = self._cities(data.service_city_ids)
        self.db.commit()
        self.db.refresh(driver)
        return driver

    def delete_driver(self, driver_id: int):
        """Orders keep their history; their driver_id is cleared"""
        driver = self.get_driver(driver_id)
        self.db.execute(
            update(Order)
            .where(Order.driver_id == driver.id)
            .values(driver_id=None)
            .execution_options(synchronize_session="fetch")
        )
        self.db.delete(driver)
        self.db.commit()
        logger.info(f"Driver deleted: {driver_id}")

    def assign(self, order: Order, driver_id: Optional[int] = None) -> Optional[Driver]:
        """
        Hand an order to a driver (runs inside the caller's transaction)

        An explicit driver must exist and be active. Without one the active
        driver with the fewest trips is picked; None when no driver is active.
        """
        if driver_id is not None:
            driver = self.get_driver(driver_id)
            if not driver.is_active:
                raise ValidationError(f"Driver {driver.name} is not active")
        else:
            stmt = (
                select(Driver)
                .where(Driver.is_active.is_(True))
                .order_by(Driver.total_trips, Driver.updated_at, Driver.id)
            )
            driver = self.db.scalars(stmt).first()
            if driver is None:
                logger.warning(f"No active driver for order {order.order_number}")
                return None

        order.driver_id = driver.id
        driver.total_trips = (driver.total_trips or 0) + 1
        return driver


def serialize_driver(driver: Driver) -> dict:
    return DriverOut.model_validate(driver).model_dump()
