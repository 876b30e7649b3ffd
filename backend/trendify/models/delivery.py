"""
Delivery cities, pickup points and drivers
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Numeric, ForeignKey, Table
from sqlalchemy.orm import relationship

from trendify.core.database import Base, utcnow

# Cities a driver serves
driver_service_cities = Table(
    "driver_service_cities",
    Base.metadata,
    Column("driver_id", Integer, ForeignKey("drivers.id", ondelete="CASCADE"), primary_key=True),
    Column("city_id", Integer, ForeignKey("delivery_cities.id", ondelete="CASCADE"), primary_key=True),
)


class DeliveryCity(Base):
    __tablename__ = "delivery_cities"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    door_fee = Column(Numeric(12, 2), nullable=False, default=0)
    is_active = Column(Boolean, default=True)

    pickup_locations = relationship(
        "PickupLocation", back_populates="city", cascade="all, delete-orphan", order_by="PickupLocation.name"
    )


class PickupLocation(Base):
    __tablename__ = "pickup_locations"

    id = Column(Integer, primary_key=True, index=True)
    city_id = Column(Integer, ForeignKey("delivery_cities.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    address = Column(String(255))
    is_active = Column(Boolean, default=True)

    city = relationship("DeliveryCity", back_populates="pickup_locations")


class Driver(Base):
    """
    Delivery driver

    total_trips counts orders assigned at shipping time; the least busy
    active driver gets the next one.
    """
    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=False)
    email = Column(String(255))
    license_no = Column(String(100), nullable=False)
    vehicle_type = Column(String(50), nullable=False)
    vehicle_no = Column(String(50), nullable=False)

    is_active = Column(Boolean, default=True, index=True)
    rating = Column(Numeric(3, 2))
    total_trips = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    service_cities = relationship("DeliveryCity", secondary=driver_service_cities, order_by="DeliveryCity.name")
    orders = relationship("Order", back_populates="driver")
