"""
Unit tests for DriverService and driver assignment on shipping
"""
from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from trendify.core.errors import NotFoundError, ValidationError
from trendify.domain.delivery import DriverCreate, DriverUpdate
from trendify.domain.order import OrderStatusUpdate
from trendify.domain.payment import PaymentOutcome
from trendify.models import Driver, Order
from trendify.services.driver_service import DriverService
from trendify.services.order_service import OrderService
from trendify.services.payment_service import PaymentService


@pytest.fixture
def paid_order(db, user_factory, product_factory, order_factory):
    user = user_factory()
    order = order_factory(user, [{"product_id": product_factory().id, "quantity": 1}])
    PaymentService(db).finalize_order_payment(order.id, "ref-1", PaymentOutcome.PAID)
    return order


class TestDriverCrud:
    """Test driver administration"""

    def test_create_with_service_cities(self, db, city_factory):
        # Arrange
        accra = city_factory(name="Accra")
        tema = city_factory(name="Tema", pickup_locations=())

        # Act
        driver = DriverService(db).create_driver(DriverCreate(
            name="Kwame Boateng",
            phone="+233241234567",
            license_no="DL-0042",
            vehicle_type="motorbike",
            vehicle_no="GR-1234-26",
            service_city_ids=[tema.id, accra.id],
        ))

        # Assert
        assert driver.is_active is True
        assert driver.total_trips == 0
        assert [c.name for c in driver.service_cities] == ["Accra", "Tema"]

    def test_unknown_service_city(self, db):
        with pytest.raises(ValidationError, match="Unknown delivery cities"):
            DriverService(db).create_driver(DriverCreate(
                name="Kwame Boateng",
                phone="+233241234567",
                license_no="DL-0042",
                vehicle_type="motorbike",
                vehicle_no="GR-1234-26",
                service_city_ids=[404],
            ))

    def test_phone_and_licence_lengths(self):
        with pytest.raises(PydanticValidationError):
            DriverCreate(name="Kw", phone="024", license_no="DL", vehicle_type="car", vehicle_no="GR-1")

    def test_update_replaces_service_cities_and_rating(self, db, city_factory, driver_factory):
        driver = driver_factory()
        kumasi = city_factory(name="Kumasi", pickup_locations=())
        service = DriverService(db)

        updated = service.update_driver(driver.id, DriverUpdate(rating=Decimal("4.5"), service_city_ids=[kumasi.id]))
        cleared = service.update_driver(driver.id, DriverUpdate(service_city_ids=[]))

        assert updated.rating == Decimal("4.50")
        assert cleared.service_cities == []

    def test_rating_range(self):
        with pytest.raises(PydanticValidationError):
            DriverUpdate(rating=Decimal("5.5"))

    def test_search_and_active_filter(self, db, driver_factory):
        driver_factory(name="Kwame Boateng", license_no="DL-0042")
        driver_factory(name="Abena Owusu", phone="+233509876543", is_active=False)
        service = DriverService(db)

        by_licence, _ = service.list_drivers(search="dl-0042")
        inactive, total = service.list_drivers(active=False)

        assert [d.name for d in by_licence] == ["Kwame Boateng"]
        assert total == 1
        assert inactive[0].name == "Abena Owusu"

    def test_delete_keeps_order_history(self, db, paid_order, driver_factory):
        # Arrange: the order shipped with the driver
        driver = driver_factory()
        OrderService(db).update_status(paid_order.id, OrderStatusUpdate(status="shipped"))

        # Act
        DriverService(db).delete_driver(driver.id)

        # Assert
        db.expire_all()
        assert db.get(Driver, driver.id) is None
        order = db.get(Order, paid_order.id)
        assert order.status == "shipped"
        assert order.driver_id is None

    def test_missing_driver(self, db):
        with pytest.raises(NotFoundError):
            DriverService(db).get_driver(404)


class TestAssignment:
    """Test driver assignment when an order ships"""

    def test_least_busy_active_driver_is_assigned(self, db, paid_order, driver_factory):
        # Arrange
        driver_factory(name="Kwame Boateng", total_trips=7)
        idle = driver_factory(name="Abena Owusu", total_trips=2)
        driver_factory(name="Yaw Mensah", total_trips=0, is_active=False)

        # Act
        shipped = OrderService(db).update_status(paid_order.id, OrderStatusUpdate(status="shipped"))

        # Assert
        assert shipped.driver_id == idle.id
        db.expire_all()
        assert db.get(Driver, idle.id).total_trips == 3

    def test_requested_driver(self, db, paid_order, driver_factory):
        driver_factory(name="Abena Owusu", total_trips=0)
        busy = driver_factory(name="Kwame Boateng", total_trips=9)

        shipped = OrderService(db).update_status(
            paid_order.id, OrderStatusUpdate(status="shipped", driver_id=busy.id)
        )

        assert shipped.driver_id == busy.id

    def test_inactive_requested_driver_rejected(self, db, paid_order, driver_factory):
        retired = driver_factory(is_active=False)

        with pytest.raises(ValidationError, match="not active"):
            OrderService(db).update_status(
                paid_order.id, OrderStatusUpdate(status="shipped", driver_id=retired.id)
            )

        db.expire_all()
        assert db.get(Order, paid_order.id).status == "processing"

    def test_no_active_driver_leaves_order_unassigned(self, db, paid_order):
        shipped = OrderService(db).update_status(paid_order.id, OrderStatusUpdate(status="shipped"))

        assert shipped.status == "shipped"
        assert shipped.driver_id is None

    def test_driver_only_when_shipping(self):
        with pytest.raises(PydanticValidationError):
            OrderStatusUpdate(status="delivered", driver_id=1)
