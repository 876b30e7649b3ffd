"""
Pytest fixtures and configuration for Trendify Backend tests

This file provides shared fixtures that can be used across all test modules:
- an in-memory SQLite database per test
- a TestClient with the database and Paystack dependencies overridden
- JWT helpers and seed-data factories
"""
import os

# Settings are read at import time; configure them before importing trendify
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTH_SECRET"] = "test-auth-secret"
os.environ["PAYSTACK_SECRET_KEY"] = "sk_test_secret"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["APP_URL"] = "https://shop.example.com"
os.environ["PAYSTACK_CURRENCY"] = "GHS"

import time
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from trendify.core.config import get_settings

get_settings.cache_clear()

from trendify import models
from trendify.connectors.paystack_connector import get_paystack_connector
from trendify.core.database import Base, get_db
from trendify.core.errors import PaymentGatewayError
from trendify.core.rate_limit import rate_limiter
from trendify.domain.order import OrderCreate
from trendify.domain.payment import PaystackInit, PaystackTransaction
from trendify.services.order_service import OrderService


class FakePaystack:
    """
    In-memory stand-in for PaystackConnector

    Tests register transactions with add_transaction(); verify_transaction
    returns them, or raises PaymentGatewayError like the real connector.
    """

    def __init__(self):
        self.transactions = {}
        self.initialized = []
        self.verify_calls = []
        self.fail_verify = False

    def add_transaction(self, reference, status="success", amount=0, order_id=None,
                        currency="GHS", fees=None, delivery=None, gateway_response=None):
        metadata = {}
        if order_id is not None:
            metadata["order_id"] = order_id
        if delivery is not None:
            metadata["delivery"] = delivery
        self.transactions[reference] = PaystackTransaction(
            id=len(self.transactions) + 1,
            status=status,
            reference=reference,
            amount=amount,
            currency=currency,
            fees=fees,
            paid_at="2026-10-19T10:15:00.000Z" if status == "success" else None,
            gateway_response=gateway_response or ("Approved" if status == "success" else "Declined"),
            metadata=metadata or "",
        )

    async def initialize_transaction(self, email, amount_minor, currency, reference, callback_url, metadata=None):
        self.initialized.append({
            "email": email,
            "amount_minor": amount_minor,
            "currency": currency,
            "reference": reference,
            "callback_url": callback_url,
            "metadata": metadata,
        })
        return PaystackInit(
            authorization_url=f"https://checkout.paystack.com/{reference}",
            access_code=f"ac_{len(self.initialized)}",
            reference=reference,
        )

    async def verify_transaction(self, reference):
        self.verify_calls.append(reference)
        if self.fail_verify:
            raise PaymentGatewayError("Payment gateway unreachable")
        if reference not in self.transactions:
            raise PaymentGatewayError("Transaction reference not found")
        return self.transactions[reference]


@pytest.fixture(scope="function")
def engine():
    """
    Fresh in-memory database per test

    StaticPool keeps a single connection so every session sees the same data.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture(scope="function")
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def fake_paystack():
    return FakePaystack()


@pytest.fixture
def client(session_factory, fake_paystack):
    """TestClient bound to the test database and the fake gateway"""
    from trendify.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_paystack_connector] = lambda: fake_paystack
    rate_limiter.reset()

    yield TestClient(app)

    app.dependency_overrides.clear()
    rate_limiter.reset()


# ============================================================================
# Auth helpers
# ============================================================================

def make_token(sub="user_ama", email="ama@example.com", role="customer", name="Ama Mensah", expires_in=3600):
    now = int(time.time())
    payload = {
        "sub": sub,
        "email": email,
        "name": name,
        "role": role,
        "iat": now,
        "exp": now + expires_in,
    }
    return jwt.encode(payload, os.environ["AUTH_SECRET"], algorithm="HS256")


@pytest.fixture
def auth_headers():
    """
    Build Authorization headers

    Usage:
        client.get("/api/v1/cart/", headers=auth_headers())
        client.get("/api/v1/admin/orders", headers=auth_headers(role="admin", sub="user_admin", email="admin@example.com"))
    """
    def _headers(**claims):
        return {"Authorization": f"Bearer {make_token(**claims)}"}

    return _headers


# ============================================================================
# Seed data factories
# ============================================================================

@pytest.fixture
def user_factory(db):
    def _create(email="ama@example.com", external_id="user_ama", role="customer", name="Ama Mensah"):
        user = models.User(email=email, external_id=external_id, role=role, name=name, is_active=True)
        db.add(user)
        db.commit()
        return user

    return _create


@pytest.fixture
def product_factory(db):
    def _create(name="Kente Tote Bag", price="120.00", stock=10, sku=None, variants=None, is_active=True):
        product = models.Product(
            name=name,
            slug=name.lower().replace(" ", "-"),
            sku=sku or name.upper().replace(" ", "-")[:20],
            price=Decimal(price),
            stock=stock,
            low_stock_threshold=5,
            is_active=is_active,
            is_deleted=False,
        )
        for variant in variants or []:
            product.variants.append(models.ProductVariant(
                name=variant["name"],
                sku=variant.get("sku"),
                price=Decimal(variant["price"]),
                stock=variant["stock"],
            ))
        db.add(product)
        db.commit()
        return product

    return _create


@pytest.fixture
def city_factory(db):
    def _create(name="Accra", door_fee="25.00", pickup_locations=("Osu Mall",), is_active=True):
        city = models.DeliveryCity(name=name, door_fee=Decimal(door_fee), is_active=is_active)
        for location in pickup_locations:
            city.pickup_locations.append(models.PickupLocation(name=location, address=f"{location}, {name}", is_active=True))
        db.add(city)
        db.commit()
        return city

    return _create


@pytest.fixture
def coupon_factory(db):
    def _create(code="SAVE10", type="percentage", value="10", **fields):
        coupon = models.Coupon(code=code, type=type, value=Decimal(value), usage_count=fields.pop("usage_count", 0),
                               is_active=fields.pop("is_active", True), **fields)
        db.add(coupon)
        db.commit()
        return coupon

    return _create


@pytest.fixture
def driver_factory(db):
    def _create(name="Kwame Boateng", phone="+233241234567", total_trips=0, is_active=True, **fields):
        driver = models.Driver(
            name=name,
            phone=phone,
            license_no=fields.pop("license_no", f"DL-{name[:3].upper()}-001"),
            vehicle_type=fields.pop("vehicle_type", "motorbike"),
            vehicle_no=fields.pop("vehicle_no", "GR-1234-26"),
            total_trips=total_trips,
            is_active=is_active,
            **fields,
        )
        db.add(driver)
        db.commit()
        return driver

    return _create


ADDRESS = {
    "full_name": "Ama Mensah",
    "street": "12 Oxford Street",
    "city": "Accra",
    "state": "Greater Accra",
    "zip_code": "00233",
    "country": "GH",
    "phone": "+233200000000",
}


@pytest.fixture
def checkout_payload():
    """Build an OrderCreate for door delivery to Accra"""
    def _build(items, **overrides):
        data = {
            "items": items,
            "shipping_address": dict(ADDRESS),
            "delivery": {"method": "door"},
        }
        data.update(overrides)
        return OrderCreate(**data)

    return _build


@pytest.fixture
def order_factory(db, checkout_payload):
    """Create an order through the real checkout path"""
    def _create(user, items, **overrides):
        order, created = OrderService(db).create_order(checkout_payload(items, **overrides), account=user)
        assert created
        return order

    return _create
