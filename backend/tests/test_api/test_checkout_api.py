"""
API tests for the storefront checkout: catalog, cart, coupons, delivery,
orders, payments and the Paystack webhook
"""
import hashlib
import hmac
import json

import pytest

from trendify.core.config import get_settings
from trendify.models import Order, Product


def sign(body: bytes, secret: str = "sk_test_secret") -> str:
    return hmac.new(secret.encode(), body, hashlib.sha512).hexdigest()


ADDRESS = {
    "full_name": "Ama Mensah",
    "street": "12 Oxford Street",
    "city": "Accra",
    "country": "GH",
    "phone": "+233200000000",
}


@pytest.fixture
def catalog(product_factory, city_factory):
    """One product at 120.00 with 10 units, Accra door delivery at 25.00"""
    city_factory(name="Accra", door_fee="25.00", pickup_locations=("Osu Mall",))
    return product_factory(name="Kente Tote Bag", price="120.00", stock=10)


def place_order(client, product, headers=None, quantity=1, **extra):
    body = {
        "items": [{"product_id": product.id, "quantity": quantity}],
        "shipping_address": ADDRESS,
        "delivery": {"method": "door"},
    }
    body.update(extra)
    return client.post("/api/v1/orders/", json=body, headers=headers or {})


class TestStorefront:
    """Test public catalog, delivery and coupon endpoints"""

    def test_list_products(self, client, catalog, product_factory):
        product_factory(name="Hidden Scarf", is_active=False)

        response = client.get("/api/v1/products/")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "success"
        assert body["total"] == 1
        assert body["pages"] == 1
        assert body["data"][0]["slug"] == "kente-tote-bag"
        assert body["data"][0]["in_stock"] is True

    def test_product_by_slug_and_missing(self, client, catalog):
        assert client.get("/api/v1/products/kente-tote-bag").json()["data"]["id"] == catalog.id

        response = client.get("/api/v1/products/does-not-exist")
        assert response.status_code == 404
        assert response.json()["error_type"] == "NotFoundError"

    def test_delivery_fee(self, client, catalog):
        door = client.get("/api/v1/delivery/fee", params={"method": "door", "city": "accra"})
        pickup = client.get("/api/v1/delivery/fee", params={"method": "pickup", "city": "Accra"})

        assert door.json()["data"]["fee"] == 25.0
        assert pickup.json()["data"]["fee"] == 0.0

    def test_delivery_options(self, client, catalog):
        data = client.get("/api/v1/delivery/options").json()["data"]

        assert data[0]["name"] == "Accra"
        assert data[0]["pickup_locations"][0]["name"] == "Osu Mall"

    def test_validate_coupon(self, client, coupon_factory):
        coupon_factory(code="SAVE10", type="percentage", value="10")

        response = client.post("/api/v1/coupons/validate", json={"code": "save10", "subtotal": 200})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["discount"] == 20.0
        assert data["subtotal_after_discount"] == 180.0

    def test_validate_coupon_rule_failure(self, client, coupon_factory):
        coupon_factory(code="BIG", min_purchase=500)

        response = client.post("/api/v1/coupons/validate", json={"code": "BIG", "subtotal": 100})

        assert response.status_code == 400
        assert response.json()["error_type"] == "CouponError"

    def test_anonymous_rate_limit(self, client, catalog, monkeypatch):
        monkeypatch.setattr(get_settings(), "RATE_LIMIT_ANONYMOUS", 2)

        responses = [client.get("/api/v1/products/") for _ in range(3)]

        assert [r.status_code for r in responses] == [200, 200, 429]
        assert responses[0].headers["X-RateLimit-Remaining"] == "1"
        assert "Retry-After" in responses[2].headers
        assert client.get("/health").status_code == 200


class TestCartApi:
    """Test cart endpoints"""

    def test_requires_auth(self, client):
        assert client.get("/api/v1/cart/").status_code == 401

    def test_add_and_read(self, client, catalog, auth_headers):
        headers = auth_headers()

        added = client.post("/api/v1/cart/items", json={"product_id": catalog.id, "quantity": 2}, headers=headers)
        cart = client.get("/api/v1/cart/", headers=headers)

        assert added.status_code == 200
        assert cart.json()["data"]["item_count"] == 2
        assert cart.json()["data"]["subtotal"] == 240.0

    def test_add_over_stock(self, client, catalog, auth_headers):
        response = client.post("/api/v1/cart/items", json={"product_id": catalog.id, "quantity": 11}, headers=auth_headers())

        assert response.status_code == 400
        assert response.json()["error_type"] == "InsufficientStockError"


class TestOrdersApi:
    """Test order endpoints"""

    def test_create_then_replay(self, client, catalog, auth_headers):
        # Arrange
        headers = auth_headers()

        # Act
        first = place_order(client, catalog, headers, quantity=2)
        second = place_order(client, catalog, headers, quantity=2)

        # Assert: 201 then 200 with the same order
        assert first.status_code == 201
        assert first.json()["created"] is True
        assert second.status_code == 200
        assert second.json()["created"] is False
        assert second.json()["data"]["order_number"] == first.json()["data"]["order_number"]

        data = first.json()["data"]
        assert data["total_amount"] == 265.0
        assert data["item_count"] == 2
        assert data["is_paid"] is False

    def test_idempotency_key_header(self, client, catalog, auth_headers):
        headers = {**auth_headers(), "Idempotency-Key": "checkout-42"}

        first = place_order(client, catalog, headers, quantity=1)
        second = place_order(client, catalog, headers, quantity=3)

        assert second.status_code == 200
        assert second.json()["data"]["id"] == first.json()["data"]["id"]

    def test_guest_needs_email(self, client, catalog):
        response = place_order(client, catalog)

        assert response.status_code == 400
        assert response.json()["error_type"] == "ValidationError"

    def test_guest_checkout_and_tracking(self, client, catalog):
        created = place_order(client, catalog, email="guest@example.com")
        number = created.json()["data"]["order_number"]

        tracked = client.get("/api/v1/orders/track", params={"order_number": number, "email": "guest@example.com"})
        hidden = client.get("/api/v1/orders/track", params={"order_number": number, "email": "other@example.com"})

        assert created.status_code == 201
        assert tracked.status_code == 200
        assert tracked.json()["data"]["status"] == "pending"
        assert "shipping_address" not in tracked.json()["data"]
        assert hidden.status_code == 404

    def test_insufficient_stock(self, client, catalog, auth_headers):
        response = place_order(client, catalog, auth_headers(), quantity=11)

        assert response.status_code == 400
        assert "Insufficient stock" in response.json()["detail"]

    def test_my_orders_are_private(self, client, catalog, auth_headers):
        number = place_order(client, catalog, auth_headers()).json()["data"]["order_number"]
        other = auth_headers(sub="user_kofi", email="kofi@example.com")

        assert client.get(f"/api/v1/orders/{number}", headers=auth_headers()).status_code == 200
        assert client.get(f"/api/v1/orders/{number}", headers=other).status_code == 404
        assert client.get("/api/v1/orders/", headers=other).json()["total"] == 0

    def test_cancel_releases_stock(self, client, db, catalog, auth_headers):
        headers = auth_headers()
        number = place_order(client, catalog, headers, quantity=3).json()["data"]["order_number"]

        response = client.post(f"/api/v1/orders/{number}/cancel", headers=headers)
        again = client.post(f"/api/v1/orders/{number}/cancel", headers=headers)

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "canceled"
        assert again.status_code == 409
        db.expire_all()
        assert db.get(Product, catalog.id).stock == 10


class TestPaymentsApi:
    """Test Paystack initialize and verify endpoints"""

    def test_initialize_as_guest(self, client, catalog, fake_paystack):
        order = place_order(client, catalog, email="guest@example.com").json()["data"]

        response = client.post("/api/v1/payments/initialize", json={"order_id": order["id"], "email": "guest@example.com"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["authorization_url"].startswith("https://checkout.paystack.com/")
        assert data["amount"] == 145.0
        assert fake_paystack.initialized[0]["amount_minor"] == 14500

    def test_initialize_wrong_email(self, client, catalog):
        order = place_order(client, catalog, email="guest@example.com").json()["data"]

        response = client.post("/api/v1/payments/initialize", json={"order_id": order["id"], "email": "x@example.com"})

        assert response.status_code == 404

    def test_verify_success(self, client, catalog, auth_headers, fake_paystack):
        # Arrange
        headers = auth_headers()
        order = place_order(client, catalog, headers).json()["data"]
        fake_paystack.add_transaction("ref-1", amount=14500, order_id=order["id"])

        # Act
        response = client.post("/api/v1/payments/verify", json={"reference": "ref-1", "order_id": order["id"]}, headers=headers)

        # Assert
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "processing"
        assert response.json()["data"]["payment_status"] == "paid"

    def test_verify_underpayment(self, client, catalog, auth_headers, fake_paystack):
        headers = auth_headers()
        order = place_order(client, catalog, headers).json()["data"]
        fake_paystack.add_transaction("ref-1", amount=10000, order_id=order["id"])

        response = client.post("/api/v1/payments/verify", json={"reference": "ref-1", "order_id": order["id"]}, headers=headers)

        assert response.status_code == 400
        assert "less than the order total" in response.json()["detail"]

    def test_verify_gateway_error(self, client, catalog, auth_headers, fake_paystack):
        headers = auth_headers()
        order = place_order(client, catalog, headers).json()["data"]
        fake_paystack.fail_verify = True

        response = client.post("/api/v1/payments/verify", json={"reference": "ref-1", "order_id": order["id"]}, headers=headers)

        assert response.status_code == 502
        assert response.json()["error_type"] == "PaymentGatewayError"

    def test_redirect_landing_for_owner(self, client, catalog, auth_headers, fake_paystack):
        headers = auth_headers()
        order = place_order(client, catalog, headers).json()["data"]
        fake_paystack.add_transaction("ref-1", amount=14500, order_id=order["id"])

        response = client.get("/api/v1/payments/verify", params={"reference": "ref-1"}, headers=headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["transaction"]["status"] == "success"
        assert data["order"]["is_paid"] is True
        assert data["order"]["items"][0]["product_id"] == catalog.id


class TestPaystackWebhook:
    """Test the webhook endpoint"""

    URL = "/api/v1/webhooks/paystack"

    def _post(self, client, payload, signature=None, secret="sk_test_secret"):
        body = json.dumps(payload).encode()
        headers = {"content-type": "application/json"}
        if signature is not False:
            headers["x-paystack-signature"] = signature or sign(body, secret)
        return client.post(self.URL, content=body, headers=headers)

    def _payload(self, order_id, reference="ref-1"):
        return {"event": "charge.success", "data": {"reference": reference, "metadata": {"order_id": order_id}}}

    def test_missing_secret(self, client, monkeypatch):
        monkeypatch.setattr(get_settings(), "PAYSTACK_SECRET_KEY", "")

        response = self._post(client, self._payload(1))

        assert response.status_code == 500

    def test_missing_signature_header(self, client):
        response = self._post(client, self._payload(1), signature=False)

        assert response.status_code == 400

    def test_invalid_signature(self, client):
        response = self._post(client, self._payload(1), secret="not-the-secret")

        assert response.status_code == 401
        assert response.json()["error_type"] == "AuthenticationError"

    def test_malformed_payload(self, client):
        body = b"not json"

        response = client.post(self.URL, content=body, headers={"x-paystack-signature": sign(body)})

        assert response.status_code == 400

    def test_unknown_order(self, client):
        response = self._post(client, self._payload(4242))

        assert response.status_code == 404

    def test_charge_success(self, client, db, catalog, fake_paystack):
        # Arrange
        order = place_order(client, catalog, email="guest@example.com").json()["data"]
        fake_paystack.add_transaction("ref-1", amount=14500, order_id=order["id"])

        # Act: delivered twice, as Paystack retries
        first = self._post(client, self._payload(order["id"]))
        second = self._post(client, self._payload(order["id"]))

        # Assert
        assert first.status_code == 200
        assert first.json() == {"ok": True}
        assert second.json() == {"ok": True}
        db.expire_all()
        saved = db.get(Order, order["id"])
        assert saved.status == "processing"
        assert saved.payment_status == "paid"
        assert db.get(Product, catalog.id).stock == 9
