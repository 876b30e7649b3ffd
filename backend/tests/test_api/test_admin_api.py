"""
API tests for back-office, returns, scheduled jobs and health endpoints
"""
from datetime import timedelta

import pytest

from trendify.core.config import get_settings
from trendify.core.database import utcnow
from trendify.domain.order import OrderStatusUpdate
from trendify.domain.payment import PaymentOutcome
from trendify.models import Order, Product
from trendify.services.order_service import OrderService
from trendify.services.payment_service import PaymentService


@pytest.fixture
def admin_headers(auth_headers):
    return auth_headers(sub="user_admin", email="admin@example.com", role="admin", name="Efua Admin")


@pytest.fixture
def staff_headers(auth_headers):
    return auth_headers(sub="user_staff", email="staff@example.com", role="staff", name="Yaw Staff")


@pytest.fixture
def paid_order(db, user_factory, product_factory, order_factory):
    """Paid (processing) order of customer ama@example.com / user_ama"""
    user = user_factory()
    product = product_factory(price="120.00", stock=10)
    order = order_factory(user, [{"product_id": product.id, "quantity": 1}])
    PaymentService(db).finalize_order_payment(order.id, "ref-1", PaymentOutcome.PAID)
    return order


class TestAdminAccess:
    """Test role checks"""

    def test_customer_forbidden(self, client, auth_headers):
        assert client.get("/api/v1/admin/orders", headers=auth_headers()).status_code == 403

    def test_anonymous_unauthorized(self, client):
        assert client.get("/api/v1/admin/orders").status_code == 401

    def test_staff_cannot_manage_catalog(self, client, staff_headers):
        response = client.post("/api/v1/admin/products", json={"name": "Scarf", "price": 30}, headers=staff_headers)

        assert response.status_code == 403

    def test_expired_token(self, client, auth_headers):
        response = client.get("/api/v1/admin/orders", headers=auth_headers(role="admin", expires_in=-60))

        assert response.status_code == 401
        assert response.json()["detail"] == "Token has expired"


class TestAdminOrders:
    """Test order administration"""

    def test_status_flow_and_audit(self, client, paid_order, staff_headers, admin_headers):
        # Act
        shipped = client.patch(
            f"/api/v1/admin/orders/{paid_order.id}/status",
            json={"status": "shipped", "tracking_number": "GH-TRK-1"},
            headers=staff_headers,
        )
        audit = client.get(
            "/api/v1/admin/audit",
            params={"action": "ORDER_STATUS_CHANGED", "entity_id": str(paid_order.id)},
            headers=admin_headers,
        )

        # Assert
        assert shipped.status_code == 200
        assert shipped.json()["data"]["tracking_number"] == "GH-TRK-1"
        entries = audit.json()["data"]
        assert len(entries) == 1
        assert entries[0]["user_email"] == "staff@example.com"
        assert entries[0]["old_value"]["status"] == "processing"

    def test_invalid_transition(self, client, paid_order, staff_headers):
        response = client.patch(
            f"/api/v1/admin/orders/{paid_order.id}/status",
            json={"status": "delivered"},
            headers=staff_headers,
        )

        assert response.status_code == 409
        assert response.json()["error_type"] == "ConflictError"

    def test_tracking_number_requires_shipping(self, client, paid_order, staff_headers):
        response = client.patch(
            f"/api/v1/admin/orders/{paid_order.id}/status",
            json={"status": "processing", "tracking_number": "X"},
            headers=staff_headers,
        )

        assert response.status_code == 422

    def test_list_and_filter(self, client, paid_order, staff_headers):
        paid = client.get("/api/v1/admin/orders", params={"payment_status": "paid"}, headers=staff_headers)
        unpaid = client.get("/api/v1/admin/orders", params={"payment_status": "unpaid"}, headers=staff_headers)
        search = client.get("/api/v1/admin/orders", params={"search": "ama@"}, headers=staff_headers)

        assert paid.json()["total"] == 1
        assert unpaid.json()["total"] == 0
        assert search.json()["data"][0]["id"] == paid_order.id


class TestAdminCatalog:
    """Test product, stock and coupon administration"""

    def test_create_adjust_and_report(self, client, admin_headers):
        # Arrange
        created = client.post(
            "/api/v1/admin/products",
            json={"name": "Adinkra Scarf", "price": 45, "stock": 2, "category": "Scarves"},
            headers=admin_headers,
        )
        product_id = created.json()["data"]["id"]

        # Act
        low = client.get("/api/v1/admin/products/low-stock", headers=admin_headers)
        adjusted = client.post(f"/api/v1/admin/products/{product_id}/stock", json={"delta": 10}, headers=admin_headers)
        too_far = client.post(f"/api/v1/admin/products/{product_id}/stock", json={"delta": -20}, headers=admin_headers)

        # Assert
        assert created.status_code == 201
        assert created.json()["data"]["slug"] == "adinkra-scarf"
        assert [row["id"] for row in low.json()["data"]] == [product_id]
        assert adjusted.json()["data"]["stock"] == 12
        assert too_far.status_code == 409

    def test_deleted_product_leaves_storefront(self, client, product_factory, admin_headers):
        product = product_factory()

        deleted = client.delete(f"/api/v1/admin/products/{product.id}", headers=admin_headers)

        assert deleted.status_code == 200
        assert client.get(f"/api/v1/products/{product.id}").status_code == 404

    def test_coupon_crud(self, client, admin_headers):
        created = client.post(
            "/api/v1/admin/coupons",
            json={"code": "launch", "type": "percentage", "value": 15, "max_discount": 50},
            headers=admin_headers,
        )
        duplicate = client.post(
            "/api/v1/admin/coupons",
            json={"code": "LAUNCH", "type": "fixed_amount", "value": 5},
            headers=admin_headers,
        )
        coupon_id = created.json()["data"]["id"]
        client.delete(f"/api/v1/admin/coupons/{coupon_id}", headers=admin_headers)
        listed = client.get("/api/v1/admin/coupons", headers=admin_headers)

        assert created.status_code == 201
        assert created.json()["data"]["code"] == "LAUNCH"
        assert duplicate.status_code == 409
        assert listed.json()["data"][0]["is_active"] is False

    def test_delivery_city_crud(self, client, admin_headers):
        city = client.post("/api/v1/admin/delivery/cities", json={"name": "Cape Coast", "door_fee": 40}, headers=admin_headers)
        city_id = city.json()["data"]["id"]
        location = client.post(
            f"/api/v1/admin/delivery/cities/{city_id}/pickup-locations",
            json={"name": "Kotokuraba Market"},
            headers=admin_headers,
        )

        options = client.get("/api/v1/delivery/options").json()["data"]

        assert city.status_code == 201
        assert location.status_code == 201
        assert options[0]["pickup_locations"][0]["name"] == "Kotokuraba Market"


class TestReturnsApi:
    """Test customer returns and staff review"""

    def _deliver(self, db, order):
        service = OrderService(db)
        service.update_status(order.id, OrderStatusUpdate(status="shipped"))
        service.update_status(order.id, OrderStatusUpdate(status="delivered"))

    def test_request_and_review(self, client, db, paid_order, auth_headers, staff_headers):
        # Arrange
        self._deliver(db, paid_order)
        item_id = paid_order.items[0].id

        # Act
        created = client.post(
            "/api/v1/returns/",
            json={"order_id": paid_order.id, "order_item_ids": [item_id], "reason": "Damaged"},
            headers=auth_headers(),
        )
        return_id = created.json()["data"]["id"]
        approved = client.post(f"/api/v1/admin/returns/{return_id}/review", json={"action": "approve"}, headers=staff_headers)
        completed = client.post(f"/api/v1/admin/returns/{return_id}/review", json={"action": "complete"}, headers=staff_headers)
        mine = client.get("/api/v1/returns/", headers=auth_headers())

        # Assert
        assert created.status_code == 201
        assert created.json()["data"]["refund_amount"] == 120.0
        assert approved.json()["data"]["status"] == "approved"
        assert completed.json()["data"]["status"] == "completed"
        assert mine.json()["total"] == 1
        db.expire_all()
        order = db.get(Order, paid_order.id)
        assert order.payment_status == "partially_refunded"
        assert db.get(Product, order.items[0].product_id).stock == 10

    def test_approval_terms_and_receipt(self, client, db, paid_order, auth_headers, staff_headers):
        self._deliver(db, paid_order)
        created = client.post(
            "/api/v1/returns/",
            json={"order_id": paid_order.id, "order_item_ids": [paid_order.items[0].id], "reason": "Wrong colour"},
            headers=auth_headers(),
        )
        url = f"/api/v1/admin/returns/{created.json()['data']['id']}/review"

        early_fee = client.post(url, json={"action": "reject", "restock_fee": 5}, headers=staff_headers)
        approved = client.post(url, json={"action": "approve", "restock_fee": 12, "shipping_cost": 8}, headers=staff_headers)
        received = client.post(url, json={"action": "receive"}, headers=staff_headers)

        assert early_fee.status_code == 422
        assert approved.json()["data"]["refund_amount"] == 100.0
        assert approved.json()["data"]["restock_fee"] == 12.0
        assert received.json()["data"]["status"] == "received"
        assert received.json()["data"]["received_at"] is not None

    def test_undelivered_order(self, client, paid_order, auth_headers):
        response = client.post(
            "/api/v1/returns/",
            json={"order_id": paid_order.id, "order_item_ids": [paid_order.items[0].id], "reason": "Damaged"},
            headers=auth_headers(),
        )

        assert response.status_code == 400

    def test_rate_limited_after_three_requests(self, client, auth_headers):
        """Test the fourth return request within an hour is rejected"""
        headers = auth_headers()
        body = {"order_id": 999, "order_item_ids": [1], "reason": "Damaged"}

        responses = [client.post("/api/v1/returns/", json=body, headers=headers) for _ in range(4)]

        assert [r.status_code for r in responses] == [404, 404, 404, 429]
        assert responses[-1].json()["error_type"] == "RateLimitExceededError"
        assert int(responses[-1].headers["Retry-After"]) > 3500


class TestCronApi:
    """Test the reservation release job endpoint"""

    URL = "/api/v1/cron/release-reservations"

    def test_requires_secret(self, client):
        assert client.post(self.URL).status_code == 401
        assert client.post(self.URL, headers={"Authorization": "Bearer wrong"}).status_code == 401

    def test_disabled_without_configured_secret(self, client, monkeypatch):
        monkeypatch.setattr(get_settings(), "CRON_SECRET", "")

        response = client.post(self.URL, headers={"Authorization": "Bearer test-cron-secret"})

        assert response.status_code == 500

    def test_releases_expired_orders(self, client, db, user_factory, product_factory, order_factory):
        # Arrange: pending order created an hour ago
        user = user_factory()
        product = product_factory(stock=5)
        order = order_factory(user, [{"product_id": product.id, "quantity": 2}])
        db.get(Order, order.id).created_at = utcnow() - timedelta(hours=1)
        db.commit()

        # Act
        response = client.post(self.URL, headers={"Authorization": "Bearer test-cron-secret"})

        # Assert
        assert response.status_code == 200
        assert response.json()["data"] == {"checked": 1, "released": 1, "order_ids": [order.id]}
        db.expire_all()
        assert db.get(Product, product.id).stock == 5


class TestHealth:
    """Test service health endpoints"""

    def test_root(self, client):
        assert client.get("/").json()["status"] == "online"

    def test_health(self, client):
        body = client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["database"]["status"] == "connected"
        assert body["payments_configured"] is True
