"""
API tests for product reviews, review moderation and driver administration
"""
import pytest


@pytest.fixture
def admin_headers(auth_headers):
    return auth_headers(sub="user_admin", email="admin@example.com", role="admin", name="Efua Admin")


class TestReviewsApi:
    """Test review submission and the storefront listing"""

    def test_submit_moderate_and_list(self, client, product_factory, auth_headers, admin_headers):
        # Arrange
        product = product_factory()
        body = {"product_id": product.id, "rating": 5, "title": "Lovely weave"}

        # Act
        created = client.post("/api/v1/reviews/", json=body, headers=auth_headers())
        edited = client.post("/api/v1/reviews/", json={**body, "rating": 4}, headers=auth_headers())
        before = client.get(f"/api/v1/reviews/?product_id={product.id}&include_mine=true", headers=auth_headers())
        review_id = created.json()["data"]["id"]
        moderated = client.post(
            f"/api/v1/admin/reviews/{review_id}/moderate", json={"action": "approve"}, headers=admin_headers
        )
        after = client.get(f"/api/v1/reviews/?product_id={product.id}")

        # Assert
        assert created.status_code == 201
        assert edited.status_code == 200
        assert edited.json()["data"]["id"] == review_id
        assert before.json()["total"] == 0
        assert before.json()["my_review"]["rating"] == 4
        assert moderated.json()["data"]["is_approved"] is True
        assert after.json()["total"] == 1
        assert after.json()["data"][0]["user"]["name"] == "Ama Mensah"
        assert after.json()["summary"]["average"] == 4.0
        assert after.json()["my_review"] is None

    def test_requires_sign_in(self, client, product_factory):
        response = client.post("/api/v1/reviews/", json={"product_id": product_factory().id, "rating": 5})

        assert response.status_code == 401

    def test_invalid_rating_and_image_url(self, client, product_factory, auth_headers):
        product = product_factory()

        bad_rating = client.post("/api/v1/reviews/", json={"product_id": product.id, "rating": 9}, headers=auth_headers())
        bad_image = client.post(
            "/api/v1/reviews/",
            json={"product_id": product.id, "rating": 4, "images": ["not a url"]},
            headers=auth_headers(),
        )

        assert bad_rating.status_code == 422
        assert bad_image.status_code == 422

    def test_rate_limited_after_ten_submissions(self, client, auth_headers):
        """Test the eleventh submission within a minute is rejected"""
        headers = auth_headers()
        body = {"product_id": 999, "rating": 5}

        responses = [client.post("/api/v1/reviews/", json=body, headers=headers) for _ in range(11)]

        assert [r.status_code for r in responses[:10]] == [404] * 10
        assert responses[-1].status_code == 429
        assert responses[-1].json()["error_type"] == "RateLimitExceededError"


class TestReviewModerationApi:
    """Test the admin review queue"""

    def test_queue_with_stats_and_delete(self, client, product_factory, auth_headers, admin_headers):
        # Arrange
        product = product_factory()
        created = client.post(
            "/api/v1/reviews/", json={"product_id": product.id, "rating": 1, "comment": "Spam link"}, headers=auth_headers()
        )
        review_id = created.json()["data"]["id"]

        # Act
        queue = client.get("/api/v1/admin/reviews?status=pending", headers=admin_headers)
        deleted = client.post(
            f"/api/v1/admin/reviews/{review_id}/moderate", json={"action": "delete"}, headers=admin_headers
        )
        after = client.get("/api/v1/admin/reviews", headers=admin_headers)
        again = client.post(
            f"/api/v1/admin/reviews/{review_id}/moderate", json={"action": "approve"}, headers=admin_headers
        )

        # Assert
        assert queue.json()["total"] == 1
        assert queue.json()["stats"] == {"pending": 1, "approved": 0, "total": 1}
        assert deleted.json()["message"] == f"Review {review_id} deleted"
        assert after.json()["total"] == 0
        assert again.status_code == 404

    def test_customer_cannot_moderate(self, client, auth_headers):
        response = client.get("/api/v1/admin/reviews", headers=auth_headers())

        assert response.status_code == 403


class TestDriversApi:
    """Test driver administration endpoints"""

    BODY = {
        "name": "Kwame Boateng",
        "phone": "+233241234567",
        "email": "kwame@example.com",
        "license_no": "DL-0042",
        "vehicle_type": "motorbike",
        "vehicle_no": "GR-1234-26",
    }

    def test_crud(self, client, city_factory, admin_headers):
        # Arrange
        accra = city_factory(name="Accra")

        # Act
        created = client.post("/api/v1/admin/drivers", json={**self.BODY, "service_city_ids": [accra.id]}, headers=admin_headers)
        driver_id = created.json()["data"]["id"]
        updated = client.patch(
            f"/api/v1/admin/drivers/{driver_id}", json={"rating": 4.8, "is_active": False}, headers=admin_headers
        )
        listed = client.get("/api/v1/admin/drivers?active=false&search=kwame", headers=admin_headers)
        deleted = client.delete(f"/api/v1/admin/drivers/{driver_id}", headers=admin_headers)
        missing = client.get(f"/api/v1/admin/drivers/{driver_id}", headers=admin_headers)

        # Assert
        assert created.status_code == 201
        assert created.json()["data"]["service_cities"] == [{"id": accra.id, "name": "Accra"}]
        assert updated.json()["data"]["rating"] == 4.8
        assert updated.json()["data"]["is_active"] is False
        assert listed.json()["total"] == 1
        assert deleted.status_code == 200
        assert missing.status_code == 404

    def test_validation(self, client, admin_headers):
        response = client.post("/api/v1/admin/drivers", json={**self.BODY, "phone": "0241"}, headers=admin_headers)

        assert response.status_code == 422

    def test_staff_forbidden(self, client, auth_headers):
        staff = auth_headers(sub="user_staff", email="staff@example.com", role="staff")

        assert client.get("/api/v1/admin/drivers", headers=staff).status_code == 403
