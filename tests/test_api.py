"""HTTP surface tests via TestClient."""
from decimal import Decimal

from app.models import ProductStatus, ReviewStatus


class TestAuthAPI:
    def test_register_login_and_me(self, client):
        response = client.post(
            "/api/v1/auth/register",
            json={"email": "Carol@Example.com", "password": "long-enough", "name": "Carol"},
        )
        assert response.status_code == 201
        assert "password_hash" not in response.json()

        token = client.post(
            "/api/v1/auth/token",
            data={"username": "carol@example.com", "password": "long-enough"},
        ).json()["access_token"]
        me = client.get("/api/v1/user", headers={"Authorization": f"Bearer {token}"})

        assert me.status_code == 200
        assert me.json()["email"] == "carol@example.com"
        assert me.json()["role"] == "user"

    def test_duplicate_registration(self, client, user):
        response = client.post("/api/v1/auth/register", json={"email": user.email, "password": "long-enough"})
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "conflict"

    def test_wrong_password(self, client, user):
        response = client.post("/api/v1/auth/token", data={"username": user.email, "password": "nope"})
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "unauthenticated"

    def test_me_requires_token(self, client):
        response = client.get("/api/v1/user")
        assert response.status_code == 401
        assert response.json() == {"error": {"code": "unauthenticated", "message": "Could not validate credentials"}}

    def test_garbage_token(self, client):
        response = client.get("/api/v1/user", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401


class TestProductsAPI:
    def test_submit_then_approve_then_listed(self, client, category, user, admin, auth_headers):
        response = client.post(
            "/api/v1/products",
            json={"name": "Foo", "description": "Does foo things", "categoryId": category.id},
            headers=auth_headers(user),
        )
        assert response.status_code == 201
        product = response.json()["product"]
        assert product["status"] == "pending"

        assert client.get("/api/v1/products").json()["products"] == []

        approved = client.post(f"/api/v1/admin/products/{product['id']}/approve", headers=auth_headers(admin))
        assert approved.status_code == 200
        assert approved.json()["product"]["status"] == "approved"

        listing = client.get("/api/v1/products").json()
        assert [p["slug"] for p in listing["products"]] == ["foo"]
        assert listing["pagination"] == {
            "page": 1,
            "limit": 12,
            "total": 1,
            "totalPages": 1,
            "hasNext": False,
            "hasPrev": False,
        }

    def test_submit_requires_auth(self, client, category):
        response = client.post("/api/v1/products", json={"name": "Foo", "description": "x", "categoryId": category.id})
        assert response.status_code == 401

    def test_client_cannot_set_aggregates(self, client, category, user, auth_headers):
        response = client.post(
            "/api/v1/products",
            json={"name": "Foo", "description": "x", "categoryId": category.id, "averageRating": 5},
            headers=auth_headers(user),
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "validation_failed"

    def test_detail(self, client, product, make_review, other_user):
        make_review(product, other_user, rating=4)
        response = client.get(f"/api/v1/products/{product.slug}")

        assert response.status_code == 200
        body = response.json()["product"]
        assert body["name"] == "Quill Writer"
        assert body["recent_reviews"][0]["user"]["id"] == other_user.id

    def test_missing_product(self, client):
        response = client.get("/api/v1/products/nope")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "not_found"

    def test_owner_edit_resets_to_pending(self, client, product, user, auth_headers):
        response = client.put(
            f"/api/v1/products/{product.slug}",
            json={"shortDescription": "Now shorter"},
            headers=auth_headers(user),
        )
        assert response.status_code == 200
        assert response.json()["product"]["status"] == "pending"
        assert response.json()["product"]["short_description"] == "Now shorter"

    def test_stranger_edit_is_forbidden(self, client, product, other_user, auth_headers):
        response = client.put(f"/api/v1/products/{product.slug}", json={"name": "Mine"}, headers=auth_headers(other_user))
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "permission_denied"

    def test_delete(self, client, product, user, auth_headers):
        response = client.delete(f"/api/v1/products/{product.slug}", headers=auth_headers(user))
        assert response.status_code == 200
        assert client.get(f"/api/v1/products/{product.slug}").status_code == 404

    def test_public_status_filter_requires_admin(self, client, user, admin, auth_headers):
        assert client.get("/api/v1/products?status=pending", headers=auth_headers(user)).status_code == 403
        assert client.get("/api/v1/products?status=pending", headers=auth_headers(admin)).status_code == 200

    def test_bad_listing_parameters(self, client):
        assert client.get("/api/v1/products?sort=price").status_code == 400
        assert client.get("/api/v1/products?status=archived").status_code == 400
        assert client.get("/api/v1/products?limit=1000").status_code == 400
        assert client.get("/api/v1/products?page=0").status_code == 400

    def test_my_products(self, client, make_product, user, other_user, auth_headers):
        make_product(user, status=ProductStatus.PENDING)
        make_product(other_user)

        body = client.get("/api/v1/user/products", headers=auth_headers(user)).json()

        assert body["pagination"]["total"] == 1
        assert body["products"][0]["status"] == "pending"


class TestReviewsAPI:
    def _post(self, client, headers, product, rating, **extra):
        return client.post(
            "/api/v1/reviews",
            json={"productId": product.id, "rating": rating, "content": "Worth a try", **extra},
            headers=headers,
        )

    def test_aggregates_follow_reviews(self, client, session, product, make_user, auth_headers):
        reviewers = [make_user(f"api{i}@example.com") for i in range(3)]
        ids = [
            self._post(client, auth_headers(reviewer), product, rating).json()["review"]["id"]
            for reviewer, rating in zip(reviewers, [5, 4, 3])
        ]

        detail = client.get(f"/api/v1/products/{product.slug}").json()["product"]
        assert Decimal(str(detail["average_rating"])) == Decimal("4.00")
        assert detail["total_reviews"] == 3

        assert client.delete(f"/api/v1/reviews/{ids[2]}", headers=auth_headers(reviewers[2])).status_code == 200

        detail = client.get(f"/api/v1/products/{product.slug}").json()["product"]
        assert Decimal(str(detail["average_rating"])) == Decimal("4.50")
        assert detail["total_reviews"] == 2

        listing = client.get(f"/api/v1/reviews?productId={product.id}").json()
        assert sorted(r["id"] for r in listing["reviews"]) == sorted(ids[:2])

    def test_duplicate_review_conflicts(self, client, product, other_user, auth_headers):
        assert self._post(client, auth_headers(other_user), product, 4).status_code == 201
        response = self._post(client, auth_headers(other_user), product, 2)
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "conflict"

    def test_rating_out_of_range(self, client, product, other_user, auth_headers):
        response = self._post(client, auth_headers(other_user), product, 6)
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Rating must be between 1 and 5"

    def test_helpful_count_cannot_be_posted(self, client, product, other_user, auth_headers):
        response = self._post(client, auth_headers(other_user), product, 4, helpfulCount=50)
        assert response.status_code == 400

    def test_only_author_edits(self, client, product, make_review, user, other_user, auth_headers):
        review = make_review(product, other_user)
        denied = client.put(f"/api/v1/reviews/{review.id}", json={"rating": 1}, headers=auth_headers(user))
        allowed = client.put(f"/api/v1/reviews/{review.id}", json={"rating": 1}, headers=auth_headers(other_user))

        assert denied.status_code == 403
        assert allowed.status_code == 200
        assert allowed.json()["review"]["rating"] == 1

    def test_read_review_with_author(self, client, product, make_review, other_user):
        review = make_review(product, other_user)
        body = client.get(f"/api/v1/reviews/{review.id}").json()["review"]
        assert body["user"] == {"id": other_user.id, "name": other_user.name, "avatar": None}


class TestVotesAPI:
    def test_vote_flip(self, client, product, make_review, user, other_user, auth_headers):
        review = make_review(product, user)
        url = f"/api/v1/reviews/{review.id}/vote"

        first = client.post(url, json={"isHelpful": True}, headers=auth_headers(other_user))
        assert first.json()["helpfulCount"] == 1
        second = client.post(url, json={"isHelpful": False}, headers=auth_headers(other_user))
        assert second.json()["helpfulCount"] == 0

        assert client.get(url, headers=auth_headers(other_user)).json() == {"voted": True, "isHelpful": False}

    def test_vote_requires_auth(self, client, product, make_review, user):
        review = make_review(product, user)
        response = client.post(f"/api/v1/reviews/{review.id}/vote", json={"isHelpful": True})
        assert response.status_code == 401

    def test_vote_body_must_be_boolean(self, client, product, make_review, user, other_user, auth_headers):
        review = make_review(product, user)
        response = client.post(
            f"/api/v1/reviews/{review.id}/vote", json={"isHelpful": "yes"}, headers=auth_headers(other_user)
        )
        assert response.status_code == 400

    def test_anonymous_read_of_vote(self, client, product, make_review, user):
        review = make_review(product, user)
        assert client.get(f"/api/v1/reviews/{review.id}/vote").json() == {"voted": False, "isHelpful": None}


class TestAdminAPI:
    def test_requires_admin(self, client, user, auth_headers):
        response = client.get("/api/v1/admin/products", headers=auth_headers(user))
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "permission_denied"

    def test_listing_has_counts(self, client, make_product, user, admin, auth_headers):
        make_product(user, status=ProductStatus.PENDING)
        make_product(user)

        body = client.get("/api/v1/admin/products?status=pending", headers=auth_headers(admin)).json()

        assert body["pagination"]["total"] == 1
        assert body["counts"] == {"all": 2, "pending": 1, "approved": 1, "rejected": 0}

    def test_reject_with_reason(self, client, make_product, user, admin, auth_headers):
        product = make_product(user, status=ProductStatus.PENDING)
        response = client.post(
            f"/api/v1/admin/products/{product.id}/reject",
            json={"reason": "Broken link"},
            headers=auth_headers(admin),
        )
        assert response.status_code == 200
        assert response.json()["product"]["status"] == "rejected"
        assert response.json()["reason"] == "Broken link"

    def test_approve_twice_conflicts(self, client, product, admin, auth_headers):
        response = client.post(f"/api/v1/admin/products/{product.id}/approve", headers=auth_headers(admin))
        assert response.status_code == 409

    def test_delete_and_restore(self, client, product, admin, auth_headers):
        assert client.delete(f"/api/v1/admin/products/{product.id}", headers=auth_headers(admin)).status_code == 200
        listing = client.get("/api/v1/admin/products?includeDeleted=true", headers=auth_headers(admin)).json()
        assert listing["pagination"]["total"] == 1

        restored = client.post(f"/api/v1/admin/products/{product.id}/restore", headers=auth_headers(admin))
        assert restored.status_code == 200
        assert restored.json()["product"]["deleted_at"] is None

    def test_feature_a_product(self, client, product, admin, auth_headers):
        response = client.put(
            f"/api/v1/admin/products/{product.id}", json={"isFeatured": True}, headers=auth_headers(admin)
        )
        assert response.status_code == 200
        assert response.json()["product"]["is_featured"] is True
        assert response.json()["product"]["status"] == "approved"

    def test_recompute_rating(self, client, session, product, make_review, other_user, admin, auth_headers):
        make_review(product, other_user, rating=2)
        response = client.post(f"/api/v1/admin/products/{product.id}/recompute-rating", headers=auth_headers(admin))

        assert response.status_code == 200
        assert Decimal(str(response.json()["product"]["average_rating"])) == Decimal("2.00")
        assert response.json()["product"]["total_reviews"] == 1

    def test_review_moderation(self, client, product, make_review, other_user, admin, auth_headers):
        review = make_review(product, other_user, status=ReviewStatus.PENDING)

        listing = client.get("/api/v1/admin/reviews?status=pending", headers=auth_headers(admin)).json()
        assert [r["id"] for r in listing["reviews"]] == [review.id]

        approved = client.post(f"/api/v1/admin/reviews/{review.id}/approve", headers=auth_headers(admin))
        assert approved.json()["review"]["status"] == "approved"
        rejected = client.post(f"/api/v1/admin/reviews/{review.id}/reject", headers=auth_headers(admin))
        assert rejected.json()["review"]["status"] == "rejected"


class TestCatalogAPI:
    def test_categories_and_tags(self, client, product, tag):
        categories = client.get("/api/v1/categories").json()["categories"]
        assert categories[0]["product_count"] == 1
        assert client.get("/api/v1/tags").json()["tags"][0]["usage_count"] == 0

    def test_stats(self, client, product):
        body = client.get("/api/v1/stats").json()
        assert body["overview"]["totalProducts"] == 1
        assert set(body) == {
            "overview",
            "topRatedProducts",
            "mostReviewedProducts",
            "categoryStats",
            "recentActivity",
            "ratingDistribution",
            "monthlyTrends",
        }


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/v1/nothing-here")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "not_found"
