"""
API tests for coupon administration, validation and redemption.
"""

from uuid import uuid4

from conftest import VALID_API_KEY, auth_headers, register


def _coupon(client, headers, **fields) -> dict:
    payload = {"plan_type": "pro", **fields}
    response = client.post("/api/v1/coupons", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestCouponAdministration:
    def test_create_with_explicit_code_is_uppercased(self, client, admin_headers):
        body = _coupon(client, admin_headers, code="launch-2024", usage_limit=3)
        assert body["code"] == "LAUNCH-2024"
        assert body["remaining_uses"] == 3
        assert body["used_count"] == 0

    def test_generated_code_uses_prefix(self, client, admin_headers):
        body = _coupon(client, admin_headers, prefix="vip")
        assert body["code"].startswith("VIP")
        assert len(body["code"]) == 11

    def test_duplicate_code_is_409(self, client, admin_headers):
        _coupon(client, admin_headers, code="SAME")
        response = client.post("/api/v1/coupons", json={"plan_type": "basic", "code": "same"}, headers=admin_headers)
        assert response.status_code == 409

    def test_non_admin_cannot_manage(self, client, user_headers):
        assert client.post("/api/v1/coupons", json={"plan_type": "pro"}, headers=user_headers).status_code == 403
        assert client.get("/api/v1/coupons", headers=user_headers).status_code == 403

    def test_list_and_lookup(self, client, admin_headers):
        _coupon(client, admin_headers, code="FIRST")
        _coupon(client, admin_headers, code="SECOND")
        codes = {c["code"] for c in client.get("/api/v1/coupons", headers=admin_headers).json()}
        assert codes == {"FIRST", "SECOND"}
        assert client.get("/api/v1/coupons/code/first", headers=admin_headers).json()["code"] == "FIRST"

    def test_generate_code_does_not_create(self, client, admin_headers):
        response = client.get("/api/v1/coupons/generate-code", params={"prefix": "x"}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["code"].startswith("X")
        assert client.get("/api/v1/coupons", headers=admin_headers).json() == []

    def test_update(self, client, admin_headers):
        coupon = _coupon(client, admin_headers, code="EDIT")
        response = client.patch(
            f"/api/v1/coupons/{coupon['id']}",
            json={"plan_type": "basic", "usage_limit": 10, "description": "spring"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["plan_type"] == "basic"
        assert body["usage_limit"] == 10
        assert body["description"] == "spring"

    def test_delete_unused(self, client, admin_headers):
        coupon = _coupon(client, admin_headers)
        assert client.delete(f"/api/v1/coupons/{coupon['id']}", headers=admin_headers).status_code == 204
        assert client.get(f"/api/v1/coupons/{coupon['id']}/stats", headers=admin_headers).status_code == 404

    def test_used_coupon_cannot_be_deleted(self, client, admin_headers):
        coupon = _coupon(client, admin_headers, code="USED")
        user = auth_headers(register(client))
        client.post("/api/v1/coupons/redeem", json={"code": "USED"}, headers=user)

        response = client.delete(f"/api/v1/coupons/{coupon['id']}", headers=admin_headers)
        assert response.status_code == 409

    def test_unknown_coupon_is_404(self, client, admin_headers):
        assert client.delete(f"/api/v1/coupons/{uuid4()}", headers=admin_headers).status_code == 404


class TestCouponValidation:
    def test_valid_code(self, client, admin_headers):
        _coupon(client, admin_headers, code="OPEN", usage_limit=5)
        body = client.get("/api/v1/coupons/validate/open").json()
        assert body["valid"] is True
        assert body["plan_type"] == "pro"
        assert body["remaining_uses"] == 5

    def test_unknown_code_is_not_an_error(self, client):
        response = client.get("/api/v1/coupons/validate/NOPE")
        assert response.status_code == 200
        assert response.json() == {
            "valid": False, "code": "NOPE", "plan_type": None,
            "remaining_uses": 0, "expires_at": None, "reason": "Coupon not found",
        }

    def test_expired_code(self, client, admin_headers):
        _coupon(client, admin_headers, code="OLD", expires_at="2020-01-01T00:00:00Z")
        body = client.get("/api/v1/coupons/validate/OLD").json()
        assert body["valid"] is False
        assert "expired" in body["reason"]


class TestRedemption:
    def test_redeem_upgrades_plan(self, client, admin_headers):
        _coupon(client, admin_headers, code="PROMO", usage_limit=2)
        user = auth_headers(register(client))

        response = client.post("/api/v1/coupons/redeem", json={"code": "promo"}, headers=user)

        assert response.status_code == 200
        assert response.json()["used_count"] == 1
        assert client.get("/api/v1/auth/me", headers=user).json()["plan_type"] == "pro"

    def test_same_user_cannot_redeem_twice(self, client, admin_headers):
        _coupon(client, admin_headers, code="PROMO", usage_limit=2)
        user = auth_headers(register(client))
        client.post("/api/v1/coupons/redeem", json={"code": "PROMO"}, headers=user)

        response = client.post("/api/v1/coupons/redeem", json={"code": "PROMO"}, headers=user)
        assert response.status_code == 409

    def test_exhausted_coupon_is_400(self, client, admin_headers):
        _coupon(client, admin_headers, code="ONCE")
        first = auth_headers(register(client))
        second = auth_headers(register(client, email="bob@example.com", username="bob"))
        client.post("/api/v1/coupons/redeem", json={"code": "ONCE"}, headers=first)

        response = client.post("/api/v1/coupons/redeem", json={"code": "ONCE"}, headers=second)
        assert response.status_code == 400
        assert "limit" in response.json()["detail"]

    def test_expired_coupon_is_400(self, client, admin_headers):
        _coupon(client, admin_headers, code="OLD", expires_at="2020-01-01T00:00:00Z")
        user = auth_headers(register(client))
        response = client.post("/api/v1/coupons/redeem", json={"code": "OLD"}, headers=user)
        assert response.status_code == 400

    def test_register_with_coupon(self, client, admin_headers):
        _coupon(client, admin_headers, code="WELCOME", plan_type="advanced")
        tokens = register(client, coupon_code="welcome")
        assert tokens["plan_type"] == "advanced"

    def test_register_with_exhausted_coupon_is_400(self, client, admin_headers):
        _coupon(client, admin_headers, code="ONCE")
        register(client, coupon_code="ONCE")
        response = client.post("/api/v1/auth/register", json={
            "email": "bob@example.com", "username": "bob", "password": "s3cret-pass",
            "api_key": VALID_API_KEY, "api_secret": "s", "passphrase": "p", "coupon_code": "ONCE",
        })
        assert response.status_code == 400


class TestCouponReporting:
    def test_stats(self, client, admin_headers):
        coupon = _coupon(client, admin_headers, code="STATS", usage_limit=3)
        tokens = register(client)
        client.post("/api/v1/coupons/redeem", json={"code": "STATS"}, headers=auth_headers(tokens))

        body = client.get(f"/api/v1/coupons/{coupon['id']}/stats", headers=admin_headers).json()

        assert body["remaining_uses"] == 2
        assert body["is_expired"] is False
        assert [r["user_id"] for r in body["recent_redemptions"]] == [tokens["user_id"]]

    def test_analytics(self, client, admin_headers):
        _coupon(client, admin_headers, code="PRO1", usage_limit=5)
        _coupon(client, admin_headers, code="BASIC1", plan_type="basic")
        _coupon(client, admin_headers, code="OLD", expires_at="2020-01-01T00:00:00Z")
        client.post("/api/v1/coupons/redeem", json={"code": "PRO1"}, headers=auth_headers(register(client)))
        client.post("/api/v1/coupons/redeem", json={"code": "BASIC1"}, headers=auth_headers(
            register(client, email="bob@example.com", username="bob")
        ))

        body = client.get("/api/v1/coupons/analytics", headers=admin_headers).json()

        assert body["total_coupons"] == 3
        assert body["expired_coupons"] == 1
        assert body["exhausted_coupons"] == 1
        assert body["active_coupons"] == 1
        assert body["total_uses"] == 2
        assert body["uses_by_plan"] == {"pro": 1, "basic": 1}
        assert len(body["recent_redemptions"]) == 2
