"""
Authentication and authorization tests.

Verifies:
- Registration, login, logout and /me
- 401 without a bearer token, 403 for an invalid token or the wrong role
- Session idle timeout and deactivated accounts
- Profile edits are limited to name and address
"""

from datetime import timedelta

import pytest

from milk_delivery import create_app
from milk_delivery.extensions import db
from milk_delivery.models import SessionToken, User, UserRole
from milk_delivery.services import auth_service, session_service
from milk_delivery.services.auth_service import PasswordValidationError
from milk_delivery.time_utils import utcnow

from conftest import TEST_PASSWORD, auth_headers

REGISTRATION = {
    "name": "Meera Iyer",
    "email": "Meera@Example.com",
    "password": "freshmilk1",
    "address": "4 Temple Street, Chennai",
}


class TestRegistration:

    def test_register_creates_subscriber_and_session(self, client):
        resp = client.post("/api/auth/register", json=REGISTRATION)
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["user"]["email"] == "meera@example.com"
        assert body["user"]["role"] == "subscriber"
        assert "password_hash" not in body["user"]

        me = client.get("/api/auth/me", headers=auth_headers(body["token"]))
        assert me.status_code == 200
        assert me.get_json()["user"]["name"] == "Meera Iyer"

    def test_token_is_stored_as_digest(self, client):
        token = client.post("/api/auth/register", json=REGISTRATION).get_json()["token"]

        stored = db.session.query(SessionToken).one()
        assert stored.token_hash != token
        assert stored.token_hash == session_service.hash_token(token)

    def test_duplicate_email_conflicts(self, client, subscriber):
        resp = client.post("/api/auth/register", json={**REGISTRATION, "email": "ASHA@example.com"})
        assert resp.status_code == 409

    @pytest.mark.parametrize(
        "override",
        [
            {"password": "short1"},
            {"password": "nodigitshere"},
            {"password": "12345678"},
            {"name": "M"},
            {"email": "not-an-email"},
            {"address": "tiny"},
            {"address": None},
            {"email": 5},
            {"name": 42},
            {"password": 12345678},
            {"address": ["12 Lake Road"]},
        ],
    )
    def test_invalid_registration(self, client, override):
        resp = client.post("/api/auth/register", json={**REGISTRATION, **override})
        assert resp.status_code == 400
        assert db.session.query(User).count() == 0

    def test_weak_password_in_service(self):
        with pytest.raises(PasswordValidationError):
            auth_service.hash_password("password")


class TestLogin:

    def test_login_and_logout(self, client, subscriber):
        resp = client.post("/api/auth/login", json={"email": "asha@example.com", "password": TEST_PASSWORD})
        assert resp.status_code == 200
        token = resp.get_json()["token"]

        assert client.post("/api/auth/logout", headers=auth_headers(token)).status_code == 200

        resp = client.get("/api/auth/me", headers=auth_headers(token))
        assert resp.status_code == 403

    def test_wrong_password(self, client, subscriber):
        resp = client.post("/api/auth/login", json={"email": "asha@example.com", "password": "wrong-pass1"})
        assert resp.status_code == 401

    def test_unknown_email(self, client):
        resp = client.post("/api/auth/login", json={"email": "nobody@example.com", "password": TEST_PASSWORD})
        assert resp.status_code == 401

    def test_missing_fields(self, client):
        assert client.post("/api/auth/login", json={"email": "asha@example.com"}).status_code == 400

    @pytest.mark.parametrize(
        "payload",
        [
            {"email": "asha@example.com", "password": 12345678},
            {"email": 5, "password": TEST_PASSWORD},
            {"email": ["asha@example.com"], "password": TEST_PASSWORD},
        ],
    )
    def test_non_string_credentials(self, client, subscriber, payload):
        resp = client.post("/api/auth/login", json=payload)
        assert resp.status_code == 400

    def test_verify_password_rejects_non_strings(self, subscriber):
        assert auth_service.verify_password(12345678, subscriber.password_hash) is False
        assert auth_service.normalize_email(5) == ""

    def test_inactive_user_cannot_login(self, client, subscriber):
        subscriber.is_active = False
        db.session.commit()

        resp = client.post("/api/auth/login", json={"email": "asha@example.com", "password": TEST_PASSWORD})
        assert resp.status_code == 401


class TestAuthorization:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("get", "/api/auth/me"),
            ("get", "/api/deliveries/options"),
            ("post", "/api/deliveries/order"),
            ("get", "/api/payments/outstanding"),
            ("get", "/api/users/profile"),
            ("get", "/api/admin/dashboard"),
        ],
    )
    def test_missing_token_is_401(self, client, method, path):
        resp = getattr(client, method)(path)
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Access token required"

    def test_non_bearer_header_is_401(self, client):
        resp = client.get("/api/auth/me", headers={"Authorization": "Basic abc"})
        assert resp.status_code == 401

    def test_unknown_token_is_403(self, client):
        resp = client.get("/api/auth/me", headers=auth_headers("f" * 64))
        assert resp.status_code == 403
        assert resp.get_json()["error"] == "Invalid or expired token"

    @pytest.mark.parametrize(
        "path",
        ["/api/admin/dashboard", "/api/admin/users", "/api/admin/deliveries", "/api/admin/payments", "/api/admin/milk-rates"],
    )
    def test_subscriber_cannot_use_admin_routes(self, client, subscriber_headers, path):
        resp = client.get(path, headers=subscriber_headers)
        assert resp.status_code == 403
        assert resp.get_json()["error"] == "Admin access required"

    def test_admin_cannot_place_orders(self, client, admin_headers, rate_500):
        resp = client.post(
            "/api/deliveries/order",
            json={"milk_id": rate_500.id, "delivery_time": "morning", "delivery_date": "2024-06-01"},
            headers=admin_headers,
        )
        assert resp.status_code == 403
        assert resp.get_json()["error"] == "Subscriber access required"

    def test_admin_can_view_options(self, client, admin_headers, rate_500):
        assert client.get("/api/deliveries/options", headers=admin_headers).status_code == 200


class TestSessions:

    def test_idle_session_is_revoked(self, subscriber):
        session, token = session_service.create_session(subscriber.id)
        session.last_used_at = utcnow() - timedelta(hours=3)
        db.session.commit()

        assert session_service.validate_session(token) is None
        assert session.is_revoked is True
        assert session.revoked_reason == "Idle timeout"

    def test_expired_session(self, subscriber):
        session, token = session_service.create_session(subscriber.id)
        session.expires_at = utcnow() - timedelta(minutes=1)
        db.session.commit()

        assert session_service.validate_session(token) is None

    def test_deactivated_user_session(self, client, subscriber, subscriber_headers):
        subscriber.is_active = False
        db.session.commit()

        assert client.get("/api/auth/me", headers=subscriber_headers).status_code == 403

    def test_active_session_touches_last_used(self, subscriber):
        session, token = session_service.create_session(subscriber.id)
        before = session.last_used_at

        assert session_service.validate_session(token).id == subscriber.id
        assert session.last_used_at >= before


class TestProfile:

    def test_get_profile(self, client, subscriber_headers):
        resp = client.get("/api/users/profile", headers=subscriber_headers)
        assert resp.status_code == 200
        assert resp.get_json()["user"] == {
            "id": resp.get_json()["user"]["id"],
            "name": "Asha Rao",
            "email": "asha@example.com",
            "address": "12 Lake Road, Pune",
        }

    def test_update_profile(self, client, subscriber, subscriber_headers):
        resp = client.put(
            "/api/users/profile",
            json={"name": "Asha R.", "address": "99 River Lane, Pune"},
            headers=subscriber_headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["user"]["address"] == "99 River Lane, Pune"

        db.session.expire_all()
        assert db.session.get(User, subscriber.id).name == "Asha R."

    @pytest.mark.parametrize(
        "payload",
        [{"email": "new@example.com"}, {"role": "admin"}, {"name": "A"}, {"address": "short"}],
    )
    def test_rejected_profile_changes(self, client, subscriber, subscriber_headers, payload):
        resp = client.put("/api/users/profile", json=payload, headers=subscriber_headers)
        assert resp.status_code == 400

        db.session.expire_all()
        user = db.session.get(User, subscriber.id)
        assert user.email == "asha@example.com"
        assert user.role == UserRole.SUBSCRIBER


class TestAppFactory:

    def test_missing_secret_key_fails_fast(self):
        with pytest.raises(RuntimeError):
            create_app({"SECRET_KEY": "", "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:"})

    def test_health_degraded_without_catalog(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "degraded"
        assert resp.get_json()["message"] == "Milk Delivery API is running!"

    def test_health_with_catalog(self, client, rate_500):
        assert client.get("/health").get_json()["status"] == "healthy"

    def test_cors_for_allowed_origin(self, client):
        resp = client.get("/health", headers={"Origin": "http://localhost:3000"})
        assert resp.headers.get("Access-Control-Allow-Origin") == "http://localhost:3000"

        resp = client.get("/health", headers={"Origin": "http://evil.example"})
        assert "Access-Control-Allow-Origin" not in resp.headers
