"""
Authentication and password reset tests
"""

from unittest.mock import patch

from app.models.user import User
from app.services.auth_service import AuthService
from app.services.token_service import token_service
from conftest import auth_headers, create_purchase, create_template, create_user


class TestLogin:
    """POST /api/auth/login"""

    def test_login_returns_usable_token(self, client, db):
        create_user(db, "u1", password="Str0ng!Pass")

        response = client.post("/api/auth/login", json={"email": "u1@example.com", "password": "Str0ng!Pass"})

        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["user"]["id"] == "u1"

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"})
        assert me.status_code == 200
        assert me.json()["email"] == "u1@example.com"

    def test_wrong_password(self, client, db):
        create_user(db, "u1", password="Str0ng!Pass")

        response = client.post("/api/auth/login", json={"email": "u1@example.com", "password": "nope"})

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid email or password"}

    def test_inactive_user_cannot_log_in(self, client, db):
        create_user(db, "u1", password="Str0ng!Pass", is_active=False)

        response = client.post("/api/auth/login", json={"email": "u1@example.com", "password": "Str0ng!Pass"})

        assert response.status_code == 401

    def test_garbage_bearer_token(self, client, db):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid or expired token"}


class TestPasswordReset:
    """Forgot and reset password flow"""

    def test_forgot_password_sends_reset_email(self, client, db):
        create_user(db, "u1")

        with patch("app.routes.auth.email_service") as mock_email:
            response = client.post("/api/auth/forgot-password", json={"email": "u1@example.com"})

        assert response.status_code == 200
        to_email, reset_token = mock_email.send_password_reset.call_args[0]
        assert to_email == "u1@example.com"
        assert token_service.verify_password_reset_token(reset_token).user_id == "u1"

    def test_forgot_password_hides_unknown_emails(self, client, db):
        with patch("app.routes.auth.email_service") as mock_email:
            response = client.post("/api/auth/forgot-password", json={"email": "ghost@example.com"})

        assert response.status_code == 200
        mock_email.send_password_reset.assert_not_called()

    def test_forgot_password_survives_email_failure(self, client, db):
        create_user(db, "u1")

        with patch("app.routes.auth.email_service") as mock_email:
            mock_email.send_password_reset.side_effect = RuntimeError("SendGrid is down")
            response = client.post("/api/auth/forgot-password", json={"email": "u1@example.com"})

        assert response.status_code == 200

    def test_reset_password(self, client, db):
        create_user(db, "u1", password="Old!Passw0rd")
        reset_token, _ = token_service.issue_password_reset_token("u1")

        response = client.post("/api/auth/reset-password", json={
            "token": reset_token,
            "new_password": "New!Passw0rd",
            "confirm_password": "New!Passw0rd",
        })

        assert response.status_code == 200
        db.expire_all()
        user = db.get(User, "u1")
        assert AuthService.verify_password("New!Passw0rd", user.password_hash)
        assert user.password_changed_at is not None

    def test_reset_with_bad_token(self, client, db):
        response = client.post("/api/auth/reset-password", json={
            "token": "bm90LWEtdG9rZW4",
            "new_password": "New!Passw0rd",
            "confirm_password": "New!Passw0rd",
        })

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid or expired reset token"}

    def test_reset_for_deleted_user(self, client, db):
        reset_token, _ = token_service.issue_password_reset_token("gone")

        response = client.post("/api/auth/reset-password", json={
            "token": reset_token,
            "new_password": "New!Passw0rd",
            "confirm_password": "New!Passw0rd",
        })

        assert response.status_code == 404


class TestPurchaseHistory:
    """GET /api/purchases/"""

    def test_lists_only_own_purchases(self, client, db):
        buyer = create_user(db, "u1")
        create_purchase(db, create_template(db), user_id="u1", transaction_id="cs_1")
        create_purchase(db, create_template(db, template_id=43, name="Ski Chalet"), user_id="u2", transaction_id="cs_2")

        response = client.get("/api/purchases/", headers=auth_headers(buyer))

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["purchases"][0]["template_id"] == 42

    def test_requires_authentication(self, client, db):
        assert client.get("/api/purchases/").status_code == 401
