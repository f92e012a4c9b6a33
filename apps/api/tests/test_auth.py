"""
Tests for registration, login and the bearer-token dependency
"""
import pytest

import models
from auth import create_access_token, decode_token
from conftest import PASSWORD, auth_headers, make_user


class TestRegisterAndLogin:

    @pytest.fixture(autouse=True)
    def setup(self, client, db):
        self.client = client
        self.db = db

    def register(self, **overrides):
        payload = {"full_name": "Amina Njeri", "email": "amina@example.com", "password": "secret123"}
        payload.update(overrides)
        return self.client.post("/api/auth/register", json=payload)

    def test_register_creates_customer_with_profile(self):
        response = self.register()
        assert response.status_code == 201, response.text
        body = response.json()
        assert body["access_token"]
        assert body["user"]["role"] == "customer"

        profile = self.db.query(models.UserProfile).filter(
            models.UserProfile.user_id == body["user"]["user_id"]
        ).first()
        assert profile is not None
        assert profile.current_points == 0

    def test_register_ignores_requested_role(self):
        response = self.register(role="admin")
        assert response.json()["user"]["role"] == "customer"

    def test_duplicate_email_is_a_conflict(self):
        self.register()
        assert self.register().status_code == 409

    def test_short_password_is_rejected(self):
        assert self.register(password="123").status_code == 400

    def test_login_returns_token_and_sets_last_login(self):
        self.register()
        response = self.client.post("/api/auth/login", json={"email": "amina@example.com", "password": "secret123"})
        assert response.status_code == 200
        body = response.json()
        assert decode_token(body["access_token"]).email == "amina@example.com"
        assert body["user"]["last_login"] is not None

    def test_wrong_password_is_401(self):
        self.register()
        response = self.client.post("/api/auth/login", json={"email": "amina@example.com", "password": "wrong-one"})
        assert response.status_code == 401
        assert response.json()["error"] == "authentication_error"

    def test_unknown_email_is_401(self):
        response = self.client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "whatever"})
        assert response.status_code == 401

    def test_deactivated_account_cannot_log_in(self):
        make_user(self.db, "dormant@example.com", is_active=False)
        response = self.client.post("/api/auth/login", json={"email": "dormant@example.com", "password": PASSWORD})
        assert response.status_code == 403


class TestTokenDependency:

    @pytest.fixture(autouse=True)
    def setup(self, client, users, headers):
        self.client = client
        self.users = users
        self.headers = headers

    def test_me(self):
        response = self.client.get("/api/auth/me", headers=self.headers["customer"])
        assert response.status_code == 200
        body = response.json()
        assert body["email"] == "wanjiku@example.com"
        assert body["profile"]["current_points"] == 0

    def test_missing_token(self):
        response = self.client.get("/api/auth/me")
        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    def test_token_without_subject(self):
        token = create_access_token({"email": "nobody@example.com"})
        response = self.client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_deactivated_user_token_is_403(self, db):
        user = self.users["other"]
        headers = auth_headers(user)
        user.is_active = False
        db.commit()

        response = self.client.get("/api/auth/me", headers=headers)
        assert response.status_code == 403
        assert response.json()["message"] == "Account is deactivated"

    def test_refresh(self):
        response = self.client.post("/api/auth/refresh", headers=self.headers["customer"])
        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert decode_token(body["access_token"]).user_id == self.users["customer"].user_id

    def test_change_password(self):
        wrong = self.client.post(
            "/api/auth/change-password",
            headers=self.headers["customer"],
            json={"current_password": "nope", "new_password": "brand-new-1"},
        )
        assert wrong.status_code == 400

        response = self.client.post(
            "/api/auth/change-password",
            headers=self.headers["customer"],
            json={"current_password": PASSWORD, "new_password": "brand-new-1"},
        )
        assert response.status_code == 200

        login = self.client.post(
            "/api/auth/login", json={"email": "wanjiku@example.com", "password": "brand-new-1"}
        )
        assert login.status_code == 200


class TestUserAdministration:

    @pytest.fixture(autouse=True)
    def setup(self, client, users, headers):
        self.client = client
        self.users = users
        self.headers = headers

    def test_user_list_is_admin_only(self):
        assert self.client.get("/api/users", headers=self.headers["manager"]).status_code == 403
        response = self.client.get("/api/users", params={"role": "customer"}, headers=self.headers["admin"])
        assert response.json()["total"] == 2

    def test_customer_cannot_read_another_user(self):
        other_id = self.users["other"].user_id
        assert self.client.get(f"/api/users/{other_id}", headers=self.headers["customer"]).status_code == 403

    def test_manager_cannot_read_or_edit_another_account(self, db):
        admin_id = self.users["admin"].user_id
        assert self.client.get(f"/api/users/{admin_id}", headers=self.headers["manager"]).status_code == 403
        assert self.client.get(f"/api/users/{admin_id}/profile", headers=self.headers["manager"]).status_code == 403

        response = self.client.put(
            f"/api/users/{admin_id}/profile", headers=self.headers["manager"], json={"full_name": "Hijacked"}
        )
        assert response.status_code == 403
        db.refresh(self.users["admin"])
        assert self.users["admin"].full_name != "Hijacked"

    def test_admin_reads_any_account(self):
        customer_id = self.users["customer"].user_id
        assert self.client.get(f"/api/users/{customer_id}", headers=self.headers["admin"]).status_code == 200

    def test_admin_deactivates_user(self):
        other_id = self.users["other"].user_id
        response = self.client.patch(
            f"/api/users/{other_id}/status", headers=self.headers["admin"], json={"is_active": False}
        )
        assert response.status_code == 200
        assert response.json()["is_active"] is False
        assert self.client.get("/api/rentals", headers=self.headers["other"]).status_code == 403

    def test_points_adjustment_cannot_go_negative(self):
        customer_id = self.users["customer"].user_id
        url = f"/api/users/{customer_id}/points"

        added = self.client.post(url, headers=self.headers["admin"], json={"points_adjustment": 40, "reason": "Promo"})
        assert added.status_code == 200
        assert added.json()["current_points"] == 40

        overdrawn = self.client.post(url, headers=self.headers["admin"], json={"points_adjustment": -50, "reason": "Redeem"})
        assert overdrawn.status_code == 400

        redeemed = self.client.post(url, headers=self.headers["admin"], json={"points_adjustment": -15, "reason": "Redeem"})
        assert redeemed.json()["current_points"] == 25
        assert redeemed.json()["total_points_redeemed"] == 15

        history = self.client.get(f"/api/users/{customer_id}/points/history", headers=self.headers["customer"]).json()
        assert history["total"] == 2

    def test_profile_update(self):
        customer_id = self.users["customer"].user_id
        response = self.client.put(
            f"/api/users/{customer_id}/profile",
            headers=self.headers["customer"],
            json={"vehicle_type": "motorbike", "location": "Kilimani"},
        )
        assert response.status_code == 200
        assert response.json()["vehicle_type"] == "motorbike"
        user = self.client.get(f"/api/users/{customer_id}", headers=self.headers["customer"]).json()
        assert user["location"] == "Kilimani"

    def test_profile_phone_already_taken(self, db):
        self.users["other"].phone = "+254700111222"
        db.commit()

        customer_id = self.users["customer"].user_id
        response = self.client.put(
            f"/api/users/{customer_id}/profile",
            headers=self.headers["customer"],
            json={"phone": "+254700111222", "location": "Kilimani"},
        )
        assert response.status_code == 409
        assert response.json()["error"] == "conflict"

        db.refresh(self.users["customer"])
        assert self.users["customer"].phone is None
        assert self.users["customer"].location is None

    def test_profile_keeps_own_phone(self, db):
        self.users["customer"].phone = "+254700333444"
        db.commit()

        customer_id = self.users["customer"].user_id
        response = self.client.put(
            f"/api/users/{customer_id}/profile",
            headers=self.headers["customer"],
            json={"phone": "+254700333444"},
        )
        assert response.status_code == 200
