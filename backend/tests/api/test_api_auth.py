"""
认证与用户管理 API 测试
"""
from fastapi.testclient import TestClient


class TestLogin:

    def test_login_success(self, client: TestClient, manager_user):
        response = client.post("/auth/login", json={"username": "manager", "password": "123456"})

        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["user"]["role"] == "manager"
        assert data["access_token"]

    def test_login_wrong_password(self, client: TestClient, manager_user):
        response = client.post("/auth/login", json={"username": "manager", "password": "bad"})
        assert response.status_code == 401

    def test_login_inactive_user(self, client: TestClient, db_session, receptionist_user):
        receptionist_user.is_active = False
        db_session.commit()

        response = client.post("/auth/login", json={"username": "front1", "password": "123456"})
        assert response.status_code == 401
        assert "停用" in response.json()["detail"]

    def test_me(self, client: TestClient, receptionist_auth_headers):
        response = client.get("/auth/me", headers=receptionist_auth_headers)
        assert response.status_code == 200
        assert response.json()["username"] == "front1"

    def test_missing_token(self, client: TestClient):
        response = client.get("/auth/me")
        assert response.status_code in (401, 403)

    def test_invalid_token(self, client: TestClient):
        response = client.get("/auth/me", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    def test_change_password(self, client: TestClient, receptionist_auth_headers):
        response = client.post("/auth/change-password", headers=receptionist_auth_headers,
                               json={"old_password": "wrong", "new_password": "newpass1"})
        assert response.status_code == 409

        response = client.post("/auth/change-password", headers=receptionist_auth_headers,
                               json={"old_password": "123456", "new_password": "newpass1"})
        assert response.status_code == 200

        response = client.post("/auth/login", json={"username": "front1", "password": "newpass1"})
        assert response.status_code == 200


class TestRegisterAndReset:

    def test_register_creates_guest(self, client: TestClient):
        response = client.post("/auth/register", json={
            "username": "traveler", "email": "traveler@example.com", "password": "secret1",
            "first_name": "旅", "last_name": "客", "role": "manager"
        })
        assert response.status_code == 201
        assert response.json()["role"] == "guest"

        response = client.post("/auth/login", json={"username": "traveler", "password": "secret1"})
        assert response.status_code == 200

    def test_register_requires_email(self, client: TestClient):
        response = client.post("/auth/register", json={
            "username": "traveler", "password": "secret1", "first_name": "旅", "last_name": "客"
        })
        assert response.status_code == 422

    def test_register_duplicate_username(self, client: TestClient, sample_guest):
        response = client.post("/auth/register", json={
            "username": "guest1", "email": "another@example.com", "password": "secret1",
            "first_name": "旅", "last_name": "客"
        })
        assert response.status_code == 409

    def test_reset_password_requires_manager(self, client: TestClient, receptionist_auth_headers,
                                             housekeeper_user):
        response = client.post("/auth/reset-password", headers=receptionist_auth_headers,
                               json={"email": "cleaner1@hotel.local"})
        assert response.status_code == 403

    def test_manager_resets_password(self, client: TestClient, manager_auth_headers, housekeeper_user):
        response = client.post("/auth/reset-password", headers=manager_auth_headers,
                               json={"email": "cleaner1@hotel.local"})
        assert response.status_code == 200
        temporary = response.json()["temporary_password"]

        response = client.post("/auth/login", json={"username": "cleaner1", "password": temporary})
        assert response.status_code == 200
        assert response.json()["user"]["password_reset_required"] is True

    def test_reset_unknown_email(self, client: TestClient, manager_auth_headers):
        response = client.post("/auth/reset-password", headers=manager_auth_headers,
                               json={"email": "nobody@hotel.local"})
        assert response.status_code == 404


class TestUsers:

    def test_manager_creates_staff(self, client: TestClient, manager_auth_headers):
        response = client.post("/users", headers=manager_auth_headers, json={
            "username": "front9", "password": "secret1",
            "first_name": "九", "last_name": "周", "role": "receptionist"
        })
        assert response.status_code == 201
        assert response.json()["role"] == "receptionist"

    def test_receptionist_can_only_create_guests(self, client: TestClient, receptionist_auth_headers):
        response = client.post("/users", headers=receptionist_auth_headers, json={
            "username": "boss2", "password": "secret1",
            "first_name": "二", "last_name": "老板", "role": "manager"
        })
        assert response.status_code == 403

        response = client.post("/users", headers=receptionist_auth_headers, json={
            "username": "guest9", "password": "secret1",
            "first_name": "九", "last_name": "客", "role": "guest"
        })
        assert response.status_code == 201

    def test_housekeeper_cannot_list_users(self, client: TestClient, housekeeper_auth_headers):
        response = client.get("/users", headers=housekeeper_auth_headers)
        assert response.status_code == 403

    def test_duplicate_username(self, client: TestClient, manager_auth_headers, receptionist_user):
        response = client.post("/users", headers=manager_auth_headers, json={
            "username": "front1", "password": "secret1",
            "first_name": "重", "last_name": "复"
        })
        assert response.status_code == 409

    def test_change_role_and_deactivate(self, client: TestClient, manager_auth_headers, receptionist_user):
        response = client.put(f"/users/{receptionist_user.id}/role", headers=manager_auth_headers,
                              json={"role": "housekeeper"})
        assert response.status_code == 200
        assert response.json()["role"] == "housekeeper"

        response = client.post(f"/users/{receptionist_user.id}/deactivate", headers=manager_auth_headers)
        assert response.status_code == 200
        assert response.json()["is_active"] is False

    def test_get_unknown_user(self, client: TestClient, manager_auth_headers):
        response = client.get("/users/999", headers=manager_auth_headers)
        assert response.status_code == 404
