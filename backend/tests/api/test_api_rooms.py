"""
房间管理 API 测试
覆盖 /rooms 端点
"""
from fastapi.testclient import TestClient


class TestRoomTypes:
    """房型管理测试"""

    def test_list_room_types(self, client: TestClient, manager_auth_headers, sample_room):
        response = client.get("/rooms/types", headers=manager_auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data[0]["name"] == "标准间"
        assert data[0]["room_count"] == 1

    def test_create_room_type(self, client: TestClient, manager_auth_headers):
        response = client.post("/rooms/types", headers=manager_auth_headers, json={
            "name": "豪华间",
            "description": "Luxury Room",
            "base_price": "588.00",
            "capacity": 3
        })

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "豪华间"
        assert float(data["base_price"]) == 588.00
        assert data["room_count"] == 0

    def test_create_duplicate_room_type(self, client: TestClient, manager_auth_headers, sample_room_type):
        response = client.post("/rooms/types", headers=manager_auth_headers, json={
            "name": "标准间",
            "base_price": "200.00"
        })

        assert response.status_code == 409
        assert "已存在" in response.json()["detail"]

    def test_receptionist_cannot_create_room_type(self, client: TestClient, receptionist_auth_headers):
        response = client.post("/rooms/types", headers=receptionist_auth_headers, json={
            "name": "套房", "base_price": "888.00"
        })
        assert response.status_code == 403

    def test_delete_room_type_in_use(self, client: TestClient, manager_auth_headers, sample_room):
        response = client.delete(f"/rooms/types/{sample_room.room_type_id}", headers=manager_auth_headers)
        assert response.status_code == 409


class TestRooms:
    """房间管理测试"""

    def test_create_room(self, client: TestClient, manager_auth_headers, sample_room_type):
        response = client.post("/rooms", headers=manager_auth_headers, json={
            "room_number": "301",
            "floor": 3,
            "room_type_id": sample_room_type.id
        })

        assert response.status_code == 201
        data = response.json()
        assert data["room_number"] == "301"
        assert data["status"] == "available"
        assert data["room_type_name"] == "标准间"
        assert float(data["base_price"]) == 100.00

    def test_list_rooms_by_status(self, client: TestClient, manager_auth_headers, sample_room, sample_room_102):
        client.patch(f"/rooms/{sample_room.id}/status", headers=manager_auth_headers,
                     json={"status": "maintenance"})

        response = client.get("/rooms", headers=manager_auth_headers, params={"status": "maintenance"})
        assert response.status_code == 200
        assert [r["room_number"] for r in response.json()] == ["101"]

    def test_get_unknown_room(self, client: TestClient, manager_auth_headers):
        response = client.get("/rooms/999", headers=manager_auth_headers)
        assert response.status_code == 404

    def test_housekeeper_updates_status(self, client: TestClient, housekeeper_auth_headers, sample_room):
        response = client.patch(f"/rooms/{sample_room.id}/status", headers=housekeeper_auth_headers,
                                json={"status": "maintenance"})
        assert response.status_code == 200
        assert response.json()["status"] == "maintenance"

    def test_available_rooms(self, client: TestClient, manager_auth_headers, sample_room, stay_dates):
        response = client.get("/rooms/available", headers=manager_auth_headers, params={
            "check_in": stay_dates[0].isoformat(),
            "check_out": stay_dates[1].isoformat()
        })

        assert response.status_code == 200
        data = response.json()
        assert data[0]["room_number"] == "101"
        assert data[0]["is_available"] is True
        assert data[0]["amenities"] == ["WiFi", "空调"]

    def test_available_rooms_bad_range(self, client: TestClient, manager_auth_headers, stay_dates):
        response = client.get("/rooms/available", headers=manager_auth_headers, params={
            "check_in": stay_dates[1].isoformat(),
            "check_out": stay_dates[0].isoformat()
        })
        assert response.status_code == 409

    def test_room_availability_with_price(self, client: TestClient, manager_auth_headers,
                                          sample_room, stay_dates):
        response = client.get(f"/rooms/{sample_room.id}/availability", headers=manager_auth_headers, params={
            "check_in": stay_dates[0].isoformat(),
            "check_out": stay_dates[1].isoformat()
        })

        assert response.status_code == 200
        data = response.json()
        assert data["is_available"] is True
        assert float(data["price"]) == 200.00

    def test_statistics(self, client: TestClient, manager_auth_headers, sample_room):
        response = client.get("/rooms/statistics", headers=manager_auth_headers)
        assert response.status_code == 200
        assert response.json()["total"] == 1

    def test_delete_room(self, client: TestClient, manager_auth_headers, sample_room):
        response = client.delete(f"/rooms/{sample_room.id}", headers=manager_auth_headers)
        assert response.status_code == 200
