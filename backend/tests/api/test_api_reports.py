"""
报表 API 测试
"""
from fastapi.testclient import TestClient


def test_dashboard(client: TestClient, receptionist_auth_headers, sample_room):
    response = client.get("/reports/dashboard", headers=receptionist_auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["rooms"]["total"] == 1
    assert data["open_work_items"]["cleaning"] == 0


def test_revenue_requires_manager(client: TestClient, receptionist_auth_headers, manager_auth_headers):
    assert client.get("/reports/revenue", headers=receptionist_auth_headers).status_code == 403

    response = client.get("/reports/revenue", headers=manager_auth_headers)
    assert response.status_code == 200
    assert len(response.json()) == 8


def test_occupancy_report(client: TestClient, receptionist_auth_headers, sample_room):
    response = client.get("/reports/occupancy", headers=receptionist_auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["current"]["total"] == 1
    assert len(data["forecast"]) == 8


def test_receptionist_dashboard(client: TestClient, receptionist_auth_headers, sample_room):
    response = client.get("/reports/dashboard/receptionist", headers=receptionist_auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["available_rooms"] == 1
    assert data["today_arrivals"] == 0
    assert data["unpaid_invoices"] == 0


def test_housekeeper_dashboard(client: TestClient, housekeeper_auth_headers, receptionist_auth_headers,
                               manager_auth_headers, sample_room):
    client.post("/cleaning-tasks", headers=receptionist_auth_headers, json={"room_id": sample_room.id})

    assert client.get("/reports/dashboard/housekeeper", headers=receptionist_auth_headers).status_code == 403

    data = client.get("/reports/dashboard/housekeeper", headers=housekeeper_auth_headers).json()
    assert data["rooms_needing_cleaning"] == 1
    assert data["open_cleaning_tasks"] == 1
    assert data["my_open_tasks"] == 0

    response = client.get("/reports/dashboard/housekeeper", headers=manager_auth_headers)
    assert response.status_code == 200


def test_health(client: TestClient):
    assert client.get("/health").json() == {"status": "healthy"}
