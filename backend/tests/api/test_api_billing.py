"""
账务 API 测试
覆盖发票生成、收款、退款
"""
import pytest
from datetime import date
from decimal import Decimal
from fastapi.testclient import TestClient

from app.models.entities import Reservation, ReservationStatus


@pytest.fixture
def reservation(db_session, sample_guest, sample_room_type, sample_room, stay_dates):
    rsv = Reservation(
        reservation_no="RES-TEST-0001",
        guest_id=sample_guest.id,
        room_type_id=sample_room_type.id,
        room_id=sample_room.id,
        check_in_date=stay_dates[0],
        check_out_date=stay_dates[1],
        total_price=Decimal("200.00"),
        status=ReservationStatus.CONFIRMED
    )
    db_session.add(rsv)
    db_session.commit()
    db_session.refresh(rsv)
    return rsv


@pytest.fixture
def invoice(client: TestClient, receptionist_auth_headers, reservation):
    response = client.post("/billing/invoices", headers=receptionist_auth_headers, json={
        "reservation_id": reservation.id,
        "amount": "300.00",
        "tax_percentage": "0"
    })
    assert response.status_code == 201
    return response.json()


class TestInvoices:

    def test_generate_from_reservation(self, client: TestClient, receptionist_auth_headers, reservation):
        response = client.post(f"/billing/reservations/{reservation.id}/invoice",
                               headers=receptionist_auth_headers, json={})

        assert response.status_code == 201
        data = response.json()
        assert float(data["amount"]) == 200.00
        assert float(data["tax"]) == 20.00
        assert float(data["total"]) == 220.00
        assert data["status"] == "pending"
        assert data["reservation_no"] == "RES-TEST-0001"
        assert data["due_date"] == reservation.check_out_date.isoformat()

    def test_generate_for_unknown_reservation(self, client: TestClient, receptionist_auth_headers):
        response = client.post("/billing/reservations/999/invoice",
                               headers=receptionist_auth_headers, json={})
        assert response.status_code == 404

    def test_get_and_list(self, client: TestClient, receptionist_auth_headers, invoice, reservation):
        response = client.get(f"/billing/invoices/{invoice['id']}", headers=receptionist_auth_headers)
        assert response.status_code == 200
        assert float(response.json()["balance"]) == 300.00

        response = client.get("/billing/invoices", headers=receptionist_auth_headers,
                              params={"reservation_id": reservation.id})
        assert len(response.json()) == 1

        response = client.get("/billing/invoices/unpaid", headers=receptionist_auth_headers)
        assert len(response.json()) == 1

    def test_receptionist_cannot_delete(self, client: TestClient, receptionist_auth_headers, invoice):
        response = client.delete(f"/billing/invoices/{invoice['id']}", headers=receptionist_auth_headers)
        assert response.status_code == 403


class TestPayments:

    def test_payment_refund_flow(self, client: TestClient, receptionist_auth_headers,
                                 manager_auth_headers, invoice):
        invoice_id = invoice["id"]

        response = client.post("/billing/payments/cash", headers=receptionist_auth_headers, json={
            "invoice_id": invoice_id, "amount": "200.00"
        })
        assert response.status_code == 201

        response = client.post("/billing/payments", headers=receptionist_auth_headers, json={
            "invoice_id": invoice_id, "amount": "100.00", "method": "credit_card"
        })
        assert response.status_code == 201
        second_id = response.json()["id"]

        detail = client.get(f"/billing/invoices/{invoice_id}", headers=receptionist_auth_headers).json()
        assert detail["status"] == "paid"
        assert detail["paid_at"] is not None

        response = client.post(f"/billing/payments/{second_id}/refund", headers=receptionist_auth_headers,
                               json={"reason": "房间噪音"})
        assert response.status_code == 403

        response = client.post(f"/billing/payments/{second_id}/refund", headers=manager_auth_headers,
                               json={"reason": "房间噪音"})
        assert response.status_code == 201
        refund = response.json()
        assert float(refund["amount"]) == -100.00
        assert refund["refund_of_id"] == second_id

        detail = client.get(f"/billing/invoices/{invoice_id}", headers=receptionist_auth_headers).json()
        assert detail["status"] == "partially_paid"
        assert float(detail["net_paid"]) == 200.00
        assert detail["paid_at"] is None
        assert len(detail["payments"]) == 3

        response = client.post(f"/billing/payments/{second_id}/refund", headers=manager_auth_headers,
                               json={"reason": "再退一次"})
        assert response.status_code == 409

    def test_overpayment_rejected(self, client: TestClient, receptionist_auth_headers, invoice):
        response = client.post("/billing/payments", headers=receptionist_auth_headers, json={
            "invoice_id": invoice["id"], "amount": "300.01", "method": "cash"
        })
        assert response.status_code == 409
        assert "超过发票余额" in response.json()["detail"]

    def test_negative_amount_is_422(self, client: TestClient, receptionist_auth_headers, invoice):
        response = client.post("/billing/payments", headers=receptionist_auth_headers, json={
            "invoice_id": invoice["id"], "amount": "-5", "method": "cash"
        })
        assert response.status_code == 422

    def test_card_payment(self, client: TestClient, receptionist_auth_headers, invoice):
        response = client.post("/billing/payments/card", headers=receptionist_auth_headers, json={
            "invoice_id": invoice["id"],
            "amount": "100.00",
            "card_number": "4111111111111111",
            "card_holder": "ZHANG SAN",
            "expiry_month": 12,
            "expiry_year": date.today().year + 1
        })
        assert response.status_code == 201
        assert response.json()["notes"].startswith("Card ending 1111")

    def test_bank_transfer_and_listing(self, client: TestClient, receptionist_auth_headers,
                                       manager_auth_headers, invoice, reservation):
        client.post("/billing/payments/bank-transfer", headers=receptionist_auth_headers, json={
            "invoice_id": invoice["id"], "amount": "50.00", "bank_reference": "ICBC-001"
        })

        response = client.get("/billing/payments", headers=receptionist_auth_headers,
                              params={"reservation_id": reservation.id})
        assert [p["transaction_id"] for p in response.json()] == ["BT-ICBC-001"]

        stats = client.get("/billing/payments/statistics", headers=manager_auth_headers).json()
        assert stats["payment_count"] == 1
