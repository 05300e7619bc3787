# backend/tests/test_move_out_flow.py
from __future__ import annotations

import uuid

from fastapi.testclient import TestClient

from app.main import create_app


def _headers(role: str = "admin") -> dict[str, str]:
    return {"X-User-Email": "frontdesk@demo.local", "X-User-Role": role}


def _setup_tenant(client: TestClient, rent: float = 10000) -> dict:
    r = client.post(
        "/api/branches",
        json={"name": f"Branch {uuid.uuid4().hex[:8]}", "electricity_rate": 10, "water_rate": 500},
        headers=_headers(),
    )
    assert r.status_code == 200, r.text
    branch = r.json()

    r = client.post(
        "/api/branches/rooms",
        json={"branch_id": branch["id"], "room_number": "A1", "monthly_rent": rent},
        headers=_headers(),
    )
    assert r.status_code == 200, r.text
    room = r.json()

    r = client.post(
        "/api/tenants",
        json={"full_name": "Juan Dela Cruz", "room_id": room["id"], "rent_start_date": "2024-01-10"},
        headers=_headers("staff"),
    )
    assert r.status_code == 200, r.text
    return r.json()


def _pay_cycle(client: TestClient, tenant_id: int, reading: float) -> dict:
    r = client.post(
        "/api/bills/generate",
        json={"tenant_id": tenant_id, "present_electricity_reading": reading},
        headers=_headers("staff"),
    )
    assert r.status_code == 200, r.text
    bill = r.json()
    assert bill["total_amount_due"] == 11500

    r = client.post(
        "/api/payments",
        json={"bill_id": bill["id"], "amount_paid": 11500, "payment_date": "2024-02-15", "payment_method": "cash"},
        headers=_headers("staff"),
    )
    assert r.status_code == 200, r.text
    assert sum(c["amount"] for c in r.json()["components"]) == 11500
    return bill


def test_three_cycle_move_out_stores_negative_refund():
    client = TestClient(create_app())
    tenant = _setup_tenant(client)
    tid = tenant["id"]
    assert tenant["advance_payment"] == 10000
    assert tenant["security_deposit"] == 10000

    for reading in (100, 200, 300):
        _pay_cycle(client, tid, reading)

    body = {"move_out_date": "2024-04-24", "final_electricity_reading": 380}
    r = client.post(f"/api/tenants/{tid}/move-out/preview", json=body, headers=_headers("staff"))
    assert r.status_code == 200, r.text
    preview = r.json()
    assert preview["fully_paid_bills"] == 3
    assert preview["billing_period"]["start"] == "2024-04-10"
    assert preview["billing_period"]["end"] == "2024-05-09"
    assert preview["billing_period"]["total_days"] == 30
    assert preview["billing_period"]["days_occupied"] == 15
    assert preview["breakdown"]["prorated_rent"] == 5000
    assert preview["breakdown"]["electricity_charges"] == 800
    assert preview["breakdown"]["total_before_deposits"] == 6300
    assert preview["deposit_application"]["refund_amount"] == 3700
    assert preview["outcome"] == "refund"
    assert preview["next_step"] == "process_refund"

    transfer = client.post(
        f"/api/tenants/{tid}/move-out/preview",
        json={**body, "is_room_transfer": True},
        headers=_headers("staff"),
    ).json()
    assert transfer["deposit_application"]["refund_amount"] == 13700

    r = client.post(f"/api/tenants/{tid}/move-out", json=body, headers=_headers("staff"))
    assert r.status_code == 200, r.text
    final_id = r.json()["final_bill_id"]

    bill = client.get(f"/api/bills/{final_id}", headers=_headers("staff")).json()
    assert bill["is_final_bill"] is True
    assert bill["status"] == "refund"
    assert bill["total_amount_due"] == -3700
    assert bill["amount_paid"] == -3700
    assert bill["forfeited_amount"] == 10000
    assert bill["applied_advance_payment"] == 6300
    assert bill["applied_security_deposit"] == 0

    r = client.post(
        "/api/payments",
        json={"bill_id": final_id, "amount_paid": 1, "payment_date": "2024-04-25", "payment_method": "cash"},
        headers=_headers("staff"),
    )
    assert r.status_code == 400

    r = client.post(f"/api/tenants/{tid}/move-out", json=body, headers=_headers("staff"))
    assert r.status_code == 400

    r = client.post(f"/api/tenants/{tid}/move-out/complete", headers=_headers("staff"))
    assert r.status_code == 200, r.text
    assert r.json()["completed_at"] is not None

    t = client.get(f"/api/tenants/{tid}", headers=_headers("staff")).json()
    assert t["is_active"] is False
    assert t["move_out_date"] == "2024-04-24"

    rooms = client.get(f"/api/branches/{tenant['branch_id']}/rooms", headers=_headers("staff")).json()
    assert rooms[0]["is_occupied"] is False

    report = client.get(
        "/api/reports/monthly",
        params={"month": "2024-04", "branch_id": tenant["branch_id"]},
        headers=_headers("staff"),
    ).json()
    assert report["deposit_applications"] == 6300
    assert report["forfeited_deposits"] == 10000
    assert report["refunds"] == 3700
    assert report["total_income"] == 16300
    assert report["profit_loss"] == 6300

    yearly = client.get(
        "/api/reports/yearly",
        params={"year": 2024, "branch_id": tenant["branch_id"]},
        headers=_headers("staff"),
    ).json()
    assert len(yearly["months"]) == 12
    assert yearly["months"][3] == {**report, "branch_id": None}
    assert yearly["months"][1]["total_collected"] == 34500
    assert yearly["total_income"] == 50800
    assert yearly["profit_loss"] == 40800
    assert yearly["bill_count"] == 4
    assert yearly["final_bill_count"] == 1
    assert yearly["bills_by_status"] == {"fully_paid": 3, "refund": 1}
    assert yearly["total_billed"] == 30800
    assert yearly["total_outstanding"] == 0
    assert yearly["new_tenants"] == 1
    assert yearly["moved_out_tenants"] == 1


def test_input_errors_map_to_400():
    client = TestClient(create_app())
    tenant = _setup_tenant(client)

    r = client.post(
        "/api/bills/generate",
        json={"tenant_id": tenant["id"], "present_electricity_reading": 0},
        headers=_headers("staff"),
    )
    assert r.status_code == 200
    r = client.post(f"/api/tenants/{tenant['id']}/move-out/preview", json={"move_out_date": "2023-12-31"}, headers=_headers("staff"))
    assert r.status_code == 400

    r = client.get("/api/reports/monthly", params={"month": "2024-13"}, headers=_headers("staff"))
    assert r.status_code == 400

    r = client.get("/api/reports/yearly", params={"year": 0}, headers=_headers("staff"))
    assert r.status_code == 400


def test_auth_rules():
    client = TestClient(create_app())

    assert client.get("/api/bills").status_code == 401
    assert client.post("/api/bills/apply-penalties", headers=_headers("staff")).status_code == 403
    assert client.put(
        "/api/settings",
        json={"updates": [{"key": "penalty_percentage", "value": "5"}]},
        headers=_headers("staff"),
    ).status_code == 403

    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.headers.get("X-Request-ID")


def test_audit_trail_records_writes():
    client = TestClient(create_app())
    tenant = _setup_tenant(client)

    rows = client.get(
        "/api/audit",
        params={"entity_type": "Tenant", "entity_id": str(tenant["id"])},
        headers=_headers(),
    ).json()
    assert [r["action"] for r in rows] == ["tenant.move_in"]
    assert rows[0]["actor_email"] == "frontdesk@demo.local"
