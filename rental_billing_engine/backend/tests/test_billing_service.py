# backend/tests/test_billing_service.py
from __future__ import annotations

import uuid
from datetime import date

import pytest
from fastapi import HTTPException

from app.db import SessionLocal
from app.domain.billing import BillingInputError
from app.models import Bill, Branch, Payment, Room, SystemSetting
from app.schemas import BillEdit, BillGenerate, PaymentCreate, SettingUpdate, TenantMoveIn
from app.services import billing_service, settings_service, tenant_service


def _mk_tenant(db, *, rent=8000.0, erate=12.0, wrate=300.0, start=date(2024, 3, 5), initial=50.0):
    branch = Branch(name=f"branch-{uuid.uuid4().hex[:8]}", electricity_rate=erate, water_rate=wrate)
    db.add(branch)
    db.flush()
    room = Room(branch_id=branch.id, room_number="101", monthly_rent=rent, is_occupied=False)
    db.add(room)
    db.flush()
    tenant = tenant_service.move_in(
        db,
        TenantMoveIn(full_name="Test Tenant", room_id=room.id, rent_start_date=start, initial_electricity_reading=initial),
    )
    db.commit()
    return tenant


def _pay(db, bill, amount, when=date(2024, 4, 10)):
    p = billing_service.record_payment(
        db, bill, PaymentCreate(bill_id=bill.id, amount_paid=amount, payment_date=when, payment_method="cash")
    )
    db.commit()
    return p


def test_move_in_sets_deposits_and_contract():
    db = SessionLocal()
    try:
        t = _mk_tenant(db, rent=7500)
        assert t.advance_payment == 7500
        assert t.security_deposit == 7500
        assert t.contract_end_date == date(2024, 9, 5)
        assert db.get(Room, t.room_id).is_occupied

        tenant_service.renew_contract(db, t)
        assert t.contract_end_date == date(2025, 3, 5)
    finally:
        db.close()


def test_move_in_rejects_occupied_room():
    db = SessionLocal()
    try:
        t = _mk_tenant(db)
        with pytest.raises(HTTPException) as ei:
            tenant_service.move_in(
                db, TenantMoveIn(full_name="Second", room_id=t.room_id, rent_start_date=date(2024, 4, 1))
            )
        assert ei.value.status_code == 400
    finally:
        db.close()


def test_generate_first_bill():
    db = SessionLocal()
    try:
        t = _mk_tenant(db)
        bill = billing_service.generate_bill(db, BillGenerate(tenant_id=t.id, present_electricity_reading=80))
        db.commit()

        assert bill.billing_period_start == date(2024, 3, 5)
        assert bill.billing_period_end == date(2024, 4, 4)
        assert bill.due_date == date(2024, 4, 14)
        assert bill.previous_electricity_reading == 50
        assert bill.electricity_amount == 360
        assert bill.water_amount == 300
        assert bill.total_amount_due == 8660
        assert bill.status == "active"
        assert bill.advance_payment == 8000

        # unpaid bill keeps the tenant on the same cycle
        with pytest.raises(HTTPException):
            billing_service.generate_bill(db, BillGenerate(tenant_id=t.id, present_electricity_reading=90))
    finally:
        db.close()


def test_generate_rejects_reading_below_previous():
    db = SessionLocal()
    try:
        t = _mk_tenant(db, initial=500)
        with pytest.raises(BillingInputError):
            billing_service.generate_bill(db, BillGenerate(tenant_id=t.id, present_electricity_reading=499))
        db.rollback()
    finally:
        db.close()


def test_partial_then_full_payment_allocates_remaining_components():
    db = SessionLocal()
    try:
        t = _mk_tenant(db)
        bill = billing_service.generate_bill(db, BillGenerate(tenant_id=t.id, present_electricity_reading=80))
        db.commit()

        p1 = _pay(db, bill, 500)
        assert {c.component_type: c.amount for c in p1.components} == {"electricity": 360, "water": 140}
        assert bill.status == "partially_paid"

        p2 = _pay(db, bill, 8160)
        assert {c.component_type: c.amount for c in p2.components} == {"water": 160, "rent": 8000}
        assert bill.status == "fully_paid"
        assert bill.amount_paid == 8660

        with pytest.raises(HTTPException):
            _pay(db, bill, 1)

        # second cycle reads from the first bill
        nxt = billing_service.generate_bill(db, BillGenerate(tenant_id=t.id, present_electricity_reading=100))
        db.commit()
        assert nxt.billing_period_start == date(2024, 4, 5)
        assert nxt.previous_electricity_reading == 80
    finally:
        db.close()


def test_overpayment_is_rejected():
    db = SessionLocal()
    try:
        t = _mk_tenant(db)
        bill = billing_service.generate_bill(db, BillGenerate(tenant_id=t.id, present_electricity_reading=80))
        db.commit()
        with pytest.raises(HTTPException) as ei:
            _pay(db, bill, 9000)
        assert ei.value.status_code == 400
        db.rollback()
        assert db.query(Payment).filter(Payment.bill_id == bill.id).count() == 0
    finally:
        db.close()


def test_penalty_applied_once():
    db = SessionLocal()
    try:
        t = _mk_tenant(db)
        bill = billing_service.generate_bill(db, BillGenerate(tenant_id=t.id, present_electricity_reading=80))
        db.commit()

        on_due_date = billing_service.apply_penalties(db, today=bill.due_date, penalty_percentage=5)
        db.commit()
        assert bill.id not in [b.id for b in on_due_date]
        assert bill.penalty_amount == 0

        touched = billing_service.apply_penalties(db, today=date(2024, 4, 20), penalty_percentage=5)
        db.commit()
        assert bill.id in [b.id for b in touched]
        assert bill.penalty_amount == 433
        assert bill.total_amount_due == 9093

        again = billing_service.apply_penalties(db, today=date(2024, 5, 20), penalty_percentage=5)
        db.commit()
        assert bill.id not in [b.id for b in again]
        assert bill.total_amount_due == 9093

        p = _pay(db, bill, 500)
        assert {c.component_type: c.amount for c in p.components} == {"penalty": 433, "electricity": 67}
    finally:
        db.close()


def test_edit_regular_bill_recomputes_total():
    db = SessionLocal()
    try:
        t = _mk_tenant(db)
        bill = billing_service.generate_bill(db, BillGenerate(tenant_id=t.id, present_electricity_reading=80))
        db.commit()

        billing_service.edit_regular_bill(db, bill, BillEdit(extra_fee=200, extra_fee_description="key copy"))
        billing_service.edit_regular_bill(db, bill, BillEdit(present_electricity_reading=90))
        db.commit()
        assert bill.electricity_amount == 480
        assert bill.total_amount_due == 8980

        _pay(db, bill, 8980)
        with pytest.raises(HTTPException):
            billing_service.edit_regular_bill(db, bill, BillEdit(water_amount=0))
        db.rollback()

        billing_service.edit_regular_bill(db, bill, BillEdit(water_amount=250, allow_fully_paid_edit=True))
        db.commit()
        assert bill.total_amount_due == 8930
        assert bill.status == "fully_paid"
    finally:
        db.close()


def test_bill_edit_needs_a_field():
    with pytest.raises(ValueError):
        BillEdit(edit_reason="nothing changed")


def test_penalty_percentage_setting():
    db = SessionLocal()
    try:
        db.query(SystemSetting).filter(SystemSetting.key == "penalty_percentage").delete()
        db.commit()
        assert settings_service.get_penalty_percentage(db) == 5.0

        settings_service.upsert_settings(db, [SettingUpdate(key="penalty_percentage", value="7.5")])
        db.commit()
        assert settings_service.get_penalty_percentage(db) == 7.5

        with pytest.raises(HTTPException):
            settings_service.upsert_settings(db, [SettingUpdate(key="penalty_percentage", value="-1")])
    finally:
        db.query(SystemSetting).filter(SystemSetting.key == "penalty_percentage").delete()
        db.commit()
        db.close()


def test_rate_settings_sync_to_branches():
    db = SessionLocal()
    try:
        t = _mk_tenant(db, wrate=300)
        settings_service.upsert_settings(db, [SettingUpdate(key="water_rate", value="350")])
        db.commit()
        branch = db.get(Branch, t.branch_id)
        db.refresh(branch)
        assert branch.water_rate == 350
    finally:
        db.close()


def test_list_bills_filters_by_tenant():
    db = SessionLocal()
    try:
        t = _mk_tenant(db)
        billing_service.generate_bill(db, BillGenerate(tenant_id=t.id, present_electricity_reading=60))
        db.commit()
        rows = billing_service.list_bills(db, tenant_id=t.id)
        assert len(rows) == 1
        assert isinstance(rows[0], Bill)
    finally:
        db.close()
