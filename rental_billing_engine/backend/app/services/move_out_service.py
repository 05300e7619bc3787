# backend/app/services/move_out_service.py
"""
Move-out settlement: preview, final bill creation, final bill regeneration
and move-out completion.

A final bill is always computed from scratch by calculate_final_bill and
written through settlement_fields; an edit never patches the previous figures.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import settings
from ..domain.billing import (
    BillingPeriod,
    FinalBillCalculation,
    Refund,
    Settled,
    STATUS_FULLY_PAID,
    STATUS_REFUND,
    bill_status,
    calculate_billing_period,
    calculate_due_date,
    calculate_electricity_charge,
    calculate_electricity_consumption,
    calculate_final_bill,
    calculate_water_charge,
    settlement_fields,
)
from ..domain.money import to_money
from ..domain.payment_allocation import allocate_payment_to_components
from ..models import Bill, Branch, Payment, Room, Tenant
from ..schemas import BillEdit, MoveOutRequest
from .billing_service import (
    add_payment,
    bill_components,
    complete_final_bill_if_paid,
    mark_tenant_moved_out,
)
from .ownership import must_get_branch, must_get_room
from .tenant_service import (
    fully_paid_bill_count,
    outstanding_balance,
    previous_reading_for_next_bill,
)

log = logging.getLogger(__name__)

DEPOSIT_APPLICATION = "deposit_application"
DEPOSIT_APPLICATION_NOTE = "Automated application of tenant deposits on move-out."


@dataclass(frozen=True)
class Settlement:
    tenant: Tenant
    room: Room
    branch: Branch
    period: BillingPeriod
    fully_paid_count: int
    previous_reading: float
    present_reading: float
    move_out_date: date
    calc: FinalBillCalculation

    @property
    def days_occupied(self) -> int:
        return (min(self.move_out_date, self.period.end) - self.period.start).days + 1


def outcome_label(calc: FinalBillCalculation) -> str:
    o = calc.outcome
    if isinstance(o, Refund):
        return "refund"
    if isinstance(o, Settled):
        return "settled"
    return "due"


def next_step(calc: FinalBillCalculation) -> str:
    label = outcome_label(calc)
    if label == "refund":
        return "process_refund"
    if label == "settled":
        return "complete_move_out"
    return "collect_payment"


def existing_final_bill(db: Session, *, tenant_id: int) -> Optional[Bill]:
    return db.scalar(select(Bill).where(Bill.tenant_id == tenant_id, Bill.is_final_bill.is_(True)))


def build_settlement(db: Session, tenant: Tenant, req: MoveOutRequest) -> Settlement:
    """Compute the move-out settlement without writing anything."""
    room = must_get_room(db, room_id=tenant.room_id)
    branch = must_get_branch(db, branch_id=room.branch_id)

    count = fully_paid_bill_count(db, tenant_id=tenant.id)
    period = calculate_billing_period(tenant.rent_start_date, count + 1)

    previous = previous_reading_for_next_bill(db, tenant)
    present = previous if req.final_electricity_reading is None else float(req.final_electricity_reading)
    electricity = calculate_electricity_charge(present, previous, branch.electricity_rate)

    if req.final_water_amount is None:
        water = calculate_water_charge(branch.water_rate)
    else:
        water = float(req.final_water_amount)

    calc = calculate_final_bill(
        room.monthly_rent,
        period.start,
        period.end,
        req.move_out_date,
        electricity,
        water,
        req.extra_fees,
        outstanding_balance(db, tenant_id=tenant.id),
        count,
        tenant.advance_payment,
        tenant.security_deposit,
        is_room_transfer=req.is_room_transfer,
    )
    return Settlement(
        tenant=tenant,
        room=room,
        branch=branch,
        period=period,
        fully_paid_count=count,
        previous_reading=previous,
        present_reading=present,
        move_out_date=req.move_out_date,
        calc=calc,
    )


def _replace_deposit_payment(db: Session, bill: Bill, calc: FinalBillCalculation, payment_date: date) -> Optional[Payment]:
    """
    Drop any earlier synthetic deposit payment on `bill` and write a fresh one
    for the current applied amount, so the component ledger matches the bill.
    """
    old_ids = db.scalars(
        select(Payment.id).where(Payment.bill_id == bill.id, Payment.payment_method == DEPOSIT_APPLICATION)
    ).all()
    for pid in old_ids:
        db.delete(db.get(Payment, pid))
    db.flush()

    applied = calc.deposit_application.applied_amount
    if applied <= 0:
        return None

    components = bill_components(bill)
    components["penalty_amount"] = 0.0
    # Applied deposits also clear prior-cycle balances, which land on the rent line.
    shares = allocate_payment_to_components(applied, components, carry_overflow=True)
    return add_payment(
        db,
        bill=bill,
        amount=applied,
        payment_date=payment_date,
        payment_method=DEPOSIT_APPLICATION,
        shares=shares,
        notes=DEPOSIT_APPLICATION_NOTE,
    )


def create_final_bill(db: Session, s: Settlement, req: MoveOutRequest) -> Bill:
    tenant = s.tenant
    if existing_final_bill(db, tenant_id=tenant.id) is not None:
        raise HTTPException(status_code=400, detail="final bill already exists for this tenant")

    fields = settlement_fields(s.calc, advance_payment=tenant.advance_payment, security_deposit=tenant.security_deposit)
    bill = Bill(
        tenant_id=tenant.id,
        branch_id=s.branch.id,
        room_id=s.room.id,
        billing_period_start=s.period.start,
        billing_period_end=s.period.end,
        due_date=calculate_due_date(req.move_out_date, settings.due_date_offset_days),
        previous_electricity_reading=s.previous_reading,
        present_electricity_reading=s.present_reading,
        present_reading_date=req.move_out_date,
        electricity_consumption=calculate_electricity_consumption(s.present_reading, s.previous_reading),
        extra_fee_description=req.extra_fee_description,
        is_final_bill=True,
        is_room_transfer=req.is_room_transfer,
        **fields,
    )
    db.add(bill)
    tenant.move_out_date = req.move_out_date
    db.flush()

    _replace_deposit_payment(db, bill, s.calc, req.move_out_date)

    log.info(
        "final bill created",
        extra={"bill_id": bill.id, "tenant_id": tenant.id, "branch_id": s.branch.id},
    )
    return bill


def _carry_cash_payments(bill: Bill, calc: FinalBillCalculation, cash_paid: float) -> None:
    """
    Put cash already paid on a final bill back on top of a fresh settlement.
    Cash beyond what is now owed is returned to the tenant with any deposit
    refund, in the stored negative convention.
    """
    if cash_paid <= 0:
        return

    if isinstance(calc.outcome, Refund):
        owed_back = to_money(calc.outcome.amount + cash_paid)
    elif cash_paid <= calc.final_total:
        bill.amount_paid = to_money(float(bill.amount_paid) + cash_paid)
        bill.status = bill_status(bill.total_amount_due, bill.amount_paid)
        return
    else:
        owed_back = to_money(cash_paid - calc.final_total)

    bill.refund_amount = owed_back
    bill.total_amount_due = -owed_back
    bill.amount_paid = -owed_back
    bill.status = STATUS_REFUND


def regenerate_final_bill(db: Session, bill: Bill, payload: BillEdit) -> FinalBillCalculation:
    """
    Full recomputation of a final bill after an edit, from the same inputs as
    at creation: regular-cycle count, room-transfer flag and prior balances.
    Cash payments already made against it stay on top of the new deposit
    application.
    """
    if not bill.is_final_bill:
        raise ValueError("regenerate_final_bill only applies to final bills")

    tenant = db.get(Tenant, bill.tenant_id)
    room = db.get(Room, bill.room_id)
    branch = db.get(Branch, bill.branch_id)

    present = (
        float(payload.present_electricity_reading)
        if payload.present_electricity_reading is not None
        else float(bill.present_electricity_reading)
    )
    water = float(payload.water_amount) if payload.water_amount is not None else float(bill.water_amount)
    extra = float(payload.extra_fee) if payload.extra_fee is not None else float(bill.extra_fee)
    previous = float(bill.previous_electricity_reading)
    move_out = tenant.move_out_date or bill.billing_period_end

    calc = calculate_final_bill(
        room.monthly_rent,
        bill.billing_period_start,
        bill.billing_period_end,
        move_out,
        calculate_electricity_charge(present, previous, branch.electricity_rate),
        water,
        extra,
        outstanding_balance(db, tenant_id=tenant.id, exclude_bill_id=bill.id),
        fully_paid_bill_count(db, tenant_id=tenant.id),
        tenant.advance_payment,
        tenant.security_deposit,
        is_room_transfer=bool(bill.is_room_transfer),
    )

    cash_paid = to_money(
        sum(
            float(p.amount)
            for p in db.scalars(select(Payment).where(Payment.bill_id == bill.id)).all()
            if p.payment_method != DEPOSIT_APPLICATION
        )
    )

    fields = settlement_fields(calc, advance_payment=tenant.advance_payment, security_deposit=tenant.security_deposit)
    for k, v in fields.items():
        setattr(bill, k, v)
    _carry_cash_payments(bill, calc, cash_paid)

    bill.present_electricity_reading = present
    bill.electricity_consumption = calculate_electricity_consumption(present, previous)
    if payload.present_reading_date is not None:
        bill.present_reading_date = payload.present_reading_date
    if payload.extra_fee_description is not None:
        bill.extra_fee_description = payload.extra_fee_description
    db.flush()

    _replace_deposit_payment(db, bill, calc, move_out)
    complete_final_bill_if_paid(db, bill)
    db.flush()

    log.info("final bill regenerated", extra={"bill_id": bill.id, "tenant_id": tenant.id})
    return calc


def complete_move_out(db: Session, tenant: Tenant) -> Bill:
    bill = existing_final_bill(db, tenant_id=tenant.id)
    if bill is None:
        raise HTTPException(status_code=404, detail="final bill not found; initiate move-out first")
    if bill.status not in (STATUS_FULLY_PAID, STATUS_REFUND):
        raise HTTPException(status_code=400, detail="final bill must be fully settled before completing move-out")

    if tenant.is_active:
        mark_tenant_moved_out(db, tenant)
    if bill.completed_at is None:
        bill.completed_at = datetime.utcnow()
    db.flush()
    return bill
