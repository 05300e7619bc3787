# backend/app/services/billing_service.py
"""
Bill lifecycle glue: loads records, calls app.domain.billing /
app.domain.payment_allocation, writes the results back.

Nothing here commits; routers own the transaction. Every mutation of an
existing bill goes through must_get_bill(..., for_update=True) and the
Bill.version_id counter, so concurrent writers on one bill cannot both win.
"""
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import settings
from ..domain.billing import (
    OPEN_STATUSES,
    STATUS_FULLY_PAID,
    STATUS_REFUND,
    bill_status,
    bill_total,
    calculate_billing_period,
    calculate_due_date,
    calculate_electricity_charge,
    calculate_electricity_consumption,
    calculate_penalty,
    calculate_water_charge,
)
from ..domain.money import to_money
from ..domain.payment_allocation import (
    PaymentAllocationError,
    PaymentComponentShare,
    allocate_payment_to_components,
    remaining_component_balances,
    validate_payment_allocation,
)
from ..models import Bill, Branch, Payment, PaymentComponent, Tenant
from ..schemas import BillEdit, BillGenerate, PaymentCreate
from .ownership import must_get_branch, must_get_room, must_get_tenant
from .tenant_service import next_cycle_number, previous_reading_for_next_bill

log = logging.getLogger(__name__)


def bill_components(bill: Bill) -> dict[str, float]:
    return {
        "penalty_amount": float(bill.penalty_amount or 0.0),
        "extra_fee": float(bill.extra_fee or 0.0),
        "electricity_amount": float(bill.electricity_amount or 0.0),
        "water_amount": float(bill.water_amount or 0.0),
        "monthly_rent_amount": float(bill.monthly_rent_amount or 0.0),
    }


def _prior_shares(db: Session, bill_id: int) -> list[PaymentComponentShare]:
    rows = db.scalars(select(PaymentComponent).where(PaymentComponent.bill_id == bill_id)).all()
    return [PaymentComponentShare(r.component_type, float(r.amount)) for r in rows]


def add_payment(
    db: Session,
    *,
    bill: Bill,
    amount: float,
    payment_date: date,
    payment_method: str,
    shares: list[PaymentComponentShare],
    reference_number: Optional[str] = None,
    notes: Optional[str] = None,
) -> Payment:
    if not validate_payment_allocation(shares, amount):
        raise PaymentAllocationError(f"components do not sum to payment amount {amount:.2f}")

    payment = Payment(
        bill_id=bill.id,
        tenant_id=bill.tenant_id,
        amount=to_money(amount),
        payment_date=payment_date,
        payment_method=payment_method,
        reference_number=reference_number,
        notes=notes,
    )
    payment.components = [
        PaymentComponent(bill_id=bill.id, component_type=s.component_type, amount=s.amount) for s in shares
    ]
    db.add(payment)
    db.flush()
    return payment


# -----------------------------
# Generation
# -----------------------------
def generate_bill(db: Session, payload: BillGenerate) -> Bill:
    tenant = must_get_tenant(db, tenant_id=payload.tenant_id, active_only=True)
    room = must_get_room(db, room_id=tenant.room_id)
    branch = must_get_branch(db, branch_id=room.branch_id)

    cycle = next_cycle_number(db, tenant_id=tenant.id)
    period = calculate_billing_period(tenant.rent_start_date, cycle)

    existing = db.scalar(
        select(Bill.id).where(
            Bill.tenant_id == tenant.id,
            Bill.billing_period_start == period.start,
            Bill.billing_period_end == period.end,
        )
    )
    if existing is not None:
        raise HTTPException(status_code=400, detail="bill already exists for this billing period")

    previous = previous_reading_for_next_bill(db, tenant)
    present = float(payload.present_electricity_reading)

    electricity = calculate_electricity_charge(present, previous, branch.electricity_rate)
    water = calculate_water_charge(branch.water_rate)
    rent = float(room.monthly_rent)
    extra = to_money(payload.extra_fee or 0.0)

    total = bill_total(
        monthly_rent_amount=rent,
        electricity_amount=electricity,
        water_amount=water,
        extra_fee=extra,
    )

    bill = Bill(
        tenant_id=tenant.id,
        branch_id=branch.id,
        room_id=room.id,
        billing_period_start=period.start,
        billing_period_end=period.end,
        due_date=calculate_due_date(period.end, settings.due_date_offset_days),
        previous_electricity_reading=previous,
        present_electricity_reading=present,
        present_reading_date=payload.present_reading_date,
        electricity_consumption=calculate_electricity_consumption(present, previous),
        electricity_amount=electricity,
        water_amount=water,
        monthly_rent_amount=rent,
        extra_fee=extra,
        extra_fee_description=payload.extra_fee_description,
        penalty_amount=0.0,
        total_amount_due=total,
        amount_paid=0.0,
        status=bill_status(total, 0.0),
        is_final_bill=False,
        advance_payment=float(tenant.advance_payment),
        security_deposit=float(tenant.security_deposit),
    )
    db.add(bill)
    db.flush()

    log.info(
        "bill generated",
        extra={"bill_id": bill.id, "tenant_id": tenant.id, "branch_id": branch.id},
    )
    return bill


# -----------------------------
# Payments
# -----------------------------
def record_payment(db: Session, bill: Bill, payload: PaymentCreate) -> Payment:
    """
    Record a cash/gcash payment against `bill` (already locked by the caller).

    Components are allocated against what each component still owes, so a
    second partial payment does not re-cover the penalty. Paying more than the
    bill's balance is rejected.
    """
    if bill.status == STATUS_FULLY_PAID:
        raise HTTPException(status_code=400, detail="bill is already fully paid")
    if bill.status == STATUS_REFUND:
        raise HTTPException(status_code=400, detail="refund bills do not accept payments")

    amount = to_money(payload.amount_paid)
    balance = to_money(float(bill.total_amount_due) - float(bill.amount_paid))
    if amount > balance:
        raise HTTPException(
            status_code=400,
            detail=f"payment of {amount:.2f} exceeds the remaining balance of {balance:.2f}",
        )

    remaining = remaining_component_balances(bill_components(bill), _prior_shares(db, bill.id))
    # Final bills also settle prior-cycle balances that are not components of
    # their own, so overflow goes to the rent line there.
    shares = allocate_payment_to_components(amount, remaining, carry_overflow=bool(bill.is_final_bill))

    payment = add_payment(
        db,
        bill=bill,
        amount=amount,
        payment_date=payload.payment_date,
        payment_method=payload.payment_method,
        shares=shares,
        reference_number=payload.reference_number,
        notes=payload.notes,
    )

    bill.amount_paid = to_money(float(bill.amount_paid) + amount)
    bill.status = bill_status(bill.total_amount_due, bill.amount_paid)

    complete_final_bill_if_paid(db, bill)
    db.flush()

    log.info(
        "payment recorded",
        extra={"bill_id": bill.id, "tenant_id": bill.tenant_id, "payment_id": payment.id},
    )
    return payment


# -----------------------------
# Edits
# -----------------------------
def edit_regular_bill(db: Session, bill: Bill, payload: BillEdit) -> Bill:
    """Recompute the edited components, total and status of a non-final bill."""
    if bill.is_final_bill:
        raise ValueError("final bills are regenerated by move_out_service.regenerate_final_bill")
    if bill.status == STATUS_FULLY_PAID and not payload.allow_fully_paid_edit:
        raise HTTPException(status_code=400, detail="cannot edit a fully paid bill")

    if payload.present_electricity_reading is not None:
        branch = db.get(Branch, bill.branch_id)
        present = float(payload.present_electricity_reading)
        previous = float(bill.previous_electricity_reading)
        bill.electricity_amount = calculate_electricity_charge(present, previous, branch.electricity_rate)
        bill.electricity_consumption = calculate_electricity_consumption(present, previous)
        bill.present_electricity_reading = present

    if payload.present_reading_date is not None:
        bill.present_reading_date = payload.present_reading_date
    if payload.water_amount is not None:
        bill.water_amount = to_money(payload.water_amount)
    if payload.extra_fee is not None:
        bill.extra_fee = to_money(payload.extra_fee)
    if payload.extra_fee_description is not None:
        bill.extra_fee_description = payload.extra_fee_description

    bill.total_amount_due = bill_total(
        monthly_rent_amount=bill.monthly_rent_amount,
        electricity_amount=bill.electricity_amount,
        water_amount=bill.water_amount,
        extra_fee=bill.extra_fee,
        penalty_amount=bill.penalty_amount,
    )
    bill.status = bill_status(bill.total_amount_due, bill.amount_paid)
    db.flush()

    log.info("bill edited", extra={"bill_id": bill.id, "tenant_id": bill.tenant_id})
    return bill


# -----------------------------
# Penalties
# -----------------------------
def overdue_bills_without_penalty(db: Session, *, today: date) -> list[Bill]:
    q = (
        select(Bill)
        .join(Tenant, Tenant.id == Bill.tenant_id)
        .where(
            Bill.status.in_(OPEN_STATUSES),
            Bill.due_date < today,
            Bill.penalty_amount == 0,
            Bill.is_final_bill.is_(False),
            # balances of a moved-out tenant were folded into the final bill
            Tenant.move_out_date.is_(None),
        )
        .order_by(Bill.id)
        .with_for_update(of=Bill)
    )
    return list(db.scalars(q).all())


def apply_penalties(db: Session, *, today: date, penalty_percentage: float) -> list[Bill]:
    """
    One-time late penalty on every open, overdue, not-yet-penalized bill.
    The base is the bill's unpaid balance at the time of the run.
    """
    touched: list[Bill] = []
    for bill in overdue_bills_without_penalty(db, today=today):
        outstanding = to_money(float(bill.total_amount_due) - float(bill.amount_paid))
        penalty = calculate_penalty(outstanding, today, bill.due_date, penalty_percentage)
        if penalty <= 0:
            continue

        bill.penalty_amount = penalty
        bill.total_amount_due = bill_total(
            monthly_rent_amount=bill.monthly_rent_amount,
            electricity_amount=bill.electricity_amount,
            water_amount=bill.water_amount,
            extra_fee=bill.extra_fee,
            penalty_amount=penalty,
        )
        bill.status = bill_status(bill.total_amount_due, bill.amount_paid)
        touched.append(bill)

        log.info("penalty applied", extra={"bill_id": bill.id, "tenant_id": bill.tenant_id})

    db.flush()
    return touched


def list_bills(
    db: Session,
    *,
    tenant_id: Optional[int] = None,
    status: Optional[str] = None,
    limit: int = 200,
) -> list[Bill]:
    q = select(Bill)
    if tenant_id is not None:
        q = q.where(Bill.tenant_id == tenant_id)
    if status:
        q = q.where(Bill.status == status)
    q = q.order_by(Bill.billing_period_start.desc(), Bill.id.desc()).limit(limit)
    return list(db.scalars(q).all())


def mark_tenant_moved_out(db: Session, tenant: Tenant) -> None:
    """Deactivate the tenant and free the room. Idempotent."""
    tenant.is_active = False
    room = must_get_room(db, room_id=tenant.room_id)
    room.is_occupied = False
    db.flush()
    log.info("tenant move-out completed", extra={"tenant_id": tenant.id, "branch_id": room.branch_id})


def complete_final_bill_if_paid(db: Session, bill: Bill) -> bool:
    """
    A final bill that reaches fully_paid completes the move-out: tenant
    inactive, room freed, completed_at stamped. Returns True when it did.
    """
    if not bill.is_final_bill or bill.status != STATUS_FULLY_PAID:
        return False
    tenant = must_get_tenant(db, tenant_id=bill.tenant_id)
    if tenant.is_active:
        mark_tenant_moved_out(db, tenant)
    if bill.completed_at is None:
        bill.completed_at = datetime.utcnow()
    return True
