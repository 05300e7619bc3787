# backend/app/services/tenant_service.py
from __future__ import annotations

import logging

from fastapi import HTTPException
from sqlalchemy import select, func
from sqlalchemy.orm import Session

from ..config import settings
from ..domain.billing import OPEN_STATUSES, STATUS_FULLY_PAID, add_months
from ..domain.money import to_money
from ..models import Bill, Tenant
from ..schemas import TenantMoveIn
from .ownership import must_get_room

log = logging.getLogger(__name__)


def move_in(db: Session, payload: TenantMoveIn) -> Tenant:
    """
    Create an active tenant in an unoccupied room. Advance payment and security
    deposit are both one month's rent of that room. Does not commit.
    """
    room = must_get_room(db, room_id=payload.room_id)
    if room.is_occupied:
        raise HTTPException(status_code=400, detail="room is already occupied")

    start = payload.rent_start_date
    tenant = Tenant(
        full_name=payload.full_name,
        email_address=payload.email_address,
        phone_number=payload.phone_number,
        branch_id=room.branch_id,
        room_id=room.id,
        rent_start_date=start,
        initial_electricity_reading=float(payload.initial_electricity_reading),
        contract_start_date=start,
        contract_end_date=add_months(start, settings.contract_months),
        advance_payment=float(room.monthly_rent),
        security_deposit=float(room.monthly_rent),
        is_active=True,
    )
    room.is_occupied = True
    db.add(tenant)
    db.flush()

    log.info("tenant moved in", extra={"tenant_id": tenant.id, "branch_id": room.branch_id})
    return tenant


def renew_contract(db: Session, tenant: Tenant) -> Tenant:
    if not tenant.is_active:
        raise HTTPException(status_code=400, detail="cannot renew an inactive tenant")
    tenant.contract_end_date = add_months(tenant.contract_end_date, settings.renewal_months)
    db.flush()
    return tenant


def fully_paid_bill_count(db: Session, *, tenant_id: int) -> int:
    """Fully paid regular cycles. A settled final bill is not a rent cycle and never counts."""
    n = db.scalar(
        select(func.count(Bill.id)).where(
            Bill.tenant_id == tenant_id,
            Bill.status == STATUS_FULLY_PAID,
            Bill.is_final_bill.is_(False),
        )
    )
    return int(n or 0)


def next_cycle_number(db: Session, *, tenant_id: int) -> int:
    # Cycles advance only as bills are fully paid, not with the calendar.
    return fully_paid_bill_count(db, tenant_id=tenant_id) + 1


def latest_regular_bill(db: Session, *, tenant_id: int) -> Bill | None:
    return db.scalar(
        select(Bill)
        .where(Bill.tenant_id == tenant_id, Bill.is_final_bill.is_(False))
        .order_by(Bill.billing_period_start.desc(), Bill.id.desc())
        .limit(1)
    )


def previous_reading_for_next_bill(db: Session, tenant: Tenant) -> float:
    """Present reading of the latest bill, or the move-in reading for the first bill."""
    last = latest_regular_bill(db, tenant_id=tenant.id)
    if last is None:
        return float(tenant.initial_electricity_reading)
    return float(last.present_electricity_reading)


def outstanding_balance(db: Session, *, tenant_id: int, exclude_bill_id: int | None = None) -> float:
    q = select(Bill).where(Bill.tenant_id == tenant_id, Bill.status.in_(OPEN_STATUSES))
    if exclude_bill_id is not None:
        q = q.where(Bill.id != exclude_bill_id)
    total = 0.0
    for b in db.scalars(q).all():
        total += max(0.0, float(b.total_amount_due) - float(b.amount_paid))
    return to_money(total)
