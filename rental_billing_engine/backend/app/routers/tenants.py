# backend/app/routers/tenants.py
from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select, desc
from sqlalchemy.orm import Session

from ..auth import get_principal
from ..db import get_db
from ..domain.audit import audit_write, row_snapshot
from ..domain.billing import current_billing_cycle
from ..models import Tenant
from ..schemas import (
    BillOut,
    BillingPeriodOut,
    DepositApplicationOut,
    MoveOutRequest,
    MoveOutResultOut,
    SettlementBreakdownOut,
    SettlementPreviewOut,
    TenantMoveIn,
    TenantOut,
)
from ..services import move_out_service, tenant_service
from ..services.ownership import must_get_tenant

router = APIRouter(prefix="/tenants", tags=["tenants"])


def _preview_out(s: move_out_service.Settlement) -> dict:
    calc = s.calc
    app = calc.deposit_application
    return {
        "tenant_id": s.tenant.id,
        "fully_paid_bills": s.fully_paid_count,
        "previous_electricity_reading": s.previous_reading,
        "present_electricity_reading": s.present_reading,
        "billing_period": BillingPeriodOut(
            start=s.period.start,
            end=s.period.end,
            cycle_number=s.period.cycle_number,
            total_days=s.period.total_days,
            days_occupied=s.days_occupied,
        ),
        "breakdown": SettlementBreakdownOut(
            prorated_rent=calc.prorated_rent,
            electricity_charges=calc.electricity_amount,
            water_charges=calc.water_amount,
            extra_fees=calc.extra_fee,
            outstanding_balance=calc.outstanding_from_prior_bills,
            total_before_deposits=calc.total_before_deposits,
        ),
        "deposit_application": DepositApplicationOut.model_validate(app),
        "final_total": calc.final_total,
        "outcome": move_out_service.outcome_label(calc),
        "next_step": move_out_service.next_step(calc),
    }


@router.post("", response_model=TenantOut)
def move_in(payload: TenantMoveIn, db: Session = Depends(get_db), p=Depends(get_principal)):
    row = tenant_service.move_in(db, payload)
    audit_write(
        db,
        actor_email=p.email,
        action="tenant.move_in",
        entity_type="Tenant",
        entity_id=row.id,
        before=None,
        after=row_snapshot(row),
    )
    db.commit()
    db.refresh(row)
    return row


@router.get("", response_model=list[TenantOut])
def list_tenants(
    branch_id: int | None = Query(default=None),
    active_only: bool = Query(default=True),
    limit: int = Query(default=200, ge=1, le=2000),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    q = select(Tenant)
    if branch_id is not None:
        q = q.where(Tenant.branch_id == branch_id)
    if active_only:
        q = q.where(Tenant.is_active.is_(True))
    q = q.order_by(desc(Tenant.id)).limit(limit)
    return list(db.scalars(q).all())


@router.get("/{tenant_id}", response_model=TenantOut)
def get_tenant(tenant_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    return must_get_tenant(db, tenant_id=tenant_id)


@router.get("/{tenant_id}/billing-cycle", response_model=BillingPeriodOut)
def billing_cycle(
    tenant_id: int,
    today: date | None = Query(default=None),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    """Calendar cycle containing `today`. Display only; bills follow fully paid count."""
    tenant = must_get_tenant(db, tenant_id=tenant_id)
    period = current_billing_cycle(tenant.rent_start_date, today or date.today())
    return BillingPeriodOut(
        start=period.start,
        end=period.end,
        cycle_number=period.cycle_number,
        total_days=period.total_days,
    )


@router.post("/{tenant_id}/renew", response_model=TenantOut)
def renew(tenant_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    row = must_get_tenant(db, tenant_id=tenant_id, active_only=True)
    before = row_snapshot(row)
    tenant_service.renew_contract(db, row)
    audit_write(
        db,
        actor_email=p.email,
        action="tenant.renew",
        entity_type="Tenant",
        entity_id=row.id,
        before=before,
        after=row_snapshot(row),
    )
    db.commit()
    db.refresh(row)
    return row


@router.post("/{tenant_id}/move-out/preview", response_model=SettlementPreviewOut)
def move_out_preview(
    tenant_id: int,
    payload: MoveOutRequest,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    tenant = must_get_tenant(db, tenant_id=tenant_id, active_only=True)
    s = move_out_service.build_settlement(db, tenant, payload)
    return _preview_out(s)


@router.post("/{tenant_id}/move-out", response_model=MoveOutResultOut)
def move_out(
    tenant_id: int,
    payload: MoveOutRequest,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    tenant = must_get_tenant(db, tenant_id=tenant_id, active_only=True)
    s = move_out_service.build_settlement(db, tenant, payload)
    bill = move_out_service.create_final_bill(db, s, payload)

    audit_write(
        db,
        actor_email=p.email,
        action="bill.final.create",
        entity_type="Bill",
        entity_id=bill.id,
        before=None,
        after=row_snapshot(bill),
    )
    db.commit()

    out = _preview_out(s)
    out["final_bill_id"] = bill.id
    return out


@router.post("/{tenant_id}/move-out/complete", response_model=BillOut)
def complete_move_out(tenant_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    tenant = must_get_tenant(db, tenant_id=tenant_id)
    before = row_snapshot(tenant)
    bill = move_out_service.complete_move_out(db, tenant)

    audit_write(
        db,
        actor_email=p.email,
        action="tenant.move_out.complete",
        entity_type="Tenant",
        entity_id=tenant.id,
        before=before,
        after=row_snapshot(tenant),
    )
    db.commit()
    db.refresh(bill)
    return bill
