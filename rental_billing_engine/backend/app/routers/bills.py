# backend/app/routers/bills.py
from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..auth import get_principal, require_admin
from ..db import get_db
from ..domain.audit import audit_write, row_snapshot
from ..models import Payment
from ..schemas import BillEdit, BillGenerate, BillOut, PaymentOut, PenaltyRunOut
from ..services import billing_service, move_out_service
from ..services.ownership import must_get_bill
from ..services.settings_service import get_penalty_percentage

router = APIRouter(prefix="/bills", tags=["bills"])


@router.post("/generate", response_model=BillOut)
def generate(payload: BillGenerate, db: Session = Depends(get_db), p=Depends(get_principal)):
    row = billing_service.generate_bill(db, payload)
    audit_write(
        db,
        actor_email=p.email,
        action="bill.generate",
        entity_type="Bill",
        entity_id=row.id,
        before=None,
        after=row_snapshot(row),
    )
    db.commit()
    db.refresh(row)
    return row


@router.get("", response_model=list[BillOut])
def list_bills(
    tenant_id: int | None = Query(default=None),
    status: str | None = Query(default=None),
    limit: int = Query(default=200, ge=1, le=2000),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    return billing_service.list_bills(db, tenant_id=tenant_id, status=status, limit=limit)


@router.post("/apply-penalties", response_model=PenaltyRunOut)
def apply_penalties(
    today: date | None = Query(default=None),
    db: Session = Depends(get_db),
    p=Depends(require_admin),
):
    pct = get_penalty_percentage(db)
    touched = billing_service.apply_penalties(db, today=today or date.today(), penalty_percentage=pct)

    for b in touched:
        audit_write(
            db,
            actor_email=p.email,
            action="bill.penalty",
            entity_type="Bill",
            entity_id=b.id,
            before=None,
            after={"penalty_amount": b.penalty_amount, "total_amount_due": b.total_amount_due},
        )
    db.commit()
    return PenaltyRunOut(processed=len(touched), penalty_percentage=pct, bill_ids=[b.id for b in touched])


@router.get("/{bill_id}", response_model=BillOut)
def get_bill(bill_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    return must_get_bill(db, bill_id=bill_id)


@router.get("/{bill_id}/payments", response_model=list[PaymentOut])
def bill_payments(bill_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    must_get_bill(db, bill_id=bill_id)
    rows = db.scalars(select(Payment).where(Payment.bill_id == bill_id).order_by(Payment.id)).all()
    return [PaymentOut.model_validate(r) for r in rows]


@router.patch("/{bill_id}", response_model=BillOut)
def edit_bill(
    bill_id: int,
    payload: BillEdit,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    row = must_get_bill(db, bill_id=bill_id, for_update=True)
    before = row_snapshot(row)

    if row.is_final_bill:
        move_out_service.regenerate_final_bill(db, row, payload)
        action = "bill.final.regenerate"
    else:
        billing_service.edit_regular_bill(db, row, payload)
        action = "bill.edit"

    after = row_snapshot(row)
    if payload.edit_reason:
        after["edit_reason"] = payload.edit_reason

    audit_write(
        db,
        actor_email=p.email,
        action=action,
        entity_type="Bill",
        entity_id=row.id,
        before=before,
        after=after,
    )
    db.commit()
    db.refresh(row)
    return row
