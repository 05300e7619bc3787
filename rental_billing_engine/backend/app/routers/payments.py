# backend/app/routers/payments.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select, desc
from sqlalchemy.orm import Session

from ..auth import get_principal
from ..db import get_db
from ..domain.audit import audit_write, row_snapshot
from ..models import Payment
from ..schemas import PaymentCreate, PaymentOut
from ..services.billing_service import record_payment
from ..services.ownership import must_get_bill

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("", response_model=PaymentOut)
def create_payment(payload: PaymentCreate, db: Session = Depends(get_db), p=Depends(get_principal)):
    bill = must_get_bill(db, bill_id=payload.bill_id, for_update=True)
    before = row_snapshot(bill)

    payment = record_payment(db, bill, payload)

    audit_write(
        db,
        actor_email=p.email,
        action="payment.create",
        entity_type="Bill",
        entity_id=bill.id,
        before=before,
        after={**row_snapshot(bill), "payment_id": payment.id, "payment_amount": payment.amount},
    )
    db.commit()
    db.refresh(payment)
    return PaymentOut.model_validate(payment)


@router.get("", response_model=list[PaymentOut])
def list_payments(
    tenant_id: int | None = Query(default=None),
    bill_id: int | None = Query(default=None),
    limit: int = Query(default=500, ge=1, le=2000),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    q = select(Payment)
    if tenant_id is not None:
        q = q.where(Payment.tenant_id == tenant_id)
    if bill_id is not None:
        q = q.where(Payment.bill_id == bill_id)
    q = q.order_by(desc(Payment.payment_date), desc(Payment.id)).limit(limit)
    return [PaymentOut.model_validate(r) for r in db.scalars(q).all()]
