# backend/app/services/ownership.py
from __future__ import annotations

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import Branch, Room, Tenant, Bill


def must_get_branch(db: Session, *, branch_id: int) -> Branch:
    row = db.scalar(select(Branch).where(Branch.id == branch_id))
    if not row:
        raise HTTPException(status_code=404, detail="branch not found")
    return row


def must_get_room(db: Session, *, room_id: int) -> Room:
    row = db.scalar(select(Room).where(Room.id == room_id))
    if not row:
        raise HTTPException(status_code=404, detail="room not found")
    return row


def must_get_tenant(db: Session, *, tenant_id: int, active_only: bool = False) -> Tenant:
    q = select(Tenant).where(Tenant.id == tenant_id)
    if active_only:
        q = q.where(Tenant.is_active.is_(True))
    row = db.scalar(q)
    if not row:
        raise HTTPException(status_code=404, detail="active tenant not found" if active_only else "tenant not found")
    return row


def must_get_bill(db: Session, *, bill_id: int, for_update: bool = False) -> Bill:
    q = select(Bill).where(Bill.id == bill_id)
    if for_update:
        # single writer per bill row until commit
        q = q.with_for_update()
    row = db.scalar(q)
    if not row:
        raise HTTPException(status_code=404, detail="bill not found")
    return row
