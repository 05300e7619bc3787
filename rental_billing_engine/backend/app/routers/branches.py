# backend/app/routers/branches.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..auth import get_principal, require_admin
from ..db import get_db
from ..domain.audit import audit_write, row_snapshot
from ..models import Branch, Room
from ..schemas import BranchCreate, BranchOut, BranchUpdate, RoomCreate, RoomOut
from ..services.ownership import must_get_branch

router = APIRouter(prefix="/branches", tags=["branches"])


@router.post("", response_model=BranchOut)
def create_branch(payload: BranchCreate, db: Session = Depends(get_db), p=Depends(require_admin)):
    if db.scalar(select(Branch.id).where(Branch.name == payload.name)) is not None:
        raise HTTPException(status_code=400, detail="branch name already exists")

    row = Branch(**payload.model_dump())
    db.add(row)
    db.flush()

    audit_write(
        db,
        actor_email=p.email,
        action="branch.create",
        entity_type="Branch",
        entity_id=row.id,
        before=None,
        after=row_snapshot(row),
    )
    db.commit()
    db.refresh(row)
    return row


@router.get("", response_model=list[BranchOut])
def list_branches(db: Session = Depends(get_db), p=Depends(get_principal)):
    return list(db.scalars(select(Branch).order_by(Branch.name)).all())


@router.get("/{branch_id}", response_model=BranchOut)
def get_branch(branch_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    return must_get_branch(db, branch_id=branch_id)


@router.patch("/{branch_id}", response_model=BranchOut)
def update_branch(
    branch_id: int,
    payload: BranchUpdate,
    db: Session = Depends(get_db),
    p=Depends(require_admin),
):
    row = must_get_branch(db, branch_id=branch_id)
    before = row_snapshot(row)

    for k, v in payload.model_dump(exclude_unset=True).items():
        if v is not None:
            setattr(row, k, v)
    db.flush()

    audit_write(
        db,
        actor_email=p.email,
        action="branch.update",
        entity_type="Branch",
        entity_id=row.id,
        before=before,
        after=row_snapshot(row),
    )
    db.commit()
    db.refresh(row)
    return row


@router.post("/rooms", response_model=RoomOut)
def create_room(payload: RoomCreate, db: Session = Depends(get_db), p=Depends(require_admin)):
    must_get_branch(db, branch_id=payload.branch_id)
    dup = db.scalar(
        select(Room.id).where(Room.branch_id == payload.branch_id, Room.room_number == payload.room_number)
    )
    if dup is not None:
        raise HTTPException(status_code=400, detail="room number already exists in this branch")

    row = Room(**payload.model_dump(), is_occupied=False)
    db.add(row)
    db.flush()

    audit_write(
        db,
        actor_email=p.email,
        action="room.create",
        entity_type="Room",
        entity_id=row.id,
        before=None,
        after=row_snapshot(row),
    )
    db.commit()
    db.refresh(row)
    return row


@router.get("/{branch_id}/rooms", response_model=list[RoomOut])
def list_rooms(
    branch_id: int,
    vacant_only: bool = Query(default=False),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    must_get_branch(db, branch_id=branch_id)
    q = select(Room).where(Room.branch_id == branch_id)
    if vacant_only:
        q = q.where(Room.is_occupied.is_(False))
    return list(db.scalars(q.order_by(Room.room_number)).all())
