# backend/app/routers/reports.py
from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, desc
from sqlalchemy.orm import Session

from ..auth import get_principal, require_admin
from ..db import get_db
from ..domain.audit import audit_write, row_snapshot
from ..domain.reports import month_bounds
from ..models import Expense
from ..schemas import ExpenseCreate, ExpenseOut, MonthlyReportOut, YearlyReportOut
from ..services.ownership import must_get_branch
from ..services.report_service import monthly_report, yearly_report

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/monthly", response_model=MonthlyReportOut)
def monthly(
    month: str = Query(..., description="YYYY-MM"),
    branch_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    if branch_id is not None:
        must_get_branch(db, branch_id=branch_id)
    try:
        summary = monthly_report(db, month=month, branch_id=branch_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    return MonthlyReportOut(branch_id=branch_id, **asdict(summary))


@router.get("/yearly", response_model=YearlyReportOut)
def yearly(
    year: int = Query(..., description="YYYY"),
    branch_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    if branch_id is not None:
        must_get_branch(db, branch_id=branch_id)
    try:
        summary = yearly_report(db, year=year, branch_id=branch_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    return YearlyReportOut(branch_id=branch_id, **asdict(summary))


@router.post("/expenses", response_model=ExpenseOut)
def create_expense(payload: ExpenseCreate, db: Session = Depends(get_db), p=Depends(require_admin)):
    if payload.branch_id is not None:
        must_get_branch(db, branch_id=payload.branch_id)

    row = Expense(**payload.model_dump())
    db.add(row)
    db.flush()

    audit_write(
        db,
        actor_email=p.email,
        action="expense.create",
        entity_type="Expense",
        entity_id=row.id,
        before=None,
        after=row_snapshot(row),
    )
    db.commit()
    db.refresh(row)
    return row


@router.get("/expenses", response_model=list[ExpenseOut])
def list_expenses(
    month: str | None = Query(default=None, description="YYYY-MM"),
    branch_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    q = select(Expense)
    if month:
        try:
            start, end = month_bounds(month)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from None
        q = q.where(Expense.expense_date >= start, Expense.expense_date <= end)
    if branch_id is not None:
        q = q.where(Expense.branch_id == branch_id)
    return list(db.scalars(q.order_by(desc(Expense.expense_date))).all())
