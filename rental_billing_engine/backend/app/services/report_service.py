# backend/app/services/report_service.py
from __future__ import annotations

from datetime import date
from typing import Any, Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from ..domain.reports import (
    MonthlySummary,
    YearlySummary,
    month_bounds,
    monthly_financial_summary,
    yearly_financial_summary,
)
from ..models import Bill, Expense, Payment, PaymentComponent, Tenant


def _ledger_rows(db: Session, *, start: date, end: date, branch_id: Optional[int]) -> dict[str, list[Any]]:
    cq = (
        select(
            PaymentComponent.component_type,
            PaymentComponent.amount,
            Payment.payment_date,
            Payment.payment_method,
        )
        .join(Payment, Payment.id == PaymentComponent.payment_id)
        .join(Bill, Bill.id == PaymentComponent.bill_id)
        .where(Payment.payment_date >= start, Payment.payment_date <= end)
    )
    eq = select(Expense).where(Expense.expense_date >= start, Expense.expense_date <= end)
    fq = (
        select(Bill.forfeited_amount, Bill.refund_amount, Tenant.move_out_date)
        .join(Tenant, Tenant.id == Bill.tenant_id)
        .where(
            Bill.is_final_bill.is_(True),
            Tenant.move_out_date >= start,
            Tenant.move_out_date <= end,
        )
    )

    if branch_id is not None:
        cq = cq.where(Bill.branch_id == branch_id)
        eq = eq.where(Expense.branch_id == branch_id)
        fq = fq.where(Bill.branch_id == branch_id)

    return {
        "components": list(db.execute(cq).all()),
        "expenses": list(db.scalars(eq).all()),
        "final_bills": list(db.execute(fq).all()),
    }


def monthly_report(db: Session, *, month: str, branch_id: Optional[int] = None) -> MonthlySummary:
    start, end = month_bounds(month)
    return monthly_financial_summary(month=month, **_ledger_rows(db, start=start, end=end, branch_id=branch_id))


def yearly_report(db: Session, *, year: int, branch_id: Optional[int] = None) -> YearlySummary:
    if year < 1 or year > 9999:
        raise ValueError(f"invalid year {year!r}")
    start, end = date(year, 1, 1), date(year, 12, 31)

    bq = select(
        Bill.billing_period_start,
        Bill.billing_period_end,
        Bill.status,
        Bill.total_amount_due,
        Bill.amount_paid,
        Bill.is_final_bill,
    ).where(Bill.billing_period_start >= start, Bill.billing_period_end <= end)
    tq = select(Tenant.rent_start_date, Tenant.move_out_date).where(
        or_(
            Tenant.rent_start_date.between(start, end),
            Tenant.move_out_date.between(start, end),
        )
    )
    if branch_id is not None:
        bq = bq.where(Bill.branch_id == branch_id)
        tq = tq.where(Tenant.branch_id == branch_id)

    return yearly_financial_summary(
        bills=list(db.execute(bq).all()),
        tenants=list(db.execute(tq).all()),
        year=year,
        **_ledger_rows(db, start=start, end=end, branch_id=branch_id),
    )
