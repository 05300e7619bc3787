# backend/app/domain/reports.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

import calendar

from .money import to_money
from .payment_allocation import COMPONENT_TYPES


def month_bounds(yyyy_mm: str) -> tuple[date, date]:
    try:
        y, m = [int(x) for x in yyyy_mm.split("-")]
        last_day = calendar.monthrange(y, m)[1]
    except (ValueError, calendar.IllegalMonthError):
        raise ValueError(f"invalid month {yyyy_mm!r}; use YYYY-MM") from None
    return date(y, m, 1), date(y, m, last_day)


def _d(v: Any) -> date | None:
    if v is None:
        return None
    if isinstance(v, datetime):
        return v.date()
    return v


@dataclass(frozen=True)
class MonthlySummary:
    month: str
    collected_by_component: dict[str, float]
    total_collected: float
    deposit_applications: float
    forfeited_deposits: float
    refunds: float
    company_expenses: float
    total_income: float
    total_expenses: float
    profit_loss: float


def monthly_financial_summary(
    *,
    components: list[Any],
    expenses: list[Any],
    final_bills: list[Any],
    month: str,
) -> MonthlySummary:
    """
    Income/expense rollup for one calendar month.

    components:  rows with component_type, amount, payment_date, payment_method
    expenses:    rows with amount, expense_date
    final_bills: rows with forfeited_amount, refund_amount, move_out_date

    Deposit applications count as collected income (by component) and again as
    an expense, since the money was already held; forfeitures and refunds are
    attributed to the tenant's move-out month.
    """
    start, end = month_bounds(month)

    collected = {t: 0.0 for t in COMPONENT_TYPES}
    deposit_applied = 0.0
    for c in components:
        d = _d(getattr(c, "payment_date", None))
        if d is None or not (start <= d <= end):
            continue
        amt = float(getattr(c, "amount", 0.0) or 0.0)
        ctype = getattr(c, "component_type", None)
        if ctype in collected:
            collected[ctype] += amt
        if getattr(c, "payment_method", None) == "deposit_application":
            deposit_applied += amt

    forfeited = 0.0
    refunds = 0.0
    for b in final_bills:
        d = _d(getattr(b, "move_out_date", None))
        if d is None or not (start <= d <= end):
            continue
        forfeited += float(getattr(b, "forfeited_amount", 0.0) or 0.0)
        refunds += float(getattr(b, "refund_amount", 0.0) or 0.0)

    company = 0.0
    for e in expenses:
        d = _d(getattr(e, "expense_date", None))
        if d is None or not (start <= d <= end):
            continue
        company += float(getattr(e, "amount", 0.0) or 0.0)

    total_collected = sum(collected.values())
    income = total_collected + forfeited
    outgoing = company + deposit_applied + refunds

    return MonthlySummary(
        month=str(month),
        collected_by_component={k: to_money(v) for k, v in collected.items()},
        total_collected=to_money(total_collected),
        deposit_applications=to_money(deposit_applied),
        forfeited_deposits=to_money(forfeited),
        refunds=to_money(refunds),
        company_expenses=to_money(company),
        total_income=to_money(income),
        total_expenses=to_money(outgoing),
        profit_loss=to_money(income - outgoing),
    )


@dataclass(frozen=True)
class YearlySummary:
    year: int
    months: list[MonthlySummary]
    total_income: float
    total_expenses: float
    profit_loss: float
    bill_count: int
    final_bill_count: int
    bills_by_status: dict[str, int]
    total_billed: float
    total_outstanding: float
    new_tenants: int
    moved_out_tenants: int


def yearly_financial_summary(
    *,
    components: list[Any],
    expenses: list[Any],
    final_bills: list[Any],
    bills: list[Any],
    tenants: list[Any],
    year: int,
) -> YearlySummary:
    """
    Twelve monthly rollups plus year totals.

    bills:   rows with billing_period_start, billing_period_end, status,
             total_amount_due, amount_paid, is_final_bill; counted when the
             whole period falls inside the year
    tenants: rows with rent_start_date, move_out_date

    Outstanding only sums positive balances; refund bills owe nothing.
    """
    y = int(year)
    if y < 1 or y > 9999:
        raise ValueError(f"invalid year {year!r}")
    first, last = date(y, 1, 1), date(y, 12, 31)

    months = [
        monthly_financial_summary(
            components=components,
            expenses=expenses,
            final_bills=final_bills,
            month=f"{y:04d}-{m:02d}",
        )
        for m in range(1, 13)
    ]

    by_status: dict[str, int] = {}
    billed = 0.0
    outstanding = 0.0
    count = 0
    finals = 0
    for b in bills:
        ps = _d(getattr(b, "billing_period_start", None))
        pe = _d(getattr(b, "billing_period_end", None))
        if ps is None or pe is None or ps < first or pe > last:
            continue
        count += 1
        status = str(getattr(b, "status", "") or "")
        by_status[status] = by_status.get(status, 0) + 1
        if getattr(b, "is_final_bill", False):
            finals += 1
        total = float(getattr(b, "total_amount_due", 0.0) or 0.0)
        paid = float(getattr(b, "amount_paid", 0.0) or 0.0)
        billed += total
        outstanding += max(0.0, total - paid)

    new_tenants = 0
    moved_out = 0
    for t in tenants:
        rs = _d(getattr(t, "rent_start_date", None))
        mo = _d(getattr(t, "move_out_date", None))
        if rs is not None and first <= rs <= last:
            new_tenants += 1
        if mo is not None and first <= mo <= last:
            moved_out += 1

    income = sum(m.total_income for m in months)
    outgoing = sum(m.total_expenses for m in months)
    return YearlySummary(
        year=y,
        months=months,
        total_income=to_money(income),
        total_expenses=to_money(outgoing),
        profit_loss=to_money(income - outgoing),
        bill_count=count,
        final_bill_count=finals,
        bills_by_status=by_status,
        total_billed=to_money(billed),
        total_outstanding=to_money(outstanding),
        new_tenants=new_tenants,
        moved_out_tenants=moved_out,
    )
