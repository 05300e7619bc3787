from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

import pytest

from app.domain.reports import month_bounds, monthly_financial_summary, yearly_financial_summary


@dataclass
class C:
    component_type: str
    amount: float
    payment_date: date
    payment_method: str = "cash"


@dataclass
class E:
    amount: float
    expense_date: date


@dataclass
class F:
    forfeited_amount: float
    refund_amount: float
    move_out_date: Optional[date]


def test_monthly_rollup():
    components = [
        C("rent", 5000, date(2024, 5, 3)),
        C("electricity", 300, date(2024, 5, 10), "gcash"),
        C("rent", 4000, date(2024, 5, 20), "deposit_application"),
        C("rent", 7777, date(2024, 4, 30)),
    ]
    expenses = [E(1200, date(2024, 5, 15)), E(999, date(2024, 6, 1))]
    finals = [F(5000, 1000, date(2024, 5, 20)), F(3000, 0, date(2024, 4, 2)), F(50, 50, None)]

    s = monthly_financial_summary(components=components, expenses=expenses, final_bills=finals, month="2024-05")

    assert s.collected_by_component["rent"] == 9000
    assert s.collected_by_component["electricity"] == 300
    assert s.collected_by_component["penalty"] == 0
    assert s.total_collected == 9300
    assert s.deposit_applications == 4000
    assert s.forfeited_deposits == 5000
    assert s.refunds == 1000
    assert s.company_expenses == 1200
    assert s.total_income == 14300
    assert s.total_expenses == 6200
    assert s.profit_loss == 8100


def test_month_bounds():
    assert month_bounds("2024-02") == (date(2024, 2, 1), date(2024, 2, 29))
    for bad in ("2024-13", "May 2024", "2024"):
        with pytest.raises(ValueError):
            month_bounds(bad)


@dataclass
class B:
    billing_period_start: date
    billing_period_end: date
    status: str
    total_amount_due: float
    amount_paid: float
    is_final_bill: bool = False


@dataclass
class T:
    rent_start_date: date
    move_out_date: Optional[date] = None


def test_yearly_rollup_sums_months_and_counts_bills():
    components = [
        C("rent", 5000, date(2024, 1, 20)),
        C("water", 500, date(2024, 7, 2)),
        C("rent", 3000, date(2024, 11, 30), "deposit_application"),
        C("rent", 9999, date(2023, 12, 31)),
    ]
    expenses = [E(700, date(2024, 3, 3)), E(100, date(2025, 1, 1))]
    finals = [F(4000, 0, date(2024, 11, 30))]
    bills = [
        B(date(2024, 1, 10), date(2024, 2, 9), "fully_paid", 5500, 5500),
        B(date(2024, 6, 10), date(2024, 7, 9), "partially_paid", 5500, 500),
        B(date(2024, 11, 10), date(2024, 12, 9), "active", 7000, 3000, True),
        B(date(2024, 12, 10), date(2025, 1, 9), "active", 5500, 0),
        B(date(2024, 8, 1), date(2024, 8, 31), "refund", -1200, -1200, True),
    ]
    tenants = [T(date(2024, 1, 10), date(2024, 11, 30)), T(date(2023, 5, 1), date(2024, 8, 31)), T(date(2023, 1, 1))]

    y = yearly_financial_summary(
        components=components,
        expenses=expenses,
        final_bills=finals,
        bills=bills,
        tenants=tenants,
        year=2024,
    )

    assert [m.month for m in y.months][:2] == ["2024-01", "2024-02"]
    assert len(y.months) == 12
    assert y.months[0].total_collected == 5000
    assert y.months[10].forfeited_deposits == 4000
    # collected 8500 + forfeited 4000; expenses 700 + deposit 3000
    assert y.total_income == 12500
    assert y.total_expenses == 3700
    assert y.profit_loss == 8800

    # the December-January bill belongs to neither year in full
    assert y.bill_count == 4
    assert y.final_bill_count == 2
    assert y.bills_by_status == {"fully_paid": 1, "partially_paid": 1, "active": 1, "refund": 1}
    assert y.total_billed == 16800
    assert y.total_outstanding == 9000
    assert y.new_tenants == 1
    assert y.moved_out_tenants == 2


def test_yearly_rollup_rejects_bad_year():
    with pytest.raises(ValueError):
        yearly_financial_summary(components=[], expenses=[], final_bills=[], bills=[], tenants=[], year=0)
