from __future__ import annotations

from datetime import date, timedelta

import pytest

from app.domain.billing import (
    BillingInputError,
    add_months,
    calculate_billing_period,
    calculate_due_date,
    current_billing_cycle,
)


def test_first_cycles_mid_month_anchor():
    p1 = calculate_billing_period(date(2024, 1, 15), 1)
    p2 = calculate_billing_period(date(2024, 1, 15), 2)

    assert (p1.start, p1.end) == (date(2024, 1, 15), date(2024, 2, 14))
    assert (p2.start, p2.end) == (date(2024, 2, 15), date(2024, 3, 14))
    assert p1.total_days == 31
    assert p2.cycle_number == 2


def test_month_end_anchor_clamps_without_drifting():
    anchor = date(2024, 1, 31)
    p1 = calculate_billing_period(anchor, 1)
    p2 = calculate_billing_period(anchor, 2)
    p3 = calculate_billing_period(anchor, 3)

    assert (p1.start, p1.end) == (date(2024, 1, 31), date(2024, 2, 28))
    assert (p2.start, p2.end) == (date(2024, 2, 29), date(2024, 3, 30))
    # back on the 31st once the month allows it
    assert (p3.start, p3.end) == (date(2024, 3, 31), date(2024, 4, 29))


def test_non_leap_february():
    p1 = calculate_billing_period(date(2023, 1, 31), 1)
    p2 = calculate_billing_period(date(2023, 1, 31), 2)
    assert p1.end == date(2023, 2, 27)
    assert p2.start == date(2023, 2, 28)


@pytest.mark.parametrize("year,month", [(2024, 1), (2023, 8), (2023, 12)])
def test_every_anchor_day_stays_contiguous(year, month):
    for day in range(1, 32):
        anchor = date(year, month, day)
        prev = calculate_billing_period(anchor, 1)
        assert prev.start == anchor
        for n in range(2, 25):
            cur = calculate_billing_period(anchor, n)
            assert prev.end + timedelta(days=1) == cur.start, (anchor, n)
            assert 28 <= cur.total_days <= 31
            prev = cur


def test_invalid_cycle_numbers_raise():
    with pytest.raises(BillingInputError):
        calculate_billing_period(date(2024, 1, 1), 0)
    with pytest.raises(BillingInputError):
        calculate_billing_period(date(2024, 1, 1), -3)
    with pytest.raises(BillingInputError):
        calculate_billing_period(date(2024, 1, 1), True)


def test_add_months_crosses_year():
    assert add_months(date(2024, 11, 30), 3) == date(2025, 2, 28)
    assert add_months(date(2024, 7, 1), 6) == date(2025, 1, 1)


def test_current_billing_cycle_follows_calendar():
    anchor = date(2024, 1, 15)
    p = current_billing_cycle(anchor, date(2024, 3, 20))
    assert p.cycle_number == 3
    assert p.contains(date(2024, 3, 20))

    assert current_billing_cycle(anchor, date(2023, 12, 1)).cycle_number == 1
    assert current_billing_cycle(anchor, date(2024, 2, 14)).cycle_number == 1


def test_due_date_offset():
    assert calculate_due_date(date(2024, 2, 14)) == date(2024, 2, 24)
    assert calculate_due_date(date(2024, 2, 25), 5) == date(2024, 3, 1)
