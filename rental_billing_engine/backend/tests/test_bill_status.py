from __future__ import annotations

from app.domain.billing import bill_status, bill_total


def test_status_from_amounts():
    assert bill_status(1000, 0) == "active"
    assert bill_status(1000, 500) == "partially_paid"
    assert bill_status(1000, 1000) == "fully_paid"
    assert bill_status(1000, 1000.004) == "fully_paid"
    assert bill_status(-3700, -3700) == "refund"


def test_total_includes_penalty_and_extra_fee():
    assert bill_total(monthly_rent_amount=8000, electricity_amount=360.5, water_amount=300) == 8660.5
    assert (
        bill_total(
            monthly_rent_amount=8000,
            electricity_amount=360,
            water_amount=300,
            extra_fee=150,
            penalty_amount=433,
        )
        == 9243
    )
