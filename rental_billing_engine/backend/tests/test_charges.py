from __future__ import annotations

from datetime import date

import pytest

from app.domain.billing import (
    BillingInputError,
    calculate_electricity_charge,
    calculate_electricity_consumption,
    calculate_penalty,
    calculate_prorated_rent,
    calculate_water_charge,
)
from app.domain.money import round_half_up, to_money


def test_electricity_charge_basic():
    assert calculate_electricity_charge(150, 100, 12.5) == 625.0
    assert calculate_electricity_consumption(150, 100) == 50


def test_electricity_rounds_half_up_to_centavos():
    assert calculate_electricity_charge(1, 0, 0.005) == 0.01
    assert calculate_electricity_charge(10.5, 0, 12.345) == 129.62


def test_same_reading_is_zero():
    assert calculate_electricity_charge(420, 420, 11.0) == 0.0


def test_reading_below_previous_names_the_minimum():
    with pytest.raises(BillingInputError) as ei:
        calculate_electricity_charge(90, 100, 12.0)
    assert "100" in str(ei.value)


def test_water_is_flat():
    assert calculate_water_charge(250) == 250.0
    with pytest.raises(BillingInputError):
        calculate_water_charge(-1)


def test_penalty_flat_after_due_date():
    due = date(2024, 3, 10)
    assert calculate_penalty(12000, date(2024, 3, 20), due, 5) == 600.0
    # not compounding with days overdue
    assert calculate_penalty(12000, date(2024, 6, 20), due, 5) == 600.0
    assert calculate_penalty(12000, due, due, 5) == 0.0
    assert calculate_penalty(12000, date(2024, 3, 1), due, 5) == 0.0


def test_penalty_rounds_to_whole_pesos():
    due = date(2024, 3, 10)
    assert calculate_penalty(2010, date(2024, 3, 11), due, 5) == 101.0
    assert calculate_penalty(0, date(2024, 3, 11), due, 5) == 0.0
    with pytest.raises(BillingInputError):
        calculate_penalty(1000, date(2024, 3, 11), due, -1)


def test_prorated_rent():
    start, end = date(2024, 1, 1), date(2024, 1, 31)
    assert calculate_prorated_rent(5000, start, end, date(2024, 1, 15)) == 2419.0
    assert calculate_prorated_rent(5000, start, end, date(2024, 2, 10)) == 5000.0
    assert calculate_prorated_rent(5000, start, end, start) == 161.0


def test_prorated_rent_exact_tie_rounds_up():
    start, end = date(2024, 4, 1), date(2024, 4, 30)
    assert calculate_prorated_rent(1001, start, end, date(2024, 4, 15)) == 501.0
    assert calculate_prorated_rent(10000, start, end, date(2024, 4, 15)) == 5000.0


def test_prorated_rent_move_out_before_start_raises():
    with pytest.raises(BillingInputError):
        calculate_prorated_rent(5000, date(2024, 4, 1), date(2024, 4, 30), date(2024, 3, 31))


def test_money_helpers():
    assert round_half_up(2.5) == 3.0
    assert round_half_up(2.675, 2) == 2.68
    assert to_money(1.005) == 1.01
