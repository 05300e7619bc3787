# backend/app/domain/payment_allocation.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping

from .money import to_money

# Priority order: penalties first, rent last.
COMPONENT_ORDER: tuple[tuple[str, str], ...] = (
    ("penalty", "penalty_amount"),
    ("extra_fee", "extra_fee"),
    ("electricity", "electricity_amount"),
    ("water", "water_amount"),
    ("rent", "monthly_rent_amount"),
)

COMPONENT_TYPES = tuple(t for t, _ in COMPONENT_ORDER)


class PaymentAllocationError(ValueError):
    pass


@dataclass(frozen=True)
class PaymentComponentShare:
    component_type: str
    amount: float


def allocate_payment_to_components(
    payment_amount: float,
    components: Mapping[str, float],
    *,
    carry_overflow: bool = False,
) -> list[PaymentComponentShare]:
    """
    Split a payment across bill components in fixed priority
    (penalty > extra_fee > electricity > water > rent).

    `components` uses bill column names (penalty_amount, extra_fee, ...).
    Each component absorbs min(remaining, balance); zero shares are omitted.

    Money left after every component is full is never dropped:
      - carry_overflow=False: raise PaymentAllocationError
      - carry_overflow=True: add it to the rent line
    Reporting only; the bill's own amount_paid/status is tracked separately.
    """
    amount = to_money(payment_amount)
    if amount < 0:
        raise PaymentAllocationError(f"payment amount must be >= 0, got {amount}")

    remaining = amount
    shares: dict[str, float] = {}

    for component_type, column in COMPONENT_ORDER:
        balance = to_money(max(0.0, float(components.get(column) or 0.0)))
        if balance <= 0 or remaining <= 0:
            continue
        take = min(remaining, balance)
        shares[component_type] = take
        remaining = to_money(remaining - take)

    if remaining > 0:
        if not carry_overflow:
            raise PaymentAllocationError(
                f"payment of {amount:.2f} exceeds the bill's component balances by {remaining:.2f}"
            )
        shares["rent"] = to_money(shares.get("rent", 0.0) + remaining)

    return [PaymentComponentShare(t, shares[t]) for t in COMPONENT_TYPES if t in shares]


def validate_payment_allocation(shares: Iterable[PaymentComponentShare], expected_total: float) -> bool:
    actual = sum(float(s.amount) for s in shares)
    return abs(actual - float(expected_total)) < 0.01


def remaining_component_balances(
    components: Mapping[str, float],
    prior_shares: Iterable[PaymentComponentShare],
) -> dict[str, float]:
    """Component balances still owed after shares already allocated to the bill."""
    paid: dict[str, float] = {}
    for s in prior_shares:
        paid[s.component_type] = paid.get(s.component_type, 0.0) + float(s.amount)

    out: dict[str, float] = {}
    for component_type, column in COMPONENT_ORDER:
        owed = float(components.get(column) or 0.0)
        out[column] = to_money(max(0.0, owed - paid.get(component_type, 0.0)))
    return out
