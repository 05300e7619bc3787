# backend/app/domain/billing.py
"""
Billing and deposit-settlement math.

Everything here is a pure function over plain values (dates, floats, ints).
No I/O, no settings lookups, no logging: callers load records, pass the
numbers in, and persist what comes back.

Rounding:
  - electricity / water charges: half-up to centavos
  - penalty and prorated rent: half-up to whole pesos
  - settlement totals: half-up to centavos
"""
from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Union

from .money import round_half_up, to_money

# Fully-paid cycles at or above this count make the security deposit available.
DEPOSIT_FORFEITURE_THRESHOLD = 5

STATUS_ACTIVE = "active"
STATUS_PARTIALLY_PAID = "partially_paid"
STATUS_FULLY_PAID = "fully_paid"
STATUS_REFUND = "refund"

BILL_STATUSES = (STATUS_ACTIVE, STATUS_PARTIALLY_PAID, STATUS_FULLY_PAID, STATUS_REFUND)
OPEN_STATUSES = (STATUS_ACTIVE, STATUS_PARTIALLY_PAID)


class BillingInputError(ValueError):
    """Invalid caller/data input to a billing computation (bad reading, bad cycle, bad date)."""


def _as_date(v: Any, name: str) -> date:
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    raise BillingInputError(f"{name} must be a date, got {type(v).__name__}")


def _non_negative(v: Any, name: str) -> float:
    try:
        x = float(v)
    except (TypeError, ValueError):
        raise BillingInputError(f"{name} must be a number, got {v!r}") from None
    if x != x:  # NaN
        raise BillingInputError(f"{name} must be a number, got NaN")
    if x < 0:
        raise BillingInputError(f"{name} must be >= 0, got {x}")
    return x


def _count(v: Any, name: str) -> int:
    if isinstance(v, bool) or not isinstance(v, int):
        raise BillingInputError(f"{name} must be an integer, got {v!r}")
    if v < 0:
        raise BillingInputError(f"{name} must be >= 0, got {v}")
    return v


# -----------------------------
# Billing periods
# -----------------------------
def add_months(anchor: date, months: int) -> date:
    """
    `anchor` shifted by whole calendar months, keeping the anchor's day-of-month
    and clamping to the last day of shorter months (Jan 31 + 1 -> Feb 28/29).

    Always measured from the original anchor, so clamping in one month never
    leaks into later months.
    """
    total = anchor.month - 1 + int(months)
    year = anchor.year + total // 12
    month = total % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(anchor.day, last_day))


@dataclass(frozen=True)
class BillingPeriod:
    start: date
    end: date  # inclusive
    cycle_number: int

    @property
    def total_days(self) -> int:
        return (self.end - self.start).days + 1

    def contains(self, d: date) -> bool:
        return self.start <= d <= self.end


def calculate_billing_period(rent_start_date: date, cycle_number: int) -> BillingPeriod:
    """
    Calendar span of billing cycle `cycle_number` (1-based) for a tenant whose
    rent started on `rent_start_date`.

    start = anchor + (n - 1) months, end = (anchor + n months) - 1 day, both
    clamped at month end. Deriving both from the anchor keeps
    end(n) + 1 day == start(n + 1) for every n.
    """
    if isinstance(cycle_number, bool) or not isinstance(cycle_number, int):
        raise BillingInputError(f"cycle_number must be an integer, got {cycle_number!r}")
    if cycle_number < 1:
        raise BillingInputError(f"cycle_number must be >= 1, got {cycle_number}")

    anchor = _as_date(rent_start_date, "rent_start_date")
    start = add_months(anchor, cycle_number - 1)
    end = add_months(anchor, cycle_number) - timedelta(days=1)
    return BillingPeriod(start=start, end=end, cycle_number=cycle_number)


def current_billing_cycle(rent_start_date: date, today: date) -> BillingPeriod:
    """Calendar cycle containing `today` (cycle 1 if the tenancy has not started yet). Display only."""
    anchor = _as_date(rent_start_date, "rent_start_date")
    today = _as_date(today, "today")

    n = 1
    if today > anchor:
        months = (today.year - anchor.year) * 12 + (today.month - anchor.month)
        n = max(1, months)
    period = calculate_billing_period(anchor, n)
    while today > period.end:
        n += 1
        period = calculate_billing_period(anchor, n)
    return period


def calculate_due_date(billing_period_end: date, offset_days: int = 10) -> date:
    end = _as_date(billing_period_end, "billing_period_end")
    return end + timedelta(days=_count(offset_days, "offset_days"))


# -----------------------------
# Charges
# -----------------------------
def calculate_electricity_consumption(present_reading: float, previous_reading: float) -> float:
    present = _non_negative(present_reading, "present_electricity_reading")
    previous = _non_negative(previous_reading, "previous_electricity_reading")
    if present < previous:
        raise BillingInputError(
            f"present electricity reading {present:g} is below the previous reading; "
            f"expected at least {previous:g}"
        )
    return present - previous


def calculate_electricity_charge(present_reading: float, previous_reading: float, rate: float) -> float:
    """
    (present - previous) * rate, half-up to centavos.

    Raises BillingInputError when present < previous: a meter going backwards is
    a data-entry error, never a negative charge.
    """
    consumption = calculate_electricity_consumption(present_reading, previous_reading)
    return to_money(consumption * _non_negative(rate, "electricity_rate"))


def calculate_water_charge(water_rate: float) -> float:
    """
    Water is NOT metered: every cycle is charged the branch's flat water_rate,
    whatever the tenant actually used.
    """
    return to_money(_non_negative(water_rate, "water_rate"))


def calculate_penalty(
    original_total: float,
    today: date,
    due_date: date,
    penalty_percentage: float,
) -> float:
    """
    Flat one-time late penalty: 0 while today <= due_date, otherwise
    original_total * penalty_percentage / 100 rounded half-up to whole pesos.

    It does not compound with days overdue. `penalty_percentage` is always
    passed in; this module never reads the settings store.
    """
    pct = _non_negative(penalty_percentage, "penalty_percentage")
    if _as_date(today, "today") <= _as_date(due_date, "due_date"):
        return 0.0

    total = float(original_total)
    if total <= 0:
        return 0.0
    return round_half_up(total * pct / 100.0)


def calculate_prorated_rent(
    monthly_rent: float,
    period_start: date,
    period_end: date,
    actual_end_date: date,
) -> float:
    """
    Rent for the days actually occupied in a cycle, half-up to whole pesos.

        total_days    = (period_end - period_start) + 1
        days_occupied = (min(actual_end_date, period_end) - period_start) + 1

    The product is taken before the division so exact ties stay exact.
    """
    rent = _non_negative(monthly_rent, "monthly_rent")
    start = _as_date(period_start, "period_start")
    end = _as_date(period_end, "period_end")
    actual = _as_date(actual_end_date, "actual_end_date")

    if end < start:
        raise BillingInputError(f"period_end {end} is before period_start {start}")
    if actual < start:
        raise BillingInputError(f"move-out date {actual} is before the billing period start {start}")

    total_days = (end - start).days + 1
    days_occupied = (min(actual, end) - start).days + 1
    days_occupied = max(0, min(days_occupied, total_days))

    amount = Decimal(str(rent)) * days_occupied / total_days
    return float(amount.quantize(Decimal(1), rounding=ROUND_HALF_UP))


# -----------------------------
# Bill totals / status
# -----------------------------
def bill_total(
    *,
    monthly_rent_amount: float,
    electricity_amount: float,
    water_amount: float,
    extra_fee: float = 0.0,
    penalty_amount: float = 0.0,
) -> float:
    return to_money(
        float(monthly_rent_amount)
        + float(electricity_amount)
        + float(water_amount)
        + float(extra_fee or 0.0)
        + float(penalty_amount or 0.0)
    )


def bill_status(total_amount_due: float, amount_paid: float) -> str:
    total = to_money(total_amount_due)
    paid = to_money(amount_paid)
    if total < 0:
        return STATUS_REFUND
    if paid >= total:
        return STATUS_FULLY_PAID
    if paid > 0:
        return STATUS_PARTIALLY_PAID
    return STATUS_ACTIVE


# -----------------------------
# Deposits
# -----------------------------
@dataclass(frozen=True)
class DepositApplication:
    available_amount: float
    applied_amount: float
    forfeited_amount: float
    refund_amount: float


def security_deposit_available(fully_paid_cycle_count: int, is_room_transfer: bool = False) -> bool:
    return bool(is_room_transfer) or _count(fully_paid_cycle_count, "fully_paid_cycle_count") >= DEPOSIT_FORFEITURE_THRESHOLD


def calculate_deposit_application(
    fully_paid_cycle_count: int,
    advance_payment: float,
    security_deposit: float,
    outstanding_balance: float,
    is_room_transfer: bool = False,
) -> DepositApplication:
    """
    How much of the tenant's deposits offsets `outstanding_balance`.

    - 5+ fully paid cycles (entering cycle 6) or a room transfer: advance and
      security deposit are both available, nothing is forfeited.
    - Otherwise only the advance is available and the whole security deposit is
      forfeited, even when the advance alone covers the balance.

    applied = min(available, balance); refund = available - applied.
    """
    count = _count(fully_paid_cycle_count, "fully_paid_cycle_count")
    advance = _non_negative(advance_payment, "advance_payment")
    security = _non_negative(security_deposit, "security_deposit")
    balance = _non_negative(outstanding_balance, "outstanding_balance")

    if security_deposit_available(count, is_room_transfer):
        available = to_money(advance + security)
        forfeited = 0.0
    else:
        available = to_money(advance)
        forfeited = to_money(security)

    applied = min(available, to_money(balance))
    return DepositApplication(
        available_amount=available,
        applied_amount=applied,
        forfeited_amount=forfeited,
        refund_amount=to_money(available - applied),
    )


def split_applied_deposits(application: DepositApplication, advance_payment: float) -> tuple[float, float]:
    """(applied_advance_payment, applied_security_deposit): the advance is consumed first."""
    advance = _non_negative(advance_payment, "advance_payment")
    applied_advance = min(advance, application.applied_amount)
    return to_money(applied_advance), to_money(application.applied_amount - applied_advance)


# -----------------------------
# Final bill settlement
# -----------------------------
@dataclass(frozen=True)
class Due:
    amount: float
    status: str = field(default=STATUS_ACTIVE, init=False)


@dataclass(frozen=True)
class Settled:
    status: str = field(default=STATUS_FULLY_PAID, init=False)


@dataclass(frozen=True)
class Refund:
    amount: float
    status: str = field(default=STATUS_REFUND, init=False)


BillOutcome = Union[Due, Settled, Refund]


@dataclass(frozen=True)
class FinalBillCalculation:
    prorated_rent: float
    electricity_amount: float
    water_amount: float
    extra_fee: float
    outstanding_from_prior_bills: float
    total_before_deposits: float
    deposit_application: DepositApplication
    final_total: float  # >= 0; any surplus is deposit_application.refund_amount

    @property
    def outcome(self) -> BillOutcome:
        if self.deposit_application.refund_amount > 0:
            return Refund(amount=self.deposit_application.refund_amount)
        if self.final_total == 0:
            return Settled()
        return Due(amount=self.final_total)


def calculate_final_bill(
    monthly_rent: float,
    period_start: date,
    period_end: date,
    move_out_date: date,
    electricity_amount: float,
    water_amount: float,
    extra_fee: float,
    outstanding_from_prior_bills: float,
    fully_paid_cycle_count: int,
    advance_payment: float,
    security_deposit: float,
    is_room_transfer: bool = False,
) -> FinalBillCalculation:
    prorated = calculate_prorated_rent(monthly_rent, period_start, period_end, move_out_date)
    electricity = to_money(_non_negative(electricity_amount, "electricity_amount"))
    water = to_money(_non_negative(water_amount, "water_amount"))
    extra = to_money(_non_negative(extra_fee or 0.0, "extra_fee"))
    outstanding = to_money(_non_negative(outstanding_from_prior_bills or 0.0, "outstanding_from_prior_bills"))

    total_before = to_money(prorated + electricity + water + extra + outstanding)

    application = calculate_deposit_application(
        fully_paid_cycle_count,
        advance_payment,
        security_deposit,
        total_before,
        is_room_transfer,
    )

    return FinalBillCalculation(
        prorated_rent=prorated,
        electricity_amount=electricity,
        water_amount=water,
        extra_fee=extra,
        outstanding_from_prior_bills=outstanding,
        total_before_deposits=total_before,
        deposit_application=application,
        final_total=to_money(total_before - application.applied_amount),
    )


def settlement_fields(calc: FinalBillCalculation, *, advance_payment: float, security_deposit: float) -> dict[str, Any]:
    """
    Bill columns for a final bill, in the stored sign convention:
    a refund is written as negative total_amount_due == amount_paid.
    """
    outcome = calc.outcome
    app = calc.deposit_application
    applied_advance, applied_security = split_applied_deposits(app, advance_payment)

    if isinstance(outcome, Refund):
        total_amount_due = -outcome.amount
        amount_paid = -outcome.amount
    else:
        total_amount_due = calc.total_before_deposits
        amount_paid = app.applied_amount

    return {
        "status": outcome.status,
        "total_amount_due": total_amount_due,
        "amount_paid": amount_paid,
        "monthly_rent_amount": calc.prorated_rent,
        "electricity_amount": calc.electricity_amount,
        "water_amount": calc.water_amount,
        "extra_fee": calc.extra_fee,
        "penalty_amount": 0.0,
        "advance_payment": float(advance_payment),
        "security_deposit": float(security_deposit),
        "applied_advance_payment": applied_advance,
        "applied_security_deposit": applied_security,
        "forfeited_amount": app.forfeited_amount,
        "refund_amount": app.refund_amount,
    }
