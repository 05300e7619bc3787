# backend/app/domain/money.py
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

_CENTAVO = Decimal("0.01")


def round_half_up(value: float, places: int = 0) -> float:
    """
    Round half away from zero at `places` decimals.

    Goes through str() so that binary float noise (e.g. 2.675 stored as
    2.67499999...) does not decide which way a tie falls.
    """
    q = Decimal(1).scaleb(-int(places))
    return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))


def to_money(value: float) -> float:
    return float(Decimal(str(value)).quantize(_CENTAVO, rounding=ROUND_HALF_UP))


def money_equal(a: float, b: float) -> bool:
    return to_money(a) == to_money(b)
