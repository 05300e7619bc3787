# backend/app/services/settings_service.py
from __future__ import annotations

import logging
from typing import Iterable

from fastapi import HTTPException
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..config import settings
from ..models import Branch, SystemSetting
from ..schemas import SettingUpdate

log = logging.getLogger(__name__)

PENALTY_PERCENTAGE_KEY = "penalty_percentage"

# Setting keys whose new value is pushed onto every branch row.
BRANCH_RATE_KEYS = ("electricity_rate", "water_rate")


def get_all_settings(db: Session) -> dict[str, str]:
    rows = db.scalars(select(SystemSetting).order_by(SystemSetting.key)).all()
    return {r.key: r.value for r in rows}


def get_penalty_percentage(db: Session) -> float:
    """
    Live penalty percentage: the `penalty_percentage` row if present, else
    settings.default_penalty_percentage. A stored value that is not a
    non-negative number is a configuration error.
    """
    row = db.scalar(select(SystemSetting).where(SystemSetting.key == PENALTY_PERCENTAGE_KEY))
    if row is None:
        return float(settings.default_penalty_percentage)

    try:
        pct = float(row.value)
    except (TypeError, ValueError):
        raise HTTPException(status_code=500, detail=f"invalid penalty percentage {row.value!r}") from None
    if pct != pct or pct < 0:
        raise HTTPException(status_code=500, detail=f"invalid penalty percentage {row.value!r}")
    return pct


def _validate(update_row: SettingUpdate) -> None:
    if update_row.key == PENALTY_PERCENTAGE_KEY or update_row.key in BRANCH_RATE_KEYS:
        try:
            v = float(update_row.value)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"{update_row.key} must be numeric") from None
        if v < 0 or (update_row.key in BRANCH_RATE_KEYS and v == 0):
            raise HTTPException(status_code=400, detail=f"{update_row.key} out of range: {update_row.value}")


def upsert_settings(db: Session, updates: Iterable[SettingUpdate]) -> tuple[dict[str, str], dict[str, str]]:
    """
    Write key/value rows. Returns (before, after) maps for the audit log.
    Does not commit.
    """
    updates = list(updates)
    for u in updates:
        _validate(u)

    before = get_all_settings(db)

    for u in updates:
        row = db.scalar(select(SystemSetting).where(SystemSetting.key == u.key))
        if row is None:
            db.add(SystemSetting(key=u.key, value=u.value))
        else:
            row.value = u.value

        if u.key in BRANCH_RATE_KEYS:
            db.execute(update(Branch).values({u.key: float(u.value)}))
            log.info("branch rate synced", extra={"setting": u.key})

    db.flush()
    return before, get_all_settings(db)
