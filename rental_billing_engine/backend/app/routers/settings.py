# backend/app/routers/settings.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_principal, require_admin
from ..db import get_db
from ..domain.audit import audit_write
from ..schemas import SettingsBatchIn
from ..services.settings_service import get_all_settings, get_penalty_percentage, upsert_settings

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("", response_model=dict)
def read_settings(db: Session = Depends(get_db), p=Depends(get_principal)):
    return {"settings": get_all_settings(db), "penalty_percentage": get_penalty_percentage(db)}


@router.put("", response_model=dict)
def write_settings(payload: SettingsBatchIn, db: Session = Depends(get_db), p=Depends(require_admin)):
    before, after = upsert_settings(db, payload.updates)
    audit_write(
        db,
        actor_email=p.email,
        action="settings.update",
        entity_type="SystemSetting",
        entity_id=",".join(sorted(u.key for u in payload.updates)),
        before=before,
        after=after,
    )
    db.commit()
    return {"settings": after, "penalty_percentage": get_penalty_percentage(db)}
