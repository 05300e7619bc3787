# backend/app/auth.py
from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request

from .config import settings


@dataclass(frozen=True)
class Principal:
    email: str
    role: str  # admin | staff


ROLE_ORDER = {"staff": 1, "admin": 2}


def _require_role(principal: Principal, min_role: str) -> None:
    if ROLE_ORDER.get(principal.role, 0) < ROLE_ORDER.get(min_role, 999):
        raise HTTPException(status_code=403, detail=f"Requires role >= {min_role}")


def get_principal(request: Request) -> Principal:
    """
    Identity comes from the external auth provider, which fronts this service
    and forwards the user as headers.

    auth_mode == "dev" trusts the headers as sent (local + tests). Any other
    mode requires the upstream provider to have set them; this service never
    issues or verifies credentials itself.
    """
    email = (request.headers.get(settings.dev_header_user_email) or "").strip().lower()
    role = (request.headers.get(settings.dev_header_user_role) or "staff").strip().lower()

    if not email:
        raise HTTPException(status_code=401, detail=f"Missing {settings.dev_header_user_email}")
    if role not in ROLE_ORDER:
        raise HTTPException(status_code=403, detail=f"Unknown role {role!r}")

    return Principal(email=email, role=role)


def require_admin(p: Principal = Depends(get_principal)) -> Principal:
    _require_role(p, "admin")
    return p
