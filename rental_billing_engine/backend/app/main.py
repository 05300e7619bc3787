# backend/app/main.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm.exc import StaleDataError

from .config import settings
from .db import init_db
from .domain.billing import BillingInputError
from .domain.payment_allocation import PaymentAllocationError
from .logging_config import configure_logging

from .middleware.request_id import RequestIDMiddleware
from .middleware.structured_logging import StructuredLoggingMiddleware

from .routers.health import router as health_router
from .routers.branches import router as branches_router
from .routers.tenants import router as tenants_router
from .routers.bills import router as bills_router
from .routers.payments import router as payments_router
from .routers.settings import router as settings_router
from .routers.reports import router as reports_router
from .routers.audit import router as audit_router

API_PREFIX = "/api"

log = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    val = getattr(settings, "cors_allow_origins", ["*"])
    if isinstance(val, str):
        v = val.strip()
        return ["*"] if v == "*" else [x.strip() for x in v.split(",") if x.strip()]
    if isinstance(val, list) and val:
        return val
    return ["*"]


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(BillingInputError)
    async def _billing_input(request: Request, exc: BillingInputError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(PaymentAllocationError)
    async def _allocation(request: Request, exc: PaymentAllocationError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(StaleDataError)
    async def _stale(request: Request, exc: StaleDataError):
        log.warning("concurrent bill update rejected", extra={"path": request.url.path})
        return JSONResponse(
            status_code=409,
            content={"detail": "bill was modified by another request; reload and retry"},
        )


def create_app() -> FastAPI:
    configure_logging()
    init_db()

    app = FastAPI(title="Rental Billing Engine", version=settings.app_version)

    # Request-ID first so every later log line carries it
    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_error_handlers(app)

    app.include_router(health_router, prefix=API_PREFIX)
    app.include_router(branches_router, prefix=API_PREFIX)
    app.include_router(tenants_router, prefix=API_PREFIX)
    app.include_router(bills_router, prefix=API_PREFIX)
    app.include_router(payments_router, prefix=API_PREFIX)
    app.include_router(settings_router, prefix=API_PREFIX)
    app.include_router(reports_router, prefix=API_PREFIX)
    app.include_router(audit_router, prefix=API_PREFIX)

    return app


app = create_app()
