# ledger/main.py
from __future__ import annotations

import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from ledger.config import get_settings
from ledger.db import get_session
from ledger.errors import AppError
from ledger.observability import RequestLogMiddleware, configure_logging
from ledger.repositories.container import build_repositories
from ledger.routers.admin import router as admin_router
from ledger.routers.analyze import router as analyze_router
from ledger.routers.budgets import router as budgets_router
from ledger.routers.categories import router as categories_router
from ledger.routers.holidays import router as holidays_router
from ledger.routers.payment_methods import router as payment_methods_router
from ledger.routers.recurring import router as recurring_router
from ledger.routers.reports import monthly_router, weekly_router
from ledger.routers.system import router as system_router
from ledger.routers.transactions import router as transactions_router
from ledger.routers.transactions_import import router as tx_import_router
from ledger.services.categories import seed_default_categories

settings = get_settings()
logger = logging.getLogger("ledger.app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    # same session source as the requests (tests override it)
    session_factory = app.dependency_overrides.get(get_session, get_session)
    sessions = session_factory()
    try:
        seed_default_categories(build_repositories(next(sessions)))
    except SQLAlchemyError:
        logger.warning("could not seed categories; run `alembic upgrade head`", exc_info=True)
    finally:
        sessions.close()
    yield


app = FastAPI(title="Smart Ledger", version="0.1.0", lifespan=lifespan)

app.add_middleware(RequestLogMiddleware)


# ---- error mapping -----------------------------------------------------------


def _trace(request: Request):
    return getattr(request.state, "trace_id", None)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s trace=%s", request.method, request.url.path, exc.message, _trace(request))
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = []
    for err in exc.errors():
        # drop the "body" / "query" prefix: clients know their own field names
        loc = [str(part) for part in err.get("loc", ())][1:] or ["request"]
        details.append({"field": ".".join(loc), "message": err.get("msg", "invalid value")})
    return JSONResponse(
        {"error": "Validation failed", "code": "VALIDATION_ERROR", "details": details},
        status_code=400,
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled error on %s %s trace=%s", request.method, request.url.path, _trace(request))
    body = {"error": "Internal server error", "code": "INTERNAL_ERROR"}
    if settings.is_development:
        body["message"] = str(exc)
        body["stack"] = traceback.format_exc()
    return JSONResponse(body, status_code=500)


# ---- routers -------------------------------------------------------------------

app.include_router(system_router)
# before transactions: /export etc. must not be read as /{txn_id}
app.include_router(tx_import_router)
app.include_router(transactions_router)
app.include_router(categories_router)
app.include_router(payment_methods_router)
app.include_router(recurring_router)
app.include_router(budgets_router)
app.include_router(weekly_router)
app.include_router(monthly_router)
app.include_router(analyze_router)
app.include_router(holidays_router)
app.include_router(admin_router)
