# backend/booking_core/main.py

import logging
import os
import time

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.exc import TimeoutError as SA_TimeoutError
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import models  # noqa: F401  registers every table on Base.metadata
from .api import (
    api_admin,
    api_booking,
    api_notification,
    api_ops,
    api_payment,
    api_performer,
    api_quote,
    api_service,
    api_vetting,
    auth,
)
from .core.config import settings
from .core.observability import setup_logging
from .database import Base, SessionLocal, engine
from .utils.errors import BookingCoreError
from .utils.status_logger import register_status_listeners

setup_logging()
logger = logging.getLogger(__name__)

register_status_listeners()

_BOOT_TS = time.time()

Base.metadata.create_all(bind=engine)

app = FastAPI(title="Entertainer Booking API", default_response_class=ORJSONResponse)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.rstrip("/") for origin in settings.CORS_ORIGINS],
    allow_credentials="*" not in settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)
logger.info("CORS origins set to: %s", settings.CORS_ORIGINS)


@app.middleware("http")
async def catch_exceptions(request: Request, call_next):
    """Return JSON responses for HTTP errors and log them."""
    try:
        response = await call_next(request)
    except StarletteHTTPException as exc:  # return the original status and detail
        logger.error(
            "HTTP error %s at %s: %s", exc.status_code, request.url.path, exc.detail
        )
        response = ORJSONResponse(
            status_code=exc.status_code, content={"detail": exc.detail}
        )
    except SA_TimeoutError as exc:  # DB pool timeout -> 503 to reduce retry storms
        logger.error("DB timeout at %s: %s", request.url.path, str(exc))
        response = ORJSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Database busy, please retry"},
        )
    except Exception as exc:  # pragma: no cover - generic handler
        logger.exception("Unhandled error: %s", exc)
        response = ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal Server Error"},
        )
    return response


@app.exception_handler(BookingCoreError)
async def booking_core_exception_handler(request: Request, exc: BookingCoreError):
    """Report domain errors as ``{"detail": {"message", "field_errors", "code"}}``."""
    http_exc = exc.to_http()
    return ORJSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error at %s: %s", request.url.path, exc)
    return ORJSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal Server Error"},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Return validation errors with details and log them for debugging."""
    errors = exc.errors()
    logger.warning("Validation error at %s: %s", request.url.path, errors)
    field_errors = {
        ".".join(str(part) for part in err.get("loc", ())[1:]) or "body": err.get("msg", "invalid")
        for err in errors
    }
    return ORJSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": {
                "message": "Request validation failed",
                "field_errors": field_errors,
                "code": "validation_error",
            }
        },
    )


@app.get("/healthz", tags=["health"])
def healthz():
    """Liveness plus a database round trip."""
    started = time.perf_counter()
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.warning("Health check database ping failed: %s", exc)
        return ORJSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "degraded", "db": "unavailable"},
        )
    return {
        "status": "ok",
        "db_ms": round((time.perf_counter() - started) * 1000, 1),
        "uptime_s": round(time.time() - _BOOT_TS, 1),
        "pid": os.getpid(),
    }


api_prefix = settings.API_V1_STR  # usually something like "/api/v1"


# ─── AUTH ROUTES (no version prefix) ────────────────────────────────────────────────
# Clients will POST to /auth/register and /auth/login
app.include_router(auth.router, prefix="/auth", tags=["auth"])

# ─── OPS ROUTES (external cron) ────────────────────────────────────────────────────
app.include_router(api_ops.router, prefix="", tags=["ops"])

# ─── VERSIONED API ─────────────────────────────────────────────────────────────────
app.include_router(api_service.router, prefix=f"{api_prefix}/services", tags=["services"])
app.include_router(api_performer.router, prefix=f"{api_prefix}/performers", tags=["performers"])
app.include_router(api_quote.router, prefix=f"{api_prefix}/quotes", tags=["quotes"])
app.include_router(api_booking.router, prefix=f"{api_prefix}/bookings", tags=["bookings"])
app.include_router(api_payment.router, prefix=f"{api_prefix}", tags=["payments"])
app.include_router(api_vetting.router, prefix=f"{api_prefix}/vetting", tags=["vetting"])
app.include_router(api_admin.router, prefix=f"{api_prefix}", tags=["admin"])
app.include_router(api_notification.router, prefix=f"{api_prefix}", tags=["notifications"])


# ─── A simple root check ─────────────────────────────────────────────────────────────
@app.get("/")
async def root():
    return {"message": "Welcome to the Entertainer Booking API"}
