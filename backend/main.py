"""
Restaurant Order Service — FastAPI Application

Order submission (validate → rate-limit → store → confirm → WhatsApp),
order lookup/history, and WhatsApp confirmations with an audit trail.
"""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import settings
from database import engine, init_db
from domain.errors import DomainError
from domain.responses import error_response
from routes import health, notifications, orders

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: check settings, create the SQLite data dir and tables."""
    settings.validate_production_settings()

    if settings.database_url.startswith("sqlite:///./"):
        os.makedirs(os.path.dirname(settings.database_url.removeprefix("sqlite:///")), exist_ok=True)

    await init_db()
    logger.info(
        f"Order service ready (env={settings.environment}, "
        f"whatsapp={'on' if settings.messaging_configured else 'off'})"
    )

    yield

    await engine.dispose()
    logger.info("Order service stopped")


app = FastAPI(
    title="Restaurant Order Service API",
    description="Food order submission with WhatsApp confirmations",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(orders.router)
app.include_router(notifications.router)


# ── Error envelopes ─────────────────────────────────────────────────


def _error_code(exc: DomainError) -> str:
    """NotFoundError → "notfound", DispatchError → "dispatch"."""
    return exc.__class__.__name__.removesuffix("Error").lower()


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(_error_code(exc), exc.message, exc.details or None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies (missing fields, wrong types) keep FastAPI's 422."""
    return JSONResponse(
        status_code=422,
        content=error_response("invalid_request", "Malformed request", {"errors": _validation_errors(exc)}),
    )


def _validation_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    message = detail if isinstance(detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response("http_error", message, None if isinstance(detail, str) else detail),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch-all. The traceback is logged; clients only get a generic 500."""
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response("internal_server_error", "Internal server error"),
    )


if __name__ == "__main__":
    import uvicorn
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port, log_level="info")
