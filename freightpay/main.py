from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from freightpay import db
from freightpay.config import AppInfo, Settings, get_settings
from freightpay.core.logging import get_logger, setup_logging
import freightpay.models  # registers the tables
from freightpay.routers import get_api_router
from freightpay.services.rate_table import seed_default_rate_tiers
from freightpay.utils.errors import DomainError, InvalidTransition, error_response

logger = get_logger(__name__)
ALLOWED_CREATE_ENV = {"dev", "local", "test"}


def _current_settings() -> Settings:
    return get_settings()


def _configure_middlewares(fastapi_app: FastAPI) -> None:
    """Configure middleware using a fresh snapshot of the settings."""

    runtime_settings = _current_settings()
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=runtime_settings.CORS_ALLOW_ORIGINS,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )

    if runtime_settings.PROMETHEUS_ENABLED:
        from starlette_exporter import PrometheusMiddleware, handle_metrics

        fastapi_app.add_middleware(PrometheusMiddleware)
        fastapi_app.add_route("/metrics", handle_metrics)

    if runtime_settings.SENTRY_DSN:
        import sentry_sdk

        sentry_sdk.init(dsn=runtime_settings.SENTRY_DSN, traces_sample_rate=0.2)


def _assert_payfast_passphrase(settings: Settings) -> None:
    """Fail fast when the PayFast passphrase is missing outside dev."""

    env_lower = settings.app_env.lower()
    if env_lower != "dev" and not settings.payfast_passphrase:
        logger.error(
            "PayFast passphrase is missing; configure PAYFAST_PASSPHRASE before startup.",
            extra={"env": settings.app_env},
        )
        raise RuntimeError("Missing PayFast passphrase in non-dev environment.")
    if not settings.payfast_passphrase:
        logger.warning(
            "PayFast passphrase is not configured; allowed in dev only.",
            extra={"env": settings.app_env},
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = _current_settings()
    setup_logging(settings.LOG_LEVEL)
    logger.info("Application startup", extra={"env": settings.app_env})
    _assert_payfast_passphrase(settings)

    db.init_engine()
    env_lower = settings.app_env.lower()
    if settings.ALLOW_DB_CREATE_ALL and env_lower in ALLOWED_CREATE_ENV:
        logger.warning(
            "Running Base.metadata.create_all() because APP_ENV=%s and ALLOW_DB_CREATE_ALL=True",
            settings.app_env,
        )
        db.create_all()
    else:
        logger.info(
            "Skipping create_all(); use Alembic migrations. APP_ENV=%s, ALLOW_DB_CREATE_ALL=%s",
            settings.app_env,
            settings.ALLOW_DB_CREATE_ALL,
        )

    if settings.SEED_RATE_TIERS:
        session = db.get_sessionmaker()()
        try:
            seed_default_rate_tiers(session)
        finally:
            session.close()

    try:
        yield
    finally:
        db.close_engine()
        logger.info("Application shutdown", extra={"env": settings.app_env})


app_info = AppInfo()

app = FastAPI(title=app_info.name, version=app_info.version, lifespan=lifespan)

_configure_middlewares(app)
app.include_router(get_api_router())


@app.exception_handler(DomainError)
async def domain_exception_handler(request: Request, exc: DomainError) -> JSONResponse:
    if isinstance(exc, InvalidTransition):
        logger.error("Invalid payment transition", extra={"path": request.url.path, "details": exc.details})
    else:
        logger.info(
            "Domain error",
            extra={"path": request.url.path, "code": exc.code, "status_code": exc.status_code},
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception", exc_info=exc)
    payload = error_response("INTERNAL_SERVER_ERROR", "An unexpected error occurred.")
    return JSONResponse(status_code=500, content=payload)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, dict) and "error" in detail:
        content: dict[str, Any] = detail
    else:
        content = error_response("HTTP_ERROR", str(detail))
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


__all__ = ["app"]
