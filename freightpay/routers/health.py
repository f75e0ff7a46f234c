"""Health check endpoint."""
from __future__ import annotations

import hashlib
import logging

from alembic.config import Config
from alembic.script import ScriptDirectory
from fastapi import APIRouter
from sqlalchemy import text

from freightpay.config import Settings, get_settings
from freightpay.db import get_engine

router = APIRouter(prefix="/health", tags=["health"])
logger = logging.getLogger(__name__)


def _db_status() -> str:
    """Return 'ok' if the DB is reachable, 'error' otherwise."""

    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return "ok"
    except Exception:  # noqa: BLE001
        logger.exception("DB health check failed")
        return "error"


def _expected_migration_head() -> str | None:
    try:
        config = Config("alembic.ini")
        script = ScriptDirectory.from_config(config)
        return script.get_current_head()
    except Exception:  # noqa: BLE001
        logger.exception("Failed to load Alembic head revision")
        return None


def _migrations_status() -> tuple[bool, str]:
    expected_head = _expected_migration_head()
    try:
        engine = get_engine()
        with engine.connect() as conn:
            current = conn.execute(text("SELECT version_num FROM alembic_version")).scalar()
        if expected_head is None:
            return False, "unknown"
        if current == expected_head:
            return True, "up_to_date"
        return False, "out_of_date"
    except Exception:  # noqa: BLE001
        logger.exception("Migration check failed")
        return False, "unknown"


def _fingerprint(value: str | None) -> str | None:
    if not value:
        return None
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:8]


def _payfast_status(settings: Settings) -> dict[str, object]:
    return {
        "mode": "sandbox" if settings.PAYFAST_SANDBOX else "live",
        "merchant_configured": bool(settings.PAYFAST_MERCHANT_ID and settings.PAYFAST_MERCHANT_KEY),
        "passphrase_configured": bool(settings.payfast_passphrase),
        "passphrase_fingerprint": _fingerprint(settings.payfast_passphrase),
        "gateway_validation": bool(settings.PAYFAST_VERIFY_WITH_GATEWAY),
    }


@router.get("", summary="Health check")
def healthcheck() -> dict[str, object]:
    """Return DB, migration and integration configuration status."""

    settings = get_settings()
    db_status = _db_status()
    db_ok = db_status == "ok"
    if db_ok:
        migration_ok, migration_status = _migrations_status()
    else:
        migration_ok, migration_status = False, "unknown"
    degraded = not (db_ok and migration_ok)
    return {
        "status": "degraded" if degraded else "ok",
        "db_ok": db_ok,
        "db_status": db_status,
        "migrations_ok": migration_ok,
        "migrations_status": migration_status,
        "payfast": _payfast_status(settings),
        "gateway_mode": settings.GATEWAY_MODE,
        "routing": {
            "provider_configured": bool(settings.MAPBOX_ACCESS_TOKEN),
            "fallback": "haversine",
        },
    }
