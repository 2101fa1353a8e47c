import asyncio
import logging
import time
from typing import Any

from alembic.config import Config
from alembic.script import ScriptDirectory
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from startronics.domain.repairs import service as repairs_service

router = APIRouter()
logger = logging.getLogger(__name__)

_HEAD_CACHE: dict[str, Any] = {"timestamp": 0.0, "heads": None, "skip_reason": None, "warning_logged": False}
_HEAD_CACHE_TTL_SECONDS = 60
_DB_CHECK_TIMEOUT_SECONDS = 2.0


def _load_expected_heads() -> tuple[list[str] | None, str | None]:
    """Load expected Alembic heads with a short-lived cache.

    Returns (heads, skip_reason). When the migration scripts are not shipped
    next to the service, heads is None and skip_reason says why.
    """

    now = time.monotonic()
    if now - _HEAD_CACHE["timestamp"] < _HEAD_CACHE_TTL_SECONDS:
        return _HEAD_CACHE["heads"], _HEAD_CACHE["skip_reason"]

    try:
        cfg = Config("alembic.ini")
        cfg.set_main_option("script_location", "alembic")
        heads = list(ScriptDirectory.from_config(cfg).get_heads())
        _HEAD_CACHE.update({"timestamp": now, "heads": heads, "skip_reason": None})
        return heads, None
    except Exception as exc:  # noqa: BLE001
        skip_reason = "skipped_no_alembic_files"
        if not _HEAD_CACHE["warning_logged"]:
            logger.warning(
                "migrations_check_skipped_no_alembic_files",
                extra={"extra": {"error": str(exc), "error_type": type(exc).__name__}},
            )
            _HEAD_CACHE["warning_logged"] = True
        _HEAD_CACHE.update({"timestamp": now, "heads": None, "skip_reason": skip_reason})
        return None, skip_reason


@router.get("/health")
async def health(request: Request) -> dict[str, str]:
    app_settings = request.app.state.app_settings
    return {"status": "ok", "service": app_settings.app_name, "version": app_settings.app_version}


@router.get("/db/health")
async def db_health(request: Request) -> dict[str, Any]:
    session_factory = getattr(request.app.state, "db_session_factory", None)
    if session_factory is None:
        return {"status": "error", "error": "database session factory unavailable"}
    try:
        async with session_factory() as session:
            count = await repairs_service.count_requests(session)
    except SQLAlchemyError as exc:
        logger.warning("db_health_failed", extra={"extra": {"error_type": type(exc).__name__}})
        return {"status": "error", "error": str(getattr(exc, "orig", None) or exc)}
    return {"status": "ok", "table": "repair_requests", "count": count}


async def _current_revision(session) -> str | None:
    try:
        result = await session.execute(text("SELECT version_num FROM alembic_version"))
    except SQLAlchemyError:
        return None
    row = result.first()
    return row[0] if row else None


@router.get("/readyz")
async def readyz(request: Request) -> JSONResponse:
    session_factory = getattr(request.app.state, "db_session_factory", None)
    expected_heads, skip_reason = _load_expected_heads()
    checks: dict[str, Any] = {}
    ok = True

    if session_factory is None:
        return JSONResponse(
            status_code=503,
            content={"status": "error", "checks": {"db": {"ok": False, "message": "session factory unavailable"}}},
        )

    async def _probe() -> str | None:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
            return await _current_revision(session)

    try:
        current = await asyncio.wait_for(_probe(), timeout=_DB_CHECK_TIMEOUT_SECONDS)
        checks["db"] = {"ok": True, "message": "database reachable"}
    except asyncio.TimeoutError:
        ok = False
        current = None
        checks["db"] = {"ok": False, "message": "database check timed out"}
    except SQLAlchemyError as exc:
        ok = False
        current = None
        checks["db"] = {"ok": False, "message": "database check failed", "error": type(exc).__name__}

    if skip_reason:
        checks["migrations"] = {"ok": True, "migrations_check": skip_reason}
    else:
        migrations_current = bool(expected_heads) and current in expected_heads
        ok = ok and migrations_current
        checks["migrations"] = {
            "ok": migrations_current,
            "current_version": current,
            "expected_heads": expected_heads,
        }

    return JSONResponse(
        status_code=200 if ok else 503,
        content={"status": "ok" if ok else "error", "checks": checks},
    )
