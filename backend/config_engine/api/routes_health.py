import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config_engine.infra.db import get_session_factory

router = APIRouter()
logger = logging.getLogger(__name__)

_DB_CHECK_TIMEOUT_SECONDS = 2.0


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.head("/healthz")
async def healthz_head() -> Response:
    return Response(status_code=200)


async def _db_check() -> tuple[bool, dict[str, Any]]:
    async def _ping_db():
        async with get_session_factory()() as session:
            await session.execute(text("SELECT 1"))

    try:
        await asyncio.wait_for(_ping_db(), timeout=_DB_CHECK_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        return False, {"message": "database check timed out", "timeout_seconds": _DB_CHECK_TIMEOUT_SECONDS}
    except Exception as exc:  # noqa: BLE001
        logger.debug("database_check_failed", exc_info=exc)
        return False, {"message": "database check failed", "error": exc.__class__.__name__}

    return True, {"message": "database reachable"}


@router.get("/readyz")
async def readyz(request: Request) -> JSONResponse:
    app_settings = request.app.state.app_settings
    if app_settings.store_backend != "sql":
        return JSONResponse({"status": "ok", "store_backend": app_settings.store_backend})

    ok, details = await _db_check()
    return JSONResponse(
        {"status": "ok" if ok else "unavailable", "store_backend": "sql", "database": details},
        status_code=200 if ok else 503,
    )
