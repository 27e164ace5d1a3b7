"""Liveness, readiness and version endpoints."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from wild90.config import get_settings
from wild90.database import get_session
from wild90.db.models import EntityRow
from wild90.redis_client import get_redis

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    request: Request,
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict[str, object]:
    """Ready once the database answers and, if configured, Redis does too.

    An empty catalog is reported but does not fail readiness; every scan
    would simply come back as "no bug detected". The camera is informational.
    """
    checks: dict[str, object] = {}
    info: dict[str, object] = {}

    try:
        info["catalog_entities"] = (await db.execute(select(func.count(EntityRow.id)))).scalar_one()
        checks["database"] = "ok"
    except Exception as exc:
        checks["database"] = f"error: {exc}"

    redis = get_redis()
    if redis is not None:
        try:
            await redis.ping()
            checks["redis"] = "ok"
        except Exception as exc:
            checks["redis"] = f"error: {exc}"

    runtime = getattr(request.app.state, "runtime", None)
    if runtime is not None:
        info["camera"] = runtime.camera.status()
        info["scan_phase"] = runtime.pipeline.phase.value

    ready = all(value == "ok" for value in checks.values())
    return {"status": "ready" if ready else "degraded", "checks": checks, "info": info}


@router.get("/version")
async def version() -> dict[str, str]:
    settings = get_settings()
    return {"version": settings.app_version, "environment": settings.environment}
