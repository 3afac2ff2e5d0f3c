# covid_odata/api/v1/endpoints/health.py
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from covid_odata.core.config import settings
from covid_odata.domain.odata.edm import ENTITY_SETS
from covid_odata.infra.db.session import get_db
from covid_odata.schemas.health_schemas import ComponentStatus, HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request, db: AsyncSession = Depends(get_db)):
    components = {}
    row_counts = {}

    # DB
    started = time.perf_counter()
    try:
        for name, es in ENTITY_SETS.items():
            row_counts[name] = await db.scalar(select(func.count()).select_from(es.model))
        components["database"] = ComponentStatus(
            status="operational",
            detail="Database connection OK",
            latency_ms=round((time.perf_counter() - started) * 1000, 2),
        )
    except Exception as e:
        components["database"] = ComponentStatus(status="down", detail=f"Database error: {e}")

    # Redis (optional)
    redis = getattr(request.app.state, "redis", None)
    if not settings.REDIS_URL:
        components["redis"] = ComponentStatus(status="disabled", detail="REDIS_URL not configured")
    elif redis is None:
        components["redis"] = ComponentStatus(status="degraded", detail="Not connected")
    else:
        started = time.perf_counter()
        try:
            await redis.ping()
            components["redis"] = ComponentStatus(
                status="operational",
                latency_ms=round((time.perf_counter() - started) * 1000, 2),
            )
        except Exception as e:
            components["redis"] = ComponentStatus(status="degraded", detail=f"Redis error: {e}")

    if components["database"].status != "operational":
        overall = "down"
    elif components["redis"].status == "degraded":
        overall = "degraded"
    else:
        overall = "operational"

    return HealthResponse(
        service=settings.PROJECT_NAME,
        version=settings.PROJECT_VERSION,
        status=overall,
        checked_at=datetime.now(timezone.utc).isoformat(),
        components=components,
        row_counts=row_counts,
    )
