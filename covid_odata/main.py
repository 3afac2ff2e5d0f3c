# covid_odata/main.py
import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from covid_odata.api.v1.router import api_router_v1, lab_router, odata_router
from covid_odata.core.config import settings
from covid_odata.core.logging import setup_logging
from covid_odata.core.rate_limit import limiter, rate_limit_exceeded_handler
from covid_odata.domain.odata.errors import ODataError
from covid_odata.infra.db.session import engine, init_db
from covid_odata.schemas.odata_schemas import ODataErrorDetail, ODataErrorResponse

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"🚀 Starting {settings.PROJECT_NAME} ({settings.ENVIRONMENT})")

    app.state.redis = None
    if settings.REDIS_URL:
        try:
            app.state.redis = aioredis.from_url(settings.REDIS_URL, encoding="utf-8", decode_responses=True)
            await app.state.redis.ping()
            logger.info("✅ Connected to Redis")
        except Exception as e:
            logger.error(f"❌ Could not connect to Redis: {e}")
            app.state.redis = None

    if settings.ENVIRONMENT == "development":
        await init_db()

    yield

    if app.state.redis is not None:
        await app.state.redis.aclose()
        logger.info("🔌 Disconnected from Redis")
    await engine.dispose()
    logger.info(f"🛑 Stopped {settings.PROJECT_NAME}")


def create_app() -> FastAPI:
    setup_logging()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.PROJECT_VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    app.add_exception_handler(ODataError, _odata_error_handler)

    # Routers
    app.include_router(odata_router)
    app.include_router(lab_router)
    app.include_router(api_router_v1)

    @app.get("/")
    async def root():
        return {"service": settings.PROJECT_NAME, "status": "ok", "odata": settings.ODATA_PREFIX}

    return app


def _odata_error_handler(request: Request, exc: ODataError):
    if exc.status_code >= 500:
        logger.error(f"OData error on {request.url.path}: {exc.message}")
    else:
        logger.info(f"Rejected {request.url.path}: {exc.message}")
    body = ODataErrorResponse(error=ODataErrorDetail(message=exc.message))
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


app = create_app()
