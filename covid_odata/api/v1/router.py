# covid_odata/api/v1/router.py
from fastapi import APIRouter

from covid_odata.api.v1.endpoints.cases import router as cases_router
from covid_odata.api.v1.endpoints.health import router as health_router
from covid_odata.api.v1.endpoints.lab import router as lab_router
from covid_odata.api.v1.endpoints.odata import router as service_router
from covid_odata.api.v1.endpoints.regions import router as regions_router
from covid_odata.core.config import settings


api_router_v1 = APIRouter(prefix="/api/v1")
api_router_v1.include_router(health_router)

odata_router = APIRouter()
odata_router.include_router(service_router, prefix=settings.ODATA_PREFIX)
odata_router.include_router(cases_router, prefix=settings.ODATA_PREFIX)
odata_router.include_router(regions_router, prefix=settings.ODATA_PREFIX)

__all__ = ["api_router_v1", "odata_router", "lab_router"]
