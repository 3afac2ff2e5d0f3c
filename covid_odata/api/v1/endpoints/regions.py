# covid_odata/api/v1/endpoints/regions.py
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from covid_odata.api.v1.endpoints.odata import collection_payload, count_response, entity_payload
from covid_odata.core.config import settings
from covid_odata.domain.odata.edm import REGIONS
from covid_odata.infra.db.session import get_db
from covid_odata.schemas.odata_schemas import ERROR_RESPONSES

router = APIRouter(tags=["regions"], responses=ERROR_RESPONSES)


@router.get("/Regions")
async def list_regions(request: Request, db: AsyncSession = Depends(get_db)):
    return await collection_payload(
        request,
        db,
        REGIONS,
        page_size=settings.REGIONS_PAGE_SIZE,
        max_top=settings.REGIONS_MAX_TOP,
    )


@router.get("/Regions/$count")
async def count_regions(request: Request, db: AsyncSession = Depends(get_db)):
    return await count_response(request, db, REGIONS)


@router.get("/Regions({key})")
async def get_region(key: str, request: Request, db: AsyncSession = Depends(get_db)):
    return await entity_payload(request, db, REGIONS, key)
