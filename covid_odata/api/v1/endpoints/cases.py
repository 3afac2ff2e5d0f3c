# covid_odata/api/v1/endpoints/cases.py
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from covid_odata.api.v1.endpoints.odata import collection_payload, count_response, entity_payload
from covid_odata.core.config import settings
from covid_odata.domain.odata.edm import CASES
from covid_odata.infra.db.session import get_db
from covid_odata.schemas.odata_schemas import ERROR_RESPONSES

router = APIRouter(tags=["cases"], responses=ERROR_RESPONSES)


@router.get("/Cases")
async def list_cases(request: Request, db: AsyncSession = Depends(get_db)):
    return await collection_payload(
        request,
        db,
        CASES,
        page_size=settings.CASES_PAGE_SIZE,
        max_top=settings.CASES_MAX_TOP,
    )


@router.get("/Cases/$count")
async def count_cases(request: Request, db: AsyncSession = Depends(get_db)):
    return await count_response(request, db, CASES)


@router.get("/Cases({key})")
async def get_case(key: str, request: Request, db: AsyncSession = Depends(get_db)):
    return await entity_payload(request, db, CASES, key)
