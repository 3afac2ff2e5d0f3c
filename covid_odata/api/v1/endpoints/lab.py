# covid_odata/api/v1/endpoints/lab.py
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from covid_odata.core.config import settings
from covid_odata.domain.odata.edm import CASES, REGIONS, EntitySet
from covid_odata.domain.odata.query_options import parse_query_options
from covid_odata.domain.services.odata_service import query_collection
from covid_odata.infra.db.session import get_db
from covid_odata.schemas.odata_schemas import ERROR_RESPONSES

router = APIRouter(prefix="/api/Lab", tags=["lab"], responses=ERROR_RESPONSES)


async def _plain_list(request: Request, db: AsyncSession, entity_set: EntitySet) -> list:
    # attribute-routed: same query options, bare JSON array, no nextLink
    options = parse_query_options(dict(request.query_params), entity_set, settings.LAB_MAX_TOP)
    result = await query_collection(db, entity_set, options, settings.LAB_PAGE_SIZE)
    return result.value


@router.get("/countries")
async def lab_countries(request: Request, db: AsyncSession = Depends(get_db)):
    return await _plain_list(request, db, REGIONS)


@router.get("/cases")
async def lab_cases(request: Request, db: AsyncSession = Depends(get_db)):
    return await _plain_list(request, db, CASES)
