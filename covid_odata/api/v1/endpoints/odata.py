# covid_odata/api/v1/endpoints/odata.py
from typing import Any, Dict

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession

from covid_odata.core.config import settings
from covid_odata.domain.odata.edm import ENTITY_SETS, EntitySet, build_csdl
from covid_odata.domain.odata.errors import ODataError
from covid_odata.domain.odata.query_options import SINGLE_ENTITY_OPTIONS, parse_query_options
from covid_odata.domain.services.odata_service import (
    build_payload,
    count_collection,
    get_entity,
    query_collection,
)

router = APIRouter(tags=["odata"])


def service_root(request: Request) -> str:
    return str(request.base_url).rstrip("/") + settings.ODATA_PREFIX


async def collection_payload(
    request: Request,
    db: AsyncSession,
    entity_set: EntitySet,
    page_size: int,
    max_top: int,
) -> Dict[str, Any]:
    params = dict(request.query_params)
    options = parse_query_options(params, entity_set, max_top)
    result = await query_collection(db, entity_set, options, page_size)
    return build_payload(
        result,
        service_root=service_root(request),
        request_url=str(request.url.replace(query="")),
        params=params,
    )


async def count_response(request: Request, db: AsyncSession, entity_set: EntitySet) -> PlainTextResponse:
    options = parse_query_options(dict(request.query_params), entity_set)
    total = await count_collection(db, entity_set, options)
    return PlainTextResponse(str(total))


async def entity_payload(
    request: Request,
    db: AsyncSession,
    entity_set: EntitySet,
    key: str,
) -> Dict[str, Any]:
    try:
        key_value = int(key)
    except ValueError:
        raise ODataError(f"The key value '{key}' is not a valid Edm.Int32.")
    options = parse_query_options(dict(request.query_params), entity_set, allowed=SINGLE_ENTITY_OPTIONS)
    result = await get_entity(db, entity_set, key_value, options)
    return {"@odata.context": f"{service_root(request)}/$metadata#{result.context}", **result.value[0]}


@router.get("")
async def service_document(request: Request):
    root = service_root(request)
    return {
        "@odata.context": f"{root}/$metadata",
        "value": [{"name": name, "kind": "EntitySet", "url": name} for name in ENTITY_SETS],
    }


@router.get("/$metadata")
async def metadata():
    return Response(content=build_csdl(), media_type="application/xml")
