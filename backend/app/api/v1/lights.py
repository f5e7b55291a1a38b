"""Street light API endpoints."""
import asyncio
from typing import Annotated, Optional

from fastapi import APIRouter, Body, Depends, Query, Request, status

from app.schemas.light import (
    ErrorResponse,
    LightListResponse,
    LightResponse,
    MutationRequest,
    MutationResponse,
    NearestLightResponse,
    NextIdResponse,
)
from app.services.errors import NotFound
from app.services.light_id import validate_village_code
from app.services.light_queries import (
    find_nearest_light,
    get_light_or_404,
    list_lights,
    pending_repairs_by_light,
    preview_next_id,
)
from app.services.reconciler import RecordReconciler, get_reconciler
from app.services.record_store import get_record_store
from app.services.record_store_base import LightRecord, RecordStore, RepairRecord
from app.services.village_resolver import FALLBACK_VILLAGE_CODE, village_name_for_code
from app.utils.geo import google_maps_url, parse_coordinate

router = APIRouter(prefix="/lights", tags=["Lights"])

ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
    status.HTTP_409_CONFLICT: {"model": ErrorResponse},
    status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
}


def to_light_response(light: LightRecord, pending: Optional[RepairRecord] = None) -> LightResponse:
    code = light.id[:2] if len(light.id) == 5 else FALLBACK_VILLAGE_CODE
    return LightResponse(
        id=light.id,
        lat=light.lat,
        lng=light.lng,
        village_code=code,
        village_name=village_name_for_code(code),
        map_url=google_maps_url(light.lat, light.lng),
        is_unrepaired=pending is not None,
        fault=pending.fault if pending else "",
        report_date=pending.reported_at if pending else None,
    )


def _light_responses(store: RecordStore, lights: list[LightRecord]) -> list[LightResponse]:
    pending = pending_repairs_by_light(store)
    return [to_light_response(light, pending.get(light.id)) for light in lights]


@router.post(
    "/mutations",
    response_model=MutationResponse,
    responses=ERROR_RESPONSES,
)
async def apply_mutation(
    request: Request,
    payload: Annotated[MutationRequest, Body(discriminator="action")],
    reconciler: RecordReconciler = Depends(get_reconciler),
):
    """
    Apply one change to the light table or the history log.

    - **new**: add a light; the id is allocated from `villageCode` when omitted
    - **update** / **restore**: move a light (`upsert` inserts unknown ids)
    - **deleteLight**: remove a light
    - **delete** / **batchDelete**: remove history entries by `(id, time)`
    """
    actor = request.client.host if request.client else None
    # The reconciler blocks on its lock and the database
    result = await asyncio.to_thread(reconciler.apply, payload, actor=actor)
    return MutationResponse(action=result.action, id=result.light_id, removed=result.removed)


@router.get("", response_model=LightListResponse)
async def get_lights(
    village_code: Optional[str] = Query(None, alias="villageCode", description="Only lights of this village"),
    unrepaired: bool = Query(False, description="Only lights with a pending repair report"),
    store: RecordStore = Depends(get_record_store),
):
    """List current lights ordered by id."""
    def load() -> list[LightResponse]:
        return _light_responses(store, list_lights(store, village_code, unrepaired))

    items = await asyncio.to_thread(load)
    return LightListResponse(items=items, total=len(items))


@router.get("/nearest", response_model=NearestLightResponse, responses=ERROR_RESPONSES)
async def get_nearest_light(
    lat: str = Query(..., description="Latitude in decimal degrees"),
    lng: str = Query(..., description="Longitude in decimal degrees"),
    store: RecordStore = Depends(get_record_store),
):
    """Find the light closest to a position."""
    lat_value = parse_coordinate(lat, "lat")
    lng_value = parse_coordinate(lng, "lng")
    found = await asyncio.to_thread(find_nearest_light, store, lat_value, lng_value)
    if found is None:
        raise NotFound("No lights registered")
    light, distance = found
    [response] = await asyncio.to_thread(_light_responses, store, [light])
    return NearestLightResponse(light=response, distance_m=round(distance, 2))


@router.get("/next-id", response_model=NextIdResponse, responses=ERROR_RESPONSES)
async def get_next_id(
    village_code: str = Query(..., alias="villageCode", description="2-digit village code"),
    store: RecordStore = Depends(get_record_store),
):
    """Preview the id a new light in the village would receive (not reserved)."""
    code = validate_village_code(village_code)
    light_id = await asyncio.to_thread(preview_next_id, store, code)
    return NextIdResponse(village_code=code, id=light_id)


@router.get("/{light_id}", response_model=LightResponse, responses=ERROR_RESPONSES)
async def get_light(
    light_id: str,
    store: RecordStore = Depends(get_record_store),
):
    """Get one light with a map link and its repair status."""
    light = await asyncio.to_thread(get_light_or_404, store, light_id)
    [response] = await asyncio.to_thread(_light_responses, store, [light])
    return response
