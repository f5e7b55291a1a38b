"""Village API endpoints."""
from fastapi import APIRouter, Query

from app.schemas.village import VillageListResponse, VillageResolveResponse, VillageResponse
from app.services.village_resolver import get_regions, known_village_codes, resolve_code
from app.utils.geo import parse_coordinate

router = APIRouter(prefix="/villages", tags=["Villages"])


@router.get("", response_model=VillageListResponse)
async def list_villages():
    """Village names and codes the registry accepts, ordered by code."""
    with_boundary = {region.code for region in get_regions()}
    items = [
        VillageResponse(name=name, code=code, has_boundary=code in with_boundary)
        for name, code in sorted(known_village_codes().items(), key=lambda item: item[1])
    ]
    return VillageListResponse(items=items, total=len(items))


@router.get("/resolve", response_model=VillageResolveResponse)
async def resolve_village(
    lat: str = Query(..., description="Latitude in decimal degrees"),
    lng: str = Query(..., description="Longitude in decimal degrees"),
):
    """Village whose boundary contains the position (fallback when none does)."""
    lat_value = parse_coordinate(lat, "lat")
    lng_value = parse_coordinate(lng, "lng")
    name, code = resolve_code(lat_value, lng_value, get_regions())
    return VillageResolveResponse(lat=lat_value, lng=lng_value, name=name, code=code)
