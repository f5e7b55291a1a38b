"""Village lookup for coordinates.

Village boundaries come from a GeoJSON FeatureCollection (one feature per
village, Polygon or MultiPolygon geometry in [lng, lat] order). A point is
classified by testing the villages in file order; the first boundary that
contains it wins. Points outside every boundary fall into the reserved
"out of range" village.
"""
import json
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

from app.config import get_settings
from app.utils.geo import Ring, point_in_ring

logger = logging.getLogger(__name__)

FALLBACK_VILLAGE_NAME = "範圍外"
FALLBACK_VILLAGE_CODE = "99"

# Default village name -> 2-digit code for 三義鄉. Codes read from the
# boundary file (VILLAGE_CODE_PROPERTY) or VILLAGE_CODE_OVERRIDES win.
VILLAGE_CODES: dict[str, str] = {
    "廣盛村": "01",
    "勝興村": "02",
    "龍騰村": "03",
    "雙潭村": "04",
    "雙湖村": "05",
    "西湖村": "06",
    "鯉魚潭村": "07",
    FALLBACK_VILLAGE_NAME: FALLBACK_VILLAGE_CODE,
}

# Spelling variants found in boundary files and manual input
VILLAGE_ALIASES: dict[str, str] = {
    "广盛村": "廣盛村",
    "胜兴村": "勝興村",
    "龙腾村": "龍騰村",
    "双潭村": "雙潭村",
    "双湖村": "雙湖村",
    "鲤鱼潭村": "鯉魚潭村",
    "鯉鱼潭村": "鯉魚潭村",
}

# A polygon is an outer ring followed by zero or more holes
Polygon = list[Ring]


@dataclass
class VillageRegion:
    """One village and its boundary polygons."""

    name: str
    code: str
    polygons: list[Polygon] = field(default_factory=list)

    def contains(self, lat: float, lng: float) -> bool:
        for polygon in self.polygons:
            if not polygon:
                continue
            outer, holes = polygon[0], polygon[1:]
            if point_in_ring(lng, lat, outer) and not any(
                point_in_ring(lng, lat, hole) for hole in holes
            ):
                return True
        return False


def canonical_village_name(name: Optional[str]) -> Optional[str]:
    """Map a village name spelling variant to its canonical form."""
    if name is None:
        return None
    name = name.strip()
    return VILLAGE_ALIASES.get(name, name)


def configured_village_codes() -> dict[str, str]:
    """Name -> code table: the defaults plus VILLAGE_CODE_OVERRIDES."""
    codes = dict(VILLAGE_CODES)
    for name, code in get_settings().VILLAGE_CODE_OVERRIDES.items():
        codes[canonical_village_name(name)] = code
    return codes


def known_village_codes() -> dict[str, str]:
    """Every village the registry accepts, including loaded boundaries."""
    codes = configured_village_codes()
    for region in get_regions():
        codes[region.name] = region.code
    return codes


def village_code_for(name: Optional[str]) -> Optional[str]:
    return known_village_codes().get(canonical_village_name(name) or "")


def village_name_for_code(code: str) -> Optional[str]:
    for name, village_code in known_village_codes().items():
        if village_code == code:
            return name
    return None


def is_known_village_code(code: Optional[str]) -> bool:
    return bool(code) and code in known_village_codes().values()


def normalize_village_code(value: Any) -> Optional[str]:
    """Two-digit code from a property value such as 1, "1" or "01"."""
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    if not text.isdigit() or len(text) > 2:
        return None
    return text.zfill(2)


def polygons_from_geometry(geometry: Any) -> list[Polygon]:
    """Normalize a GeoJSON Polygon/MultiPolygon geometry to a polygon list.

    Raises ValueError for anything else.
    """
    if not isinstance(geometry, dict):
        raise ValueError("geometry is missing")

    geom_type = geometry.get("type")
    coordinates = geometry.get("coordinates")
    if geom_type == "Polygon":
        polygons = [coordinates]
    elif geom_type == "MultiPolygon":
        polygons = coordinates
    else:
        raise ValueError(f"unsupported geometry type: {geom_type}")

    if not isinstance(polygons, list):
        raise ValueError("coordinates must be a list")
    for polygon in polygons:
        if not isinstance(polygon, list) or not polygon:
            raise ValueError("polygon must be a non-empty list of rings")
        for ring in polygon:
            if len(ring) < 3 or any(len(vertex) < 2 for vertex in ring):
                raise ValueError("ring must have at least three [lng, lat] vertices")
    return polygons


def regions_from_geojson(
    data: dict,
    name_property: Optional[str] = None,
    code_property: Optional[str] = None,
) -> list[VillageRegion]:
    """Build village regions from a FeatureCollection, in feature order.

    The code comes from ``code_property`` when the feature carries a usable
    value there, otherwise from the configured name -> code table.
    """
    settings = get_settings()
    name_property = name_property or settings.VILLAGE_NAME_PROPERTY
    code_property = code_property or settings.VILLAGE_CODE_PROPERTY
    codes = configured_village_codes()
    regions = []
    for index, feature in enumerate(data.get("features", [])):
        props = feature.get("properties") or {}
        name = canonical_village_name(props.get(name_property))
        if not name:
            logger.warning("Village feature %d has no %s property, skipped", index, name_property)
            continue

        try:
            polygons = polygons_from_geometry(feature.get("geometry"))
        except (TypeError, ValueError) as e:
            logger.warning("Village feature %s has malformed geometry, skipped: %s", name, e)
            continue

        code = normalize_village_code(props.get(code_property)) or codes.get(name)
        if code is None:
            logger.warning("Village %s has no registered code, skipped", name)
            continue
        regions.append(VillageRegion(name=name, code=code, polygons=polygons))
    return regions


def load_regions(
    path: str | Path,
    name_property: Optional[str] = None,
    code_property: Optional[str] = None,
) -> list[VillageRegion]:
    """Read village regions from a GeoJSON file.

    A missing or unreadable file yields no regions; every point then
    resolves to the fallback village.
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("Could not load village boundaries from %s: %s", path, e)
        return []

    regions = regions_from_geojson(data, name_property, code_property)
    logger.info("Loaded %d village boundaries from %s", len(regions), path)
    return regions


@lru_cache()
def get_regions() -> tuple[VillageRegion, ...]:
    """Village regions from the configured GeoJSON file (cached)."""
    return tuple(load_regions(get_settings().VILLAGE_GEOJSON_PATH))


def find_region(
    lat: float,
    lng: float,
    regions: Optional[Iterable[VillageRegion]],
) -> Optional[VillageRegion]:
    """First region whose boundary contains the point, or None."""
    for region in regions or ():
        try:
            if region.contains(lat, lng):
                return region
        except (AttributeError, TypeError, IndexError) as e:
            logger.warning("Skipping village with unusable boundary: %s", e)
    return None


def resolve(lat: float, lng: float, regions: Optional[Iterable[VillageRegion]]) -> str:
    """Return the canonical name of the first village containing the point."""
    region = find_region(lat, lng, regions)
    if region is None:
        return FALLBACK_VILLAGE_NAME
    return canonical_village_name(region.name)


def resolve_code(
    lat: float,
    lng: float,
    regions: Optional[Sequence[VillageRegion]],
) -> tuple[str, str]:
    """Resolve a point to ``(village name, village code)``."""
    region = find_region(lat, lng, regions)
    if region is None:
        return FALLBACK_VILLAGE_NAME, FALLBACK_VILLAGE_CODE
    return canonical_village_name(region.name), region.code
