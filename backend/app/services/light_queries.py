"""Read-only lookups over the light table, the history log and repairs."""
from typing import Optional

from app.services.errors import NotFound
from app.services.light_id import next_id, normalize_light_id, validate_village_code
from app.services.record_store_base import (
    REPAIR_PENDING,
    HistoryEntry,
    LightRecord,
    RecordStore,
    RepairRecord,
)
from app.utils.geo import haversine_distance


def get_light_or_404(store: RecordStore, light_id: str) -> LightRecord:
    normalized = normalize_light_id(light_id)
    light = store.get_light(normalized)
    if light is None:
        raise NotFound(f"Light {normalized} not found")
    return light


def list_lights(
    store: RecordStore,
    village_code: Optional[str] = None,
    unrepaired: bool = False,
) -> list[LightRecord]:
    """All lights ascending by id.

    Optionally limited to one village, to lights with a pending repair
    report, or both.
    """
    lights = store.list_lights()
    if village_code:
        code = validate_village_code(village_code)
        lights = [light for light in lights if light.id.startswith(code)]
    if unrepaired:
        pending = pending_repairs_by_light(store)
        lights = [light for light in lights if light.id in pending]
    return lights


def find_nearest_light(
    store: RecordStore, lat: float, lng: float
) -> Optional[tuple[LightRecord, float]]:
    """Closest light to a point and its distance in metres."""
    nearest = None
    min_distance = float("inf")
    for light in store.list_lights():
        distance = haversine_distance(lat, lng, light.lat, light.lng)
        if distance < min_distance:
            min_distance = distance
            nearest = light
    if nearest is None:
        return None
    return nearest, min_distance


def preview_next_id(store: RecordStore, village_code: str) -> str:
    """Id the next "new" light in the village would get right now."""
    return next_id(village_code, store.list_light_ids())


def recent_history(store: RecordStore, limit: int) -> list[HistoryEntry]:
    return store.list_history(limit=limit)


def pending_repairs_by_light(store: RecordStore) -> dict[str, RepairRecord]:
    """Latest pending repair report for every light that has one."""
    pending = {}
    for record in store.list_repairs(REPAIR_PENDING):
        current = pending.get(record.light_id)
        if current is None or record.reported_at >= current.reported_at:
            pending[record.light_id] = record
    return pending


def get_repair_or_404(store: RecordStore, report_id: int) -> RepairRecord:
    record = store.get_repair(report_id)
    if record is None:
        raise NotFound(f"Repair report {report_id} not found")
    return record
