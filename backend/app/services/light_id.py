"""Sequential street light id allocation.

A light id is five digits: the 2-digit village code followed by a 3-digit
sequence number within that village (e.g. "01050").
"""
from typing import Iterable, Optional

from app.services.errors import InvalidVillageCode
from app.services.village_resolver import is_known_village_code

LIGHT_ID_LENGTH = 5
VILLAGE_CODE_LENGTH = 2
MAX_SEQUENCE = 999


def normalize_light_id(raw: Optional[str]) -> str:
    """Strip whitespace and spreadsheet quoting artifacts from an id.

    Sheets store ids as text with a leading apostrophe ("'01050") and
    exports sometimes wrap them in quotes.
    """
    if raw is None:
        return ""
    value = str(raw).strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        value = value[1:-1].strip()
    return value.lstrip("'").strip()


def is_valid_light_id(light_id: str) -> bool:
    return len(light_id) == LIGHT_ID_LENGTH and light_id.isascii() and light_id.isdigit()


def validate_village_code(village_code: Optional[str]) -> str:
    """Return the trimmed village code or raise InvalidVillageCode."""
    code = (village_code or "").strip()
    if not code:
        raise InvalidVillageCode("villageCode is required for new lights")
    if len(code) != VILLAGE_CODE_LENGTH or not code.isdigit() or not is_known_village_code(code):
        raise InvalidVillageCode(f"Unknown village code: {code!r}")
    return code


def next_id(village_code: Optional[str], existing_ids: Iterable[str]) -> str:
    """Next unused sequential id in a village's namespace.

    Does not reserve anything: two calls without inserting the first
    result in between return the same id.
    """
    code = validate_village_code(village_code)
    max_value = int(code + "000")

    for raw in existing_ids:
        light_id = normalize_light_id(raw)
        if light_id.startswith(code) and len(light_id) == LIGHT_ID_LENGTH and light_id.isdigit():
            max_value = max(max_value, int(light_id))

    next_value = max_value + 1
    if next_value > int(code + str(MAX_SEQUENCE)):
        raise InvalidVillageCode(f"Village {code} has no free light ids left")
    return str(next_value).zfill(LIGHT_ID_LENGTH)
