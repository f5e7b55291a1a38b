"""Import light locations exported from the 路燈位置參考 sheet.

Each row goes through the reconciler as a "new" mutation with its
existing id, so every imported light gets its history entry.

Usage:
    python scripts/import_lights.py lights.csv
"""
import csv
import os
import sys

# Add parent directory to path to import app modules
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.schemas.light import NewLightRequest
from app.services.errors import LightAlreadyExists, LightRegistryError
from app.services.light_id import normalize_light_id
from app.services.reconciler import RecordReconciler
from app.services.record_store import get_record_store

ID_COLUMN = "原路燈號碼"
LAT_COLUMN = "緯度Latitude"
LNG_COLUMN = "經度Longitude"
IMPORT_NOTE = "匯入既有路燈"


def import_lights(file_path: str, reconciler: RecordReconciler) -> dict:
    """Import every row of the CSV; returns counts per outcome."""
    counts = {"imported": 0, "existing": 0, "skipped": 0}

    with open(file_path, "r", encoding="utf-8-sig", newline="") as f:
        rows = list(csv.DictReader(f))
    print(f"Found {len(rows)} rows in {file_path}.")

    for line_no, row in enumerate(rows, start=2):
        light_id = normalize_light_id(row.get(ID_COLUMN))
        if not light_id:
            counts["skipped"] += 1
            continue

        request = NewLightRequest(
            action="new",
            id=light_id,
            village_code=light_id[:2],
            lat=row.get(LAT_COLUMN),
            lng=row.get(LNG_COLUMN),
            note=IMPORT_NOTE,
        )
        try:
            reconciler.apply(request, actor="import_lights")
        except LightAlreadyExists:
            counts["existing"] += 1
            continue
        except LightRegistryError as e:
            print(f"Line {line_no} ({light_id}) skipped: {e.message}")
            counts["skipped"] += 1
            continue

        counts["imported"] += 1
        if counts["imported"] % 100 == 0:
            print(f"Imported {counts['imported']} lights...")

    return counts


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)

    file_path = sys.argv[1]
    if not os.path.exists(file_path):
        print(f"File not found: {file_path}")
        sys.exit(1)

    counts = import_lights(file_path, RecordReconciler(get_record_store()))
    print(
        f"Imported {counts['imported']} lights, "
        f"{counts['existing']} already present, {counts['skipped']} skipped."
    )
