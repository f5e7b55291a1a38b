"""Record store abstract base class.

Defines the interface for the collections the registry mutates: the
current-state light table, the append-only history log and the repair
reports. Consumers should use get_record_store() from record_store.py
to get the active backend.
"""
from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional, Sequence

# Repair report states, as written in the repair sheet
REPAIR_PENDING = "未查修"
REPAIR_DONE = "已查修"


@dataclass
class LightRecord:
    """Current-state row for one light."""

    id: str
    lat: float
    lng: float


@dataclass
class HistoryEntry:
    """One row of the history log.

    Coordinates are text; an empty string means the side has no value
    (new lights have no "before", removed lights no "after").
    """

    time: str
    light_id: str
    action: str
    before_lat: str = ""
    before_lng: str = ""
    after_lat: str = ""
    after_lng: str = ""
    note: Optional[str] = None
    attachment_url: Optional[str] = None
    # Position in insertion order, assigned by the store on append
    seq: Optional[int] = None


@dataclass
class RepairPhotoPair:
    """Before/after photo URLs of one repaired spot."""

    pre_url: Optional[str] = None
    post_url: Optional[str] = None


@dataclass
class RepairRecord:
    """A reported fault on one light and, once fixed, how it was repaired."""

    light_id: str
    # Local wall-clock time of the report
    reported_at: datetime
    fault: str = ""
    status: str = REPAIR_PENDING
    repaired_on: Optional[date] = None
    repair_note: Optional[str] = None
    photos: list[RepairPhotoPair] = field(default_factory=list)
    # Assigned by the store on insert
    id: Optional[int] = None


class RecordStore(ABC):
    """Abstract base class for record stores."""

    @abstractmethod
    def transaction(self) -> AbstractContextManager[None]:
        """Scope in which writes to both collections commit together.

        Leaving the block with an exception discards every write made
        inside it.
        """
        ...

    @abstractmethod
    def get_light(self, light_id: str) -> Optional[LightRecord]:
        """Point lookup by id."""
        ...

    @abstractmethod
    def list_lights(self) -> list[LightRecord]:
        """All lights, ascending by id."""
        ...

    def list_light_ids(self) -> list[str]:
        return [light.id for light in self.list_lights()]

    @abstractmethod
    def insert_light(self, record: LightRecord) -> None:
        ...

    @abstractmethod
    def update_light(self, record: LightRecord) -> None:
        """Overwrite the coordinates of an existing light."""
        ...

    @abstractmethod
    def delete_light(self, light_id: str) -> None:
        ...

    def sort_lights(self) -> None:
        """Re-establish ascending id order of the light table.

        Stores that order on read need not do anything.
        """
        return None

    @abstractmethod
    def append_history(self, entry: HistoryEntry) -> HistoryEntry:
        """Append an entry and return it with ``seq`` assigned."""
        ...

    @abstractmethod
    def scan_history(self) -> list[HistoryEntry]:
        """All history entries in insertion order."""
        ...

    def list_history(self, limit: Optional[int] = None) -> list[HistoryEntry]:
        """Most recent entries, newest first."""
        entries = list(reversed(self.scan_history()))
        if limit is not None:
            entries = entries[:limit]
        return entries

    @abstractmethod
    def delete_history(self, seqs: Sequence[int]) -> int:
        """Remove the entries with the given ``seq`` values.

        Returns:
            The number of entries actually removed
        """
        ...

    @abstractmethod
    def insert_repair(self, record: RepairRecord) -> RepairRecord:
        """Add a repair report and return it with ``id`` assigned."""
        ...

    @abstractmethod
    def get_repair(self, report_id: int) -> Optional[RepairRecord]:
        ...

    @abstractmethod
    def update_repair(self, record: RepairRecord) -> None:
        """Overwrite an existing repair report (matched by ``id``)."""
        ...

    @abstractmethod
    def list_repairs(self, status: Optional[str] = None) -> list[RepairRecord]:
        """Repair reports in report order, optionally only one status."""
        ...
