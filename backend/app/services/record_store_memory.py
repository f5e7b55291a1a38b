"""In-process record store.

Keeps every collection as a dense Python list, the way the source sheets
lay them out. Used for development and tests.
"""
import copy
from contextlib import contextmanager
from typing import Iterator, Optional, Sequence

from app.services.record_store_base import HistoryEntry, LightRecord, RecordStore, RepairRecord


class MemoryRecordStore(RecordStore):
    """Record store backed by in-memory lists."""

    def __init__(
        self,
        lights: Optional[list[LightRecord]] = None,
        history: Optional[list[HistoryEntry]] = None,
        repairs: Optional[list[RepairRecord]] = None,
    ):
        self.lights: list[LightRecord] = list(lights or [])
        self.history: list[HistoryEntry] = []
        self._next_seq = 1
        self.repairs: list[RepairRecord] = []
        self._next_repair_id = 1
        for entry in history or []:
            self.append_history(entry)
        for record in repairs or []:
            self.insert_repair(record)
        self.sort_lights()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        snapshot = copy.deepcopy(
            (self.lights, self.history, self._next_seq, self.repairs, self._next_repair_id)
        )
        try:
            yield
        except BaseException:
            (
                self.lights, self.history, self._next_seq,
                self.repairs, self._next_repair_id,
            ) = snapshot
            raise

    def _index_of(self, light_id: str) -> Optional[int]:
        for i, light in enumerate(self.lights):
            if light.id == light_id:
                return i
        return None

    def get_light(self, light_id: str) -> Optional[LightRecord]:
        index = self._index_of(light_id)
        if index is None:
            return None
        return copy.copy(self.lights[index])

    def list_lights(self) -> list[LightRecord]:
        return [copy.copy(light) for light in self.lights]

    def insert_light(self, record: LightRecord) -> None:
        if self._index_of(record.id) is not None:
            raise ValueError(f"Light {record.id} already exists")
        self.lights.append(copy.copy(record))

    def update_light(self, record: LightRecord) -> None:
        index = self._index_of(record.id)
        if index is None:
            raise KeyError(record.id)
        self.lights[index] = copy.copy(record)

    def delete_light(self, light_id: str) -> None:
        index = self._index_of(light_id)
        if index is None:
            raise KeyError(light_id)
        del self.lights[index]

    def sort_lights(self) -> None:
        self.lights.sort(key=lambda light: light.id)

    def append_history(self, entry: HistoryEntry) -> HistoryEntry:
        stored = copy.copy(entry)
        stored.seq = self._next_seq
        self._next_seq += 1
        self.history.append(stored)
        return copy.copy(stored)

    def scan_history(self) -> list[HistoryEntry]:
        return [copy.copy(entry) for entry in self.history]

    def delete_history(self, seqs: Sequence[int]) -> int:
        wanted = set(seqs)
        positions = [i for i, entry in enumerate(self.history) if entry.seq in wanted]
        # Highest position first so earlier positions stay valid
        for position in sorted(positions, reverse=True):
            del self.history[position]
        return len(positions)

    def insert_repair(self, record: RepairRecord) -> RepairRecord:
        stored = copy.deepcopy(record)
        stored.id = self._next_repair_id
        self._next_repair_id += 1
        self.repairs.append(stored)
        return copy.deepcopy(stored)

    def get_repair(self, report_id: int) -> Optional[RepairRecord]:
        for record in self.repairs:
            if record.id == report_id:
                return copy.deepcopy(record)
        return None

    def update_repair(self, record: RepairRecord) -> None:
        for i, stored in enumerate(self.repairs):
            if stored.id == record.id:
                self.repairs[i] = copy.deepcopy(record)
                return
        raise KeyError(record.id)

    def list_repairs(self, status: Optional[str] = None) -> list[RepairRecord]:
        return [
            copy.deepcopy(record) for record in self.repairs
            if status is None or record.status == status
        ]
