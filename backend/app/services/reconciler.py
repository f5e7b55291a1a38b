"""Apply light mutations to the current-state table and the history log.

Every mutation runs to completion under one process-wide lock and inside
one record store transaction, so a light change and its history row are
committed together or not at all. Id allocation for new lights happens
inside the same critical section as the insert.
"""
import base64
import binascii
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional, TypeVar

from app.config import get_settings
from app.schemas.light import (
    BatchDeleteHistoryRequest,
    DeleteHistoryRequest,
    DeleteLightRequest,
    MoveLightBase,
    MutationRequest,
    NewLightRequest,
)
from app.services.errors import (
    ConcurrencyTimeout,
    InvalidAttachment,
    InvalidVillageCode,
    LightAlreadyExists,
    NotFound,
    StorageUnavailable,
)
from app.services.light_id import (
    is_valid_light_id,
    next_id,
    normalize_light_id,
    validate_village_code,
)
from app.services.record_store_base import HistoryEntry, LightRecord, RecordStore
from app.services.storage_base import StorageBackend
from app.services.village_resolver import is_known_village_code
from app.utils.audit import log_audit_event
from app.utils.formatting import (
    format_coordinate,
    format_file_timestamp,
    format_roc_timestamp,
    now_local,
)
from app.utils.geo import parse_coordinate, parse_optional_coordinate

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Serializes every mutation in this process; DatabaseRecordStore adds a
# row lock for writers in other processes
mutation_lock = threading.Lock()

DEFAULT_NOTES = {
    "new": "新設路燈",
    "update": "座標更新",
    "restore": "座標還原",
    "deleteLight": "移除路燈",
}

AUDIT_EVENTS = {
    "new": "light_created",
    "update": "light_updated",
    "restore": "light_restored",
    "deleteLight": "light_deleted",
    "delete": "history_deleted",
    "batchDelete": "history_batch_deleted",
}


@dataclass
class MutationResult:
    """Outcome of a successful mutation."""

    action: str
    light_id: Optional[str] = None
    # History entries removed by delete / batchDelete
    removed: Optional[int] = None
    history: Optional[HistoryEntry] = None


@dataclass
class MutationContext:
    """Clock reading and uploads of the mutation in progress."""

    moment: datetime
    time: str
    uploaded: list[str] = field(default_factory=list)


def decode_attachment(data: str) -> bytes:
    """Decode a base64 photo, accepting a data: URL prefix."""
    payload = data.split(",", 1)[1] if data.startswith("data:") else data
    try:
        content = base64.b64decode(payload.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidAttachment(f"Attachment is not valid base64: {e}") from e
    if not content:
        raise InvalidAttachment("Attachment is empty")
    return content


class RecordReconciler:
    """Apply mutation requests against a record store."""

    def __init__(
        self,
        store: RecordStore,
        *,
        storage: Optional[StorageBackend] = None,
        lock: Optional[threading.Lock] = None,
        lock_timeout: Optional[float] = None,
        clock: Callable[[], datetime] = now_local,
    ):
        self.store = store
        self._storage = storage
        self.lock = lock or mutation_lock
        self.lock_timeout = (
            lock_timeout if lock_timeout is not None
            else get_settings().MUTATION_LOCK_TIMEOUT_SECONDS
        )
        self.clock = clock
        self._handlers = {
            "new": self._new_light,
            "update": self._move_light,
            "restore": self._move_light,
            "deleteLight": self._delete_light,
            "delete": self._delete_history,
            "batchDelete": self._batch_delete_history,
        }

    @property
    def storage(self) -> StorageBackend:
        if self._storage is None:
            from app.services.storage import get_storage
            self._storage = get_storage()
        return self._storage

    def apply(self, request: MutationRequest, *, actor: Optional[str] = None) -> MutationResult:
        """Apply one mutation; raises a LightRegistryError on failure."""
        handler = self._handlers[request.action]
        result, context = self.run_locked(lambda context: handler(request, context))

        log_audit_event(
            AUDIT_EVENTS[request.action],
            actor=actor,
            details={
                "light_id": result.light_id,
                "time": context.time,
                "removed": result.removed,
            },
        )
        return result

    def run_locked(self, operation: Callable[[MutationContext], T]) -> tuple[T, MutationContext]:
        """Run ``operation`` under the mutation lock inside one store transaction.

        Attachments stored by a failed operation are deleted again.
        """
        if not self.lock.acquire(timeout=self.lock_timeout):
            raise ConcurrencyTimeout(
                f"Another change is in progress, gave up after {self.lock_timeout:g}s"
            )
        try:
            moment = self.clock()
            context = MutationContext(moment=moment, time=format_roc_timestamp(moment))
            try:
                with self.store.transaction():
                    result = operation(context)
            except BaseException:
                self._discard_uploads(context.uploaded)
                raise
        finally:
            self.lock.release()
        return result, context

    # --- light mutations ---

    def _new_light(self, request: NewLightRequest, context: MutationContext) -> MutationResult:
        code = validate_village_code(request.village_code)
        lat = parse_coordinate(request.lat, "lat")
        lng = parse_coordinate(request.lng, "lng")

        if request.id and normalize_light_id(request.id):
            light_id = normalize_light_id(request.id)
            if not is_valid_light_id(light_id) or not light_id.startswith(code):
                raise InvalidVillageCode(f"Light id {light_id} is not in village {code}")
            if self.store.get_light(light_id) is not None:
                raise LightAlreadyExists(f"Light {light_id} already exists")
        else:
            light_id = next_id(code, self.store.list_light_ids())

        self.store.insert_light(LightRecord(id=light_id, lat=lat, lng=lng))
        self.store.sort_lights()

        entry = self._append_history(
            context,
            request,
            light_id,
            after=(lat, lng),
        )
        return MutationResult(action=request.action, light_id=light_id, history=entry)

    def _move_light(self, request: MoveLightBase, context: MutationContext) -> MutationResult:
        light_id = self._require_id(request.id)
        lat = parse_coordinate(request.lat, "lat")
        lng = parse_coordinate(request.lng, "lng")

        existing = self.store.get_light(light_id)
        if existing is not None:
            before = (existing.lat, existing.lng)
            self.store.update_light(LightRecord(id=light_id, lat=lat, lng=lng))
        elif request.upsert:
            if not is_valid_light_id(light_id):
                raise InvalidVillageCode(f"Cannot insert light with malformed id {light_id!r}")
            if not is_known_village_code(light_id[:2]):
                raise InvalidVillageCode(f"Light id {light_id} is not in a known village")
            logger.warning(
                "%s for unknown light %s, inserting it (upsert requested)",
                request.action, light_id,
            )
            before = (
                parse_optional_coordinate(request.before_lat, "lat"),
                parse_optional_coordinate(request.before_lng, "lng"),
            )
            self.store.insert_light(LightRecord(id=light_id, lat=lat, lng=lng))
        else:
            raise NotFound(f"Light {light_id} not found")
        self.store.sort_lights()

        entry = self._append_history(
            context,
            request,
            light_id,
            before=before,
            after=(lat, lng),
        )
        return MutationResult(action=request.action, light_id=light_id, history=entry)

    def _delete_light(self, request: DeleteLightRequest, context: MutationContext) -> MutationResult:
        light_id = self._require_id(request.id)
        existing = self.store.get_light(light_id)
        if existing is None:
            raise NotFound(f"Light {light_id} not found")

        self.store.delete_light(light_id)
        self.store.sort_lights()

        entry = self._append_history(
            context,
            request,
            light_id,
            before=(existing.lat, existing.lng),
        )
        return MutationResult(action=request.action, light_id=light_id, history=entry)

    # --- history corrections ---

    def _delete_history(self, request: DeleteHistoryRequest, context: MutationContext) -> MutationResult:
        light_id = normalize_light_id(request.id)
        time = request.time.strip()
        matches = [
            entry for entry in self.store.scan_history()
            if normalize_light_id(entry.light_id) == light_id and entry.time.strip() == time
        ]
        if not matches:
            raise NotFound(f"No history entry for light {light_id} at {time}")

        # Several rows can share a timestamp; drop the latest one only
        removed = self.store.delete_history([matches[-1].seq])
        return MutationResult(action=request.action, light_id=light_id, removed=removed)

    def _batch_delete_history(
        self, request: BatchDeleteHistoryRequest, context: MutationContext
    ) -> MutationResult:
        keys = {(normalize_light_id(item.id), item.time.strip()) for item in request.items}
        seqs = [
            entry.seq for entry in self.store.scan_history()
            if (normalize_light_id(entry.light_id), entry.time.strip()) in keys
        ]
        removed = self.store.delete_history(seqs) if seqs else 0
        return MutationResult(action=request.action, removed=removed)

    # --- helpers ---

    def _require_id(self, raw_id: Optional[str]) -> str:
        light_id = normalize_light_id(raw_id)
        if not light_id:
            raise NotFound("Light id is required")
        return light_id

    def _append_history(
        self,
        context: MutationContext,
        request,
        light_id: str,
        *,
        before: tuple[Optional[float], Optional[float]] = (None, None),
        after: tuple[Optional[float], Optional[float]] = (None, None),
    ) -> HistoryEntry:
        attachment_url = None
        if request.attachment:
            object_name = f"attachments/{format_file_timestamp(context.moment)}_{light_id}.jpg"
            attachment_url = self.store_attachment(request.attachment, object_name, context)

        return self.store.append_history(
            HistoryEntry(
                time=context.time,
                light_id=light_id,
                action=request.action,
                before_lat=format_coordinate(before[0]),
                before_lng=format_coordinate(before[1]),
                after_lat=format_coordinate(after[0]),
                after_lng=format_coordinate(after[1]),
                note=request.note or DEFAULT_NOTES[request.action],
                attachment_url=attachment_url,
            )
        )

    def store_attachment(self, data: str, object_name: str, context: MutationContext) -> str:
        """Store a base64 photo and return its URL.

        The object is removed again if the surrounding mutation fails.
        """
        content = decode_attachment(data)
        try:
            self.storage.upload_bytes(content, object_name, content_type="image/jpeg")
        except Exception as e:
            raise StorageUnavailable(f"Could not store attachment: {e}") from e
        context.uploaded.append(object_name)
        return self.storage.get_url(object_name)

    def _discard_uploads(self, object_names: list[str]) -> None:
        for object_name in object_names:
            try:
                self.storage.delete_object(object_name)
            except Exception as e:
                logger.error("Failed to remove orphaned attachment %s: %s", object_name, e)


_reconciler: Optional[RecordReconciler] = None
_reconciler_lock = threading.Lock()


def get_reconciler() -> RecordReconciler:
    """Reconciler bound to the configured record store."""
    global _reconciler
    if _reconciler is None:
        with _reconciler_lock:
            if _reconciler is None:
                from app.services.record_store import get_record_store
                _reconciler = RecordReconciler(get_record_store())
    return _reconciler


def reset_reconciler() -> None:
    global _reconciler
    with _reconciler_lock:
        _reconciler = None
