"""SQLAlchemy record store backend implementation."""
import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional, Sequence

from sqlalchemy import delete, select, text, update
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import get_settings
from app.database import get_engine
from app.models import REGISTRY_LOCK_NAME, LightHistory, RegistryLock, RepairReport, StreetLight
from app.services.errors import ConcurrencyTimeout, StorageUnavailable
from app.services.record_store_base import (
    HistoryEntry,
    LightRecord,
    RecordStore,
    RepairPhotoPair,
    RepairRecord,
)

logger = logging.getLogger(__name__)

# PostgreSQL lock_not_available
PG_LOCK_NOT_AVAILABLE = "55P03"


def _to_record(row: StreetLight) -> LightRecord:
    return LightRecord(id=row.id, lat=row.lat, lng=row.lng)


def _to_entry(row: LightHistory) -> HistoryEntry:
    return HistoryEntry(
        seq=row.seq,
        time=row.time,
        light_id=row.light_id,
        action=row.action,
        before_lat=row.before_lat,
        before_lng=row.before_lng,
        after_lat=row.after_lat,
        after_lng=row.after_lng,
        note=row.note,
        attachment_url=row.attachment_url,
    )


def _to_repair(row: RepairReport) -> RepairRecord:
    return RepairRecord(
        id=row.id,
        light_id=row.light_id,
        reported_at=row.reported_at,
        fault=row.fault,
        status=row.status,
        repaired_on=row.repaired_on,
        repair_note=row.repair_note,
        photos=[
            RepairPhotoPair(pre_url=pair.get("pre"), post_url=pair.get("post"))
            for pair in row.photos or []
        ],
    )


def _photos_json(record: RepairRecord) -> list[dict]:
    return [{"pre": pair.pre_url, "post": pair.post_url} for pair in record.photos]


def _is_lock_timeout(error: OperationalError) -> bool:
    orig = error.orig
    return (
        getattr(orig, "pgcode", None) == PG_LOCK_NOT_AVAILABLE
        or "database is locked" in str(orig)
    )


class DatabaseRecordStore(RecordStore):
    """Record store using the street light, history and repair tables.

    Every transaction starts by write-locking the registry lock row, so
    transactions from all processes sharing the database run one at a time.
    """

    def __init__(self, engine=None, lock_timeout: Optional[float] = None):
        self.engine = engine or get_engine()
        self.lock_timeout = (
            lock_timeout if lock_timeout is not None
            else get_settings().MUTATION_LOCK_TIMEOUT_SECONDS
        )
        # Session of the transaction open on the current thread, if any
        self._local = threading.local()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if getattr(self._local, "session", None) is not None:
            raise RuntimeError("Nested record store transactions are not supported")

        session = Session(self.engine)
        self._local.session = session
        try:
            self._lock_registry(session)
            yield
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise StorageUnavailable(f"Database write failed: {e}") from e
        except BaseException:
            session.rollback()
            raise
        finally:
            self._local.session = None
            session.close()

    def _lock_registry(self, session: Session) -> None:
        """Take the registry lock row; held until the transaction ends."""
        try:
            if session.get_bind().dialect.name == "postgresql":
                session.execute(text(f"SET LOCAL lock_timeout = {int(self.lock_timeout * 1000)}"))
            result = session.execute(
                update(RegistryLock)
                .where(RegistryLock.name == REGISTRY_LOCK_NAME)
                .values(acquired_at=datetime.utcnow())
            )
        except OperationalError as e:
            if not _is_lock_timeout(e):
                raise
            raise ConcurrencyTimeout(
                f"Registry is locked by another writer, gave up after {self.lock_timeout:g}s"
            ) from e

        if result.rowcount == 0:
            logger.warning("Registry lock row missing, creating it")
            session.add(RegistryLock(name=REGISTRY_LOCK_NAME, acquired_at=datetime.utcnow()))
            session.flush()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        """Session of the open transaction, or a short read-only one."""
        session = getattr(self._local, "session", None)
        if session is not None:
            yield session
            return

        try:
            with Session(self.engine) as session:
                yield session
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Database read failed: {e}") from e

    def get_light(self, light_id: str) -> Optional[LightRecord]:
        with self._session() as db:
            row = db.get(StreetLight, light_id)
            return _to_record(row) if row else None

    def list_lights(self) -> list[LightRecord]:
        with self._session() as db:
            rows = db.execute(select(StreetLight).order_by(StreetLight.id)).scalars().all()
            return [_to_record(row) for row in rows]

    def list_light_ids(self) -> list[str]:
        with self._session() as db:
            return list(db.execute(select(StreetLight.id)).scalars().all())

    def insert_light(self, record: LightRecord) -> None:
        with self._session() as db:
            db.add(StreetLight(id=record.id, lat=record.lat, lng=record.lng))
            db.flush()

    def update_light(self, record: LightRecord) -> None:
        with self._session() as db:
            row = db.get(StreetLight, record.id)
            if row is None:
                raise KeyError(record.id)
            row.lat = record.lat
            row.lng = record.lng
            db.flush()

    def delete_light(self, light_id: str) -> None:
        with self._session() as db:
            row = db.get(StreetLight, light_id)
            if row is None:
                raise KeyError(light_id)
            db.delete(row)
            db.flush()

    def append_history(self, entry: HistoryEntry) -> HistoryEntry:
        with self._session() as db:
            row = LightHistory(
                time=entry.time,
                light_id=entry.light_id,
                action=entry.action,
                before_lat=entry.before_lat,
                before_lng=entry.before_lng,
                after_lat=entry.after_lat,
                after_lng=entry.after_lng,
                note=entry.note,
                attachment_url=entry.attachment_url,
            )
            db.add(row)
            db.flush()
            return _to_entry(row)

    def scan_history(self) -> list[HistoryEntry]:
        with self._session() as db:
            rows = db.execute(select(LightHistory).order_by(LightHistory.seq)).scalars().all()
            return [_to_entry(row) for row in rows]

    def list_history(self, limit: Optional[int] = None) -> list[HistoryEntry]:
        query = select(LightHistory).order_by(LightHistory.seq.desc())
        if limit is not None:
            query = query.limit(limit)
        with self._session() as db:
            return [_to_entry(row) for row in db.execute(query).scalars().all()]

    def delete_history(self, seqs: Sequence[int]) -> int:
        if not seqs:
            return 0
        with self._session() as db:
            result = db.execute(delete(LightHistory).where(LightHistory.seq.in_(list(seqs))))
            db.flush()
            return result.rowcount or 0

    def insert_repair(self, record: RepairRecord) -> RepairRecord:
        with self._session() as db:
            row = RepairReport(
                light_id=record.light_id,
                reported_at=record.reported_at,
                fault=record.fault,
                status=record.status,
                repaired_on=record.repaired_on,
                repair_note=record.repair_note,
                photos=_photos_json(record),
            )
            db.add(row)
            db.flush()
            return _to_repair(row)

    def get_repair(self, report_id: int) -> Optional[RepairRecord]:
        with self._session() as db:
            row = db.get(RepairReport, report_id)
            return _to_repair(row) if row else None

    def update_repair(self, record: RepairRecord) -> None:
        with self._session() as db:
            row = db.get(RepairReport, record.id)
            if row is None:
                raise KeyError(record.id)
            row.fault = record.fault
            row.status = record.status
            row.repaired_on = record.repaired_on
            row.repair_note = record.repair_note
            row.photos = _photos_json(record)
            db.flush()

    def list_repairs(self, status: Optional[str] = None) -> list[RepairRecord]:
        query = select(RepairReport).order_by(RepairReport.id)
        if status is not None:
            query = query.where(RepairReport.status == status)
        with self._session() as db:
            return [_to_repair(row) for row in db.execute(query).scalars().all()]
