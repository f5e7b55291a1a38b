"""Tests for the SQLAlchemy record store (SQLite)."""
import threading
import time

import pytest
from sqlalchemy import delete
from sqlalchemy.orm import Session

from app.database import build_engine, init_db
from app.models import RegistryLock
from app.schemas.light import (
    BatchDeleteHistoryRequest,
    DeleteLightRequest,
    HistoryKey,
    NewLightRequest,
    UpdateLightRequest,
)
from app.services.errors import ConcurrencyTimeout, NotFound, StorageUnavailable
from app.services.record_store_base import HistoryEntry, LightRecord
from app.services.record_store_db import DatabaseRecordStore


def test_insert_and_lookup(db_store):
    with db_store.transaction():
        db_store.insert_light(LightRecord("01002", 24.4, 120.6))
        db_store.insert_light(LightRecord("01001", 24.5, 120.7))

    assert db_store.get_light("01001") == LightRecord("01001", 24.5, 120.7)
    assert db_store.get_light("09999") is None
    assert [light.id for light in db_store.list_lights()] == ["01001", "01002"]


def test_transaction_rolls_back_on_error(db_store):
    with pytest.raises(RuntimeError):
        with db_store.transaction():
            db_store.insert_light(LightRecord("01001", 24.4, 120.6))
            db_store.append_history(HistoryEntry(time="t", light_id="01001", action="new"))
            raise RuntimeError("abort")

    assert db_store.list_lights() == []
    assert db_store.scan_history() == []


def test_database_errors_become_storage_unavailable(db_store):
    with db_store.transaction():
        db_store.insert_light(LightRecord("01001", 24.4, 120.6))

    with pytest.raises(StorageUnavailable):
        with db_store.transaction():
            db_store.insert_light(LightRecord("01001", 24.4, 120.6))


def test_history_order_and_listing(db_store):
    with db_store.transaction():
        for n in range(5):
            db_store.append_history(HistoryEntry(time=str(n), light_id="01001", action="update"))

    assert [e.time for e in db_store.scan_history()] == ["0", "1", "2", "3", "4"]
    assert [e.time for e in db_store.list_history(limit=2)] == ["4", "3"]


def test_delete_history_by_seq(db_store):
    with db_store.transaction():
        entries = [
            db_store.append_history(HistoryEntry(time=str(n), light_id="01001", action="update"))
            for n in range(3)
        ]
        removed = db_store.delete_history([entries[0].seq, entries[2].seq])

    assert removed == 2
    assert [e.time for e in db_store.scan_history()] == ["1"]


def test_reconciler_over_database(db_store, make_reconciler):
    reconciler = make_reconciler(db_store)

    assert reconciler.apply(NewLightRequest(action="new", lat="24.41", lng="120.68", villageCode="01")).light_id == "01001"
    assert reconciler.apply(NewLightRequest(action="new", lat="24.42", lng="120.69", villageCode="01")).light_id == "01002"
    reconciler.apply(UpdateLightRequest(action="update", id="01001", lat="24.43", lng="120.70"))
    reconciler.apply(DeleteLightRequest(action="deleteLight", id="01002"))

    assert db_store.list_lights() == [LightRecord("01001", 24.43, 120.7)]
    history = db_store.scan_history()
    assert [e.action for e in history] == ["new", "new", "update", "deleteLight"]
    assert (history[2].before_lat, history[2].after_lat) == ("24.41", "24.43")

    removed = reconciler.apply(BatchDeleteHistoryRequest(
        action="batchDelete",
        items=[HistoryKey(id=history[0].light_id, time=history[0].time),
               HistoryKey(id=history[3].light_id, time=history[3].time)],
    )).removed
    assert removed == 2
    assert [e.action for e in db_store.scan_history()] == ["new", "update"]


def test_failed_mutation_leaves_database_untouched(db_store, make_reconciler):
    reconciler = make_reconciler(db_store)
    with pytest.raises(NotFound):
        reconciler.apply(UpdateLightRequest(action="update", id="01001", lat="24.4", lng="120.6"))

    assert db_store.list_lights() == []
    assert db_store.scan_history() == []


class SlowAllocationStore(DatabaseRecordStore):
    """Pauses between reading the taken ids and inserting the new light."""

    def list_light_ids(self):
        ids = super().list_light_ids()
        time.sleep(0.05)
        return ids


@pytest.fixture
def db_file(tmp_path):
    path = tmp_path / "registry.db"
    engine = build_engine(f"sqlite:///{path}")
    init_db(engine)
    engine.dispose()
    return f"sqlite:///{path}"


def test_writers_in_separate_processes_get_distinct_ids(db_file, make_reconciler):
    # Each reconciler has its own engine and its own in-process lock, as two
    # worker processes would
    engines = [build_engine(db_file, lock_timeout=10) for _ in range(2)]
    reconcilers = [
        make_reconciler(SlowAllocationStore(engine=engine), lock=threading.Lock())
        for engine in engines
    ]
    ids, errors = [], []

    def worker(reconciler):
        for _ in range(4):
            try:
                request = NewLightRequest(action="new", lat="24.41", lng="120.68", villageCode="01")
                ids.append(reconciler.apply(request).light_id)
            except Exception as e:
                errors.append(e)

    threads = [threading.Thread(target=worker, args=(r,)) for r in reconcilers]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert sorted(ids) == [f"01{n:03d}" for n in range(1, 9)]
    assert len(reconcilers[0].store.scan_history()) == 8
    for engine in engines:
        engine.dispose()


def test_held_registry_lock_times_out(db_file, make_reconciler):
    holder_engine = build_engine(db_file, lock_timeout=10)
    waiter_engine = build_engine(db_file, lock_timeout=0.1)
    holder = DatabaseRecordStore(engine=holder_engine)
    waiter = make_reconciler(DatabaseRecordStore(engine=waiter_engine, lock_timeout=0.1))

    with holder.transaction():
        with pytest.raises(ConcurrencyTimeout):
            waiter.apply(NewLightRequest(action="new", lat="24.41", lng="120.68", villageCode="01"))

    assert waiter.apply(
        NewLightRequest(action="new", lat="24.41", lng="120.68", villageCode="01")
    ).light_id == "01001"
    holder_engine.dispose()
    waiter_engine.dispose()


def test_missing_lock_row_is_recreated(db_store):
    with Session(db_store.engine) as session:
        session.execute(delete(RegistryLock))
        session.commit()

    with db_store.transaction():
        db_store.insert_light(LightRecord("01001", 24.4, 120.6))

    assert db_store.get_light("01001") is not None
