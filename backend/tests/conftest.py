"""Shared fixtures for the light registry tests."""
import threading

import pytest
from fastapi.testclient import TestClient

from app.database import Base, build_engine
from app.main import app
from app.services.reconciler import RecordReconciler, get_reconciler, reset_reconciler
from app.services.record_store import set_record_store
from app.services.record_store_db import DatabaseRecordStore
from app.services.record_store_memory import MemoryRecordStore
from app.services.storage import set_storage
from app.services.storage_local import LocalStorageBackend
from app.services.village_resolver import VillageRegion
from tests.helpers import SQUARE, TickingClock


@pytest.fixture
def store():
    return MemoryRecordStore()


@pytest.fixture
def db_engine():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_store(db_engine):
    return DatabaseRecordStore(engine=db_engine)


@pytest.fixture
def storage(tmp_path):
    return LocalStorageBackend(str(tmp_path / "storage"))


@pytest.fixture
def make_reconciler(storage):
    def _make(record_store, clock=None, lock=None, lock_timeout=1.0):
        return RecordReconciler(
            record_store,
            storage=storage,
            lock=lock or threading.Lock(),
            lock_timeout=lock_timeout,
            clock=clock or TickingClock(),
        )
    return _make


@pytest.fixture
def reconciler(store, make_reconciler):
    return make_reconciler(store)


@pytest.fixture
def square_village():
    return VillageRegion(name="廣盛村", code="01", polygons=[[SQUARE]])


@pytest.fixture
def client(store, storage, reconciler):
    set_record_store(store)
    set_storage(storage)
    reset_reconciler()
    # Deterministic clock for mutations; reads go through the installed store
    app.dependency_overrides[get_reconciler] = lambda: reconciler
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    reset_reconciler()
    set_storage(None)
    set_record_store(None)
