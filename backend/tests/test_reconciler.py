"""Tests for applying light mutations (in-process store)."""
import base64
import threading

import pytest
from pydantic import ValidationError

from app.schemas.light import (
    BatchDeleteHistoryRequest,
    DeleteHistoryRequest,
    DeleteLightRequest,
    HistoryKey,
    NewLightRequest,
    RestoreLightRequest,
    UpdateLightRequest,
    mutation_request_adapter,
)
from app.services.errors import (
    ConcurrencyTimeout,
    InvalidAttachment,
    InvalidVillageCode,
    LightAlreadyExists,
    MalformedCoordinate,
    NotFound,
    StorageUnavailable,
)
from app.services.record_store_base import HistoryEntry, LightRecord
from app.services.record_store_memory import MemoryRecordStore
from tests.helpers import FrozenClock


def new_light(lat="24.41", lng="120.68", village_code="01", **kwargs):
    return NewLightRequest(action="new", lat=lat, lng=lng, village_code=village_code, **kwargs)


def update_light(light_id, lat, lng, **kwargs):
    return UpdateLightRequest(action="update", id=light_id, lat=lat, lng=lng, **kwargs)


class TestNewLight:
    def test_allocates_sequential_ids(self, reconciler, store):
        first = reconciler.apply(new_light())
        second = reconciler.apply(new_light(lat="24.415", lng="120.685"))

        assert first.light_id == "01001"
        assert second.light_id == "01002"
        assert [light.id for light in store.list_lights()] == ["01001", "01002"]

    def test_history_has_empty_before(self, reconciler, store):
        reconciler.apply(new_light())

        [entry] = store.scan_history()
        assert entry.action == "new"
        assert entry.light_id == "01001"
        assert (entry.before_lat, entry.before_lng) == ("", "")
        assert (entry.after_lat, entry.after_lng) == ("24.41", "120.68")
        assert entry.note == "新設路燈"
        assert entry.time == "115/10/18 9:00:00"

    def test_ids_have_no_gaps_per_village(self, reconciler, store):
        for _ in range(12):
            reconciler.apply(new_light(village_code="03"))
        reconciler.apply(new_light(village_code="05"))

        ids = [light.id for light in store.list_lights()]
        assert ids[:12] == [f"03{n:03d}" for n in range(1, 13)]
        assert ids[12] == "05001"

    def test_continues_after_existing_max(self, make_reconciler):
        store = MemoryRecordStore(lights=[LightRecord("01049", 24.4, 120.6)])
        result = make_reconciler(store).apply(new_light())
        assert result.light_id == "01050"

    def test_explicit_id_is_used(self, reconciler, store):
        result = reconciler.apply(new_light(id="'01100"))
        assert result.light_id == "01100"
        assert store.get_light("01100") is not None

    def test_explicit_id_must_match_village(self, reconciler, store):
        with pytest.raises(InvalidVillageCode):
            reconciler.apply(new_light(id="02001"))
        assert store.list_lights() == []
        assert store.scan_history() == []

    def test_explicit_duplicate_id_is_rejected(self, reconciler, store):
        reconciler.apply(new_light())
        with pytest.raises(LightAlreadyExists):
            reconciler.apply(new_light(id="01001"))
        assert len(store.scan_history()) == 1

    @pytest.mark.parametrize("code", [None, "", "42"])
    def test_requires_known_village_code(self, reconciler, store, code):
        with pytest.raises(InvalidVillageCode):
            reconciler.apply(new_light(village_code=code))
        assert store.list_lights() == []
        assert store.scan_history() == []

    @pytest.mark.parametrize("lat,lng", [("abc", "120.6"), ("24.4", None), ("nan", "120.6"), ("91", "120.6")])
    def test_rejects_malformed_coordinates(self, reconciler, store, lat, lng):
        with pytest.raises(MalformedCoordinate):
            reconciler.apply(new_light(lat=lat, lng=lng))
        assert store.list_lights() == []

    def test_numeric_coordinates_are_accepted(self, reconciler, store):
        reconciler.apply(new_light(lat=24.41, lng=120.68))
        assert store.get_light("01001") == LightRecord("01001", 24.41, 120.68)


class TestUpdateAndRestore:
    def test_update_moves_light_and_records_before_after(self, reconciler, store):
        reconciler.apply(new_light(lat="24.41", lng="120.68"))
        result = reconciler.apply(update_light("01001", "24.42", "120.69"))

        assert result.light_id == "01001"
        assert store.get_light("01001") == LightRecord("01001", 24.42, 120.69)
        entry = store.scan_history()[-1]
        assert entry.action == "update"
        assert (entry.before_lat, entry.before_lng) == ("24.41", "120.68")
        assert (entry.after_lat, entry.after_lng) == ("24.42", "120.69")
        assert entry.note == "座標更新"

    def test_before_comes_from_stored_row(self, reconciler, store):
        reconciler.apply(new_light(lat="24.41", lng="120.68"))
        reconciler.apply(update_light("01001", "24.42", "120.69", beforeLat="1", beforeLng="2"))

        entry = store.scan_history()[-1]
        assert (entry.before_lat, entry.before_lng) == ("24.41", "120.68")

    def test_update_matches_quoted_id(self, reconciler, store):
        reconciler.apply(new_light())
        reconciler.apply(update_light(" '01001 ", "24.5", "120.7"))
        assert store.get_light("01001").lat == 24.5

    def test_update_unknown_id_is_not_found(self, reconciler, store):
        with pytest.raises(NotFound):
            reconciler.apply(update_light("01001", "24.5", "120.7"))
        assert store.list_lights() == []
        assert store.scan_history() == []

    def test_upsert_inserts_unknown_id(self, reconciler, store):
        reconciler.apply(
            update_light("02005", "24.5", "120.7", beforeLat="24.4", beforeLng="120.6", upsert=True)
        )

        assert store.get_light("02005") == LightRecord("02005", 24.5, 120.7)
        [entry] = store.scan_history()
        assert (entry.before_lat, entry.before_lng) == ("24.4", "120.6")

    def test_upsert_rejects_malformed_id(self, reconciler, store):
        with pytest.raises(InvalidVillageCode):
            reconciler.apply(update_light("12", "24.5", "120.7", upsert=True))
        assert store.list_lights() == []

    def test_upsert_rejects_unknown_village_prefix(self, reconciler, store):
        with pytest.raises(InvalidVillageCode):
            reconciler.apply(update_light("42001", "24.5", "120.7", upsert=True))
        assert store.list_lights() == []
        assert store.scan_history() == []

    def test_restore_twice_is_idempotent_on_state(self, reconciler, store):
        reconciler.apply(new_light(lat="24.41", lng="120.68"))
        reconciler.apply(update_light("01001", "24.42", "120.69"))

        for _ in range(2):
            reconciler.apply(
                RestoreLightRequest(action="restore", id="01001", lat="24.41", lng="120.68")
            )

        assert store.get_light("01001") == LightRecord("01001", 24.41, 120.68)
        first, second = store.scan_history()[-2:]
        assert first.action == second.action == "restore"
        assert (first.after_lat, first.after_lng) == (second.after_lat, second.after_lng) == ("24.41", "120.68")
        assert (second.before_lat, second.before_lng) == ("24.41", "120.68")
        assert second.note == "座標還原"


class TestDeleteLight:
    def test_removes_row_and_records_last_position(self, reconciler, store):
        reconciler.apply(new_light(lat="24.41", lng="120.68"))
        reconciler.apply(DeleteLightRequest(action="deleteLight", id="01001", note="拆除"))

        assert store.get_light("01001") is None
        entry = store.scan_history()[-1]
        assert entry.action == "deleteLight"
        assert (entry.before_lat, entry.before_lng) == ("24.41", "120.68")
        assert (entry.after_lat, entry.after_lng) == ("", "")
        assert entry.note == "拆除"

    def test_unknown_id_changes_nothing(self, reconciler, store):
        reconciler.apply(new_light())
        with pytest.raises(NotFound):
            reconciler.apply(DeleteLightRequest(action="deleteLight", id="99999"))

        assert [light.id for light in store.list_lights()] == ["01001"]
        assert len(store.scan_history()) == 1

    def test_deleted_id_is_not_reused_before_higher_ids(self, reconciler, store):
        reconciler.apply(new_light())
        reconciler.apply(new_light())
        reconciler.apply(DeleteLightRequest(action="deleteLight", id="01001"))
        assert reconciler.apply(new_light()).light_id == "01003"


class TestHistoryCorrections:
    @pytest.fixture
    def seeded(self, make_reconciler):
        store = MemoryRecordStore(history=[
            HistoryEntry(time="1", light_id="A", action="new"),
            HistoryEntry(time="2", light_id="B", action="new"),
            HistoryEntry(time="3", light_id="A", action="update"),
        ])
        return store, make_reconciler(store)

    def test_batch_delete_removes_exactly_matching(self, seeded):
        store, reconciler = seeded
        result = reconciler.apply(BatchDeleteHistoryRequest(
            action="batchDelete",
            items=[HistoryKey(id="A", time="1"), HistoryKey(id="B", time="2")],
        ))

        assert result.removed == 2
        assert [(e.light_id, e.time) for e in store.scan_history()] == [("A", "3")]

    def test_batch_delete_with_no_matches_reports_zero(self, seeded):
        store, reconciler = seeded
        result = reconciler.apply(BatchDeleteHistoryRequest(
            action="batchDelete", items=[HistoryKey(id="C", time="9")]
        ))
        assert result.removed == 0
        assert len(store.scan_history()) == 3

    def test_delete_single_entry(self, seeded):
        store, reconciler = seeded
        result = reconciler.apply(DeleteHistoryRequest(action="delete", id="A", time="3"))

        assert result.removed == 1
        assert [(e.light_id, e.time) for e in store.scan_history()] == [("A", "1"), ("B", "2")]

    def test_delete_missing_entry_is_not_found(self, seeded):
        store, reconciler = seeded
        with pytest.raises(NotFound):
            reconciler.apply(DeleteHistoryRequest(action="delete", id="B", time="1"))
        assert len(store.scan_history()) == 3

    def test_delete_removes_only_latest_duplicate(self, make_reconciler):
        store = MemoryRecordStore()
        reconciler = make_reconciler(store, clock=FrozenClock())
        reconciler.apply(new_light(lat="24.41", lng="120.68"))
        reconciler.apply(update_light("01001", "24.42", "120.69"))
        time = store.scan_history()[0].time

        reconciler.apply(DeleteHistoryRequest(action="delete", id="01001", time=time))

        [remaining] = store.scan_history()
        assert remaining.action == "new"

    def test_history_deletion_leaves_lights_alone(self, reconciler, store):
        reconciler.apply(new_light())
        entry = store.scan_history()[0]
        reconciler.apply(DeleteHistoryRequest(action="delete", id=entry.light_id, time=entry.time))

        assert store.get_light("01001") is not None
        assert store.scan_history() == []


class TestInvariants:
    def test_one_history_entry_per_light_mutation(self, reconciler, store):
        requests = [
            new_light(),
            new_light(village_code="02"),
            update_light("01001", "24.5", "120.7"),
            RestoreLightRequest(action="restore", id="01001", lat="24.41", lng="120.68"),
            new_light(),
            DeleteLightRequest(action="deleteLight", id="02001"),
        ]
        for request in requests:
            reconciler.apply(request)

        assert len(store.scan_history()) == len(requests)

    def test_lights_stay_sorted(self, make_reconciler):
        store = MemoryRecordStore(lights=[
            LightRecord("05003", 24.4, 120.6),
            LightRecord("01002", 24.4, 120.6),
        ])
        reconciler = make_reconciler(store)
        for code in ["03", "01", "05", "02"]:
            reconciler.apply(new_light(village_code=code))
        reconciler.apply(update_light("06001", "24.4", "120.6", upsert=True))

        ids = [light.id for light in store.list_lights()]
        assert ids == sorted(ids)
        assert ids == ["01002", "01003", "02001", "03001", "05003", "05004", "06001"]

    def test_failed_attachment_rolls_back_everything(self, reconciler, store):
        with pytest.raises(InvalidAttachment):
            reconciler.apply(new_light(attachment="not base64!!"))
        assert store.list_lights() == []
        assert store.scan_history() == []


class TestAttachments:
    def test_attachment_is_stored_and_linked(self, reconciler, store, storage):
        photo = base64.b64encode(b"\xff\xd8jpeg-bytes").decode()
        reconciler.apply(new_light(attachment=f"data:image/jpeg;base64,{photo}"))

        [entry] = store.scan_history()
        object_name = "attachments/20261018090000_01001.jpg"
        assert entry.attachment_url == f"/api/v1/storage/files/{object_name}"
        assert storage.object_exists(object_name)

    def test_upload_failure_is_storage_unavailable(self, make_reconciler, store):
        class BrokenStorage:
            def upload_bytes(self, data, object_name, content_type=None):
                raise OSError("disk full")

        reconciler = make_reconciler(store)
        reconciler._storage = BrokenStorage()
        with pytest.raises(StorageUnavailable):
            reconciler.apply(new_light(attachment=base64.b64encode(b"x").decode()))
        assert store.list_lights() == []

    def test_upload_removed_when_transaction_fails(self, make_reconciler, storage):
        class FailingHistoryStore(MemoryRecordStore):
            def append_history(self, entry):
                raise RuntimeError("write rejected")

        reconciler = make_reconciler(FailingHistoryStore())
        with pytest.raises(RuntimeError):
            reconciler.apply(new_light(attachment=base64.b64encode(b"x").decode()))
        assert not storage.object_exists("attachments/20261018090000_01001.jpg")


class TestLocking:
    def test_times_out_when_lock_is_held(self, make_reconciler, store):
        lock = threading.Lock()
        reconciler = make_reconciler(store, lock=lock, lock_timeout=0.05)
        lock.acquire()
        try:
            with pytest.raises(ConcurrencyTimeout):
                reconciler.apply(new_light())
        finally:
            lock.release()
        assert store.list_lights() == []

    def test_concurrent_new_lights_get_distinct_ids(self, make_reconciler, store):
        reconciler = make_reconciler(store, lock_timeout=10)
        results = []

        def worker():
            results.append(reconciler.apply(new_light()).light_id)

        threads = [threading.Thread(target=worker) for _ in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(results) == [f"01{n:03d}" for n in range(1, 21)]

    def test_lock_released_after_failure(self, reconciler):
        with pytest.raises(NotFound):
            reconciler.apply(DeleteLightRequest(action="deleteLight", id="01001"))
        assert reconciler.apply(new_light()).light_id == "01001"


def test_requests_parse_by_action():
    request = mutation_request_adapter.validate_python(
        {"action": "update", "id": "01001", "lat": "24.4", "lng": "120.6", "beforeLat": "24.3"}
    )
    assert isinstance(request, UpdateLightRequest)
    assert request.before_lat == "24.3"
    assert request.upsert is False


def test_batch_delete_needs_at_least_one_item():
    with pytest.raises(ValidationError):
        mutation_request_adapter.validate_python({"action": "batchDelete", "items": []})
