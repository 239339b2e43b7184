"""
Tests for the RecordStore.
"""

import json
import uuid

import pytest

from dormant_access.engine.record_store import RecordStore
from dormant_access.errors import RecordNotFound
from dormant_access.models import DormantAccessRecord, DormantCategory, RecordStatus

from .conftest import NOW, TENANT


def make_record(days=95, category=DormantCategory.AUTO_REVOKE, user_id="u-alice"):
    return DormantAccessRecord(
        id=str(uuid.uuid4()),
        tenant_id=TENANT,
        user_id=user_id,
        user_name="Alice Johnson",
        user_email="alice.johnson@company.com",
        app_id="app-slack",
        app_name="Slack",
        granted_at=NOW,
        days_since_access=days,
        category=category,
        cost_per_license=120.0,
    )


class TestRecordStore:
    """Test cases for RecordStore."""

    @pytest.fixture
    def store(self):
        return RecordStore()

    def test_reconcile_new_record(self, store):
        fresh = make_record()

        stored = store.reconcile([fresh])

        assert stored[0].id == fresh.id
        assert store.get(TENANT, fresh.id).status == RecordStatus.DETECTED
        assert store.find_by_key(TENANT, "u-alice", "app-slack").id == fresh.id

    def test_reconcile_keeps_workflow_state(self, store):
        original = store.reconcile([make_record()])[0]
        store.commit(original.model_copy(update={
            "status": RecordStatus.PENDING_APPROVAL, "approval_requested_at": NOW,
        }))

        merged = store.reconcile([make_record(days=120)])[0]

        assert merged.id == original.id
        assert merged.status == RecordStatus.PENDING_APPROVAL
        assert merged.approval_requested_at == NOW
        assert merged.days_since_access == 120
        assert len(store.list_records(TENANT)) == 1

    def test_revoked_key_starts_fresh(self, store):
        original = store.reconcile([make_record()])[0]
        store.commit(original.model_copy(update={"status": RecordStatus.REVOKED}))

        regrant = make_record()
        merged = store.reconcile([regrant])[0]

        assert merged.id == regrant.id
        assert merged.status == RecordStatus.DETECTED
        with pytest.raises(RecordNotFound):
            store.get(TENANT, original.id)

    def test_get_returns_copy(self, store):
        record = store.reconcile([make_record()])[0]

        copy = store.get(TENANT, record.id)
        copy.status = RecordStatus.EXEMPTED

        assert store.get(TENANT, record.id).status == RecordStatus.DETECTED

    def test_get_other_tenant(self, store):
        record = store.reconcile([make_record()])[0]
        with pytest.raises(RecordNotFound):
            store.get("other", record.id)

    def test_list_and_summary(self, store):
        records = store.reconcile([make_record(), make_record(user_id="u-bob")])
        store.commit(records[1].model_copy(update={"status": RecordStatus.EXEMPTED}))

        assert len(store.list_records(TENANT, RecordStatus.DETECTED)) == 1
        assert store.get_status_summary(TENANT) == {"detected": 1, "exempted": 1}

    def test_persistence(self, tmp_path):
        path = tmp_path / "state" / "records.json"
        store = RecordStore(path)
        record = store.reconcile([make_record()])[0]
        store.commit(record.model_copy(update={"status": RecordStatus.NOTIFIED, "notified_at": NOW}))

        reloaded = RecordStore(path)
        restored = reloaded.get(TENANT, record.id)

        assert restored.status == RecordStatus.NOTIFIED
        assert restored.notified_at == NOW
        assert restored.version == 1
        assert len(json.loads(path.read_text())["records"]) == 1

    def test_corrupt_state_file(self, tmp_path):
        path = tmp_path / "records.json"
        path.write_text("{not json")

        store = RecordStore(path)

        assert store.list_records(TENANT) == []

    def test_lock_is_shared_by_replaced_records(self, store):
        original = store.reconcile([make_record()])[0]
        with store.lock_record(TENANT, original.id):
            pass
        store.commit(original.model_copy(update={"status": RecordStatus.REVOKED}))

        regrant = store.reconcile([make_record()])[0]
        with store.lock_record(TENANT, regrant.id):
            pass

        assert len(store._record_locks) == 1


class TestScannedRecords:
    """Test cases for lining scans up with the store."""

    @pytest.fixture
    def store(self):
        return RecordStore()

    def test_overlay_does_not_store(self, store):
        fresh = make_record()

        merged, discovered = store.overlay([fresh])

        assert merged[0].id == fresh.id
        assert [r.id for r in discovered] == [fresh.id]
        assert store.list_records(TENANT) == []
        assert store.find_by_key(TENANT, "u-alice", "app-slack") is None
        assert store.get(TENANT, fresh.id).status == RecordStatus.DETECTED

    def test_overlay_keeps_first_scanned_id(self, store):
        first = make_record()
        store.overlay([first])

        merged, discovered = store.overlay([make_record(days=120)])

        assert merged[0].id == first.id
        assert merged[0].days_since_access == 120
        assert discovered == []

    def test_overlay_uses_stored_state(self, store):
        original = store.reconcile([make_record()])[0]
        store.commit(original.model_copy(update={"status": RecordStatus.EXEMPTED}))

        merged, discovered = store.overlay([make_record(days=120)])

        assert merged[0].id == original.id
        assert merged[0].status == RecordStatus.EXEMPTED
        assert merged[0].days_since_access == 120
        assert discovered == []
        assert store.get(TENANT, original.id).days_since_access == 95

    def test_revoked_key_is_discovered_again(self, store):
        original = store.reconcile([make_record()])[0]
        store.commit(original.model_copy(update={"status": RecordStatus.REVOKED}))

        merged, discovered = store.overlay([make_record()])

        assert merged[0].id != original.id
        assert merged[0].status == RecordStatus.DETECTED
        assert len(discovered) == 1

    def test_register(self, store):
        fresh = make_record()
        store.overlay([fresh])

        registered = store.register(TENANT, fresh.id)

        assert registered.id == fresh.id
        assert [r.id for r in store.list_records(TENANT)] == [fresh.id]
        assert store.reconcile([make_record(days=130)])[0].id == fresh.id

    def test_register_unknown(self, store):
        with pytest.raises(RecordNotFound):
            store.register(TENANT, "missing")
        fresh = make_record()
        store.overlay([fresh])
        with pytest.raises(RecordNotFound):
            store.register("other", fresh.id)

    def test_lock_registers_scanned_record(self, store):
        fresh = make_record()
        store.overlay([fresh])

        with store.lock_record(TENANT, fresh.id) as record:
            committed = store.commit(record.model_copy(update={"status": RecordStatus.EXEMPTED}))

        assert committed.version == 1
        assert store.find_by_key(TENANT, "u-alice", "app-slack").status == RecordStatus.EXEMPTED
