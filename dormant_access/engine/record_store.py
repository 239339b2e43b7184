"""
Record Store for the Dormant Access Engine.

Carries revocation workflow state across scans. Records are keyed by
(tenant_id, user_id, app_id); every scan's freshly derived records are
reconciled against the stored ones so approvals and exemptions survive
re-scans.
"""

import json
import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple, Union

from ..errors import InvalidTransition, RecordNotFound
from ..models import DormantAccessRecord, RecordStatus

logger = logging.getLogger(__name__)

RecordKey = Tuple[str, str, str]

# Fields recomputed by every scan; everything else is workflow state
DERIVED_FIELDS = (
    "user_name",
    "user_email",
    "department",
    "manager",
    "app_name",
    "access_type",
    "last_access_date",
    "days_since_access",
    "category",
    "cost_per_license",
)


class RecordStore:
    """
    Stores dormant access records and their workflow state.

    Provides in-memory storage with optional JSON file persistence, a
    per-record lock for single-writer transitions and an optimistic
    version check on commit.
    """

    def __init__(self, storage_path: Optional[Union[str, Path]] = None):
        """
        Initialize the record store.

        Args:
            storage_path: Path to store records as JSON.
                         If None, records are kept in memory only.
        """
        self.storage_path = Path(storage_path) if storage_path else None
        self.records: Dict[RecordKey, DormantAccessRecord] = {}
        self._ids: Dict[Tuple[str, str], RecordKey] = {}
        self._scanned: Dict[RecordKey, DormantAccessRecord] = {}
        self._scanned_ids: Dict[Tuple[str, str], RecordKey] = {}
        self._record_locks: Dict[RecordKey, threading.RLock] = {}
        self._lock = threading.RLock()

        if self.storage_path:
            self.storage_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_state()

        logger.info(
            f"Initialized RecordStore with {'persistent' if self.storage_path else 'in-memory'} storage"
        )

    def _key_for(self, tenant_id: str, record_id: str) -> RecordKey:
        key = self._ids.get((tenant_id, record_id))
        if key is None:
            raise RecordNotFound(record_id, tenant_id)
        return key

    def _put(self, record: DormantAccessRecord):
        previous = self.records.get(record.record_key)
        if previous is not None and previous.id != record.id:
            self._ids.pop((previous.tenant_id, previous.id), None)
        self._forget_scanned(record.record_key)
        self.records[record.record_key] = record
        self._ids[(record.tenant_id, record.id)] = record.record_key

    def _forget_scanned(self, key: RecordKey):
        scanned = self._scanned.pop(key, None)
        if scanned is not None:
            self._scanned_ids.pop((scanned.tenant_id, scanned.id), None)

    def _is_live(self, key: RecordKey) -> bool:
        stored = self.records.get(key)
        return stored is not None and stored.status != RecordStatus.REVOKED

    def get(self, tenant_id: str, record_id: str) -> DormantAccessRecord:
        """
        Get a copy of a stored record, or of a scanned record not yet stored.

        Raises:
            RecordNotFound: if the tenant has no record with this id
        """
        with self._lock:
            scanned_key = self._scanned_ids.get((tenant_id, record_id))
            if scanned_key is not None:
                return self._scanned[scanned_key].model_copy(deep=True)
            return self.records[self._key_for(tenant_id, record_id)].model_copy(deep=True)

    def find_by_key(self, tenant_id: str, user_id: str,
                    app_id: str) -> Optional[DormantAccessRecord]:
        with self._lock:
            record = self.records.get((tenant_id, user_id, app_id))
            return record.model_copy(deep=True) if record else None

    def overlay(self, records: List[DormantAccessRecord]
                ) -> Tuple[List[DormantAccessRecord], List[DormantAccessRecord]]:
        """
        Line a scan's records up with the store without changing workflow state.

        A key with a live stored record comes back as that record (its id,
        status and stamps) carrying the scan's derived fields. Any other key
        keeps the id it was first scanned under until it is stored, so the
        id a scan hands out can be approved or exempted later.

        Returns:
            (records in input order, records whose key was seen for the first time)
        """
        merged = []
        discovered = []
        with self._lock:
            for fresh in records:
                key = fresh.record_key
                updates = {field: getattr(fresh, field) for field in DERIVED_FIELDS}
                if self._is_live(key):
                    merged.append(self.records[key].model_copy(update=updates, deep=True))
                    continue

                known = self._scanned.get(key)
                if known is None:
                    record = fresh.model_copy(deep=True)
                    discovered.append(record.model_copy(deep=True))
                else:
                    record = known.model_copy(update=updates, deep=True)
                self._scanned[key] = record
                self._scanned_ids[(record.tenant_id, record.id)] = key
                merged.append(record.model_copy(deep=True))

        return merged, discovered

    def register(self, tenant_id: str, record_id: str) -> DormantAccessRecord:
        """
        Store a scanned record so its workflow can start.

        A no-op for records that are already stored.

        Raises:
            RecordNotFound: if the id is neither stored nor scanned
        """
        with self._lock:
            key = self._scanned_ids.get((tenant_id, record_id))
            if key is not None:
                if self._is_live(key):
                    raise RecordNotFound(record_id, tenant_id)
                self._put(self._scanned[key])
                self._save_state()
                logger.info(f"Registered scanned record {record_id} for tenant {tenant_id}")
            return self.records[self._key_for(tenant_id, record_id)].model_copy(deep=True)

    @contextmanager
    def lock_record(self, tenant_id: str, record_id: str) -> Iterator[DormantAccessRecord]:
        """
        Hold the record's lock and yield a working copy of it.

        Only one caller at a time can transition a given record. A scanned
        record is stored first.
        """
        with self._lock:
            self.register(tenant_id, record_id)
            key = self._key_for(tenant_id, record_id)
            record_lock = self._record_locks.setdefault(key, threading.RLock())

        with record_lock:
            yield self.get(tenant_id, record_id)

    def commit(self, record: DormantAccessRecord) -> DormantAccessRecord:
        """
        Persist a transitioned record.

        The record must carry the version it was read at; a stored record
        with a different version means another writer got there first.

        Raises:
            InvalidTransition: on a stale version
        """
        with self._lock:
            stored = self.records.get(record.record_key)
            if stored is None or stored.id != record.id:
                raise RecordNotFound(record.id, record.tenant_id)
            if stored.version != record.version:
                raise InvalidTransition(
                    record.id, stored.status.value, record.status.value,
                    f"stale version {record.version}, current is {stored.version}",
                )

            # Derived fields may have been refreshed by a scan meanwhile
            updates = {field: getattr(stored, field) for field in DERIVED_FIELDS}
            updates["version"] = record.version + 1
            committed = record.model_copy(update=updates, deep=True)
            self._put(committed)
            self._save_state()

        logger.debug(f"Committed record {record.id} as {record.status.value}")
        return committed.model_copy(deep=True)

    def reconcile(self, records: List[DormantAccessRecord]) -> List[DormantAccessRecord]:
        """
        Merge a scan's records into the store.

        Known keys keep their id and workflow state and take the scan's
        derived fields. A revoked key that shows up again has been
        re-granted and starts over as a fresh record.

        Returns:
            Stored copies of the records, in input order
        """
        merged = []
        with self._lock:
            for fresh in records:
                existing = self.records.get(fresh.record_key)
                if existing is None or existing.status == RecordStatus.REVOKED:
                    self._put(fresh.model_copy(deep=True))
                else:
                    updates = {field: getattr(fresh, field) for field in DERIVED_FIELDS}
                    self._put(existing.model_copy(update=updates, deep=True))
                merged.append(self.records[fresh.record_key].model_copy(deep=True))
            self._save_state()

        return merged

    def list_records(self, tenant_id: str,
                     status: Optional[RecordStatus] = None) -> List[DormantAccessRecord]:
        """List a tenant's stored records, optionally by status."""
        with self._lock:
            return [
                record.model_copy(deep=True)
                for (tenant, _, _), record in self.records.items()
                if tenant == tenant_id and (status is None or record.status == status)
            ]

    def get_status_summary(self, tenant_id: str) -> Dict[str, int]:
        """Count a tenant's stored records by workflow status."""
        counts: Dict[str, int] = {}
        for record in self.list_records(tenant_id):
            counts[record.status.value] = counts.get(record.status.value, 0) + 1
        return counts

    def _save_state(self):
        """Save current records to persistent storage."""
        if not self.storage_path:
            return

        try:
            state_data = {
                "records": [record.model_dump(mode="json") for record in self.records.values()],
                "last_updated": datetime.now(timezone.utc).isoformat(),
            }

            with open(self.storage_path, "w", encoding="utf-8") as f:
                json.dump(state_data, f, indent=2, default=str)

        except OSError as e:
            logger.error(f"Failed to save records to {self.storage_path}: {e}")

    def _load_state(self):
        """Load records from persistent storage."""
        if not self.storage_path or not self.storage_path.exists():
            return

        try:
            with open(self.storage_path, encoding="utf-8") as f:
                state_data = json.load(f)

            for record_data in state_data.get("records", []):
                self._put(DormantAccessRecord.model_validate(record_data))

            logger.info(f"Loaded {len(self.records)} records from {self.storage_path}")

        except (OSError, ValueError) as e:
            logger.error(f"Failed to load records from {self.storage_path}: {e}")
            # Continue with empty state if load fails
