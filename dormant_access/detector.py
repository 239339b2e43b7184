"""
Dormant Access Detector.

Facade over the detection engine and the revocation workflow. The
detector holds collaborators only; every operation takes the tenant id
explicitly and reads that tenant's configuration snapshot at call time,
so one detector serves many tenants concurrently.
"""

import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .audit.audit_logger import AuditLogger
from .connectors import IdentityProvider, InventoryProvider, build_providers
from .engine.config_manager import ConfigManager
from .engine.record_store import RecordStore
from .engine.scanner import DEFAULT_MAX_WORKERS, scan
from .events.emitter import EventBus, EventEmitter, build_detected_event
from .models import (
    AuditRecord,
    AutoRevocationResult,
    DormantAccessConfig,
    DormantAccessRecord,
    DormantCategory,
    RecordStatus,
    ScanResult,
    utc_now,
)
from .workflows.helpers import select_auto_revoke
from .workflows.revocation import RevocationWorkflow

logger = logging.getLogger(__name__)


class DormantAccessDetector:
    """
    Detects dormant access and drives its revocation lifecycle.

    Args:
        inventory: Inventory provider
        identity: Identity provider
        event_bus: Bus receiving lifecycle events (in-memory if omitted)
        config_manager: Per-tenant configuration store
        record_store: Workflow state store
        audit_logger: Audit trail; None disables auditing
        max_workers: Bound on concurrent provider requests during a scan
        app_timeout: Seconds a scan waits for application results (None waits)
        clock: Source of "now" for scans and transitions
    """

    def __init__(
        self,
        inventory: InventoryProvider,
        identity: IdentityProvider,
        event_bus: Optional[EventBus] = None,
        config_manager: Optional[ConfigManager] = None,
        record_store: Optional[RecordStore] = None,
        audit_logger: Optional[AuditLogger] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        app_timeout: Optional[float] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.inventory = inventory
        self.identity = identity
        self.emitter = EventEmitter(event_bus)
        self.config_manager = config_manager or ConfigManager()
        self.record_store = record_store or RecordStore()
        self.audit_logger = audit_logger
        self.max_workers = max_workers
        self.app_timeout = app_timeout
        self.clock = clock

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None,
                    event_bus: Optional[EventBus] = None) -> "DormantAccessDetector":
        """
        Build a detector from an engine configuration dictionary.

        Recognised keys: ``inventory_file``, ``mock_mode``, ``connectors``,
        ``config_file``, ``state_file``, ``audit_dir``, ``max_workers``, ``app_timeout``.
        """
        config = config or {}
        inventory, identity = build_providers(config)
        return cls(
            inventory=inventory,
            identity=identity,
            event_bus=event_bus,
            config_manager=ConfigManager(config.get("config_file")),
            record_store=RecordStore(config.get("state_file")),
            audit_logger=AuditLogger(config["audit_dir"]) if config.get("audit_dir") else None,
            max_workers=config.get("max_workers", DEFAULT_MAX_WORKERS),
            app_timeout=config.get("app_timeout"),
        )

    # Configuration

    def get_config(self, tenant_id: str) -> DormantAccessConfig:
        """Get a tenant's current configuration."""
        return self.config_manager.get_config(tenant_id)

    def set_config(self, tenant_id: str, **changes: Any) -> DormantAccessConfig:
        """
        Merge-update a tenant's configuration.

        Raises:
            ConfigValidationError: if thresholds are not strictly ascending or negative
        """
        return self.config_manager.set_config(tenant_id, **changes)

    # Detection

    def _scan(self, tenant_id: str,
              cancel_event: Optional[threading.Event] = None) -> ScanResult:
        return scan(
            tenant_id,
            self.config_manager.get_config(tenant_id),
            self.inventory,
            self.identity,
            now=self.clock(),
            max_workers=self.max_workers,
            cancel_event=cancel_event,
            app_timeout=self.app_timeout,
        )

    def scan_for_dormant_access(self, tenant_id: str,
                                cancel_event: Optional[threading.Event] = None) -> ScanResult:
        """
        Scan a tenant for dormant access.

        Records already in the workflow carry their stored id and status;
        the rest keep the id they were first scanned under, which
        ``approve_revocation`` and ``exempt_record`` accept. Emits
        ``access.dormant_detected`` once per newly discovered auto-revoke
        record. Stored workflow state is not touched.
        """
        result = self._scan(tenant_id, cancel_event)
        result.records, discovered = self.record_store.overlay(result.records)

        for record in select_auto_revoke(discovered):
            try:
                self.emitter.emit(build_detected_event(record))
            except Exception as e:
                logger.error(f"Failed to emit detection of record {record.id}: {e}")

        return result

    def _current(self, tenant_id: str) -> List[DormantAccessRecord]:
        return self.scan_for_dormant_access(tenant_id).records

    def get_dormant_access_by_user(self, tenant_id: str, user_id: str) -> List[DormantAccessRecord]:
        """Get dormant access for one user from a fresh scan."""
        return [r for r in self._current(tenant_id) if r.user_id == user_id]

    def get_dormant_access_by_app(self, tenant_id: str, app_id: str) -> List[DormantAccessRecord]:
        """Get dormant access to one application from a fresh scan."""
        return [r for r in self._current(tenant_id) if r.app_id == app_id]

    def get_dormant_access_by_department(self, tenant_id: str,
                                         department: str) -> List[DormantAccessRecord]:
        """Get dormant access for one department from a fresh scan."""
        return [r for r in self._current(tenant_id) if r.department == department]

    # Revocation workflow

    def _workflow(self, tenant_id: str) -> RevocationWorkflow:
        return RevocationWorkflow(
            tenant_id=tenant_id,
            config=self.config_manager.get_config(tenant_id),
            inventory=self.inventory,
            store=self.record_store,
            emitter=self.emitter,
            audit_logger=self.audit_logger,
            clock=self.clock,
        )

    def process_auto_revocation(self, tenant_id: str) -> AutoRevocationResult:
        """
        Scan the tenant and advance every auto-revoke record.

        Records approved since the previous pass are revoked as part of
        this pass. Individual failures are returned in ``errors``.
        """
        logger.info(f"Processing auto-revocation for tenant {tenant_id}")

        scan_result = self.scan_for_dormant_access(tenant_id)
        stored = self.record_store.reconcile(select_auto_revoke(scan_result.records))

        # Approved records whose grant no longer shows up as dormant still need revoking
        seen = {record.id for record in stored}
        stored.extend(
            record for record in self.record_store.list_records(tenant_id, RecordStatus.APPROVED)
            if record.id not in seen
        )

        result = self._workflow(tenant_id).process(stored)
        result.errors = scan_result.errors + result.errors
        return result

    def revoke_approved(self, tenant_id: str) -> AutoRevocationResult:
        """Revoke every approved record of a tenant without re-scanning."""
        approved = self.record_store.list_records(tenant_id, RecordStatus.APPROVED)
        return self._workflow(tenant_id).process(approved)

    def approve_revocation(self, tenant_id: str, record_id: str,
                           approved_by: str) -> DormantAccessRecord:
        """
        Approve a pending revocation.

        Raises:
            RecordNotFound: if the record id is unknown
            InvalidTransition: if the record is not pending approval
        """
        return self._workflow(tenant_id).approve(record_id, approved_by)

    def exempt_record(self, tenant_id: str, record_id: str, exempted_by: str,
                      reason: str) -> DormantAccessRecord:
        """
        Exempt a record from automated revocation.

        Raises:
            RecordNotFound: if the record id is unknown
            InvalidTransition: if the record is already revoked or exempted
        """
        return self._workflow(tenant_id).exempt(record_id, exempted_by, reason)

    # Stored records

    def get_record(self, tenant_id: str, record_id: str) -> DormantAccessRecord:
        return self.record_store.get(tenant_id, record_id)

    def list_records(self, tenant_id: str, status: Optional[RecordStatus] = None,
                     category: Optional[DormantCategory] = None) -> List[DormantAccessRecord]:
        records = self.record_store.list_records(tenant_id, status)
        if category is not None:
            records = [r for r in records if r.category == category]
        return records

    def get_record_history(self, tenant_id: str, record_id: str) -> List[AuditRecord]:
        """
        Audit trail of one record, oldest first.

        Raises:
            RecordNotFound: if the record id is unknown
        """
        self.record_store.get(tenant_id, record_id)
        if self.audit_logger is None:
            return []
        return self.audit_logger.get_record_history(tenant_id, record_id)
