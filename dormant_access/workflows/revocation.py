"""
Revocation Workflow for the Dormant Access Engine.

Advances auto-revoke records through

    detected -> notified -> pending_approval -> approved -> revoked

with ``exempted`` reachable from any non-terminal state. Revoked and
exempted records are absorbing. Access is only recorded as revoked after
the inventory provider confirmed the removal.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional

from ..audit.audit_logger import AuditLogger
from ..connectors.base_connector import InventoryProvider
from ..engine.record_store import RecordStore
from ..errors import InvalidTransition, RevocationFailed
from ..events.emitter import (
    EventEmitter,
    build_approval_requested_event,
    build_exempted_event,
    build_revoked_event,
    build_user_notified_event,
)
from ..models import (
    AutoRevocationResult,
    DormantAccessConfig,
    DormantAccessEvent,
    DormantAccessRecord,
    RecordStatus,
    utc_now,
)
from .base_workflow import BaseWorkflow
from .helpers import check_transition, format_record_error, grace_period_elapsed

logger = logging.getLogger(__name__)

# Outcomes of advancing a single record
OUTCOME_REVOKED = "revoked"
OUTCOME_PENDING = "pending_approval"
OUTCOME_SKIPPED = "skipped"


class RevocationWorkflow(BaseWorkflow):
    """
    Per-record revocation state machine for one tenant.

    Every transition runs under the record's lock in the RecordStore and
    is committed with a version check, so two callers can never both
    advance the same record.
    """

    def __init__(
        self,
        tenant_id: str,
        config: DormantAccessConfig,
        inventory: InventoryProvider,
        store: RecordStore,
        emitter: EventEmitter,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        super().__init__(tenant_id, audit_logger, clock)
        self.config = config
        self.inventory = inventory
        self.store = store
        self.emitter = emitter

    def process(self, records: List[DormantAccessRecord]) -> AutoRevocationResult:
        """
        Advance a batch of stored auto-revoke records.

        A failing record never stops the batch; its error is collected.

        Args:
            records: Records already reconciled with the store

        Returns:
            AutoRevocationResult with per-outcome counts
        """
        self.started_at = self.clock()
        result = AutoRevocationResult(tenant_id=self.tenant_id, processed=len(records))
        logger.info(f"Processing auto-revocation of {len(records)} records for tenant {self.tenant_id}")

        for record in records:
            try:
                outcome = self.advance(record.id)
            except RevocationFailed as e:
                message = format_record_error(record, e.reason)
                result.errors.append(message)
                self.errors.append(message)
                continue
            except InvalidTransition as e:
                logger.warning(f"Concurrent transition on record {record.id}: {e}")
                result.skipped += 1
                continue
            except Exception as e:
                message = format_record_error(record, e)
                logger.error(message)
                result.errors.append(message)
                self.errors.append(message)
                continue

            if outcome == OUTCOME_REVOKED:
                result.revoked += 1
            elif outcome == OUTCOME_PENDING:
                result.pending_approval += 1
            else:
                result.skipped += 1

        self.completed_at = self.clock()
        logger.info(
            f"Auto-revocation for tenant {self.tenant_id}: {result.revoked} revoked, "
            f"{result.pending_approval} pending approval, {result.skipped} skipped, "
            f"{len(result.errors)} errors"
        )
        return result

    def advance(self, record_id: str) -> str:
        """
        Move one record as far as the tenant's policy allows.

        Returns:
            One of OUTCOME_REVOKED, OUTCOME_PENDING, OUTCOME_SKIPPED

        Raises:
            RevocationFailed: if the access removal failed; the record keeps its state
        """
        with self.store.lock_record(self.tenant_id, record_id) as record:
            if record.is_terminal:
                return OUTCOME_SKIPPED

            if record.status == RecordStatus.APPROVED:
                self._revoke(record)
                return OUTCOME_REVOKED

            if record.status == RecordStatus.PENDING_APPROVAL:
                return OUTCOME_PENDING

            if self.config.require_approval:
                self._request_approval(record)
                return OUTCOME_PENDING

            if record.status == RecordStatus.DETECTED and self.config.notify_user:
                record = self._notify_user(record)

            if record.status == RecordStatus.NOTIFIED and \
                    not grace_period_elapsed(record, self.config, self.clock()):
                return OUTCOME_SKIPPED

            self._revoke(record)
            return OUTCOME_REVOKED

    def approve(self, record_id: str, approved_by: str) -> DormantAccessRecord:
        """
        Approve a pending revocation.

        Raises:
            RecordNotFound: if the record does not exist
            InvalidTransition: if the record is not pending approval
        """
        with self.store.lock_record(self.tenant_id, record_id) as record:
            if record.status != RecordStatus.PENDING_APPROVAL:
                raise InvalidTransition(record.id, record.status.value,
                                        RecordStatus.APPROVED.value, "record is not pending approval")

            step = self._start_step(record, "approve", approved_by=approved_by)
            record.status = RecordStatus.APPROVED
            record.approved_by = approved_by
            record.approved_at = self.clock()
            committed = self.store.commit(record)
            step.mark_success(committed.status.value)

        self._log_audit_event(committed, "approve", "approve_revocation", True, actor=approved_by)
        logger.info(f"Revocation approved: {record_id} by {approved_by}")
        return committed

    def exempt(self, record_id: str, exempted_by: str, reason: str) -> DormantAccessRecord:
        """
        Permanently exclude a record from automated revocation.

        Raises:
            RecordNotFound: if the record does not exist
            InvalidTransition: if the record is already revoked or exempted
        """
        with self.store.lock_record(self.tenant_id, record_id) as record:
            check_transition(record, RecordStatus.EXEMPTED)

            step = self._start_step(record, "exempt", exempted_by=exempted_by, reason=reason)
            record.status = RecordStatus.EXEMPTED
            record.exempted_by = exempted_by
            record.exempted_reason = reason
            record.exempted_at = self.clock()
            committed = self.store.commit(record)
            step.mark_success(committed.status.value)

        self._emit(build_exempted_event(committed))
        self._log_audit_event(committed, "exempt", "exempt_record", True,
                              actor=exempted_by, reason=reason)
        logger.info(f"Exemption granted: {record_id} by {exempted_by}")
        return committed

    def _emit(self, event: DormantAccessEvent):
        """Publish a lifecycle event for a committed transition; delivery failures are logged."""
        try:
            self.emitter.emit(event)
        except Exception as e:
            logger.error(f"Failed to emit {event.topic} for tenant {self.tenant_id}: {e}")

    def _request_approval(self, record: DormantAccessRecord) -> DormantAccessRecord:
        check_transition(record, RecordStatus.PENDING_APPROVAL)
        logger.info(f"Requesting approval for {record.user_name} - {record.app_name}")

        step = self._start_step(record, "request_approval")
        record.status = RecordStatus.PENDING_APPROVAL
        record.approval_requested_at = self.clock()
        committed = self.store.commit(record)
        step.mark_success(committed.status.value)

        self._emit(build_approval_requested_event(committed, self.config.notify_manager))
        self._log_audit_event(committed, "approval_request", "request_approval", True,
                              manager=committed.manager if self.config.notify_manager else None)
        return committed

    def _notify_user(self, record: DormantAccessRecord) -> DormantAccessRecord:
        check_transition(record, RecordStatus.NOTIFIED)
        logger.info(
            f"Notifying user {record.user_email} about dormant access to {record.app_name}"
        )

        step = self._start_step(record, "notify_user")
        record.status = RecordStatus.NOTIFIED
        record.notified_at = self.clock()
        committed = self.store.commit(record)
        step.mark_success(committed.status.value)

        self._emit(build_user_notified_event(committed, self.config.grace_period_days))
        self._log_audit_event(committed, "notify", "notify_user", True,
                              grace_period_days=self.config.grace_period_days)
        return committed

    def _revoke(self, record: DormantAccessRecord) -> DormantAccessRecord:
        """
        Remove access and record the revocation.

        The record is only committed as revoked once the provider confirmed
        the removal.
        """
        check_transition(record, RecordStatus.REVOKED)
        logger.info(f"Revoking access: {record.user_name} from {record.app_name}")

        step = self._start_step(record, "revoke_access")
        try:
            result = self.inventory.revoke_access(record.tenant_id, record.user_id, record.app_id)
        except Exception as e:
            step.mark_failure(str(e))
            self._log_audit_event(record, "revoke", "revoke_access", False, error=str(e))
            raise RevocationFailed(record.user_id, record.app_id, str(e)) from e

        if not result.success:
            reason = result.error or result.message or "Unknown error"
            step.mark_failure(reason)
            logger.error(f"Revocation of {record.user_id} from {record.app_id} failed: {reason}")
            self._log_audit_event(record, "revoke", "revoke_access", False, error=reason)
            raise RevocationFailed(record.user_id, record.app_id, reason)

        record.status = RecordStatus.REVOKED
        record.revoked_at = self.clock()
        committed = self.store.commit(record)
        step.mark_success(committed.status.value)

        self._emit(build_revoked_event(committed))
        self._log_audit_event(committed, "revoke", "revoke_access", True,
                              actor=committed.approved_by, cost_saved=committed.cost_per_license)
        return committed
