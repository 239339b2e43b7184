"""
Workflow Helper Functions for the Dormant Access Engine.

The revocation state machine's transition table and small utilities
shared by the workflow, the API and the CLI.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, FrozenSet, List

from ..errors import InvalidTransition
from ..models import (
    AutoRevocationResult,
    DormantAccessConfig,
    DormantAccessRecord,
    DormantCategory,
    RecordStatus,
)

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[RecordStatus, FrozenSet[RecordStatus]] = {
    RecordStatus.DETECTED: frozenset({
        RecordStatus.NOTIFIED,
        RecordStatus.PENDING_APPROVAL,
        RecordStatus.REVOKED,
        RecordStatus.EXEMPTED,
    }),
    RecordStatus.NOTIFIED: frozenset({
        RecordStatus.PENDING_APPROVAL,
        RecordStatus.REVOKED,
        RecordStatus.EXEMPTED,
    }),
    RecordStatus.PENDING_APPROVAL: frozenset({RecordStatus.APPROVED, RecordStatus.EXEMPTED}),
    RecordStatus.APPROVED: frozenset({RecordStatus.REVOKED, RecordStatus.EXEMPTED}),
    RecordStatus.REVOKED: frozenset(),
    RecordStatus.EXEMPTED: frozenset(),
}


def can_transition(current: RecordStatus, target: RecordStatus) -> bool:
    """Check whether the state machine allows ``current -> target``."""
    return target in ALLOWED_TRANSITIONS[current]


def check_transition(record: DormantAccessRecord, target: RecordStatus) -> None:
    """
    Validate a transition for a record.

    Raises:
        InvalidTransition: if the transition is not allowed
    """
    if not can_transition(record.status, target):
        raise InvalidTransition(record.id, record.status.value, target.value)


def grace_period_elapsed(record: DormantAccessRecord, config: DormantAccessConfig,
                         now: datetime) -> bool:
    """Check whether a notified record's grace period is over."""
    if config.grace_period_days <= 0:
        return True
    if record.notified_at is None:
        return False
    return record.notified_at + timedelta(days=config.grace_period_days) <= now


def select_auto_revoke(records: List[DormantAccessRecord]) -> List[DormantAccessRecord]:
    """Records eligible for automated revocation."""
    return [r for r in records if r.category == DormantCategory.AUTO_REVOKE]


def format_record_error(record: DormantAccessRecord, reason: Any) -> str:
    """Human-readable error line for a failed record."""
    return f"Failed to process {record.user_name} - {record.app_name}: {reason}"


def create_revocation_summary(result: AutoRevocationResult) -> Dict[str, Any]:
    """
    Create a summary of a revocation pass for reporting.

    Args:
        result: AutoRevocationResult of the pass

    Returns:
        Dictionary with the outcome counts
    """
    return {
        "tenant_id": result.tenant_id,
        "processed": result.processed,
        "revoked": result.revoked,
        "pending_approval": result.pending_approval,
        "skipped": result.skipped,
        "error_count": len(result.errors),
        "errors": list(result.errors),
        "success": not result.errors,
    }
