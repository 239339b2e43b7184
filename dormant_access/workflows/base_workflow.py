"""
Base Workflow Classes for the Dormant Access Engine.

A workflow run moves records of one tenant between workflow states. Every
attempted transition is kept as a WorkflowStep and, when an audit logger
is configured, written to the audit trail.
"""

import logging
import uuid
from abc import ABC
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ..audit.audit_logger import AuditLogger
from ..models import AuditRecord, DormantAccessRecord, utc_now

logger = logging.getLogger(__name__)


class WorkflowStep:
    """One attempted transition of a record."""

    def __init__(
        self,
        record_id: str,
        operation: str,
        from_status: str,
        parameters: Optional[Dict[str, Any]] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.record_id = record_id
        self.operation = operation
        self.from_status = from_status
        self.to_status: Optional[str] = None
        self.parameters = parameters or {}
        self.clock = clock
        self.executed_at: Optional[datetime] = None
        self.success: bool = False
        self.error: Optional[str] = None

    def mark_success(self, to_status: str):
        self.executed_at = self.clock()
        self.success = True
        self.to_status = to_status

    def mark_failure(self, error: str):
        self.executed_at = self.clock()
        self.success = False
        self.error = error

    def to_dict(self) -> Dict[str, Any]:
        """Convert step to dictionary for serialization."""
        return {
            "record_id": self.record_id,
            "operation": self.operation,
            "transition": f"{self.from_status} -> {self.to_status or self.from_status}",
            "parameters": self.parameters,
            "executed_at": self.executed_at.isoformat() if self.executed_at else None,
            "success": self.success,
            "error": self.error,
        }


class BaseWorkflow(ABC):
    """
    Abstract base class for dormant access workflows.

    Args:
        tenant_id: Tenant every step of this run belongs to
        audit_logger: Where audit records go; None disables auditing
        clock: Source of transition timestamps
    """

    def __init__(
        self,
        tenant_id: str,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.tenant_id = tenant_id
        self.audit_logger = audit_logger
        self.clock = clock
        self.workflow_id = str(uuid.uuid4())
        self.started_at: Optional[datetime] = None
        self.completed_at: Optional[datetime] = None
        self.steps: List[WorkflowStep] = []
        self.errors: List[str] = []

        logger.debug(f"Initialized {self.__class__.__name__} {self.workflow_id} for tenant {tenant_id}")

    def _start_step(self, record: DormantAccessRecord, operation: str,
                    **parameters: Any) -> WorkflowStep:
        step = WorkflowStep(record.id, operation, record.status.value, parameters, clock=self.clock)
        self.steps.append(step)
        return step

    def _log_audit_event(
        self,
        record: DormantAccessRecord,
        event_type: str,
        action: str,
        success: bool,
        actor: Optional[str] = None,
        error: Optional[str] = None,
        **metadata: Any,
    ) -> Optional[str]:
        """
        Append a transition of ``record`` to the audit trail.

        Returns:
            Audit record ID, or None when auditing is disabled or failed
        """
        if self.audit_logger is None:
            return None

        audit_record = AuditRecord(
            id=str(uuid.uuid4()),
            tenant_id=record.tenant_id,
            event_type=event_type,
            record_id=record.id,
            user_id=record.user_id,
            app_id=record.app_id,
            action=action,
            actor=actor,
            success=success,
            error_message=error,
            metadata={"workflow_id": self.workflow_id, "status": record.status.value, **metadata},
        )

        try:
            self.audit_logger.log_event(audit_record)
        except OSError as e:
            # The transition is already committed
            logger.error(f"Audit of {action} on record {record.id} was not written: {e}")
            return None
        return audit_record.id

    def get_execution_summary(self) -> Dict[str, Any]:
        """Get summary of workflow execution."""
        by_operation: Dict[str, int] = {}
        for step in self.steps:
            by_operation[step.operation] = by_operation.get(step.operation, 0) + 1
        successful_steps = len([s for s in self.steps if s.success])

        return {
            "workflow_id": self.workflow_id,
            "workflow_type": self.__class__.__name__,
            "tenant_id": self.tenant_id,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "records_touched": len({s.record_id for s in self.steps}),
            "total_steps": len(self.steps),
            "successful_steps": successful_steps,
            "failed_steps": len(self.steps) - successful_steps,
            "steps_by_operation": by_operation,
            "errors": self.errors.copy(),
        }
