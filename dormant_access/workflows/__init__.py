"""
Workflows Package for the Dormant Access Engine.

This package provides the revocation state machine and its helpers.
"""

from .base_workflow import BaseWorkflow, WorkflowStep
from .helpers import (
    ALLOWED_TRANSITIONS,
    can_transition,
    check_transition,
    create_revocation_summary,
    format_record_error,
    grace_period_elapsed,
    select_auto_revoke,
)
from .revocation import RevocationWorkflow

__all__ = [
    "BaseWorkflow",
    "WorkflowStep",
    "RevocationWorkflow",
    "ALLOWED_TRANSITIONS",
    "can_transition",
    "check_transition",
    "create_revocation_summary",
    "format_record_error",
    "grace_period_elapsed",
    "select_auto_revoke",
]
