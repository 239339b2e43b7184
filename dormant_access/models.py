"""
Core data models for the Dormant Access Engine.

This module defines the Pydantic models used throughout the system
for tenant configuration, inventory data, dormant access records,
scan summaries and workflow results.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Reported staleness for grants that were never used
NEVER_ACCESSED_DAYS = 999


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class DormantCategory(str, Enum):
    """Staleness tier of a dormant access grant."""
    WARNING = "warning"
    CRITICAL = "critical"
    AUTO_REVOKE = "auto_revoke"


class RecordStatus(str, Enum):
    """Revocation workflow state of a dormant access record."""
    DETECTED = "detected"
    NOTIFIED = "notified"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REVOKED = "revoked"
    EXEMPTED = "exempted"


TERMINAL_STATUSES = frozenset({RecordStatus.REVOKED, RecordStatus.EXEMPTED})


class DormantAccessConfig(BaseModel):
    """
    Per-tenant dormant access policy.

    Instances are immutable snapshots; use ``merged`` to derive an updated copy.
    """
    model_config = ConfigDict(frozen=True)

    warning_days: int = Field(30, ge=0, description="First warning threshold in days")
    critical_days: int = Field(60, ge=0, description="Critical threshold in days")
    auto_revoke_days: int = Field(90, ge=0, description="Auto-revoke threshold in days")
    exclude_admins: bool = Field(True, description="Exclude admin users from scans")
    exclude_service_accounts: bool = Field(True, description="Exclude service accounts from scans")
    require_approval: bool = Field(True, description="Require approval before auto-revoke")
    notify_user: bool = Field(True, description="Notify the user before revocation")
    notify_manager: bool = Field(True, description="Notify the manager about dormant access")
    grace_period_days: int = Field(7, ge=0, description="Grace period after notification")

    @model_validator(mode="after")
    def check_thresholds_ascending(self) -> "DormantAccessConfig":
        """Thresholds must be strictly ascending."""
        if not self.warning_days < self.critical_days < self.auto_revoke_days:
            raise ValueError(
                "Thresholds must be strictly ascending: "
                f"warning_days={self.warning_days}, critical_days={self.critical_days}, "
                f"auto_revoke_days={self.auto_revoke_days}"
            )
        return self

    def merged(self, **changes: Any) -> "DormantAccessConfig":
        """Return a validated copy with the given fields replaced."""
        unknown = set(changes) - set(type(self).model_fields)
        if unknown:
            raise ValueError(f"Unknown configuration fields: {', '.join(sorted(unknown))}")
        data = self.model_dump()
        data.update({k: v for k, v in changes.items() if v is not None})
        return DormantAccessConfig(**data)


class SaasApp(BaseModel):
    """An application in the tenant's inventory."""
    id: str
    name: str
    tenant_id: Optional[str] = None


class AccessGrant(BaseModel):
    """A single user's access grant to an application."""
    user_id: str
    app_id: str
    status: str = Field("active", description="Grant status (active, suspended, removed)")
    access_type: Optional[str] = Field("user", description="Kind of access (user, admin, guest)")
    granted_at: Optional[datetime] = None
    last_access_date: Optional[datetime] = Field(None, description="None if never accessed")


class Contract(BaseModel):
    """License contract for an application."""
    app_id: str
    status: str = "active"
    annual_value: float = Field(0.0, ge=0)
    total_licenses: int = Field(0, ge=0)


class DirectoryUser(BaseModel):
    """User record supplied by the identity provider."""
    id: str
    first_name: str = ""
    last_name: str = ""
    email: str
    department: Optional[str] = None
    manager: Optional[str] = None
    role: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class DormantAccessRecord(BaseModel):
    """One dormant (tenant, user, application) grant and its workflow state."""
    id: str = Field(..., description="Unique record identifier")
    tenant_id: str
    user_id: str
    user_name: str
    user_email: str
    department: Optional[str] = None
    manager: Optional[str] = None
    app_id: str
    app_name: str
    access_type: str = "user"
    granted_at: datetime
    last_access_date: Optional[datetime] = None
    days_since_access: int = Field(..., ge=0)
    category: DormantCategory
    status: RecordStatus = RecordStatus.DETECTED
    cost_per_license: float = Field(0.0, ge=0)
    detected_at: datetime = Field(default_factory=utc_now)
    notified_at: Optional[datetime] = None
    approval_requested_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    revoked_at: Optional[datetime] = None
    exempted_at: Optional[datetime] = None
    exempted_by: Optional[str] = None
    exempted_reason: Optional[str] = None
    version: int = Field(0, description="Incremented on every committed transition")

    @property
    def record_key(self) -> Tuple[str, str, str]:
        return (self.tenant_id, self.user_id, self.app_id)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class CategoryCounts(BaseModel):
    """Record counts per staleness category."""
    warning: int = 0
    critical: int = 0
    auto_revoke: int = 0

    def total(self) -> int:
        return self.warning + self.critical + self.auto_revoke


class PotentialSavings(BaseModel):
    """License cost that revoking all dormant access would free up."""
    monthly: float = 0.0
    annual: float = 0.0


class TopOffender(BaseModel):
    """A user ranked by total dormant access cost."""
    user_id: str
    user_name: str
    dormant_apps: int
    total_cost: float


class DormantAccessSummary(BaseModel):
    """Aggregate statistics over a set of dormant access records."""
    total_dormant: int = 0
    by_category: CategoryCounts = Field(default_factory=CategoryCounts)
    by_department: Dict[str, int] = Field(default_factory=dict)
    by_app: Dict[str, int] = Field(default_factory=dict)
    potential_savings: PotentialSavings = Field(default_factory=PotentialSavings)
    top_offenders: List[TopOffender] = Field(default_factory=list)


class ScanResult(BaseModel):
    """Result of scanning a tenant for dormant access."""
    tenant_id: str
    records: List[DormantAccessRecord] = Field(default_factory=list)
    summary: DormantAccessSummary = Field(default_factory=DormantAccessSummary)
    errors: List[str] = Field(default_factory=list, description="Applications dropped from the scan")
    cancelled: bool = False
    scanned_at: datetime = Field(default_factory=utc_now)


class AutoRevocationResult(BaseModel):
    """Per-outcome counts of a revocation pass."""
    tenant_id: str
    processed: int = 0
    revoked: int = 0
    pending_approval: int = 0
    skipped: int = 0
    errors: List[str] = Field(default_factory=list)


class DormantAccessEvent(BaseModel):
    """Typed lifecycle event destined for the event bus."""
    topic: str
    tenant_id: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    emitted_at: datetime = Field(default_factory=utc_now)

    @field_validator("topic")
    @classmethod
    def validate_topic(cls, v: str) -> str:
        if not v.startswith("access.dormant_"):
            raise ValueError(f"Unsupported event topic: {v}")
        return v


class AuditRecord(BaseModel):
    """Audit record for compliance and reporting."""
    id: str = Field(..., description="Unique audit record ID")
    timestamp: datetime = Field(default_factory=utc_now)
    tenant_id: str
    event_type: str = Field(..., description="Type of event (revoke, approve, exempt, etc.)")
    record_id: str
    user_id: str
    app_id: str
    action: str = Field(..., description="Specific action taken")
    actor: Optional[str] = Field(None, description="Human or system that caused the action")
    success: bool = Field(..., description="Whether the action succeeded")
    error_message: Optional[str] = Field(None, description="Error details if failed")
    metadata: Dict[str, Any] = Field(default_factory=dict)


# Type aliases for convenience
DormantAccessRecords = List[DormantAccessRecord]
AuditRecords = List[AuditRecord]
