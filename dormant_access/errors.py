"""
Error types raised by the Dormant Access Engine.
"""

from typing import Optional


class DormantAccessError(Exception):
    """Base class for all engine errors."""


class ProviderUnavailable(DormantAccessError):
    """An inventory or identity provider call failed."""

    def __init__(self, provider: str, operation: str, reason: str = ""):
        self.provider = provider
        self.operation = operation
        self.reason = reason
        super().__init__(f"{provider}.{operation} unavailable: {reason}" if reason
                         else f"{provider}.{operation} unavailable")


class UserUnresolved(DormantAccessError):
    """The identity provider does not know the user. Grants are skipped, never reported."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User {user_id} could not be resolved")


class RevocationFailed(DormantAccessError):
    """The underlying access removal call failed."""

    def __init__(self, user_id: str, app_id: str, reason: Optional[str] = None):
        self.user_id = user_id
        self.app_id = app_id
        self.reason = reason or "Unknown error"
        super().__init__(f"Failed to revoke {user_id} from {app_id}: {self.reason}")


class RecordNotFound(DormantAccessError, LookupError):
    """No record with the given id exists for the tenant."""

    def __init__(self, record_id: str, tenant_id: Optional[str] = None):
        self.record_id = record_id
        self.tenant_id = tenant_id
        super().__init__(f"Dormant access record {record_id} not found")


# Short alias used by the REST layer
NotFound = RecordNotFound


class InvalidTransition(DormantAccessError, ValueError):
    """The requested workflow transition is not allowed from the record's state."""

    def __init__(self, record_id: str, current: str, target: str, detail: str = ""):
        self.record_id = record_id
        self.current = current
        self.target = target
        message = f"Cannot move record {record_id} from {current} to {target}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ConfigValidationError(DormantAccessError, ValueError):
    """A configuration update violates the threshold invariants."""

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__("Invalid dormant access configuration: " + "; ".join(self.errors))
