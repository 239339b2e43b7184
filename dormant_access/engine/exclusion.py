"""
Exclusion Filter for the Dormant Access Engine.

Eligibility rules that remove privileged and non-human accounts from
dormant access scans before classification.
"""

from ..models import DirectoryUser, DormantAccessConfig

ADMIN_ROLES = frozenset({"admin", "super-admin", "it-manager"})

SERVICE_ACCOUNT_MARKERS = ("service", "system", "noreply", "api", "bot")


def is_admin_user(user: DirectoryUser) -> bool:
    """Check whether the user holds an administrative role."""
    return user.role in ADMIN_ROLES


def is_service_account(user: DirectoryUser) -> bool:
    """Check whether the user's email looks like a service account."""
    email = (user.email or "").lower()
    return any(marker in email for marker in SERVICE_ACCOUNT_MARKERS)


def is_excluded(user: DirectoryUser, config: DormantAccessConfig) -> bool:
    """
    Apply the tenant's exclusion rules to a user.

    Args:
        user: Resolved directory user
        config: Tenant configuration snapshot

    Returns:
        True if the user's grants must not be considered
    """
    if config.exclude_admins and is_admin_user(user):
        return True
    if config.exclude_service_accounts and is_service_account(user):
        return True
    return False
