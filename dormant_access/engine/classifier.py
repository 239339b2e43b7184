"""
Threshold Classifier for the Dormant Access Engine.

Maps the age of a grant's last use onto a staleness category using
highest-threshold-wins semantics.
"""

import math
from datetime import datetime, timezone
from typing import Optional

from ..models import NEVER_ACCESSED_DAYS, DormantAccessConfig, DormantCategory

SECONDS_PER_DAY = 60 * 60 * 24


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps from providers are taken to be UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def days_since(last_access: Optional[datetime], now: datetime) -> int:
    """
    Whole days elapsed since the last access.

    Args:
        last_access: Last access timestamp, or None if never accessed
        now: Reference time of the scan

    Returns:
        Floor of the elapsed days, never negative. Never-accessed grants
        report NEVER_ACCESSED_DAYS.
    """
    if last_access is None:
        return NEVER_ACCESSED_DAYS

    elapsed = (_as_utc(now) - _as_utc(last_access)).total_seconds()
    return max(0, math.floor(elapsed / SECONDS_PER_DAY))


def classify(
    days_since_access: int, config: DormantAccessConfig, never_accessed: bool = False
) -> Optional[DormantCategory]:
    """
    Classify a grant's staleness.

    Boundary values belong to the higher category. A grant that was never
    accessed is always auto-revoke, whatever the thresholds.

    Returns:
        The category, or None when the grant is not dormant
    """
    if never_accessed:
        return DormantCategory.AUTO_REVOKE
    if days_since_access >= config.auto_revoke_days:
        return DormantCategory.AUTO_REVOKE
    if days_since_access >= config.critical_days:
        return DormantCategory.CRITICAL
    if days_since_access >= config.warning_days:
        return DormantCategory.WARNING
    return None
