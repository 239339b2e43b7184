"""
Summary Aggregator for the Dormant Access Engine.

Folds a set of dormant access records into counts, cost rollups and a
ranking of the users holding the most expensive unused access.
"""

import logging
from typing import Dict, Iterable, List

from ..models import (
    CategoryCounts,
    DormantAccessRecord,
    DormantAccessSummary,
    DormantCategory,
    PotentialSavings,
    TopOffender,
)

logger = logging.getLogger(__name__)

UNKNOWN_DEPARTMENT = "Unknown"
TOP_OFFENDERS_LIMIT = 10


def generate_summary(
    records: Iterable[DormantAccessRecord], top_n: int = TOP_OFFENDERS_LIMIT
) -> DormantAccessSummary:
    """
    Aggregate dormant access records.

    Args:
        records: Records to fold
        top_n: Number of users to keep in the offender ranking

    Returns:
        DormantAccessSummary for the records
    """
    records = list(records)

    by_category = CategoryCounts()
    by_department: Dict[str, int] = {}
    by_app: Dict[str, int] = {}
    # Insertion order doubles as the tie-breaker for the ranking
    user_costs: Dict[str, Dict] = {}
    total_cost = 0.0

    for record in records:
        if record.category == DormantCategory.WARNING:
            by_category.warning += 1
        elif record.category == DormantCategory.CRITICAL:
            by_category.critical += 1
        else:
            by_category.auto_revoke += 1

        dept = record.department or UNKNOWN_DEPARTMENT
        by_department[dept] = by_department.get(dept, 0) + 1

        by_app[record.app_name] = by_app.get(record.app_name, 0) + 1

        if record.user_id not in user_costs:
            user_costs[record.user_id] = {"name": record.user_name, "apps": 0, "cost": 0.0}
        user_costs[record.user_id]["apps"] += 1
        user_costs[record.user_id]["cost"] += record.cost_per_license or 0.0

        total_cost += record.cost_per_license or 0.0

    logger.debug(f"Summarised {len(records)} dormant records, annual cost {total_cost:.2f}")

    return DormantAccessSummary(
        total_dormant=len(records),
        by_category=by_category,
        by_department=by_department,
        by_app=by_app,
        potential_savings=PotentialSavings(monthly=total_cost / 12, annual=total_cost),
        top_offenders=rank_offenders(user_costs, top_n),
    )


def rank_offenders(user_costs: Dict[str, Dict], top_n: int) -> List[TopOffender]:
    """Rank users by total dormant cost, highest first, keeping input order on ties."""
    offenders = [
        TopOffender(
            user_id=user_id,
            user_name=data["name"],
            dormant_apps=data["apps"],
            total_cost=data["cost"],
        )
        for user_id, data in user_costs.items()
    ]
    # sorted() is stable
    offenders = sorted(offenders, key=lambda o: o.total_cost, reverse=True)
    return offenders[:top_n]
