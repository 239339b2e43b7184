"""
DataFrame shaping for the dashboard.

Turns the REST API's JSON payloads into pandas frames ready for charting.
"""

from typing import Any, Dict, List

import pandas as pd

RECORD_COLUMNS = [
    "id",
    "user_name",
    "user_email",
    "department",
    "app_name",
    "days_since_access",
    "category",
    "status",
    "cost_per_license",
]


def records_frame(records: List[Dict[str, Any]]) -> pd.DataFrame:
    """Flatten dormant access records into a frame, most stale first."""
    frame = pd.DataFrame(records, columns=RECORD_COLUMNS)
    if frame.empty:
        return frame
    frame["department"] = frame["department"].fillna("Unknown")
    return frame.sort_values("days_since_access", ascending=False, kind="stable").reset_index(drop=True)


def counts_frame(counts: Dict[str, int], label: str) -> pd.DataFrame:
    """Two-column frame (label, count) from a counts mapping, largest first."""
    frame = pd.DataFrame(list(counts.items()), columns=[label, "count"])
    return frame.sort_values("count", ascending=False, kind="stable").reset_index(drop=True)


def category_frame(summary: Dict[str, Any]) -> pd.DataFrame:
    """Counts per staleness category in severity order."""
    by_category = summary.get("by_category", {})
    return pd.DataFrame({
        "category": ["warning", "critical", "auto_revoke"],
        "count": [by_category.get("warning", 0), by_category.get("critical", 0),
                  by_category.get("auto_revoke", 0)],
    })


def offenders_frame(summary: Dict[str, Any]) -> pd.DataFrame:
    """Top offenders as a frame."""
    return pd.DataFrame(summary.get("top_offenders", []),
                        columns=["user_id", "user_name", "dormant_apps", "total_cost"])
