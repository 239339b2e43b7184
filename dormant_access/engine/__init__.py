"""
Detection Engine Package.

This package provides the pure classification, exclusion and aggregation
logic, the scan orchestrator, and the configuration and record stores.
"""

from .classifier import classify, days_since
from .config_manager import ConfigManager
from .exclusion import ADMIN_ROLES, SERVICE_ACCOUNT_MARKERS, is_excluded
from .record_store import RecordStore
from .scanner import cost_per_license, scan
from .summary import generate_summary

__all__ = [
    "ADMIN_ROLES",
    "SERVICE_ACCOUNT_MARKERS",
    "ConfigManager",
    "RecordStore",
    "classify",
    "cost_per_license",
    "days_since",
    "generate_summary",
    "is_excluded",
    "scan",
]
