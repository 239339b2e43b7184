"""
Dormant Access Engine

Detects unused (dormant) user access to SaaS applications, classifies it
against per-tenant staleness thresholds, and drives the notify, approve,
exempt and revoke lifecycle that removes it and reports the license
savings.
"""

__version__ = "1.0.0"
__author__ = "Dormant Access Engine Team"
__email__ = "team@example.com"

from .detector import DormantAccessDetector
from .engine.config_manager import ConfigManager
from .engine.record_store import RecordStore
from .engine.scanner import scan
from .workflows.revocation import RevocationWorkflow

__all__ = [
    "DormantAccessDetector",
    "ConfigManager",
    "RecordStore",
    "RevocationWorkflow",
    "scan",
]
