"""
Events Package.

Exports the event topics, event builders and the bus adapter.
"""

from .emitter import (
    ALL_TOPICS,
    DORMANT_APPROVAL_REQUESTED,
    DORMANT_DETECTED,
    DORMANT_EXEMPTED,
    DORMANT_REVOKED,
    DORMANT_USER_NOTIFIED,
    EventBus,
    EventEmitter,
    InMemoryEventBus,
    build_approval_requested_event,
    build_detected_event,
    build_exempted_event,
    build_revoked_event,
    build_user_notified_event,
)

__all__ = [
    "ALL_TOPICS",
    "DORMANT_APPROVAL_REQUESTED",
    "DORMANT_DETECTED",
    "DORMANT_EXEMPTED",
    "DORMANT_REVOKED",
    "DORMANT_USER_NOTIFIED",
    "EventBus",
    "EventEmitter",
    "InMemoryEventBus",
    "build_approval_requested_event",
    "build_detected_event",
    "build_exempted_event",
    "build_revoked_event",
    "build_user_notified_event",
]
