"""
Event Emitter Adapter for the Dormant Access Engine.

Lifecycle events are built as plain values by the ``build_*`` functions
and handed to an EventBus through the EventEmitter. The engine never
retries emission; delivery guarantees belong to the bus.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from ..models import DormantAccessEvent, DormantAccessRecord

logger = logging.getLogger(__name__)

DORMANT_DETECTED = "access.dormant_detected"
DORMANT_USER_NOTIFIED = "access.dormant_user_notified"
DORMANT_APPROVAL_REQUESTED = "access.dormant_approval_requested"
DORMANT_REVOKED = "access.dormant_revoked"
DORMANT_EXEMPTED = "access.dormant_exempted"

ALL_TOPICS = (
    DORMANT_DETECTED,
    DORMANT_USER_NOTIFIED,
    DORMANT_APPROVAL_REQUESTED,
    DORMANT_REVOKED,
    DORMANT_EXEMPTED,
)

EventHandler = Callable[[str, Dict[str, Any]], None]


def _base_payload(record: DormantAccessRecord) -> Dict[str, Any]:
    return {
        "tenantId": record.tenant_id,
        "recordId": record.id,
        "userId": record.user_id,
        "userName": record.user_name,
        "appId": record.app_id,
        "appName": record.app_name,
        "daysSinceAccess": record.days_since_access,
    }


def build_detected_event(record: DormantAccessRecord) -> DormantAccessEvent:
    payload = _base_payload(record)
    payload["category"] = record.category.value
    return DormantAccessEvent(topic=DORMANT_DETECTED, tenant_id=record.tenant_id, payload=payload)


def build_user_notified_event(
    record: DormantAccessRecord, grace_period_days: int
) -> DormantAccessEvent:
    payload = _base_payload(record)
    payload.update({"userEmail": record.user_email, "gracePeriodDays": grace_period_days})
    return DormantAccessEvent(
        topic=DORMANT_USER_NOTIFIED, tenant_id=record.tenant_id, payload=payload
    )


def build_approval_requested_event(
    record: DormantAccessRecord, notify_manager: bool = True
) -> DormantAccessEvent:
    """Approval request; the manager is named as approver only when manager notification is on."""
    payload = _base_payload(record)
    payload["manager"] = record.manager if notify_manager else None
    payload["costPerLicense"] = record.cost_per_license
    return DormantAccessEvent(
        topic=DORMANT_APPROVAL_REQUESTED, tenant_id=record.tenant_id, payload=payload
    )


def build_revoked_event(record: DormantAccessRecord) -> DormantAccessEvent:
    payload = _base_payload(record)
    payload.update({
        "costSaved": record.cost_per_license,
        "approvedBy": record.approved_by,
        "revokedAt": record.revoked_at.isoformat() if record.revoked_at else None,
    })
    return DormantAccessEvent(topic=DORMANT_REVOKED, tenant_id=record.tenant_id, payload=payload)


def build_exempted_event(record: DormantAccessRecord) -> DormantAccessEvent:
    payload = _base_payload(record)
    payload.update({
        "exemptedBy": record.exempted_by,
        "reason": record.exempted_reason,
        "exemptedAt": record.exempted_at.isoformat() if record.exempted_at else None,
    })
    return DormantAccessEvent(topic=DORMANT_EXEMPTED, tenant_id=record.tenant_id, payload=payload)


class EventBus(ABC):
    """External event/policy bus."""

    @abstractmethod
    def emit(self, topic: str, payload: Dict[str, Any]) -> None:
        """Publish a payload on a topic."""


class InMemoryEventBus(EventBus):
    """
    Process-local event bus.

    Dispatches synchronously to subscribers, keeps a history of emitted
    events and per-topic counts. Handler failures are logged and never
    reach the emitter.
    """

    def __init__(self, keep_history: bool = True):
        self.keep_history = keep_history
        self.history: List[DormantAccessEvent] = []
        self.event_counts: Dict[str, int] = {}
        self._handlers: Dict[str, List[EventHandler]] = {}
        self._lock = threading.Lock()

    def subscribe(self, topic: str, handler: EventHandler) -> None:
        """Register a handler for a topic ("*" receives every topic)."""
        with self._lock:
            self._handlers.setdefault(topic, []).append(handler)

    def unsubscribe(self, topic: str, handler: EventHandler) -> None:
        with self._lock:
            if handler in self._handlers.get(topic, []):
                self._handlers[topic].remove(handler)

    def emit(self, topic: str, payload: Dict[str, Any]) -> None:
        logger.debug(f"Emitting event {topic}")

        with self._lock:
            self.event_counts[topic] = self.event_counts.get(topic, 0) + 1
            if self.keep_history:
                self.history.append(DormantAccessEvent(
                    topic=topic, tenant_id=payload.get("tenantId", ""), payload=dict(payload)
                ))
            handlers = list(self._handlers.get(topic, [])) + list(self._handlers.get("*", []))

        for handler in handlers:
            try:
                handler(topic, payload)
            except Exception as e:
                logger.error(f"Error in event handler for {topic}: {e}")

    def get_events(self, topic: Optional[str] = None,
                   tenant_id: Optional[str] = None) -> List[DormantAccessEvent]:
        """Emitted events, optionally filtered by topic and tenant."""
        with self._lock:
            events = list(self.history)
        if topic:
            events = [e for e in events if e.topic == topic]
        if tenant_id:
            events = [e for e in events if e.tenant_id == tenant_id]
        return events

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            return dict(self.event_counts)

    def clear(self) -> None:
        with self._lock:
            self.history.clear()
            self.event_counts.clear()


class EventEmitter:
    """Adapter between the engine's event values and the external bus."""

    def __init__(self, bus: Optional[EventBus] = None):
        self.bus = bus or InMemoryEventBus()

    def emit(self, event: DormantAccessEvent) -> None:
        payload = dict(event.payload)
        payload.setdefault("tenantId", event.tenant_id)
        payload.setdefault("emittedAt", event.emitted_at.isoformat())
        self.bus.emit(event.topic, payload)
        logger.info(f"Emitted {event.topic} for tenant {event.tenant_id}")
