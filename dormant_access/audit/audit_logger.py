"""
Audit Logging Module.

Append-only trail of revocation workflow transitions, stored as one JSONL
file per day, used for per-record history and savings reports.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from pydantic import ValidationError

from ..models import AuditRecord

logger = logging.getLogger(__name__)


class AuditLogger:
    """
    Logger for dormant access audit events.

    Records are never rewritten; readers walk the daily files newest first.
    """

    def __init__(self, audit_dir: str = "audit_logs"):
        """
        Initialize the audit logger.

        Args:
            audit_dir: Directory to store audit logs
        """
        self.audit_dir = Path(audit_dir)
        self.audit_dir.mkdir(parents=True, exist_ok=True)

    def _log_file(self, when: datetime) -> Path:
        return self.audit_dir / f"audit_{when.strftime('%Y-%m-%d')}.jsonl"

    def log_event(self, record: AuditRecord) -> str:
        """
        Append an audit record.

        Returns:
            The record ID
        """
        log_file = self._log_file(datetime.now(timezone.utc))
        try:
            with open(log_file, "a", encoding="utf-8") as f:
                f.write(json.dumps(record.model_dump(mode="json")) + "\n")
        except OSError as e:
            logger.error(f"Failed to write audit record {record.id} to {log_file}: {e}")
            raise

        logger.debug(f"Audit {record.event_type} ({'ok' if record.success else 'failed'}) "
                     f"for record {record.record_id}")
        return record.id

    def _iter_records(self) -> Iterator[AuditRecord]:
        """Yield stored audit records, most recent first."""
        for log_file in sorted(self.audit_dir.glob("audit_*.jsonl"), reverse=True):
            with open(log_file, encoding="utf-8") as f:
                lines = f.readlines()

            for line in reversed(lines):
                try:
                    yield AuditRecord.model_validate_json(line)
                except ValidationError as e:
                    logger.warning(f"Skipping unreadable audit line in {log_file.name}: {e}")

    def get_events(
        self,
        tenant_id: Optional[str] = None,
        user_id: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        record_id: Optional[str] = None,
        event_type: Optional[str] = None,
        limit: int = 100,
    ) -> List[AuditRecord]:
        """
        Retrieve audit events with filtering, most recent first.

        Args:
            tenant_id: Filter by tenant
            user_id: Filter by user
            start_date: Filter by start date
            end_date: Filter by end date
            record_id: Filter by dormant access record
            event_type: Filter by event type (revoke, approve, exempt, ...)
            limit: Maximum number of records to return
        """
        results: List[AuditRecord] = []

        for record in self._iter_records():
            if len(results) >= limit:
                break
            if tenant_id and record.tenant_id != tenant_id:
                continue
            if user_id and record.user_id != user_id:
                continue
            if record_id and record.record_id != record_id:
                continue
            if event_type and record.event_type != event_type:
                continue
            if start_date and record.timestamp < start_date:
                continue
            if end_date and record.timestamp > end_date:
                continue
            results.append(record)

        return results

    def get_record_history(self, tenant_id: str, record_id: str) -> List[AuditRecord]:
        """All audit records of one dormant access record, oldest first."""
        events = self.get_events(tenant_id=tenant_id, record_id=record_id, limit=10000)
        return list(reversed(events))

    def generate_report(self, tenant_id: str, start_date: datetime,
                        end_date: datetime) -> Dict[str, Any]:
        """
        Summarise a tenant's revocation activity for a period.

        ``annual_cost_saved`` adds up the license cost of every successful
        revocation in the period.
        """
        events = self.get_events(tenant_id=tenant_id, start_date=start_date,
                                 end_date=end_date, limit=10000)

        by_type: Dict[str, int] = {}
        failed = 0
        cost_saved = 0.0
        for event in events:
            by_type[event.event_type] = by_type.get(event.event_type, 0) + 1
            if not event.success:
                failed += 1
            elif event.event_type == "revoke":
                cost_saved += event.metadata.get("cost_saved") or 0.0

        report = {
            "tenant_id": tenant_id,
            "period": {"start": start_date.isoformat(), "end": end_date.isoformat()},
            "summary": {
                "total_events": len(events),
                "successful_operations": len(events) - failed,
                "failed_operations": failed,
                "events_by_type": by_type,
                "annual_cost_saved": cost_saved,
            },
            "events": [e.model_dump(mode="json") for e in events],
            "recommendations": [],
        }

        if failed:
            report["recommendations"].append("Investigate failed revocations")

        return report
