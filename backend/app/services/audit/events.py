"""
Audit Events

Every public mutation emits one AuditEvent after it has committed. The sink is
a separate collaborator: it writes on its own session and never raises back
into the operation that emitted the event.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from ...models.db_models import AuditLogDB

logger = logging.getLogger(__name__)


@dataclass
class AuditEvent:
    """Post-success record of a mutation."""
    table: str
    action: str
    office_id: Optional[str] = None
    user_id: Optional[str] = None
    case_id: Optional[str] = None
    diff: Dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=datetime.utcnow)

    def describe(self) -> str:
        prefix = f"[CASE:{self.case_id}] " if self.case_id else ""
        return f"{prefix}{self.action} on {self.table}"


class AuditSink:
    """Base sink: logs the event."""

    def record(self, event: AuditEvent) -> None:
        logger.info(f"audit: {event.describe()} {event.diff or ''}")

    def emit(self, event: AuditEvent) -> None:
        """Fire-and-forget entry point used by the services."""
        try:
            self.record(event)
        except Exception:
            logger.exception(f"Audit sink failed for '{event.describe()}'")


class DatabaseAuditSink(AuditSink):
    """Persists events to audit_log using a short-lived session of its own."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def record(self, event: AuditEvent) -> None:
        db = self.session_factory()
        try:
            db.add(AuditLogDB(
                id=str(uuid4()),
                office_id=event.office_id,
                user_id=event.user_id,
                case_id=event.case_id,
                table_name=event.table,
                action=event.action,
                diff=event.diff or None,
                created_at=event.occurred_at,
            ))
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
