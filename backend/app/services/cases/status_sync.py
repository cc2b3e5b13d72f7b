"""
Status Synchronizer

A case's status is never edited by hand: it is derived from the statuses of
its sub-tasks every time one of them is created, updated or deleted.

    no sub-tasks          -> pending
    all completed         -> done
    anything else         -> in_progress
    archived              -> archived (terminal)

sync() runs inside the caller's transaction and only flushes, so the status
and the mutation that triggered it commit or roll back together.
"""
import logging
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from app.models.db_models import CaseDB, CaseStatus, SubTaskDB, SubTaskStatus
from ..audit import AuditEvent, AuditSink
from ..errors import ValidationError, service_operation
from .case_loader import get_case

logger = logging.getLogger(__name__)


def derive_case_status(
    current: Optional[CaseStatus],
    subtask_statuses: Iterable[SubTaskStatus],
) -> CaseStatus:
    if current == CaseStatus.ARCHIVED:
        return CaseStatus.ARCHIVED
    statuses = list(subtask_statuses)
    if not statuses:
        return CaseStatus.PENDING
    if all(s == SubTaskStatus.COMPLETED for s in statuses):
        return CaseStatus.DONE
    return CaseStatus.IN_PROGRESS


class CaseStatusSynchronizer:
    """Applies derive_case_status to stored cases."""

    def __init__(self, db: Session, audit_sink: Optional[AuditSink] = None):
        self.db = db
        self.audit_sink = audit_sink or AuditSink()

    def sync(self, case: CaseDB) -> CaseStatus:
        """Recompute and flush. Commit is left to the caller."""
        self.db.flush()
        statuses = [
            row[0] for row in
            self.db.query(SubTaskDB.status).filter(SubTaskDB.case_id == case.id).all()
        ]
        derived = derive_case_status(case.status, statuses)
        if case.status != derived:
            logger.info(f"[CASE:{case.id}] status {_value(case.status)} -> {derived.value}")
            case.status = derived
            self.db.flush()
        return derived

    @service_operation
    def get_case(self, office_id: str, case_id: str) -> CaseDB:
        return get_case(self.db, office_id, case_id)

    @service_operation
    def sync_case_status(self, office_id: str, case_id: str, user_id: Optional[str] = None) -> CaseStatus:
        """Public entry point. Idempotent: a second call with no changes returns the same status."""
        case = get_case(self.db, office_id, case_id)
        before = case.status
        status = self.sync(case)
        self.db.commit()
        if before != status:
            self.audit_sink.emit(AuditEvent(
                table="cases",
                action="status_sync",
                office_id=office_id,
                user_id=user_id,
                case_id=case.id,
                diff={"status": [_value(before), status.value]},
            ))
        return status

    @service_operation
    def archive_case(self, office_id: str, case_id: str, user_id: Optional[str] = None) -> CaseStatus:
        """The one direct status write. Archived cases stay archived."""
        case = get_case(self.db, office_id, case_id)
        if case.status == CaseStatus.ARCHIVED:
            raise ValidationError(f"Case {case_id} is already archived")
        before = case.status
        case.status = CaseStatus.ARCHIVED
        self.db.commit()
        logger.info(f"[CASE:{case.id}] archived")
        self.audit_sink.emit(AuditEvent(
            table="cases",
            action="archive",
            office_id=office_id,
            user_id=user_id,
            case_id=case.id,
            diff={"status": [_value(before), CaseStatus.ARCHIVED.value]},
        ))
        return CaseStatus.ARCHIVED


def _value(status: Optional[CaseStatus]) -> Optional[str]:
    return status.value if status is not None else None
