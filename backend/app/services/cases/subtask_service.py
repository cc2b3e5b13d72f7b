"""
Sub-task Service

Create, update and delete sub-tasks (diligencias) and merge their metadata.
Every mutation re-derives the case status inside the same transaction, commits
once, and only then emits its audit event.
"""
import logging
from datetime import date
from typing import Any, Dict, Optional
from uuid import uuid4

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from app.models.db_models import CaseStatus, SubTaskDB, SubTaskStatus
from app.models.domain import SubTaskMetadataUpdate
from ..audit import AuditEvent, AuditSink
from ..errors import ValidationError, service_operation
from .case_loader import get_case, get_subtask, get_subtask_type
from .status_sync import CaseStatusSynchronizer

logger = logging.getLogger(__name__)


def merge_metadata(current: Optional[Dict[str, Any]], changes: Dict[str, Any]) -> Dict[str, Any]:
    """Shallow key-wise merge. Keys absent from ``changes`` are kept as they are."""
    return {**(current or {}), **changes}


def _validated_cost(cost) -> Optional[int]:
    if cost is None:
        return None
    if isinstance(cost, bool) or not isinstance(cost, int):
        raise ValidationError(f"Cost must be a whole number of pesos, got {cost!r}")
    if cost < 0:
        raise ValidationError("Cost cannot be negative")
    return cost


class SubTaskService:
    def __init__(self, db: Session, audit_sink: Optional[AuditSink] = None):
        self.db = db
        self.audit_sink = audit_sink or AuditSink()
        self.synchronizer = CaseStatusSynchronizer(db, self.audit_sink)

    def _check_case_open(self, case) -> None:
        if case.status == CaseStatus.ARCHIVED:
            raise ValidationError(f"Case {case.id} is archived; its sub-tasks are read-only")

    def _emit(self, action: str, office_id: str, user_id: Optional[str], case_id: str, diff: Dict[str, Any]):
        self.audit_sink.emit(AuditEvent(
            table="subtasks",
            action=action,
            office_id=office_id,
            user_id=user_id,
            case_id=case_id,
            diff=diff,
        ))

    @service_operation
    def get_subtask(self, office_id: str, subtask_id: str) -> SubTaskDB:
        return get_subtask(self.db, office_id, subtask_id)

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    @service_operation
    def create_subtask(
        self,
        office_id: str,
        case_id: str,
        type_id: str,
        scheduled_date: Optional[date] = None,
        metadata: Optional[SubTaskMetadataUpdate] = None,
        notes: Optional[str] = None,
        cost: Optional[int] = None,
        user_id: Optional[str] = None,
    ) -> SubTaskDB:
        case = get_case(self.db, office_id, case_id)
        self._check_case_open(case)
        subtask_type = get_subtask_type(self.db, office_id, type_id)
        cost = _validated_cost(cost)

        subtask = SubTaskDB(
            id=str(uuid4()),
            case_id=case.id,
            type_id=subtask_type.id,
            status=SubTaskStatus.PENDING,
            scheduled_date=scheduled_date,
            notes=notes,
            cost=cost,
            task_metadata=metadata.changes() if metadata else {},
        )
        self.db.add(subtask)
        self.synchronizer.sync(case)
        self.db.commit()
        self.db.refresh(subtask)

        logger.info(f"[CASE:{case.id}] sub-task {subtask.id} created ({subtask_type.name})")
        self._emit("create", office_id, user_id, case.id, {"subtask_id": subtask.id, "type": subtask_type.name})
        return subtask

    @service_operation
    def update_subtask(
        self,
        office_id: str,
        subtask_id: str,
        changes: Dict[str, Any],
        user_id: Optional[str] = None,
    ) -> SubTaskDB:
        """
        Update status, scheduled_date, notes or cost.

        Metadata is not accepted here; use merge_subtask_metadata.
        """
        allowed = {"status", "scheduled_date", "notes", "cost"}
        unknown = set(changes) - allowed
        if unknown:
            raise ValidationError(f"Fields cannot be updated here: {', '.join(sorted(unknown))}")
        if not changes:
            raise ValidationError("No changes supplied")

        subtask = get_subtask(self.db, office_id, subtask_id)
        case = subtask.case
        self._check_case_open(case)

        diff = {}
        if "status" in changes:
            try:
                status = SubTaskStatus(changes["status"])
            except ValueError:
                raise ValidationError(f"Unknown sub-task status '{changes['status']}'")
            diff["status"] = [subtask.status.value, status.value]
            subtask.status = status
        if "cost" in changes:
            subtask.cost = _validated_cost(changes["cost"])
            diff["cost"] = subtask.cost
        if "scheduled_date" in changes:
            subtask.scheduled_date = changes["scheduled_date"]
            diff["scheduled_date"] = str(changes["scheduled_date"]) if changes["scheduled_date"] else None
        if "notes" in changes:
            subtask.notes = changes["notes"]
            diff["notes"] = True

        self.synchronizer.sync(case)
        self.db.commit()
        self.db.refresh(subtask)

        self._emit("update", office_id, user_id, case.id, {"subtask_id": subtask.id, **diff})
        return subtask

    @service_operation
    def merge_subtask_metadata(
        self,
        office_id: str,
        subtask_id: str,
        update: SubTaskMetadataUpdate,
        user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Upsert only the keys set on ``update``; returns the merged metadata."""
        changes = update.changes()
        if not changes:
            raise ValidationError("No metadata changes supplied")

        subtask = get_subtask(self.db, office_id, subtask_id)
        case = subtask.case
        self._check_case_open(case)

        subtask.task_metadata = merge_metadata(subtask.task_metadata, changes)
        flag_modified(subtask, "task_metadata")
        self.synchronizer.sync(case)
        self.db.commit()

        self._emit("metadata", office_id, user_id, case.id, {"subtask_id": subtask.id, "keys": sorted(changes)})
        return dict(subtask.task_metadata)

    @service_operation
    def delete_subtask(self, office_id: str, subtask_id: str, user_id: Optional[str] = None) -> CaseStatus:
        """Delete a sub-task. Returns the case status after re-derivation."""
        subtask = get_subtask(self.db, office_id, subtask_id)
        case = subtask.case
        self._check_case_open(case)

        case.subtasks.remove(subtask)
        self.db.delete(subtask)
        status = self.synchronizer.sync(case)
        self.db.commit()

        logger.info(f"[CASE:{case.id}] sub-task {subtask_id} deleted")
        self._emit("delete", office_id, user_id, case.id, {"subtask_id": subtask_id})
        return status
