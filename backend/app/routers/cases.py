"""
Case API Routes

Case status is derived; the only writes offered here are an explicit
re-synchronisation and archiving.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import CurrentUser, get_current_user
from ..database import get_db
from ..services.audit import AuditSink
from ..services.cases import CaseStatusSynchronizer
from .common import get_audit_sink, unwrap


router = APIRouter(prefix="/cases", tags=["cases"])


@router.get("/{case_id}/status", response_model=dict)
async def get_case_status(
    case_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    case = unwrap(CaseStatusSynchronizer(db).get_case(current_user.office_id, case_id))
    return {
        "ok": True,
        "data": {
            "case_id": case.id,
            "status": case.status.value,
            "subtasks": [{"id": s.id, "status": s.status.value} for s in case.subtasks],
        },
    }


@router.post("/{case_id}/status/sync", response_model=dict)
async def sync_case_status(
    case_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    audit_sink: AuditSink = Depends(get_audit_sink),
):
    status = unwrap(CaseStatusSynchronizer(db, audit_sink).sync_case_status(
        current_user.office_id, case_id, user_id=current_user.user_id,
    ))
    return {"ok": True, "data": {"case_id": case_id, "status": status.value}}


@router.post("/{case_id}/archive", response_model=dict)
async def archive_case(
    case_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    audit_sink: AuditSink = Depends(get_audit_sink),
):
    status = unwrap(CaseStatusSynchronizer(db, audit_sink).archive_case(
        current_user.office_id, case_id, user_id=current_user.user_id,
    ))
    return {"ok": True, "data": {"case_id": case_id, "status": status.value}}
