"""
Sub-task API Routes

Sub-task (diligencia) lifecycle plus the two document generation steps.
Generating a document never edits the sub-task; the client merges the new
document id into the metadata with PATCH /subtasks/{id}/metadata.
"""
from datetime import date
from typing import Dict, Optional, Union
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..auth import CurrentUser, get_current_user
from ..database import get_db
from ..models.db_models import GeneratedDocumentDB, SubTaskDB, SubTaskStatus
from ..models.domain import SubTaskMetadataUpdate
from ..services.audit import AuditSink
from ..services.cases import SubTaskService
from ..services.documents import DocumentAssembler
from .common import get_audit_sink, unwrap


router = APIRouter(prefix="/subtasks", tags=["subtasks"])


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class CreateSubTaskRequest(BaseModel):
    case_id: str
    type_id: str
    scheduled_date: Optional[date] = None
    notes: Optional[str] = None
    cost: Optional[int] = Field(None, ge=0)
    metadata: Optional[SubTaskMetadataUpdate] = None


class UpdateSubTaskRequest(BaseModel):
    status: Optional[SubTaskStatus] = None
    scheduled_date: Optional[date] = None
    notes: Optional[str] = None
    cost: Optional[int] = Field(None, ge=0)


class ReceiptRequest(BaseModel):
    amount: Union[int, str]
    payment_method: str = Field(..., min_length=1)
    reference: Optional[str] = None
    extra_fields: Optional[Dict[str, str]] = None


class StampRequest(BaseModel):
    document_type_id: str
    template_override: Optional[str] = None


def subtask_to_dict(subtask: SubTaskDB) -> dict:
    return {
        "id": subtask.id,
        "case_id": subtask.case_id,
        "type_id": subtask.type_id,
        "status": subtask.status.value,
        "scheduled_date": subtask.scheduled_date.isoformat() if subtask.scheduled_date else None,
        "notes": subtask.notes,
        "cost": subtask.cost,
        "metadata": subtask.task_metadata or {},
        "case_status": subtask.case.status.value if subtask.case else None,
    }


def document_to_dict(document: GeneratedDocumentDB) -> dict:
    return {
        "id": document.id,
        "case_id": document.case_id,
        "subtask_id": document.subtask_id,
        "document_type_id": document.document_type_id,
        "name": document.name,
        "category": document.category,
        "page_count": document.page_count,
        "version": document.version,
        "content_hash": document.content_hash,
        "created_at": document.created_at.isoformat() if document.created_at else None,
    }


# =============================================================================
# SUB-TASK LIFECYCLE
# =============================================================================

@router.post("", response_model=dict, status_code=201)
async def create_subtask(
    request: CreateSubTaskRequest,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    audit_sink: AuditSink = Depends(get_audit_sink),
):
    subtask = unwrap(SubTaskService(db, audit_sink).create_subtask(
        office_id=current_user.office_id,
        case_id=request.case_id,
        type_id=request.type_id,
        scheduled_date=request.scheduled_date,
        metadata=request.metadata,
        notes=request.notes,
        cost=request.cost,
        user_id=current_user.user_id,
    ))
    return {"ok": True, "data": subtask_to_dict(subtask)}


@router.put("/{subtask_id}", response_model=dict)
async def update_subtask(
    subtask_id: str,
    request: UpdateSubTaskRequest,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    audit_sink: AuditSink = Depends(get_audit_sink),
):
    subtask = unwrap(SubTaskService(db, audit_sink).update_subtask(
        current_user.office_id,
        subtask_id,
        request.model_dump(exclude_unset=True),
        user_id=current_user.user_id,
    ))
    return {"ok": True, "data": subtask_to_dict(subtask)}


@router.patch("/{subtask_id}/metadata", response_model=dict)
async def merge_metadata(
    subtask_id: str,
    request: SubTaskMetadataUpdate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    audit_sink: AuditSink = Depends(get_audit_sink),
):
    """Key-wise upsert: only the fields present in the body are written."""
    metadata = unwrap(SubTaskService(db, audit_sink).merge_subtask_metadata(
        current_user.office_id, subtask_id, request, user_id=current_user.user_id,
    ))
    return {"ok": True, "data": metadata}


@router.delete("/{subtask_id}", response_model=dict)
async def delete_subtask(
    subtask_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    audit_sink: AuditSink = Depends(get_audit_sink),
):
    status = unwrap(SubTaskService(db, audit_sink).delete_subtask(
        current_user.office_id, subtask_id, user_id=current_user.user_id,
    ))
    return {"ok": True, "data": {"id": subtask_id, "case_status": status.value}}


# =============================================================================
# DOCUMENT GENERATION
# =============================================================================

@router.post("/{subtask_id}/receipt", response_model=dict, status_code=201)
async def generate_receipt(
    subtask_id: str,
    request: ReceiptRequest,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    audit_sink: AuditSink = Depends(get_audit_sink),
):
    subtask = unwrap(SubTaskService(db).get_subtask(current_user.office_id, subtask_id))
    document = unwrap(DocumentAssembler(db, audit_sink).generate_receipt(
        office_id=current_user.office_id,
        case_id=subtask.case_id,
        subtask_id=subtask.id,
        amount=request.amount,
        payment_method=request.payment_method,
        reference=request.reference,
        extra_fields=request.extra_fields,
        user_id=current_user.user_id,
    ))
    return {"ok": True, "data": document_to_dict(document)}


@router.post("/{subtask_id}/stamp", response_model=dict, status_code=201)
async def generate_stamp(
    subtask_id: str,
    request: StampRequest,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    audit_sink: AuditSink = Depends(get_audit_sink),
):
    subtask = unwrap(SubTaskService(db).get_subtask(current_user.office_id, subtask_id))
    document = unwrap(DocumentAssembler(db, audit_sink).generate_stamp(
        office_id=current_user.office_id,
        case_id=subtask.case_id,
        subtask_id=subtask.id,
        document_type_id=request.document_type_id,
        template_override=request.template_override,
        user_id=current_user.user_id,
    ))
    return {"ok": True, "data": document_to_dict(document)}
