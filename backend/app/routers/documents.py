"""
Document API Routes

Download of generated PDFs and a non-persisting stamp preview.
"""
from typing import Dict, Optional
from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..auth import CurrentUser, get_current_user
from ..database import get_db
from ..services.documents import DocumentAssembler
from .common import unwrap
from .subtasks import document_to_dict


router = APIRouter(prefix="/documents", tags=["documents"])


class PreviewRequest(BaseModel):
    template: str = Field(..., description="Stamp body with $variable placeholders")
    variables: Optional[Dict[str, str]] = None


@router.get("/case/{case_id}", response_model=dict)
async def list_case_documents(
    case_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    documents = unwrap(DocumentAssembler(db).list_case_documents(current_user.office_id, case_id))
    return {"ok": True, "data": [document_to_dict(d) for d in documents]}


@router.get("/{document_id}/download")
async def download_document(
    document_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    document = unwrap(DocumentAssembler(db).get_document(current_user.office_id, document_id))
    return Response(
        content=document.payload,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{document.name}.pdf"'},
    )


@router.post("/preview")
async def preview_stamp(
    request: PreviewRequest,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Render a template with the given values; nothing is stored."""
    rendered = unwrap(DocumentAssembler(db).preview_stamp(request.template, request.variables))
    return Response(content=rendered.payload, media_type="application/pdf")
