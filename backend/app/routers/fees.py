"""
Fee Schedule API Routes

Fee entries (aranceles) per bank, bank-wide or per lawyer, and the single
value lookup used to pre-fill receipt amounts.
"""
from typing import Optional, Union
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..auth import CurrentUser, get_current_user
from ..database import get_db
from ..models.db_models import FeeEntryDB
from ..services.audit import AuditSink
from ..services.fees import FeeResolver, UNSET
from .common import get_audit_sink, unwrap


router = APIRouter(prefix="/fees", tags=["fees"])


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class CreateFeeRequest(BaseModel):
    bank_id: str
    document_type_id: str
    lawyer_id: Optional[str] = Field(None, description="Omit for the bank-wide fee")
    amount: Union[int, str] = Field(..., description="Whole pesos; '4.000.000' is accepted")
    active: bool = True


class UpdateFeeRequest(BaseModel):
    amount: Optional[Union[int, str]] = None
    document_type_id: Optional[str] = None
    active: Optional[bool] = None
    # Accepted only to report that they cannot change
    bank_id: Optional[str] = None
    lawyer_id: Optional[str] = None


def fee_to_dict(entry: FeeEntryDB) -> dict:
    return {
        "id": entry.id,
        "bank_id": entry.bank_id,
        "lawyer_id": entry.lawyer_id,
        "lawyer_name": entry.lawyer.name if entry.lawyer else None,
        "document_type_id": entry.document_type_id,
        "document_type_name": entry.document_type.name if entry.document_type else None,
        "amount": entry.amount,
        "active": entry.active,
    }


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("", response_model=dict)
async def list_fees(
    bank_id: str = Query(...),
    lawyer_id: Optional[str] = Query(None, description="Lawyer id, or 'null' for bank-wide entries only"),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """List a bank's fees. Without lawyer_id both tiers are returned."""
    if lawyer_id is None:
        scope = UNSET
    elif lawyer_id == "null":
        scope = None
    else:
        scope = lawyer_id

    entries = unwrap(FeeResolver(db).list_fees(current_user.office_id, bank_id, lawyer_id=scope))
    return {"ok": True, "data": [fee_to_dict(e) for e in entries]}


@router.get("/lookup", response_model=dict)
async def lookup_fee(
    bank_id: str = Query(...),
    document_type_id: str = Query(...),
    lawyer_id: Optional[str] = Query(None),
    fallback: bool = Query(False, description="Fall back to the bank-wide fee when the lawyer has none"),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    lookup = unwrap(FeeResolver(db).resolve_fee(
        current_user.office_id, bank_id, document_type_id, lawyer_id=lawyer_id, fallback=fallback,
    ))
    return {
        "ok": True,
        "data": {"amount": lookup.amount, "source": lookup.source, "fee_id": lookup.fee_entry_id},
    }


@router.post("", response_model=dict, status_code=201)
async def create_fee(
    request: CreateFeeRequest,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    audit_sink: AuditSink = Depends(get_audit_sink),
):
    entry = unwrap(FeeResolver(db, audit_sink).create_fee(
        office_id=current_user.office_id,
        bank_id=request.bank_id,
        document_type_id=request.document_type_id,
        amount=request.amount,
        lawyer_id=request.lawyer_id,
        active=request.active,
        user_id=current_user.user_id,
    ))
    return {"ok": True, "data": fee_to_dict(entry)}


@router.put("/{fee_id}", response_model=dict)
async def update_fee(
    fee_id: str,
    request: UpdateFeeRequest,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    audit_sink: AuditSink = Depends(get_audit_sink),
):
    entry = unwrap(FeeResolver(db, audit_sink).update_fee(
        current_user.office_id,
        fee_id,
        request.model_dump(exclude_unset=True),
        user_id=current_user.user_id,
    ))
    return {"ok": True, "data": fee_to_dict(entry)}


@router.delete("/{fee_id}", response_model=dict)
async def delete_fee(
    fee_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    audit_sink: AuditSink = Depends(get_audit_sink),
):
    unwrap(FeeResolver(db, audit_sink).delete_fee(current_user.office_id, fee_id, user_id=current_user.user_id))
    return {"ok": True, "data": {"id": fee_id}}
