"""
Receptor Engine - Pipeline Models

Plain data structures passed between the document pipeline stages:
- CaseBundle: fully-loaded case aggregate (input of the variable resolver)
- FeeLookup: result of a fee resolution
- RenderedDocument: finished PDF payload, ready to persist
- SubTaskMetadataUpdate: typed partial update of SubTask.task_metadata
"""

from __future__ import annotations
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .db_models import (
    BankDB, CaseDB, CourtDB, LawyerDB, OfficeDB, PartyDB, SubTaskDB,
)


# =============================================================================
# CASE AGGREGATE
# =============================================================================

@dataclass
class CaseBundle:
    """
    Everything the variable resolver and the header block may read.
    Any reference except the case itself may be missing.
    """
    case: CaseDB
    office: Optional[OfficeDB] = None
    court: Optional[CourtDB] = None
    lawyer: Optional[LawyerDB] = None
    bank: Optional[BankDB] = None
    parties: List[PartyDB] = field(default_factory=list)
    subtask: Optional[SubTaskDB] = None

    @property
    def subtask_metadata(self) -> Dict[str, Any]:
        if self.subtask is None or not self.subtask.task_metadata:
            return {}
        return dict(self.subtask.task_metadata)

    def selected_party(self) -> Optional[PartyDB]:
        """Party chosen on the sub-task, else the first party of the case."""
        party_id = self.subtask_metadata.get("party_id")
        if party_id:
            for party in self.parties:
                if party.id == party_id:
                    return party
        if not self.parties:
            return None
        return sorted(self.parties, key=lambda p: p.position or 0)[0]


# =============================================================================
# FEES
# =============================================================================

@dataclass(frozen=True)
class FeeLookup:
    """Resolved fee. source tells whether the lawyer or the bank-wide entry matched."""
    amount: int
    source: str  # "lawyer" | "bank"
    fee_entry_id: str


# =============================================================================
# DOCUMENTS
# =============================================================================

@dataclass(frozen=True)
class RenderedDocument:
    """Complete PDF payload. Nothing is persisted until one of these exists."""
    payload: bytes
    page_count: int
    content_hash: str


# =============================================================================
# SUB-TASK METADATA
# =============================================================================

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class SubTaskMetadataUpdate(BaseModel):
    """
    Partial update of SubTask.task_metadata.

    Only the fields explicitly set are merged; every workflow step writes its
    own keys and leaves the others untouched.
    """
    model_config = ConfigDict(extra="forbid")

    # Step I - execution data
    execution_date: Optional[date] = None
    execution_time: Optional[str] = None
    party_id: Optional[str] = None

    # Step II - receipt
    document_type_id: Optional[str] = None
    amount: Optional[int] = Field(default=None, ge=0)
    operation_number: Optional[str] = None
    receipt_document_id: Optional[str] = None

    # Step III - stamp
    stamp_draft: Optional[str] = None
    stamp_document_id: Optional[str] = None

    @field_validator("execution_date")
    @classmethod
    def _date_not_in_future(cls, value: Optional[date]) -> Optional[date]:
        if value is not None and value > date.today():
            raise ValueError("execution date cannot be in the future")
        return value

    @field_validator("execution_time")
    @classmethod
    def _time_format(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not TIME_PATTERN.match(value):
            raise ValueError("execution time must use the HH:mm format")
        return value

    @field_validator("stamp_draft")
    @classmethod
    def _draft_not_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            value = value.strip()
            if not value:
                raise ValueError("stamp draft cannot be empty")
        return value

    def changes(self) -> Dict[str, Any]:
        """Set keys only, JSON-ready (dates as ISO strings)."""
        return self.model_dump(exclude_unset=True, mode="json")
