"""
Receptor Engine - SQLAlchemy ORM Models
PostgreSQL database models for persistent storage
"""
from datetime import datetime
from enum import Enum
from sqlalchemy import (
    Column, String, Integer, DateTime, Text, JSON, ForeignKey, Enum as SQLEnum,
    Boolean, Date, LargeBinary, Index, UniqueConstraint, text,
)
from sqlalchemy.orm import relationship
from ..database import Base


# =============================================================================
# ENUMS
# =============================================================================

class CaseStatus(str, Enum):
    """Aggregate status of a case, derived from its sub-tasks."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    ARCHIVED = "archived"


class SubTaskStatus(str, Enum):
    """Status of a single procedural step."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


# =============================================================================
# REFERENCE DATA (managed elsewhere, read here)
# =============================================================================

class OfficeDB(Base):
    """Receiving office. Tenant boundary for every other table."""
    __tablename__ = "offices"

    id = Column(String(36), primary_key=True)  # UUID
    name = Column(String(255), nullable=False)

    # Raster images embedded by the $firma / $sello markers (PNG bytes)
    signature_image = Column(LargeBinary, nullable=True)
    seal_image = Column(LargeBinary, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class CourtDB(Base):
    __tablename__ = "courts"

    id = Column(String(36), primary_key=True)
    office_id = Column(String(36), ForeignKey("offices.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)


class BankDB(Base):
    __tablename__ = "banks"

    id = Column(String(36), primary_key=True)
    office_id = Column(String(36), ForeignKey("offices.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)


class LawyerDB(Base):
    __tablename__ = "lawyers"

    id = Column(String(36), primary_key=True)
    office_id = Column(String(36), ForeignKey("offices.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    address = Column(String(500), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)


class LawyerBankDB(Base):
    """A lawyer works for a bank. Lawyer-specific fees require this pairing."""
    __tablename__ = "lawyer_banks"
    __table_args__ = (
        UniqueConstraint("office_id", "lawyer_id", "bank_id", name="uq_lawyer_bank"),
    )

    id = Column(String(36), primary_key=True)
    office_id = Column(String(36), ForeignKey("offices.id", ondelete="CASCADE"), nullable=False, index=True)
    lawyer_id = Column(String(36), ForeignKey("lawyers.id", ondelete="CASCADE"), nullable=False)
    bank_id = Column(String(36), ForeignKey("banks.id", ondelete="CASCADE"), nullable=False)


class SubTaskTypeDB(Base):
    """Kind of procedural step (e.g. "Notificación", "Embargo")."""
    __tablename__ = "subtask_types"

    id = Column(String(36), primary_key=True)
    office_id = Column(String(36), ForeignKey("offices.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    active = Column(Boolean, default=True)


class DocumentTypeDB(Base):
    """
    Stamp template. The body is plain text with $token placeholders that the
    template engine fills from the case variables.
    """
    __tablename__ = "document_types"
    __table_args__ = (
        UniqueConstraint("office_id", "name", name="uq_document_type_name"),
    )

    id = Column(String(36), primary_key=True)
    office_id = Column(String(36), ForeignKey("offices.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    category = Column(String(100), nullable=True)
    template_body = Column(Text, nullable=True)
    active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# =============================================================================
# CASES
# =============================================================================

class CaseDB(Base):
    """Enforcement case identified by its docket number (ROL)."""
    __tablename__ = "cases"
    __table_args__ = (
        UniqueConstraint("office_id", "docket_number", name="uq_case_docket"),
    )

    id = Column(String(36), primary_key=True)
    office_id = Column(String(36), ForeignKey("offices.id", ondelete="CASCADE"), nullable=False, index=True)
    docket_number = Column(String(100), nullable=False)
    caption = Column(String(500), nullable=True)
    claim_amount = Column(Integer, nullable=True)  # pesos, no decimals

    court_id = Column(String(36), ForeignKey("courts.id", ondelete="SET NULL"), nullable=True)
    lawyer_id = Column(String(36), ForeignKey("lawyers.id", ondelete="SET NULL"), nullable=True)
    bank_id = Column(String(36), ForeignKey("banks.id", ondelete="SET NULL"), nullable=True)

    # Never written directly, see services/cases/status_sync.py
    status = Column(SQLEnum(CaseStatus), default=CaseStatus.PENDING, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    parties = relationship("PartyDB", back_populates="case", cascade="all, delete-orphan",
                           order_by="PartyDB.position")
    subtasks = relationship("SubTaskDB", back_populates="case", cascade="all, delete-orphan")
    documents = relationship("GeneratedDocumentDB", back_populates="case", cascade="all, delete-orphan")
    receipts = relationship("ReceiptDB", back_populates="case", cascade="all, delete-orphan")


class PartyDB(Base):
    """Opposing party (ejecutado) of a case."""
    __tablename__ = "parties"

    id = Column(String(36), primary_key=True)
    case_id = Column(String(36), ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    rut = Column(String(20), nullable=True)
    address = Column(String(500), nullable=True)
    commune = Column(String(100), nullable=True)
    position = Column(Integer, default=0)  # first party = lowest position

    case = relationship("CaseDB", back_populates="parties")


class SubTaskDB(Base):
    """
    Scheduled procedural step (diligencia) within a case.

    task_metadata is a free-form map written by the execution workflow.
    It is only ever merged key-wise, see services/cases/subtask_service.py.
    """
    __tablename__ = "subtasks"

    id = Column(String(36), primary_key=True)
    case_id = Column(String(36), ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True)
    type_id = Column(String(36), ForeignKey("subtask_types.id", ondelete="RESTRICT"), nullable=False)

    status = Column(SQLEnum(SubTaskStatus), default=SubTaskStatus.PENDING, nullable=False)
    scheduled_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    cost = Column(Integer, nullable=True)

    # Named task_metadata because 'metadata' is reserved in SQLAlchemy
    task_metadata = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    case = relationship("CaseDB", back_populates="subtasks")
    type = relationship("SubTaskTypeDB")


# =============================================================================
# FEES
# =============================================================================

class FeeEntryDB(Base):
    """
    Priced association of bank, optional lawyer and document type (arancel).

    lawyer_id NULL = bank-wide default. A plain composite UNIQUE would let
    several NULL-lawyer rows through, so uniqueness is split into two partial
    indexes.
    """
    __tablename__ = "fee_entries"
    __table_args__ = (
        Index(
            "uq_fee_bank_wide",
            "office_id", "bank_id", "document_type_id",
            unique=True,
            postgresql_where=text("lawyer_id IS NULL"),
            sqlite_where=text("lawyer_id IS NULL"),
        ),
        Index(
            "uq_fee_lawyer",
            "office_id", "bank_id", "lawyer_id", "document_type_id",
            unique=True,
            postgresql_where=text("lawyer_id IS NOT NULL"),
            sqlite_where=text("lawyer_id IS NOT NULL"),
        ),
    )

    id = Column(String(36), primary_key=True)
    office_id = Column(String(36), ForeignKey("offices.id", ondelete="CASCADE"), nullable=False, index=True)
    bank_id = Column(String(36), ForeignKey("banks.id", ondelete="CASCADE"), nullable=False)
    lawyer_id = Column(String(36), ForeignKey("lawyers.id", ondelete="CASCADE"), nullable=True)
    document_type_id = Column(String(36), ForeignKey("document_types.id", ondelete="CASCADE"), nullable=False)

    amount = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    document_type = relationship("DocumentTypeDB")
    lawyer = relationship("LawyerDB")


# =============================================================================
# GENERATED OUTPUT
# =============================================================================

class GeneratedDocumentDB(Base):
    """Persisted PDF (stamp or receipt). Written only once the payload is complete."""
    __tablename__ = "generated_documents"
    __table_args__ = (
        # Stamp versions count per (case, sub-task, document type); receipts carry no type
        Index(
            "uq_document_version",
            "case_id", "subtask_id", "document_type_id", "version",
            unique=True,
            postgresql_where=text("document_type_id IS NOT NULL"),
            sqlite_where=text("document_type_id IS NOT NULL"),
        ),
    )

    id = Column(String(36), primary_key=True)
    case_id = Column(String(36), ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True)
    subtask_id = Column(String(36), ForeignKey("subtasks.id", ondelete="SET NULL"), nullable=True, index=True)
    document_type_id = Column(String(36), ForeignKey("document_types.id", ondelete="SET NULL"), nullable=True)

    name = Column(String(255), nullable=False)
    category = Column(String(100), nullable=False)  # "Estampo", "Recibo", ...

    payload = Column(LargeBinary, nullable=False)  # application/pdf
    content_hash = Column(String(64), nullable=False)  # SHA-256 for integrity
    page_count = Column(Integer, default=1)
    version = Column(Integer, default=1)

    created_at = Column(DateTime, default=datetime.utcnow)

    case = relationship("CaseDB", back_populates="documents")


class ReceiptDB(Base):
    """Payment record backing a receipt document."""
    __tablename__ = "receipts"

    id = Column(String(36), primary_key=True)
    case_id = Column(String(36), ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True)
    document_id = Column(String(36), ForeignKey("generated_documents.id", ondelete="SET NULL"), nullable=True)

    amount = Column(Integer, nullable=False)
    payment_method = Column(String(100), nullable=False)
    reference = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    case = relationship("CaseDB", back_populates="receipts")


# =============================================================================
# AUDIT
# =============================================================================

class AuditLogDB(Base):
    """
    Append-only record of successful mutations.
    Written by the audit sink after the triggering transaction commits.
    """
    __tablename__ = "audit_log"

    id = Column(String(36), primary_key=True)
    office_id = Column(String(36), nullable=True, index=True)
    user_id = Column(String(36), nullable=True)
    case_id = Column(String(36), nullable=True, index=True)

    table_name = Column(String(50), nullable=False)
    action = Column(String(255), nullable=False)
    diff = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
