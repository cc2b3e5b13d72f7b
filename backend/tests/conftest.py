"""
Shared fixtures: an in-memory SQLite database built from the ORM metadata and
one office worth of reference data.
"""
import os
import sys
from io import BytesIO
from types import SimpleNamespace
from unittest.mock import MagicMock
from uuid import uuid4

import pytest

# Never touch a real database from the test suite
os.environ.setdefault("DATABASE_URL", "sqlite://")

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base
from app.models.db_models import (
    BankDB, CaseDB, CaseStatus, CourtDB, DocumentTypeDB, LawyerBankDB, LawyerDB, OfficeDB,
    PartyDB, SubTaskDB, SubTaskStatus, SubTaskTypeDB,
)
from app.services.audit import AuditSink


def make_png(width: int = 200, height: int = 100, color=(0, 0, 128)) -> bytes:
    """Small PNG for signature/seal fixtures."""
    buffer = BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


# =============================================================================
# DATABASE
# =============================================================================

@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = Session()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def audit_sink():
    return MagicMock(spec=AuditSink)


# =============================================================================
# REFERENCE DATA
# =============================================================================

@pytest.fixture
def seed(db):
    """
    Office "Receptora Judicial Santiago" with bank "Banco X", lawyer "L1"
    (paired with the bank), sub-task type "Notificación", document type
    "Modelo A" and one case with two opposing parties and no sub-tasks.
    """
    office = OfficeDB(id=str(uuid4()), name="Receptora Judicial Santiago")
    other_office = OfficeDB(id=str(uuid4()), name="Receptor Valparaíso")
    court = CourtDB(id=str(uuid4()), office_id=office.id, name="1° Juzgado Civil de Santiago")
    bank = BankDB(id=str(uuid4()), office_id=office.id, name="Banco X")
    other_bank = BankDB(id=str(uuid4()), office_id=office.id, name="Banco Y")
    lawyer = LawyerDB(id=str(uuid4()), office_id=office.id, name="L1", address="Huérfanos 1234, Santiago")
    unpaired_lawyer = LawyerDB(id=str(uuid4()), office_id=office.id, name="L2")
    subtask_type = SubTaskTypeDB(id=str(uuid4()), office_id=office.id, name="Notificación")
    document_type = DocumentTypeDB(
        id=str(uuid4()),
        office_id=office.id,
        name="Modelo A",
        category=None,
        template_body="Pagar $cuantia a $abogado_nombre",
    )
    second_document_type = DocumentTypeDB(
        id=str(uuid4()),
        office_id=office.id,
        name="Modelo B",
        category="Embargo",
        template_body="Embargo en causa $rol",
    )
    db.add_all([
        office, other_office, court, bank, other_bank, lawyer, unpaired_lawyer,
        subtask_type, document_type, second_document_type,
    ])
    db.flush()
    db.add(LawyerBankDB(id=str(uuid4()), office_id=office.id, lawyer_id=lawyer.id, bank_id=bank.id))

    case = CaseDB(
        id=str(uuid4()),
        office_id=office.id,
        docket_number="C-1234-2025",
        claim_amount=12000,
        court_id=court.id,
        lawyer_id=lawyer.id,
        bank_id=bank.id,
        status=CaseStatus.PENDING,
    )
    db.add(case)
    db.flush()
    first_party = PartyDB(
        id=str(uuid4()), case_id=case.id, name="Juan Pérez", rut="12.345.678-9",
        address="Av. Siempre Viva 742", commune="Providencia", position=0,
    )
    second_party = PartyDB(
        id=str(uuid4()), case_id=case.id, name="María Soto", rut="9.876.543-2",
        address="Los Leones 55", commune="Ñuñoa", position=1,
    )
    db.add_all([first_party, second_party])
    db.commit()

    return SimpleNamespace(
        office=office,
        other_office=other_office,
        court=court,
        bank=bank,
        other_bank=other_bank,
        lawyer=lawyer,
        unpaired_lawyer=unpaired_lawyer,
        subtask_type=subtask_type,
        document_type=document_type,
        second_document_type=second_document_type,
        case=case,
        first_party=first_party,
        second_party=second_party,
    )


@pytest.fixture
def subtask(db, seed):
    """A pending sub-task inserted directly (no status sync)."""
    row = SubTaskDB(
        id=str(uuid4()),
        case_id=seed.case.id,
        type_id=seed.subtask_type.id,
        status=SubTaskStatus.PENDING,
        task_metadata={"execution_date": "2025-11-10", "execution_time": "10:30"},
    )
    db.add(row)
    db.commit()
    return row


@pytest.fixture
def png_factory():
    return make_png
