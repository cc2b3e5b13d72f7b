"""
Case Loader

Office-scoped lookups. Anything that does not exist, or exists in another
office, is reported the same way: NotFoundError.
"""
from typing import Optional

from sqlalchemy.orm import Session

from app.models.db_models import (
    BankDB, CaseDB, CourtDB, DocumentTypeDB, LawyerDB, OfficeDB, SubTaskDB, SubTaskTypeDB,
)
from app.models.domain import CaseBundle
from ..errors import NotFoundError


def get_office(db: Session, office_id: str) -> OfficeDB:
    office = db.query(OfficeDB).filter(OfficeDB.id == office_id).first()
    if not office:
        raise NotFoundError(f"Office {office_id} not found")
    return office


def get_case(db: Session, office_id: str, case_id: str) -> CaseDB:
    case = db.query(CaseDB).filter(
        CaseDB.id == case_id,
        CaseDB.office_id == office_id,
    ).first()
    if not case:
        raise NotFoundError(f"Case {case_id} not found in this office")
    return case


def get_subtask(db: Session, office_id: str, subtask_id: str) -> SubTaskDB:
    subtask = db.query(SubTaskDB).join(CaseDB, SubTaskDB.case_id == CaseDB.id).filter(
        SubTaskDB.id == subtask_id,
        CaseDB.office_id == office_id,
    ).first()
    if not subtask:
        raise NotFoundError(f"Sub-task {subtask_id} not found in this office")
    return subtask


def get_subtask_type(db: Session, office_id: str, type_id: str) -> SubTaskTypeDB:
    subtask_type = db.query(SubTaskTypeDB).filter(
        SubTaskTypeDB.id == type_id,
        SubTaskTypeDB.office_id == office_id,
    ).first()
    if not subtask_type:
        raise NotFoundError(f"Sub-task type {type_id} not found in this office")
    return subtask_type


def get_document_type(db: Session, office_id: str, document_type_id: str) -> Optional[DocumentTypeDB]:
    """Unlike the other getters this returns None; callers decide which error applies."""
    return db.query(DocumentTypeDB).filter(
        DocumentTypeDB.id == document_type_id,
        DocumentTypeDB.office_id == office_id,
    ).first()


def load_case_bundle(
    db: Session,
    office_id: str,
    case_id: str,
    subtask_id: Optional[str] = None,
) -> CaseBundle:
    """Load a case with everything the document pipeline reads."""
    case = get_case(db, office_id, case_id)

    subtask = None
    if subtask_id:
        subtask = get_subtask(db, office_id, subtask_id)
        if subtask.case_id != case.id:
            raise NotFoundError(f"Sub-task {subtask_id} does not belong to case {case_id}")

    def _scoped(model, entity_id):
        if not entity_id:
            return None
        return db.query(model).filter(model.id == entity_id, model.office_id == office_id).first()

    return CaseBundle(
        case=case,
        office=get_office(db, office_id),
        court=_scoped(CourtDB, case.court_id),
        lawyer=_scoped(LawyerDB, case.lawyer_id),
        bank=_scoped(BankDB, case.bank_id),
        parties=list(case.parties),
        subtask=subtask,
    )
