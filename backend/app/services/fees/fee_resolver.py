"""
Fee Resolver

Fee schedule (aranceles) lookups and writes. A fee entry prices a document
type for a bank, either bank-wide (lawyer_id NULL) or for one lawyer working
for that bank.

One rule everywhere: a query names exactly one tier. A lawyer lookup only
matches lawyer entries unless the caller asks for the bank-wide fallback, and
list results never mix tiers on the caller's behalf.
"""
import logging
from typing import Any, Dict, List, Optional, Union
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.db_models import BankDB, DocumentTypeDB, FeeEntryDB, LawyerBankDB, LawyerDB
from app.models.domain import FeeLookup
from ..audit import AuditEvent, AuditSink
from ..cases.case_loader import get_document_type
from ..documents.formatting import parse_amount
from ..errors import ConflictError, NotFoundError, ValidationError, service_operation

logger = logging.getLogger(__name__)

# list_fees(lawyer_id=UNSET) returns both tiers; None means bank-wide only.
UNSET: Any = object()

SOURCE_LAWYER = "lawyer"
SOURCE_BANK = "bank"


class FeeResolver:
    def __init__(self, db: Session, audit_sink: Optional[AuditSink] = None):
        self.db = db
        self.audit_sink = audit_sink or AuditSink()

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _bank(self, office_id: str, bank_id: str) -> BankDB:
        bank = self.db.query(BankDB).filter(BankDB.id == bank_id, BankDB.office_id == office_id).first()
        if not bank:
            raise NotFoundError(f"Bank {bank_id} not found in this office")
        return bank

    def _document_type(self, office_id: str, document_type_id: str, require_active: bool = False) -> DocumentTypeDB:
        document_type = get_document_type(self.db, office_id, document_type_id)
        if document_type is None:
            raise ValidationError(f"Unknown document type {document_type_id}")
        if require_active and not document_type.active:
            raise ValidationError(f"Document type '{document_type.name}' is inactive")
        return document_type

    def _check_lawyer_paired(self, office_id: str, bank_id: str, lawyer_id: str) -> LawyerDB:
        lawyer = self.db.query(LawyerDB).filter(
            LawyerDB.id == lawyer_id,
            LawyerDB.office_id == office_id,
        ).first()
        if not lawyer:
            raise NotFoundError(f"Lawyer {lawyer_id} not found in this office")
        paired = self.db.query(LawyerBankDB).filter(
            LawyerBankDB.office_id == office_id,
            LawyerBankDB.lawyer_id == lawyer_id,
            LawyerBankDB.bank_id == bank_id,
        ).first()
        if not paired:
            raise ValidationError(f"Lawyer '{lawyer.name}' is not associated with this bank")
        return lawyer

    def _entry_query(self, office_id: str, bank_id: str, document_type_id: str, lawyer_id: Optional[str]):
        query = self.db.query(FeeEntryDB).filter(
            FeeEntryDB.office_id == office_id,
            FeeEntryDB.bank_id == bank_id,
            FeeEntryDB.document_type_id == document_type_id,
        )
        if lawyer_id is None:
            return query.filter(FeeEntryDB.lawyer_id.is_(None))
        return query.filter(FeeEntryDB.lawyer_id == lawyer_id)

    def _check_unique(
        self,
        office_id: str,
        bank_id: str,
        document_type_id: str,
        lawyer_id: Optional[str],
        exclude_id: Optional[str] = None,
    ) -> None:
        query = self._entry_query(office_id, bank_id, document_type_id, lawyer_id)
        if exclude_id:
            query = query.filter(FeeEntryDB.id != exclude_id)
        if query.first():
            tier = f"lawyer {lawyer_id}" if lawyer_id else "bank-wide"
            raise ConflictError(
                f"A {tier} fee already exists for this bank and document type",
                details={"bank_id": bank_id, "lawyer_id": lawyer_id, "document_type_id": document_type_id},
            )

    def _validated_amount(self, amount: Union[int, str, None]) -> int:
        parsed = parse_amount(amount)
        if parsed is None:
            raise ValidationError("Amount is required")
        if parsed < 0:
            raise ValidationError("Amount cannot be negative")
        return parsed

    def _commit_unique(self) -> None:
        """Commit, reporting a lost race on the partial unique indexes as a conflict."""
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("A fee entry with the same bank, lawyer and document type already exists") from e

    # =========================================================================
    # LOOKUP
    # =========================================================================

    @service_operation
    def resolve_fee(
        self,
        office_id: str,
        bank_id: str,
        document_type_id: str,
        lawyer_id: Optional[str] = None,
        fallback: bool = False,
    ) -> FeeLookup:
        """
        Resolve the amount for a document type.

        With lawyer_id only that lawyer's entry matches; ``fallback=True`` lets
        a miss fall through to the bank-wide entry. Inactive entries never match.
        """
        self._bank(office_id, bank_id)
        self._document_type(office_id, document_type_id)

        if lawyer_id:
            entry = self._entry_query(office_id, bank_id, document_type_id, lawyer_id).filter(
                FeeEntryDB.active.is_(True)
            ).first()
            if entry:
                return FeeLookup(amount=entry.amount, source=SOURCE_LAWYER, fee_entry_id=entry.id)
            if not fallback:
                raise NotFoundError("No fee defined for this lawyer, bank and document type")

        entry = self._entry_query(office_id, bank_id, document_type_id, None).filter(
            FeeEntryDB.active.is_(True)
        ).first()
        if entry:
            return FeeLookup(amount=entry.amount, source=SOURCE_BANK, fee_entry_id=entry.id)
        raise NotFoundError("No fee defined for this bank and document type")

    @service_operation
    def get_fee(self, office_id: str, fee_id: str) -> FeeEntryDB:
        entry = self.db.query(FeeEntryDB).filter(
            FeeEntryDB.id == fee_id,
            FeeEntryDB.office_id == office_id,
        ).first()
        if not entry:
            raise NotFoundError(f"Fee entry {fee_id} not found")
        return entry

    @service_operation
    def list_fees(self, office_id: str, bank_id: str, lawyer_id: Any = UNSET) -> List[FeeEntryDB]:
        """
        Fee entries of a bank.

        lawyer_id=UNSET: both tiers. None: bank-wide only. An id: that lawyer's
        entries only (the lawyer must be paired with the bank).
        """
        self._bank(office_id, bank_id)
        query = self.db.query(FeeEntryDB).join(
            DocumentTypeDB, FeeEntryDB.document_type_id == DocumentTypeDB.id
        ).filter(
            FeeEntryDB.office_id == office_id,
            FeeEntryDB.bank_id == bank_id,
        )
        if lawyer_id is None:
            query = query.filter(FeeEntryDB.lawyer_id.is_(None))
        elif lawyer_id is not UNSET:
            self._check_lawyer_paired(office_id, bank_id, lawyer_id)
            query = query.filter(FeeEntryDB.lawyer_id == lawyer_id)

        return query.order_by(FeeEntryDB.lawyer_id.isnot(None), DocumentTypeDB.name).all()

    # =========================================================================
    # WRITES
    # =========================================================================

    @service_operation
    def create_fee(
        self,
        office_id: str,
        bank_id: str,
        document_type_id: str,
        amount: Union[int, str],
        lawyer_id: Optional[str] = None,
        active: bool = True,
        user_id: Optional[str] = None,
    ) -> FeeEntryDB:
        value = self._validated_amount(amount)
        self._bank(office_id, bank_id)
        self._document_type(office_id, document_type_id, require_active=True)
        if lawyer_id:
            self._check_lawyer_paired(office_id, bank_id, lawyer_id)
        else:
            lawyer_id = None
        self._check_unique(office_id, bank_id, document_type_id, lawyer_id)

        entry = FeeEntryDB(
            id=str(uuid4()),
            office_id=office_id,
            bank_id=bank_id,
            lawyer_id=lawyer_id,
            document_type_id=document_type_id,
            amount=value,
            active=active,
        )
        self.db.add(entry)
        self._commit_unique()
        self.db.refresh(entry)

        logger.info(f"Fee {entry.id} created: bank={bank_id} lawyer={lawyer_id} amount={value}")
        self.audit_sink.emit(AuditEvent(
            table="fee_entries",
            action="create",
            office_id=office_id,
            user_id=user_id,
            diff={"fee_id": entry.id, "amount": value, "lawyer_id": lawyer_id},
        ))
        return entry

    @service_operation
    def update_fee(
        self,
        office_id: str,
        fee_id: str,
        changes: Dict[str, Any],
        user_id: Optional[str] = None,
    ) -> FeeEntryDB:
        """
        Change amount, document type or active flag.

        The bank/lawyer pairing cannot change; delete the entry and create a
        new one instead.
        """
        entry = self.db.query(FeeEntryDB).filter(
            FeeEntryDB.id == fee_id,
            FeeEntryDB.office_id == office_id,
        ).first()
        if not entry:
            raise NotFoundError(f"Fee entry {fee_id} not found")

        for key in ("bank_id", "lawyer_id"):
            if key in changes and changes[key] != getattr(entry, key):
                raise ValidationError(
                    "The bank and lawyer of a fee entry cannot be changed; delete it and create a new one"
                )

        updatable = {k: v for k, v in changes.items() if k in ("amount", "document_type_id", "active")}
        unknown = set(changes) - {"amount", "document_type_id", "active", "bank_id", "lawyer_id"}
        if unknown:
            raise ValidationError(f"Unknown fee fields: {', '.join(sorted(unknown))}")
        if not updatable:
            raise ValidationError("No changes supplied")

        diff = {}
        if "amount" in updatable:
            entry.amount = self._validated_amount(updatable["amount"])
            diff["amount"] = entry.amount
        if "document_type_id" in updatable and updatable["document_type_id"] != entry.document_type_id:
            document_type_id = updatable["document_type_id"]
            self._document_type(office_id, document_type_id, require_active=True)
            self._check_unique(office_id, entry.bank_id, document_type_id, entry.lawyer_id, exclude_id=entry.id)
            entry.document_type_id = document_type_id
            diff["document_type_id"] = document_type_id
        if "active" in updatable:
            entry.active = bool(updatable["active"])
            diff["active"] = entry.active

        self._commit_unique()
        self.db.refresh(entry)

        self.audit_sink.emit(AuditEvent(
            table="fee_entries",
            action="update",
            office_id=office_id,
            user_id=user_id,
            diff={"fee_id": entry.id, **diff},
        ))
        return entry

    @service_operation
    def delete_fee(self, office_id: str, fee_id: str, user_id: Optional[str] = None) -> str:
        entry = self.db.query(FeeEntryDB).filter(
            FeeEntryDB.id == fee_id,
            FeeEntryDB.office_id == office_id,
        ).first()
        if not entry:
            raise NotFoundError(f"Fee entry {fee_id} not found")
        self.db.delete(entry)
        self.db.commit()

        self.audit_sink.emit(AuditEvent(
            table="fee_entries",
            action="delete",
            office_id=office_id,
            user_id=user_id,
            diff={"fee_id": fee_id},
        ))
        return fee_id
