"""
Document Assembler

Top of the document pipeline. Two generating operations:

- generate_receipt: fixed-field payment receipt + Receipt row
- generate_stamp:   variables -> template -> layout -> PDF -> GeneratedDocument

The PDF is built completely in memory before anything is added to the
session, so a failed generation leaves nothing behind. Neither operation
touches the sub-task; the caller merges whatever it wants into the sub-task
metadata afterwards.
"""
import logging
from datetime import datetime
from typing import Callable, Dict, Mapping, Optional
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.db_models import CaseDB, GeneratedDocumentDB, ReceiptDB
from app.models.domain import RenderedDocument
from ..audit import AuditEvent, AuditSink
from ..cases.case_loader import get_case, get_document_type, load_case_bundle
from ..errors import ConflictError, NotFoundError, RenderError, ServiceError, ValidationError, service_operation
from .formatting import parse_amount
from .header import HeaderData
from .images import OfficeImage, load_office_images
from .layout import layout_document
from .layout_types import PageGeometry
from .pdf_writer import write_pdf
from .receipt import ReceiptFields, layout_receipt
from .template_engine import render_template, unknown_tokens, validate_template
from .variables import resolve_variables

logger = logging.getLogger(__name__)

RECEIPT_CATEGORY = "Recibo"
STAMP_CATEGORY = "Estampo"


class DocumentAssembler:
    def __init__(
        self,
        db: Session,
        audit_sink: Optional[AuditSink] = None,
        geometry: Optional[PageGeometry] = None,
    ):
        self.db = db
        self.audit_sink = audit_sink or AuditSink()
        self.geometry = geometry or PageGeometry()

    def _render(self, build: Callable[[], RenderedDocument], what: str) -> RenderedDocument:
        """Run a PDF build; anything unexpected becomes a RenderError."""
        try:
            return build()
        except ServiceError:
            raise
        except Exception as e:
            logger.exception(f"Rendering {what} failed")
            raise RenderError(f"Could not render {what}: {e}") from e

    def _next_version(self, case_id: str, subtask_id: str, document_type_id: str) -> int:
        previous = self.db.query(GeneratedDocumentDB).filter(
            GeneratedDocumentDB.case_id == case_id,
            GeneratedDocumentDB.subtask_id == subtask_id,
            GeneratedDocumentDB.document_type_id == document_type_id,
        ).count()
        return previous + 1

    # =========================================================================
    # RECEIPT
    # =========================================================================

    @service_operation
    def generate_receipt(
        self,
        office_id: str,
        case_id: str,
        subtask_id: str,
        amount,
        payment_method: str,
        reference: Optional[str] = None,
        extra_fields: Optional[Dict[str, str]] = None,
        user_id: Optional[str] = None,
    ) -> GeneratedDocumentDB:
        value = parse_amount(amount)
        if value is None:
            raise ValidationError("Amount is required")
        if value < 0:
            raise ValidationError("Amount cannot be negative")
        if not payment_method or not payment_method.strip():
            raise ValidationError("Payment method is required")

        bundle = load_case_bundle(self.db, office_id, case_id, subtask_id)
        fields = ReceiptFields(
            docket_number=bundle.case.docket_number,
            subtask_id=bundle.subtask.id,
            amount=value,
            payment_method=payment_method.strip(),
            reference=(reference or "").strip() or None,
            extra_fields=dict(extra_fields or {}),
        )
        name = f"Boleta {datetime.utcnow().isoformat()}"
        rendered = self._render(
            lambda: write_pdf(layout_receipt(fields, self.geometry), self.geometry, title=name),
            "receipt",
        )

        document = GeneratedDocumentDB(
            id=str(uuid4()),
            case_id=bundle.case.id,
            subtask_id=bundle.subtask.id,
            name=name,
            category=RECEIPT_CATEGORY,
            payload=rendered.payload,
            content_hash=rendered.content_hash,
            page_count=rendered.page_count,
            version=1,
        )
        self.db.add(document)
        self.db.flush()
        self.db.add(ReceiptDB(
            id=str(uuid4()),
            case_id=bundle.case.id,
            document_id=document.id,
            amount=value,
            payment_method=fields.payment_method,
            reference=fields.reference,
        ))
        self.db.commit()
        self.db.refresh(document)

        logger.info(f"[CASE:{case_id}] receipt {document.id} generated for sub-task {subtask_id} (${value})")
        self.audit_sink.emit(AuditEvent(
            table="receipts",
            action="generate",
            office_id=office_id,
            user_id=user_id,
            case_id=case_id,
            diff={"document_id": document.id, "amount": value, "payment_method": fields.payment_method},
        ))
        return document

    # =========================================================================
    # STAMP
    # =========================================================================

    @service_operation
    def generate_stamp(
        self,
        office_id: str,
        case_id: str,
        subtask_id: str,
        document_type_id: str,
        template_override: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> GeneratedDocumentDB:
        document_type = get_document_type(self.db, office_id, document_type_id)
        if document_type is None:
            raise ValidationError(f"Unknown document type {document_type_id}")
        if not document_type.active:
            raise ValidationError(f"Document type '{document_type.name}' is inactive")

        template = template_override if template_override is not None else document_type.template_body
        validate_template(template)

        bundle = load_case_bundle(self.db, office_id, case_id, subtask_id)
        variables = resolve_variables(bundle)
        missing = unknown_tokens(template, variables)
        if missing:
            logger.warning(f"[CASE:{case_id}] template tokens without a value: {missing}")

        name = f"Estampo {document_type.name}"
        text = render_template(template, variables)
        header = HeaderData.from_bundle(bundle)
        rendered = self._render(
            lambda: write_pdf(
                layout_document(text, header, load_office_images(bundle.office), self.geometry),
                self.geometry,
                title=name,
            ),
            "stamp",
        )

        document = GeneratedDocumentDB(
            id=str(uuid4()),
            case_id=case_id,
            subtask_id=subtask_id,
            document_type_id=document_type_id,
            name=name,
            category=document_type.category or STAMP_CATEGORY,
            payload=rendered.payload,
            content_hash=rendered.content_hash,
            page_count=rendered.page_count,
            version=self._next_version(case_id, subtask_id, document_type_id),
        )
        self.db.add(document)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError(
                f"Another '{document_type.name}' stamp was generated for this sub-task at the same time; retry",
                details={"document_type_id": document_type_id},
            ) from e
        self.db.refresh(document)

        logger.info(
            f"[CASE:{case_id}] stamp '{document_type.name}' v{document.version} generated "
            f"({rendered.page_count} page(s))"
        )
        self.audit_sink.emit(AuditEvent(
            table="generated_documents",
            action="generate_stamp",
            office_id=office_id,
            user_id=user_id,
            case_id=case_id,
            diff={"document_id": document.id, "document_type_id": document_type_id, "version": document.version},
        ))
        return document

    @service_operation
    def preview_stamp(
        self,
        template: str,
        variables: Optional[Mapping[str, str]] = None,
        header: Optional[HeaderData] = None,
        images: Optional[Mapping[str, OfficeImage]] = None,
    ) -> RenderedDocument:
        """Render without persisting anything."""
        validate_template(template)
        text = render_template(template, dict(variables or {}))
        return self._render(
            lambda: write_pdf(layout_document(text, header, images, self.geometry), self.geometry, title="Preview"),
            "preview",
        )

    # =========================================================================
    # READ
    # =========================================================================

    @service_operation
    def get_document(self, office_id: str, document_id: str) -> GeneratedDocumentDB:
        document = self.db.query(GeneratedDocumentDB).join(
            CaseDB, GeneratedDocumentDB.case_id == CaseDB.id
        ).filter(
            GeneratedDocumentDB.id == document_id,
            CaseDB.office_id == office_id,
        ).first()
        if not document:
            raise NotFoundError(f"Document {document_id} not found")
        return document

    @service_operation
    def list_case_documents(self, office_id: str, case_id: str):
        case = get_case(self.db, office_id, case_id)
        return self.db.query(GeneratedDocumentDB).filter(
            GeneratedDocumentDB.case_id == case.id
        ).order_by(GeneratedDocumentDB.created_at.desc()).all()
