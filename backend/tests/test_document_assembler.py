"""
Tests for stamp and receipt generation, end to end against SQLite.
"""
import hashlib
import pytest
from unittest.mock import patch

from app.models.db_models import CaseDB, GeneratedDocumentDB, ReceiptDB, SubTaskDB
from app.services.cases import load_case_bundle
from app.services.documents import DocumentAssembler, render_template, resolve_variables
from app.services.documents.pdf_writer import write_pdf
from app.services.documents.receipt import ReceiptFields, layout_receipt
from app.services.fees import FeeResolver


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def assembler(db, audit_sink):
    return DocumentAssembler(db, audit_sink)


def stamp(assembler, seed, subtask, document_type=None, **kwargs):
    return assembler.generate_stamp(
        seed.office.id, seed.case.id, subtask.id, (document_type or seed.document_type).id, **kwargs,
    )


# =============================================================================
# END TO END
# =============================================================================

class TestEndToEnd:

    def test_fee_and_stamp_for_banco_x(self, db, assembler, seed, subtask):
        """Banco X / L1 / Notificación / Modelo A with a bank-wide fee of 12000."""
        fees = FeeResolver(db)
        assert fees.create_fee(seed.office.id, seed.bank.id, seed.document_type.id, 12000).ok

        lookup = fees.resolve_fee(
            seed.office.id, seed.bank.id, seed.document_type.id, lawyer_id=seed.lawyer.id, fallback=True,
        )
        assert lookup.data.amount == 12000

        bundle = load_case_bundle(db, seed.office.id, seed.case.id, subtask.id)
        assert subtask.type.name == "Notificación"
        text = render_template("Pagar $cuantia a $abogado_nombre", resolve_variables(bundle))
        assert text == "Pagar 12.000 a L1"

        result = stamp(assembler, seed, subtask)
        assert result.ok, result.error_message
        assert result.data.page_count == 1


# =============================================================================
# STAMPS
# =============================================================================

class TestGenerateStamp:

    def test_persists_document(self, db, assembler, seed, subtask):
        document = stamp(assembler, seed, subtask).data

        stored = db.get(GeneratedDocumentDB, document.id)
        assert stored.name == "Estampo Modelo A"
        assert stored.category == "Estampo"
        assert stored.case_id == seed.case.id
        assert stored.subtask_id == subtask.id
        assert stored.document_type_id == seed.document_type.id
        assert stored.payload.startswith(b"%PDF")
        assert stored.content_hash == hashlib.sha256(stored.payload).hexdigest()
        assert stored.version == 1

    def test_document_type_category_is_used(self, assembler, seed, subtask):
        document = stamp(assembler, seed, subtask, seed.second_document_type).data
        assert document.category == "Embargo"
        assert document.name == "Estampo Modelo B"

    def test_version_increments_per_document_type(self, assembler, seed, subtask):
        assert stamp(assembler, seed, subtask).data.version == 1
        assert stamp(assembler, seed, subtask).data.version == 2
        assert stamp(assembler, seed, subtask, seed.second_document_type).data.version == 1

    def test_subtask_is_not_mutated(self, db, assembler, seed, subtask):
        before = dict(subtask.task_metadata)
        stamp(assembler, seed, subtask)
        db.refresh(subtask)
        assert subtask.task_metadata == before
        assert subtask.status.value == "pending"

    def test_template_override(self, assembler, seed, subtask):
        long_text = "\n".join(f"Párrafo {n} de la causa $rol" for n in range(80))
        document = stamp(assembler, seed, subtask, template_override=long_text).data
        assert document.page_count >= 2

    def test_empty_override_is_rejected(self, db, assembler, seed, subtask):
        result = stamp(assembler, seed, subtask, template_override="   ")
        assert result.error_kind == "validation"
        assert db.query(GeneratedDocumentDB).count() == 0

    def test_expression_syntax_is_rejected(self, assembler, seed, subtask):
        result = stamp(assembler, seed, subtask, template_override="Hola ${nombre}")
        assert result.error_kind == "validation"

    def test_unknown_document_type(self, db, assembler, seed, subtask):
        result = assembler.generate_stamp(seed.office.id, seed.case.id, subtask.id, "missing")
        assert result.error_kind == "validation"
        assert db.query(GeneratedDocumentDB).count() == 0

    def test_inactive_document_type(self, db, assembler, seed, subtask):
        seed.document_type.active = False
        db.commit()
        assert stamp(assembler, seed, subtask).error_kind == "validation"

    def test_case_of_another_office(self, assembler, seed, subtask):
        result = assembler.generate_stamp(seed.other_office.id, seed.case.id, subtask.id, seed.document_type.id)
        assert result.error_kind == "validation"  # the document type is not in that office either

    def test_subtask_of_another_case(self, db, assembler, seed, subtask):
        other_case = CaseDB(id="other-case", office_id=seed.office.id, docket_number="C-2-2025")
        db.add(other_case)
        db.commit()
        result = assembler.generate_stamp(seed.office.id, other_case.id, subtask.id, seed.document_type.id)
        assert result.error_kind == "not_found"

    def test_signature_and_seal_are_embedded(self, db, assembler, seed, subtask, png_factory):
        seed.office.signature_image = png_factory(300, 120)
        seed.office.seal_image = png_factory(200, 200, color=(200, 0, 0))
        db.commit()
        result = stamp(assembler, seed, subtask, template_override="Doy fe.\n\n$firma $sello")
        assert result.ok, result.error_message

    def test_render_failure_persists_nothing(self, db, assembler, seed, subtask):
        with patch("app.services.documents.assembler.write_pdf", side_effect=RuntimeError("canvas exploded")):
            result = stamp(assembler, seed, subtask)
        assert result.error_kind == "render"
        assert db.query(GeneratedDocumentDB).count() == 0

    def test_corrupt_office_image_is_a_render_error(self, db, assembler, seed, subtask):
        seed.office.signature_image = b"garbage"
        db.commit()
        result = stamp(assembler, seed, subtask)
        assert result.error_kind == "render"
        assert db.query(GeneratedDocumentDB).count() == 0

    def test_case_value_does_not_place_the_signature(self, db, assembler, seed, subtask, png_factory):
        seed.office.signature_image = png_factory(300, 120)
        seed.first_party.name = "$firma"
        db.commit()
        with patch("app.services.documents.assembler.write_pdf", wraps=write_pdf) as writer:
            result = stamp(assembler, seed, subtask, template_override="Notificado $nombre_ejecutado")
        assert result.ok, result.error_message
        layout = writer.call_args[0][0]
        assert layout.pages[0].images() == []
        assert "Notificado $firma" in layout.texts()

    def test_concurrent_version_is_a_conflict(self, db, assembler, seed, subtask):
        assert stamp(assembler, seed, subtask).data.version == 1
        # A concurrent writer read the same count and already stored version 1
        with patch.object(DocumentAssembler, "_next_version", return_value=1):
            result = stamp(assembler, seed, subtask)
        assert result.error_kind == "conflict"
        assert db.query(GeneratedDocumentDB).count() == 1

    def test_audit_event(self, assembler, seed, subtask, audit_sink):
        document = stamp(assembler, seed, subtask).data
        event = audit_sink.emit.call_args[0][0]
        assert event.action == "generate_stamp"
        assert event.diff["document_id"] == document.id


class TestPreviewStamp:

    def test_preview_persists_nothing(self, db, assembler):
        result = assembler.preview_stamp("Causa $rol", {"rol": "C-1"})
        assert result.ok
        assert result.data.payload.startswith(b"%PDF")
        assert db.query(GeneratedDocumentDB).count() == 0

    def test_preview_validates(self, assembler):
        assert assembler.preview_stamp("").error_kind == "validation"


# =============================================================================
# RECEIPTS
# =============================================================================

class TestGenerateReceipt:

    def test_receipt_document_and_record(self, db, assembler, seed, subtask):
        result = assembler.generate_receipt(
            seed.office.id, seed.case.id, subtask.id, 12000, "Transferencia", reference="OP-1",
        )
        assert result.ok, result.error_message
        document = result.data
        assert document.category == "Recibo"
        assert document.name.startswith("Boleta ")
        assert document.payload.startswith(b"%PDF")

        receipt = db.query(ReceiptDB).one()
        assert receipt.amount == 12000
        assert receipt.payment_method == "Transferencia"
        assert receipt.reference == "OP-1"
        assert receipt.document_id == document.id
        assert receipt.case_id == seed.case.id

    def test_grouped_amount(self, db, assembler, seed, subtask):
        assembler.generate_receipt(seed.office.id, seed.case.id, subtask.id, "4.000.000", "Efectivo")
        assert db.query(ReceiptDB).one().amount == 4000000

    @pytest.mark.parametrize("amount,method", [
        (-1, "Efectivo"), (None, "Efectivo"), (100, "  "), (float("inf"), "Efectivo"), (float("nan"), "Efectivo"),
    ])
    def test_invalid_input(self, db, assembler, seed, subtask, amount, method):
        result = assembler.generate_receipt(seed.office.id, seed.case.id, subtask.id, amount, method)
        assert result.error_kind == "validation"
        assert db.query(ReceiptDB).count() == 0
        assert db.query(GeneratedDocumentDB).count() == 0

    def test_unknown_subtask(self, assembler, seed):
        result = assembler.generate_receipt(seed.office.id, seed.case.id, "missing", 100, "Efectivo")
        assert result.error_kind == "not_found"

    def test_subtask_untouched(self, db, assembler, seed, subtask):
        assembler.generate_receipt(seed.office.id, seed.case.id, subtask.id, 100, "Efectivo")
        assert db.get(SubTaskDB, subtask.id).task_metadata == {
            "execution_date": "2025-11-10", "execution_time": "10:30",
        }

    def test_receipt_fields(self):
        fields = ReceiptFields(
            docket_number="C-1",
            subtask_id="s1",
            amount=12000,
            payment_method="Transferencia",
            reference="OP-1",
            extra_fields={"Banco": "Banco X"},
        )
        assert fields.lines() == [
            "ROL: C-1",
            "Diligencia: s1",
            "Monto: $12.000",
            "Medio de pago: Transferencia",
            "Referencia: OP-1",
            "Banco: Banco X",
        ]
        layout = layout_receipt(fields)
        assert layout.page_count == 1
        assert layout.texts()[0] == "Recibo de diligencia"

    def test_receipt_without_reference(self):
        fields = ReceiptFields(docket_number="C-1", subtask_id="s1", amount=0, payment_method="Efectivo")
        assert "Referencia" not in " ".join(fields.lines())
        assert "Monto: $0" in fields.lines()


class TestDocumentReads:

    def test_get_document_is_office_scoped(self, assembler, seed, subtask):
        document = stamp(assembler, seed, subtask).data
        assert assembler.get_document(seed.office.id, document.id).ok
        assert assembler.get_document(seed.other_office.id, document.id).error_kind == "not_found"

    def test_list_case_documents(self, assembler, seed, subtask):
        stamp(assembler, seed, subtask)
        assembler.generate_receipt(seed.office.id, seed.case.id, subtask.id, 100, "Efectivo")
        documents = assembler.list_case_documents(seed.office.id, seed.case.id).data
        assert sorted(d.category for d in documents) == ["Estampo", "Recibo"]
