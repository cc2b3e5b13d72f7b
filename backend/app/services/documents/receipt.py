"""
Payment receipt ("boleta") layout. A single page of fixed fields.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .formatting import format_amount
from .layout_types import LayoutPage, LayoutResult, PageGeometry, TextOp

RECEIPT_TITLE = "Recibo de diligencia"
RECEIPT_FONT = "Helvetica"
RECEIPT_BOLD_FONT = "Helvetica-Bold"
TITLE_SIZE = 18
TITLE_BASELINE = 780
TITLE_GAP = 40
FIELD_SPACING = 20


@dataclass
class ReceiptFields:
    docket_number: str
    subtask_id: str
    amount: int
    payment_method: str
    reference: Optional[str] = None
    extra_fields: Dict[str, str] = field(default_factory=dict)

    def lines(self) -> List[str]:
        lines = [
            f"ROL: {self.docket_number}",
            f"Diligencia: {self.subtask_id}",
            f"Monto: ${format_amount(self.amount)}",
            f"Medio de pago: {self.payment_method}",
        ]
        if self.reference:
            lines.append(f"Referencia: {self.reference}")
        lines.extend(f"{key}: {value}" for key, value in self.extra_fields.items())
        return lines


def layout_receipt(fields: ReceiptFields, geometry: Optional[PageGeometry] = None) -> LayoutResult:
    geometry = geometry or PageGeometry()
    page = LayoutPage(number=1)
    y = TITLE_BASELINE
    page.ops.append(TextOp(RECEIPT_TITLE, geometry.margin, y, RECEIPT_BOLD_FONT, TITLE_SIZE))
    y -= TITLE_GAP
    for line in fields.lines():
        page.ops.append(TextOp(line, geometry.margin, y, RECEIPT_FONT, geometry.body_size))
        y -= FIELD_SPACING
    return LayoutResult(pages=[page])
