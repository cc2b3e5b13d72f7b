"""
Stamp Header Block

Drawn once, at the top of page 1:

            RECEIVING OFFICE NAME            (bold, centred)
    ------------------------------------------------
    Tribunal     : <court>
    N° ROL       : <docket>
    Caratulado   : <bank> / <opposing party>

Its height is known before any body text is laid out, so page 1 simply starts
its body cursor lower.
"""
from dataclasses import dataclass
from typing import List, Optional, Tuple

from reportlab.pdfbase.pdfmetrics import stringWidth

from ...models.domain import CaseBundle
from .layout_types import DrawOp, PageGeometry, RuleOp, TextOp

# Vertical spacing (points)
SPACE_BEFORE_RULE = 24
SPACE_AFTER_RULE = 16
INFO_LINE_SPACING = 16
BLANK_AFTER = 16


@dataclass
class HeaderData:
    office_name: Optional[str] = None
    court_name: Optional[str] = None
    docket_number: str = ""
    bank_name: Optional[str] = None
    party_name: Optional[str] = None

    @classmethod
    def from_bundle(cls, bundle: CaseBundle) -> "HeaderData":
        party = bundle.selected_party()
        return cls(
            office_name=bundle.office.name if bundle.office else None,
            court_name=bundle.court.name if bundle.court else None,
            docket_number=bundle.case.docket_number or "",
            bank_name=bundle.bank.name if bundle.bank else None,
            party_name=party.name if party else None,
        )

    def info_lines(self) -> List[str]:
        caption = " / ".join(p for p in (self.bank_name, self.party_name) if p) or "N/A"
        return [
            f"Tribunal     : {self.court_name or 'N/A'}",
            f"N° ROL       : {self.docket_number}",
            f"Caratulado   : {caption}",
        ]


def build_header(header: HeaderData, geometry: PageGeometry) -> Tuple[List[DrawOp], float]:
    """Draw ops for the header and the vertical extent they occupy from the top margin."""
    ops: List[DrawOp] = []
    y = geometry.top - geometry.header_size

    if header.office_name:
        size = geometry.header_size
        width = stringWidth(header.office_name, geometry.bold_font, size)
        if width > geometry.content_width:
            # Shrink to the margins; the title keeps its baseline so the extent is unchanged
            size = size * geometry.content_width / width
            width = stringWidth(header.office_name, geometry.bold_font, size)
        ops.append(TextOp(
            text=header.office_name,
            x=(geometry.width - width) / 2,
            y=y,
            font=geometry.bold_font,
            size=size,
        ))

    y -= SPACE_BEFORE_RULE
    ops.append(RuleOp(x1=geometry.margin, y1=y, x2=geometry.width - geometry.margin, y2=y))

    y -= SPACE_AFTER_RULE
    for line in header.info_lines():
        y -= INFO_LINE_SPACING
        ops.append(TextOp(text=line, x=geometry.margin, y=y, font=geometry.font, size=geometry.body_size))

    y -= BLANK_AFTER
    return ops, geometry.top - y


def measure_header(header: HeaderData, geometry: PageGeometry) -> float:
    return build_header(header, geometry)[1]
