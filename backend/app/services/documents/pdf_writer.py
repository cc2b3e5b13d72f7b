"""
PDF writer - draws a LayoutResult onto a reportlab canvas.
"""
import hashlib
import logging
from io import BytesIO
from typing import Optional

from reportlab.pdfgen import canvas

from ...models.domain import RenderedDocument
from .layout_types import ImageOp, LayoutResult, PageGeometry, RuleOp, TextOp

logger = logging.getLogger(__name__)


def write_pdf(
    layout: LayoutResult,
    geometry: Optional[PageGeometry] = None,
    title: Optional[str] = None,
) -> RenderedDocument:
    geometry = geometry or PageGeometry()
    buffer = BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=(geometry.width, geometry.height))
    if title:
        pdf.setTitle(title)

    for page in layout.pages:
        for op in page.ops:
            if isinstance(op, TextOp):
                pdf.setFont(op.font, op.size)
                pdf.drawString(op.x, op.y, op.text)
            elif isinstance(op, ImageOp):
                pdf.drawImage(op.image.reader(), op.x, op.y, width=op.width, height=op.height, mask="auto")
            elif isinstance(op, RuleOp):
                pdf.setLineWidth(op.thickness)
                pdf.line(op.x1, op.y1, op.x2, op.y2)
        pdf.showPage()

    pdf.save()
    payload = buffer.getvalue()
    logger.debug(f"Wrote PDF '{title or ''}': {layout.page_count} page(s), {len(payload)} bytes")
    return RenderedDocument(
        payload=payload,
        page_count=layout.page_count,
        content_hash=hashlib.sha256(payload).hexdigest(),
    )
