"""
Text Layout Engine

Wraps substituted stamp text into lines, paginates those lines onto fixed-size
pages and embeds the office signature/seal where the template engine left an
image_marker() placeholder for $firma/$sello. The result is a list of draw
ops per page; pdf_writer turns it into a PDF.

Vertical model: ``cursor`` is the top of the next line box. Text is drawn on
the baseline ``cursor - body_size``; an image hangs from the cursor. A line
advances the cursor by its own height, which is the text line height unless an
image on that line is taller.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from reportlab.pdfbase.pdfmetrics import stringWidth

from .header import HeaderData, build_header
from .images import IMAGE_MARKERS, MARKER_DELIMITER, OfficeImage
from .layout_types import DrawOp, ImageOp, LayoutPage, LayoutResult, PageGeometry, TextOp

logger = logging.getLogger(__name__)

# Paragraph separator marker emitted by wrap(); never a real line of text.
BLANK = "\x00BLANK\x00"

MARKER_PATTERN = re.compile(
    re.escape(MARKER_DELIMITER) + "(" + "|".join(IMAGE_MARKERS) + ")" + re.escape(MARKER_DELIMITER)
)


@dataclass
class LineEmbedding:
    """What placing one line consumed."""
    ops: List[DrawOp] = field(default_factory=list)
    residual: str = ""
    x_advance: float = 0
    height: float = 0


class TextLayoutEngine:
    def __init__(
        self,
        geometry: Optional[PageGeometry] = None,
        images: Optional[Mapping[str, OfficeImage]] = None,
    ):
        self.geometry = geometry or PageGeometry()
        self.images: Dict[str, OfficeImage] = dict(images or {})

    # =========================================================================
    # MEASUREMENT
    # =========================================================================

    def text_width(self, text: str) -> float:
        return stringWidth(text, self.geometry.font, self.geometry.body_size)

    def measure(self, text: str) -> float:
        """Rendered width of a line, counting markers as their image width plus gap."""
        width = 0.0
        pos = 0
        for match in MARKER_PATTERN.finditer(text):
            width += self.text_width(text[pos:match.start()])
            image = self.images.get(match.group(1))
            if image is not None:
                width += image.width + self.geometry.image_gap
            pos = match.end()
        return width + self.text_width(text[pos:])

    def line_height(self, line: str) -> float:
        height = self.geometry.line_height
        for match in MARKER_PATTERN.finditer(line):
            image = self.images.get(match.group(1))
            if image is not None:
                height = max(height, image.height + self.geometry.image_gap)
        return height

    # =========================================================================
    # WRAPPING
    # =========================================================================

    def wrap(self, text: str) -> List[str]:
        """
        Greedy word wrap.

        Each "\\n"-separated paragraph is packed word by word; an empty paragraph
        becomes BLANK so intentional vertical space survives. A word wider than
        the page is placed on a line of its own.
        """
        max_width = self.geometry.content_width
        lines: List[str] = []
        for paragraph in (text or "").split("\n"):
            words = paragraph.split()
            if not words:
                lines.append(BLANK)
                continue
            current = ""
            for word in words:
                candidate = f"{current} {word}" if current else word
                if current and self.measure(candidate) > max_width:
                    lines.append(current)
                    current = word
                else:
                    current = candidate
            lines.append(current)
        return lines

    # =========================================================================
    # LINE PLACEMENT
    # =========================================================================

    def consume_line(self, line: str, x: float, top: float) -> LineEmbedding:
        """
        Place one wrapped line whose box starts at (x, top).

        Text segments are drawn left to right; each marker embeds its image at
        the current x-offset and the rest of the line continues after it.
        Markers without an image are dropped.
        """
        geometry = self.geometry
        baseline = top - geometry.body_size
        embedding = LineEmbedding(height=geometry.line_height)
        residual: List[str] = []
        cursor_x = x

        def _emit_text(segment: str) -> None:
            nonlocal cursor_x
            if not segment:
                return
            if segment.strip():
                embedding.ops.append(TextOp(
                    text=segment,
                    x=cursor_x,
                    y=baseline,
                    font=geometry.font,
                    size=geometry.body_size,
                ))
            residual.append(segment)
            cursor_x += self.text_width(segment)

        pos = 0
        for match in MARKER_PATTERN.finditer(line):
            _emit_text(line[pos:match.start()])
            pos = match.end()
            image = self.images.get(match.group(1))
            if image is None:
                logger.debug(f"No '{match.group(1)}' image available, marker dropped")
                continue
            embedding.ops.append(ImageOp(
                image=image,
                x=cursor_x,
                y=top - image.height,
                width=image.width,
                height=image.height,
            ))
            cursor_x += image.width + geometry.image_gap
            embedding.height = max(embedding.height, image.height + geometry.image_gap)
        _emit_text(line[pos:])

        embedding.residual = re.sub(r"\s+", " ", "".join(residual)).strip()
        embedding.x_advance = cursor_x - x
        return embedding

    # =========================================================================
    # PAGINATION
    # =========================================================================

    def layout(self, text: str, header: Optional[HeaderData] = None) -> LayoutResult:
        geometry = self.geometry
        result = LayoutResult()

        def _new_page() -> LayoutPage:
            page = LayoutPage(number=len(result.pages) + 1)
            result.pages.append(page)
            return page

        page = _new_page()
        cursor = geometry.top
        if header is not None:
            header_ops, header_height = build_header(header, geometry)
            page.ops.extend(header_ops)
            cursor -= header_height

        # A page is only opened once a real line needs it; trailing blanks never
        # produce an empty last page.
        break_pending = False

        for line in self.wrap(text):
            if line == BLANK:
                if break_pending:
                    # Blank space at the top of a page is dropped.
                    continue
                if cursor - geometry.blank_advance < geometry.bottom:
                    break_pending = True
                else:
                    cursor -= geometry.blank_advance
                continue

            height = self.line_height(line)
            if break_pending or (cursor - height < geometry.bottom and cursor < geometry.top):
                page = _new_page()
                cursor = geometry.top
                break_pending = False

            embedding = self.consume_line(line, geometry.margin, cursor)
            page.ops.extend(embedding.ops)
            cursor -= embedding.height

        logger.debug(f"Laid out {len(text or '')} chars on {result.page_count} page(s)")
        return result


def layout_document(
    text: str,
    header: Optional[HeaderData] = None,
    images: Optional[Mapping[str, OfficeImage]] = None,
    geometry: Optional[PageGeometry] = None,
) -> LayoutResult:
    return TextLayoutEngine(geometry=geometry, images=images).layout(text, header=header)
