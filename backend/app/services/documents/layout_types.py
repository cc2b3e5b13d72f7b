"""
Draw instructions produced by the layout engine and consumed by the PDF writer.

Coordinates follow PDF conventions: points, origin bottom-left, text y is the
baseline, image y is the lower edge.
"""
from dataclasses import dataclass, field
from typing import List, Union

from .images import OfficeImage


@dataclass(frozen=True)
class PageGeometry:
    width: float = 595
    height: float = 842
    margin: float = 50
    font: str = "Times-Roman"
    bold_font: str = "Times-Bold"
    body_size: float = 12
    header_size: float = 14
    image_gap: float = 10

    @property
    def line_height(self) -> float:
        return self.body_size + 4

    @property
    def blank_advance(self) -> float:
        return self.body_size * 1.5

    @property
    def content_width(self) -> float:
        return self.width - 2 * self.margin

    @property
    def top(self) -> float:
        return self.height - self.margin

    @property
    def bottom(self) -> float:
        return self.margin


@dataclass(frozen=True)
class TextOp:
    text: str
    x: float
    y: float
    font: str
    size: float


@dataclass(frozen=True)
class ImageOp:
    image: OfficeImage
    x: float
    y: float
    width: float
    height: float

    @property
    def name(self) -> str:
        return self.image.name


@dataclass(frozen=True)
class RuleOp:
    x1: float
    y1: float
    x2: float
    y2: float
    thickness: float = 1


DrawOp = Union[TextOp, ImageOp, RuleOp]


@dataclass
class LayoutPage:
    number: int
    ops: List[DrawOp] = field(default_factory=list)

    def texts(self) -> List[str]:
        return [op.text for op in self.ops if isinstance(op, TextOp)]

    def images(self) -> List[ImageOp]:
        return [op for op in self.ops if isinstance(op, ImageOp)]


@dataclass
class LayoutResult:
    pages: List[LayoutPage] = field(default_factory=list)

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def texts(self) -> List[str]:
        return [text for page in self.pages for text in page.texts()]
