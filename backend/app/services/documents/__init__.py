"""
Document pipeline: variables -> template -> layout -> PDF.
"""
from .assembler import DocumentAssembler
from .formatting import format_amount, format_date_in_words
from .header import HeaderData
from .layout import TextLayoutEngine, layout_document
from .layout_types import PageGeometry
from .template_engine import render_template, validate_template
from .variables import resolve_variables

__all__ = [
    "DocumentAssembler",
    "format_amount",
    "format_date_in_words",
    "HeaderData",
    "TextLayoutEngine",
    "layout_document",
    "PageGeometry",
    "render_template",
    "validate_template",
    "resolve_variables",
]
