"""Receptor Engine - Data Models"""
from .domain import (
    CaseBundle, FeeLookup, RenderedDocument, SubTaskMetadataUpdate,
)

__all__ = [
    "CaseBundle", "FeeLookup", "RenderedDocument", "SubTaskMetadataUpdate",
]
