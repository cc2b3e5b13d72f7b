"""Receptor Engine - API Routers"""
from .cases import router as cases_router
from .documents import router as documents_router
from .fees import router as fees_router
from .subtasks import router as subtasks_router

__all__ = [
    "cases_router",
    "documents_router",
    "fees_router",
    "subtasks_router",
]
