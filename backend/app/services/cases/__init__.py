"""
Case services: office-scoped loading, status derivation and sub-task mutations.
"""
from .case_loader import get_case, get_subtask, load_case_bundle
from .status_sync import CaseStatusSynchronizer, derive_case_status
from .subtask_service import SubTaskService, merge_metadata

__all__ = [
    "get_case",
    "get_subtask",
    "load_case_bundle",
    "CaseStatusSynchronizer",
    "derive_case_status",
    "SubTaskService",
    "merge_metadata",
]
