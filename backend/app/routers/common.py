"""
Shared router helpers: turn a failed ServiceResult into an HTTP error.
"""
from fastapi import HTTPException

from ..database import SessionLocal
from ..services.audit import AuditSink, DatabaseAuditSink
from ..services.errors import ServiceResult

STATUS_BY_KIND = {
    "validation": 400,
    "not_found": 404,
    "conflict": 409,
    "render": 500,
    "error": 500,
}


def unwrap(result: ServiceResult):
    """Return result.data, or raise the HTTPException matching the error kind."""
    if result.ok:
        return result.data
    raise HTTPException(
        status_code=STATUS_BY_KIND.get(result.error_kind, 500),
        detail={"kind": result.error_kind, "message": result.error_message, **(result.error.details or {})},
    )


def get_audit_sink() -> AuditSink:
    """Dependency: audit events are written on their own session."""
    return DatabaseAuditSink(SessionLocal)
