"""Receptor Engine - Audit event sink"""
from .events import AuditEvent, AuditSink, DatabaseAuditSink

__all__ = ["AuditEvent", "AuditSink", "DatabaseAuditSink"]
