"""
Security Audit Trail

Append-only, queryable record of authentication and key-management events.
"""

from blogauth.core.audit.events import (
    ActorContext,
    AuditCategory,
    AuditEvent,
    AuditEventKind,
    AuditQuery,
    Severity,
    default_category,
    severity_for,
)
from blogauth.core.audit.sinks import (
    AuditSink,
    MemoryAuditSink,
    SqlAuditSink,
    JsonlFileAuditSink,
)
from blogauth.core.audit.trail import (
    AuditTrail,
    AuditStatistics,
    STATISTICS_WINDOWS,
    create_audit_trail,
)

__all__ = [
    "ActorContext",
    "AuditCategory",
    "AuditEvent",
    "AuditEventKind",
    "AuditQuery",
    "Severity",
    "default_category",
    "severity_for",
    "AuditSink",
    "MemoryAuditSink",
    "SqlAuditSink",
    "JsonlFileAuditSink",
    "AuditTrail",
    "AuditStatistics",
    "STATISTICS_WINDOWS",
    "create_audit_trail",
]
