"""
Audit trail routes (admin permission required).
"""
from fastapi import APIRouter, Depends, Query
from datetime import datetime, timezone
from typing import Optional
import logging

from blogauth.api.dependencies import get_audit_trail
from blogauth.api.schemas import AuditEventResponse, AuditEventsResponse, AuditStatsResponse
from blogauth.api.session_auth import require_permissions
from blogauth.core.audit import AuditCategory, AuditEvent, AuditEventKind, AuditTrail
from blogauth.core.keyauth import ValidationError
from blogauth.core.signing.permissions import Permission

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/admin/audit",
    tags=["audit"],
    dependencies=[Depends(require_permissions(Permission.ADMIN))],
)


def to_response(event: AuditEvent) -> AuditEventResponse:
    return AuditEventResponse(
        id=event.event_id,
        timestamp=event.timestamp,
        event=event.event_kind.value,
        category=event.category.value,
        level=event.severity.value,
        userId=event.actor.user_id,
        userEmail=event.actor.email,
        ip=event.actor.ip,
        userAgent=event.actor.user_agent,
        details=dict(event.details),
    )


@router.get("", response_model=AuditEventsResponse)
def list_events(
    category: Optional[AuditCategory] = Query(None),
    event: Optional[AuditEventKind] = Query(None),
    userId: Optional[str] = Query(None),
    ip: Optional[str] = Query(None),
    startDate: Optional[datetime] = Query(None, description="Naive UTC or ISO-8601"),
    endDate: Optional[datetime] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    audit: AuditTrail = Depends(get_audit_trail),
):
    """Filtered audit events, most recent first."""
    events = audit.query(
        category=category,
        event_kind=event,
        actor_id=userId,
        source_ip=ip,
        since=_naive_utc(startDate),
        until=_naive_utc(endDate),
        limit=limit,
    )
    return AuditEventsResponse(events=[to_response(e) for e in events], count=len(events))


@router.get("/stats", response_model=AuditStatsResponse)
def stats(
    window: str = Query("24h", description="1h, 24h, 7d or 30d"),
    audit: AuditTrail = Depends(get_audit_trail),
):
    """Event counts over a trailing window plus the 10 most recent events."""
    try:
        statistics = audit.statistics(window)
    except ValueError as e:
        raise ValidationError(str(e))
    return AuditStatsResponse(
        window=statistics.window,
        totalEvents=statistics.total_events,
        byCategory=statistics.counts_by_category,
        byEvent=statistics.counts_by_event_kind,
        byLevel=statistics.counts_by_severity,
        recentEvents=[to_response(e) for e in statistics.most_recent],
    )


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Stored timestamps are naive UTC
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
