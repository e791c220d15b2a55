"""
Security audit trail.

record() never raises: a failing store is logged and the caller's outcome
stands. Each event is also mirrored as one JSON line on the
"security.audit" logger.
"""
import json
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Union

from blogauth.core.audit.events import (
    ActorContext,
    AuditCategory,
    AuditEvent,
    AuditEventKind,
    AuditQuery,
    Severity,
    default_category,
    new_event_id,
    severity_for,
)
from blogauth.core.audit.sinks import AuditSink, JsonlFileAuditSink, SqlAuditSink

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("security.audit")

STATISTICS_WINDOWS = {
    "1h": timedelta(hours=1),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}

_LOG_LEVELS = {
    Severity.CRITICAL: logging.CRITICAL,
    Severity.ERROR: logging.ERROR,
    Severity.WARNING: logging.WARNING,
    Severity.INFO: logging.INFO,
}


@dataclass
class AuditStatistics:
    window: str
    total_events: int = 0
    counts_by_category: Dict[str, int] = field(default_factory=dict)
    counts_by_event_kind: Dict[str, int] = field(default_factory=dict)
    counts_by_severity: Dict[str, int] = field(default_factory=dict)
    most_recent: List[AuditEvent] = field(default_factory=list)


def resolve_window(window: Union[str, timedelta]) -> timedelta:
    """
    Raises:
        ValueError: Unknown window name
    """
    if isinstance(window, timedelta):
        return window
    try:
        return STATISTICS_WINDOWS[window]
    except KeyError:
        raise ValueError(
            f"Unknown window '{window}' (expected one of {', '.join(STATISTICS_WINDOWS)})"
        ) from None


class AuditTrail:
    """Append-only record of security-relevant events."""

    def __init__(
        self,
        sink: AuditSink,
        mirror_to_log: bool = True,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.sink = sink
        self.mirror_to_log = mirror_to_log
        self.clock = clock

    def record(
        self,
        event_kind: AuditEventKind,
        category: Optional[AuditCategory] = None,
        details: Optional[dict] = None,
        actor: Optional[ActorContext] = None,
    ) -> Optional[str]:
        """
        Append an event. Returns its id, or None if the event could not even
        be built (unknown kind).
        """
        try:
            kind = AuditEventKind(event_kind)
            event = AuditEvent(
                event_id=new_event_id(),
                timestamp=self.clock(),
                event_kind=kind,
                category=AuditCategory(category) if category else default_category(kind),
                severity=severity_for(kind),
                actor=actor or ActorContext(),
                details=dict(details or {}),
            )
        except (ValueError, TypeError) as e:
            logger.error(f"Dropping malformed audit event {event_kind!r}: {e}")
            return None

        if self.mirror_to_log:
            try:
                audit_logger.log(_LOG_LEVELS[event.severity], json.dumps(event.to_dict(), default=str))
            except (TypeError, ValueError) as e:
                logger.error(f"Failed to mirror audit event {event.event_id}: {e}")

        try:
            self.sink.append(event)
        except Exception as e:
            logger.error(
                f"Failed to persist audit event {event.event_id} ({kind.value}): {type(e).__name__}: {e}",
                exc_info=True,
            )
        return event.event_id

    def query(
        self,
        category: Optional[AuditCategory] = None,
        event_kind: Optional[AuditEventKind] = None,
        actor_id: Optional[str] = None,
        source_ip: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[AuditEvent]:
        """Matching events, most recent first. Returns [] if the store fails."""
        criteria = AuditQuery(
            category=AuditCategory(category) if category else None,
            event_kind=AuditEventKind(event_kind) if event_kind else None,
            actor_id=actor_id,
            source_ip=source_ip,
            since=since,
            until=until,
            limit=limit,
        )
        try:
            events = self.sink.query(criteria)
        except Exception as e:
            logger.error(f"Audit query failed: {type(e).__name__}: {e}", exc_info=True)
            return []
        return sorted(events, key=lambda e: e.timestamp, reverse=True)

    def statistics(self, window: Union[str, timedelta] = "24h", recent: int = 10) -> AuditStatistics:
        """
        Aggregate counts over a trailing window.

        Raises:
            ValueError: Unknown window name
        """
        span = resolve_window(window)
        events = self.query(since=self.clock() - span)

        return AuditStatistics(
            window=window if isinstance(window, str) else str(span),
            total_events=len(events),
            counts_by_category=dict(Counter(e.category.value for e in events)),
            counts_by_event_kind=dict(Counter(e.event_kind.value for e in events)),
            counts_by_severity=dict(Counter(e.severity.value for e in events)),
            most_recent=events[:recent],
        )


def create_audit_trail(settings=None, session_factory=None) -> AuditTrail:
    """Build the trail configured by settings.audit_store."""
    if settings is None:
        from blogauth.core.config import get_settings
        settings = get_settings()

    store = settings.audit_store.lower()
    if store == "file":
        sink = JsonlFileAuditSink(
            settings.audit_log_file,
            max_bytes=settings.audit_log_max_bytes,
            backup_count=settings.audit_log_backup_count,
        )
    elif store == "database":
        if session_factory is None:
            from blogauth.core.database import connection
            if connection.SessionLocal is None:
                raise RuntimeError("Database not initialized. Call init_db() first.")
            session_factory = connection.SessionLocal
        sink = SqlAuditSink(session_factory)
    else:
        raise ValueError(f"Unknown audit store '{settings.audit_store}' (expected database or file)")

    logger.info(f"Audit trail using {store} store")
    return AuditTrail(sink, mirror_to_log=settings.audit_console)
