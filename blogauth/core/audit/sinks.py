"""
Audit event stores.

A sink appends events and answers filtered queries. Sinks may raise; the
AuditTrail in front of them contains every failure.
"""
import json
import logging
import os
import threading
from logging.handlers import RotatingFileHandler
from typing import Callable, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from blogauth.core.audit.events import (
    ActorContext,
    AuditCategory,
    AuditEvent,
    AuditEventKind,
    AuditQuery,
    Severity,
)
from blogauth.core.database.models import SecurityAuditLog

logger = logging.getLogger(__name__)


class AuditSink:
    """Interface for audit stores."""

    def append(self, event: AuditEvent) -> None:
        raise NotImplementedError

    def query(self, criteria: AuditQuery) -> List[AuditEvent]:
        """Matching events, most recent first, at most criteria.limit."""
        raise NotImplementedError


class MemoryAuditSink(AuditSink):
    """In-process store, for tests and tooling."""

    def __init__(self):
        self._events: List[AuditEvent] = []
        self._lock = threading.Lock()

    def append(self, event: AuditEvent) -> None:
        with self._lock:
            self._events.append(event)

    def query(self, criteria: AuditQuery) -> List[AuditEvent]:
        with self._lock:
            events = [e for e in self._events if criteria.matches(e)]
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:criteria.limit] if criteria.limit else events

    @property
    def events(self) -> List[AuditEvent]:
        """Copy of all events in append order."""
        with self._lock:
            return list(self._events)

    def __len__(self):
        return len(self._events)


class SqlAuditSink(AuditSink):
    """
    Stores events in the security_audit_log table.

    Uses its own short-lived session per call so an audit write never
    commits or rolls back the caller's transaction.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def append(self, event: AuditEvent) -> None:
        db = self.session_factory()
        try:
            db.add(SecurityAuditLog(
                id=event.event_id,
                timestamp=event.timestamp,
                event_kind=event.event_kind.value,
                category=event.category.value,
                severity=event.severity.value,
                user_id=event.actor.user_id,
                user_email=event.actor.email,
                ip_address=event.actor.ip,
                user_agent=(event.actor.user_agent or "")[:500] or None,
                details=event.details,
            ))
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        finally:
            db.close()

    def query(self, criteria: AuditQuery) -> List[AuditEvent]:
        db = self.session_factory()
        try:
            q = db.query(SecurityAuditLog)
            if criteria.category is not None:
                q = q.filter(SecurityAuditLog.category == criteria.category.value)
            if criteria.event_kind is not None:
                q = q.filter(SecurityAuditLog.event_kind == criteria.event_kind.value)
            if criteria.actor_id is not None:
                q = q.filter(SecurityAuditLog.user_id == criteria.actor_id)
            if criteria.source_ip is not None:
                q = q.filter(SecurityAuditLog.ip_address == criteria.source_ip)
            if criteria.since is not None:
                q = q.filter(SecurityAuditLog.timestamp >= criteria.since)
            if criteria.until is not None:
                q = q.filter(SecurityAuditLog.timestamp <= criteria.until)
            q = q.order_by(SecurityAuditLog.timestamp.desc())
            if criteria.limit:
                q = q.limit(criteria.limit)
            return [self._to_event(row) for row in q.all()]
        finally:
            db.close()

    @staticmethod
    def _to_event(row: SecurityAuditLog) -> AuditEvent:
        return AuditEvent(
            event_id=row.id,
            timestamp=row.timestamp,
            event_kind=AuditEventKind(row.event_kind),
            category=AuditCategory(row.category),
            severity=Severity(row.severity),
            actor=ActorContext(
                user_id=row.user_id,
                email=row.user_email,
                ip=row.ip_address,
                user_agent=row.user_agent,
            ),
            details=row.details or {},
        )


class _AuditFileHandler(RotatingFileHandler):
    """Rotating handler whose write failures reach the caller."""

    def handleError(self, record):
        # Called from inside emit()'s except block
        raise


class JsonlFileAuditSink(AuditSink):
    """
    One JSON object per line, rotated by size.

    Rotation keeps `backup_count` older files (audit.log.1 ... audit.log.N);
    queries read the current file and all rotated ones.
    """

    def __init__(self, path: str, max_bytes: int = 10 * 1024 * 1024, backup_count: int = 5):
        self.path = path
        self.backup_count = backup_count
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self._handler = _AuditFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
            delay=True,
        )
        self._handler.setFormatter(logging.Formatter("%(message)s"))

    def append(self, event: AuditEvent) -> None:
        record = logging.makeLogRecord({
            "name": "security.audit.file",
            "levelno": logging.INFO,
            "levelname": "INFO",
            "msg": json.dumps(event.to_dict(), default=str),
        })
        # handle() takes the handler lock, so rollover and write are atomic;
        # I/O errors propagate to the trail
        self._handler.handle(record)

    def _files(self) -> List[str]:
        files = [self.path] + [f"{self.path}.{i}" for i in range(1, self.backup_count + 1)]
        return [f for f in files if os.path.exists(f)]

    def query(self, criteria: AuditQuery) -> List[AuditEvent]:
        events = []
        for file_path in self._files():
            with open(file_path, "r", encoding="utf-8") as f:
                for line_number, line in enumerate(f, 1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        event = AuditEvent.from_dict(json.loads(line))
                    except (ValueError, KeyError, TypeError) as e:
                        logger.warning(f"Skipping unreadable audit line {file_path}:{line_number}: {e}")
                        continue
                    if criteria.matches(event):
                        events.append(event)
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:criteria.limit] if criteria.limit else events

    def close(self):
        self._handler.close()
