"""
Tests for the database and JSON-lines audit stores
"""
import json
import logging
from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from blogauth.core.audit import (
    ActorContext,
    AuditCategory,
    AuditEventKind,
    AuditTrail,
    JsonlFileAuditSink,
    SqlAuditSink,
)
from blogauth.core.audit.events import AuditQuery
from blogauth.core.audit.trail import create_audit_trail
from blogauth.core.config import Settings
from blogauth.core.database.models import MAX_ACTOR_ID_LENGTH, SecurityAuditLog

START = datetime(2026, 3, 1, 9, 0, 0)


def _record_series(trail_factory):
    """Record three events one minute apart, returning the trail."""
    times = iter([START, START + timedelta(minutes=1), START + timedelta(minutes=2)])
    trail = trail_factory(lambda: next(times))
    trail.record(AuditEventKind.LOGIN_FAILURE, details={"reason": "invalid_signature"},
                 actor=ActorContext(user_id="u1", ip="9.9.9.9", user_agent="curl"))
    trail.record(AuditEventKind.LOGIN_SUCCESS, details={"method": "cryptographic"},
                 actor=ActorContext(user_id="u1", email="admin@example.com", ip="9.9.9.9"))
    trail.record(AuditEventKind.PERMISSION_DENIED, actor=ActorContext(ip="8.8.8.8"))
    return trail


class TestSqlAuditSink:

    def test_append_and_query(self, session_factory, test_db):
        sink = SqlAuditSink(session_factory)
        trail = _record_series(lambda clock: AuditTrail(sink, mirror_to_log=False, clock=clock))

        assert test_db.query(SecurityAuditLog).count() == 3

        events = trail.query()
        assert [e.event_kind for e in events] == [
            AuditEventKind.PERMISSION_DENIED,
            AuditEventKind.LOGIN_SUCCESS,
            AuditEventKind.LOGIN_FAILURE,
        ]
        failure = events[-1]
        assert failure.details == {"reason": "invalid_signature"}
        assert failure.actor.user_agent == "curl"
        assert failure.timestamp == START

    def test_filters(self, session_factory):
        sink = SqlAuditSink(session_factory)
        _record_series(lambda clock: AuditTrail(sink, mirror_to_log=False, clock=clock))

        assert len(sink.query(AuditQuery(actor_id="u1"))) == 2
        assert len(sink.query(AuditQuery(source_ip="8.8.8.8"))) == 1
        assert len(sink.query(AuditQuery(category=AuditCategory.AUTHORIZATION))) == 1
        assert len(sink.query(AuditQuery(event_kind=AuditEventKind.LOGIN_SUCCESS))) == 1
        assert len(sink.query(AuditQuery(since=START + timedelta(seconds=30)))) == 2
        assert len(sink.query(AuditQuery(until=START))) == 1
        assert len(sink.query(AuditQuery(limit=2))) == 2

    def test_store_failure_is_contained(self, session_factory, engine):
        sink = SqlAuditSink(session_factory)
        trail = AuditTrail(sink, mirror_to_log=False)
        SecurityAuditLog.__table__.drop(engine)

        assert trail.record(AuditEventKind.LOGIN_SUCCESS) is not None
        assert trail.query() == []

        with pytest.raises(OperationalError):
            sink.query(AuditQuery())
        SecurityAuditLog.__table__.create(engine)

    def test_longest_accepted_actor_id_is_stored(self, session_factory):
        assert SecurityAuditLog.__table__.c.user_id.type.length >= MAX_ACTOR_ID_LENGTH
        sink = SqlAuditSink(session_factory)
        long_id = "f" * MAX_ACTOR_ID_LENGTH

        AuditTrail(sink, mirror_to_log=False).record(
            AuditEventKind.LOGIN_FAILURE, actor=ActorContext(user_id=long_id)
        )

        assert [e.actor.user_id for e in sink.query(AuditQuery())] == [long_id]


class TestJsonlFileAuditSink:

    def test_append_and_query(self, tmp_path):
        path = tmp_path / "logs" / "audit.log"
        sink = JsonlFileAuditSink(str(path))
        trail = _record_series(lambda clock: AuditTrail(sink, mirror_to_log=False, clock=clock))
        sink.close()

        lines = path.read_text().splitlines()
        assert len(lines) == 3
        assert json.loads(lines[0])["event"] == "login_failure"

        events = trail.query(source_ip="9.9.9.9")
        assert [e.event_kind for e in events] == [AuditEventKind.LOGIN_SUCCESS, AuditEventKind.LOGIN_FAILURE]

    def test_rotation_keeps_history_queryable(self, tmp_path):
        path = tmp_path / "audit.log"
        sink = JsonlFileAuditSink(str(path), max_bytes=600, backup_count=20)
        trail = AuditTrail(sink, mirror_to_log=False)
        for i in range(12):
            trail.record(AuditEventKind.LOGIN_FAILURE, details={"reason": "invalid_signature", "n": i})
        sink.close()

        assert (tmp_path / "audit.log.1").exists()
        numbers = sorted(e.details["n"] for e in sink.query(AuditQuery()))
        assert numbers == list(range(12))

    def test_backup_count_bounds_history(self, tmp_path):
        path = tmp_path / "audit.log"
        sink = JsonlFileAuditSink(str(path), max_bytes=300, backup_count=1)
        trail = AuditTrail(sink, mirror_to_log=False)
        for i in range(10):
            trail.record(AuditEventKind.LOGIN_SUCCESS, details={"n": i})
        sink.close()

        assert not (tmp_path / "audit.log.2").exists()
        assert len(sink.query(AuditQuery())) < 10

    def test_unreadable_lines_are_skipped(self, tmp_path):
        path = tmp_path / "audit.log"
        sink = JsonlFileAuditSink(str(path))
        AuditTrail(sink, mirror_to_log=False).record(AuditEventKind.LOGIN_SUCCESS)
        sink.close()
        with open(path, "a", encoding="utf-8") as f:
            f.write("not json\n")
            f.write('{"id": "x"}\n')

        assert len(sink.query(AuditQuery())) == 1

    def test_missing_file_yields_nothing(self, tmp_path):
        sink = JsonlFileAuditSink(str(tmp_path / "never-written.log"))
        assert sink.query(AuditQuery()) == []

    def test_write_failure_reaches_trail(self, tmp_path, caplog, capsys):
        path = tmp_path / "audit.log"
        sink = JsonlFileAuditSink(str(path))
        path.mkdir()  # the log path can no longer be opened as a file
        trail = AuditTrail(sink, mirror_to_log=False)

        with caplog.at_level(logging.ERROR, logger="blogauth.core.audit.trail"):
            assert trail.record(AuditEventKind.LOGIN_FAILURE) is not None

        assert "Failed to persist audit event" in caplog.text
        assert "Logging error" not in capsys.readouterr().err


class TestCreateAuditTrail:

    def test_file_store(self, tmp_path):
        settings = Settings(
            audit_store="file",
            audit_log_file=str(tmp_path / "audit.log"),
            audit_console=False,
        )
        trail = create_audit_trail(settings)
        assert isinstance(trail.sink, JsonlFileAuditSink)
        assert trail.mirror_to_log is False

    def test_database_store(self, session_factory):
        trail = create_audit_trail(Settings(audit_store="database"), session_factory=session_factory)
        assert isinstance(trail.sink, SqlAuditSink)

    def test_unknown_store(self):
        with pytest.raises(ValueError, match="Unknown audit store"):
            create_audit_trail(Settings(audit_store="kafka"))
