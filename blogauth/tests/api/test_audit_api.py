"""
Tests for the audit query and statistics endpoints
"""
from datetime import datetime, timedelta

import pytest

from blogauth.core.audit import ActorContext, AuditEventKind
from blogauth.core.database.models import User
from blogauth.core.signing.permissions import Permission, permission_values


@pytest.fixture
def auth_headers(admin_token):
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
def populated(audit_trail):
    audit_trail.record(AuditEventKind.LOGIN_FAILURE, details={"reason": "invalid_signature"},
                       actor=ActorContext(user_id="u1", ip="10.0.0.1"))
    audit_trail.record(AuditEventKind.LOGIN_SUCCESS, details={"method": "cryptographic"},
                       actor=ActorContext(user_id="u1", ip="10.0.0.1"))
    audit_trail.record(AuditEventKind.RATE_LIMIT_EXCEEDED, details={"policy": "login"},
                       actor=ActorContext(ip="10.0.0.2"))
    return audit_trail


class TestAuditEvents:

    def test_requires_authentication(self, client):
        assert client.get("/api/admin/audit").status_code == 401

    def test_list_events(self, client, auth_headers, populated):
        response = client.get("/api/admin/audit", headers=auth_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 3
        assert [e["event"] for e in body["events"]] == [
            "rate_limit_exceeded", "login_success", "login_failure",
        ]
        first = body["events"][0]
        assert first["category"] == "security"
        assert first["level"] == "error"
        assert first["ip"] == "10.0.0.2"

    def test_filters(self, client, auth_headers, populated):
        by_user = client.get("/api/admin/audit", params={"userId": "u1"}, headers=auth_headers).json()
        assert by_user["count"] == 2

        by_event = client.get("/api/admin/audit", params={"event": "login_failure"}, headers=auth_headers).json()
        assert [e["details"] for e in by_event["events"]] == [{"reason": "invalid_signature"}]

        by_ip = client.get(
            "/api/admin/audit", params={"ip": "10.0.0.1", "category": "authentication"}, headers=auth_headers
        ).json()
        assert by_ip["count"] == 2

        limited = client.get("/api/admin/audit", params={"limit": 1}, headers=auth_headers).json()
        assert limited["count"] == 1

    def test_date_range(self, client, auth_headers, populated):
        future = (datetime.utcnow() + timedelta(hours=1)).isoformat()
        response = client.get("/api/admin/audit", params={"startDate": future}, headers=auth_headers)
        assert response.json()["count"] == 0

        past = (datetime.utcnow() - timedelta(hours=1)).isoformat() + "Z"
        response = client.get("/api/admin/audit", params={"startDate": past}, headers=auth_headers)
        assert response.json()["count"] == 3

    @pytest.mark.parametrize("params", [{"limit": 0}, {"limit": 5000}, {"event": "bogus"}, {"startDate": "soon"}])
    def test_invalid_query(self, client, auth_headers, params):
        response = client.get("/api/admin/audit", params=params, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    def test_missing_admin_permission(self, client, test_db, audit_sink, token_issuer):
        # An admin whose stored permissions lack "admin"
        user = User(
            email="limited@example.com",
            role="admin",
            permissions=permission_values([Permission.READ]),
            public_key="",
        )
        test_db.add(user)
        test_db.commit()
        token = token_issuer.create_token(user.id, user.email, user.role, user.permissions)

        response = client.get("/api/admin/audit", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 403
        denied = audit_sink.events[-1]
        assert denied.event_kind == AuditEventKind.PERMISSION_DENIED
        assert denied.details == {"reason": "missing_permissions", "required": ["admin"]}


class TestAuditStats:

    def test_stats(self, client, auth_headers, populated):
        response = client.get("/api/admin/audit/stats", params={"window": "1h"}, headers=auth_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["window"] == "1h"
        assert body["totalEvents"] == 3
        assert body["byEvent"] == {"login_failure": 1, "login_success": 1, "rate_limit_exceeded": 1}
        assert body["byLevel"] == {"error": 2, "info": 1}
        assert body["byCategory"] == {"authentication": 2, "security": 1}
        assert len(body["recentEvents"]) == 3

    def test_default_window(self, client, auth_headers):
        body = client.get("/api/admin/audit/stats", headers=auth_headers).json()
        assert body["window"] == "24h"
        assert body["totalEvents"] == 0

    def test_unknown_window(self, client, auth_headers):
        response = client.get("/api/admin/audit/stats", params={"window": "1y"}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"
