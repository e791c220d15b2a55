"""
Audit event model.

Events are immutable once built. Severity is never chosen by the caller:
it always comes from severity_for(event_kind).
"""
import secrets
import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class AuditCategory(str, Enum):
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    ADMIN_ACTION = "admin_action"
    API_ACCESS = "api_access"
    SECURITY = "security"
    SYSTEM = "system"


class AuditEventKind(str, Enum):
    # Authentication
    LOGIN_SUCCESS = "login_success"
    LOGIN_FAILURE = "login_failure"
    LOGOUT = "logout"
    CHALLENGE_ISSUED = "challenge_issued"
    CHALLENGE_DENIED = "challenge_denied"
    KEY_GENERATION = "key_generation"
    KEY_ROTATION = "key_rotation"
    ROTATION_FAILURE = "rotation_failure"
    REGISTRATION_FAILURE = "registration_failure"

    # Authorization
    PERMISSION_DENIED = "permission_denied"
    ADMIN_ACCESS = "admin_access"
    ROLE_CHANGE = "role_change"

    # Security
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    SUSPICIOUS_ACTIVITY = "suspicious_activity"
    IP_BLOCKED = "ip_blocked"
    BRUTE_FORCE_DETECTED = "brute_force_detected"

    # System
    SYSTEM_STARTUP = "system_startup"
    SYSTEM_SHUTDOWN = "system_shutdown"
    CONFIG_CHANGE = "config_change"


class Severity(str, Enum):
    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


_CRITICAL_KINDS = frozenset({
    AuditEventKind.ROTATION_FAILURE,
    AuditEventKind.BRUTE_FORCE_DETECTED,
    AuditEventKind.SUSPICIOUS_ACTIVITY,
    AuditEventKind.IP_BLOCKED,
})
_ERROR_KINDS = frozenset({
    AuditEventKind.LOGIN_FAILURE,
    AuditEventKind.PERMISSION_DENIED,
    AuditEventKind.RATE_LIMIT_EXCEEDED,
    AuditEventKind.REGISTRATION_FAILURE,
    AuditEventKind.CHALLENGE_DENIED,
})
_WARNING_KINDS = frozenset({
    AuditEventKind.KEY_ROTATION,
    AuditEventKind.ROLE_CHANGE,
})


def severity_for(kind: AuditEventKind) -> Severity:
    """Fixed severity of an event kind."""
    kind = AuditEventKind(kind)
    if kind in _CRITICAL_KINDS:
        return Severity.CRITICAL
    if kind in _ERROR_KINDS:
        return Severity.ERROR
    if kind in _WARNING_KINDS:
        return Severity.WARNING
    return Severity.INFO


_DEFAULT_CATEGORIES = {
    AuditEventKind.PERMISSION_DENIED: AuditCategory.AUTHORIZATION,
    AuditEventKind.ADMIN_ACCESS: AuditCategory.AUTHORIZATION,
    AuditEventKind.ROLE_CHANGE: AuditCategory.AUTHORIZATION,
    AuditEventKind.RATE_LIMIT_EXCEEDED: AuditCategory.SECURITY,
    AuditEventKind.SUSPICIOUS_ACTIVITY: AuditCategory.SECURITY,
    AuditEventKind.IP_BLOCKED: AuditCategory.SECURITY,
    AuditEventKind.BRUTE_FORCE_DETECTED: AuditCategory.SECURITY,
    AuditEventKind.SYSTEM_STARTUP: AuditCategory.SYSTEM,
    AuditEventKind.SYSTEM_SHUTDOWN: AuditCategory.SYSTEM,
    AuditEventKind.CONFIG_CHANGE: AuditCategory.SYSTEM,
}


def default_category(kind: AuditEventKind) -> AuditCategory:
    return _DEFAULT_CATEGORIES.get(AuditEventKind(kind), AuditCategory.AUTHENTICATION)


def new_event_id() -> str:
    return f"evt_{int(time.time() * 1000)}_{secrets.token_hex(6)}"


@dataclass(frozen=True)
class ActorContext:
    """Who triggered an event and from where. Every field is optional."""
    user_id: Optional[str] = None
    email: Optional[str] = None
    ip: Optional[str] = None
    user_agent: Optional[str] = None

    def with_user(self, user_id: Optional[str], email: Optional[str] = None) -> "ActorContext":
        return replace(self, user_id=user_id, email=email or self.email)


@dataclass(frozen=True)
class AuditEvent:
    event_id: str
    timestamp: datetime  # naive UTC
    event_kind: AuditEventKind
    category: AuditCategory
    severity: Severity
    actor: ActorContext = field(default_factory=ActorContext)
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "id": self.event_id,
            "timestamp": self.timestamp.isoformat(),
            "event": self.event_kind.value,
            "category": self.category.value,
            "level": self.severity.value,
            "details": dict(self.details),
            "context": {
                "userId": self.actor.user_id,
                "userEmail": self.actor.email,
                "ip": self.actor.ip,
                "userAgent": self.actor.user_agent,
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AuditEvent":
        context = data.get("context") or {}
        return cls(
            event_id=data["id"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
            event_kind=AuditEventKind(data["event"]),
            category=AuditCategory(data["category"]),
            severity=Severity(data["level"]),
            actor=ActorContext(
                user_id=context.get("userId"),
                email=context.get("userEmail"),
                ip=context.get("ip"),
                user_agent=context.get("userAgent"),
            ),
            details=data.get("details") or {},
        )


@dataclass(frozen=True)
class AuditQuery:
    """Conjunctive filter over audit events; None fields match anything."""
    category: Optional[AuditCategory] = None
    event_kind: Optional[AuditEventKind] = None
    actor_id: Optional[str] = None
    source_ip: Optional[str] = None
    since: Optional[datetime] = None
    until: Optional[datetime] = None
    limit: Optional[int] = None

    def matches(self, event: AuditEvent) -> bool:
        if self.category is not None and event.category != self.category:
            return False
        if self.event_kind is not None and event.event_kind != self.event_kind:
            return False
        if self.actor_id is not None and event.actor.user_id != self.actor_id:
            return False
        if self.source_ip is not None and event.actor.ip != self.source_ip:
            return False
        if self.since is not None and event.timestamp < self.since:
            return False
        if self.until is not None and event.timestamp > self.until:
            return False
        return True
