"""
SQLAlchemy Database Models

Stores:
- Users (the single admin identity and its registered public key)
- Security audit log (append-only authentication/key-management events)

Identifiers are string UUIDs so the same schema runs on SQLite and PostgreSQL.
"""
from sqlalchemy import Column, String, DateTime, Text, JSON, Index
from sqlalchemy.orm import declarative_base
from datetime import datetime
import uuid

Base = declarative_base()

# Longest actor id accepted from clients; audit rows must hold any of them
MAX_ACTOR_ID_LENGTH = 64


def _new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """
    Blog identity. Only the admin takes part in key authentication.

    The public key is PEM (SubjectPublicKeyInfo) text; it is empty until the
    admin registers a key and is replaced, never appended, on rotation.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    email = Column(String(320), unique=True, nullable=False)  # Stored lower-cased
    username = Column(String(100))
    name = Column(String(200))
    role = Column(String(20), nullable=False, default='user')  # 'admin', 'user'
    public_key = Column(Text)
    permissions = Column(JSON, nullable=False, default=list)  # List of Permission values
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index('ix_users_role', 'role'),
    )

    @property
    def has_public_key(self) -> bool:
        return bool(self.public_key and self.public_key.strip())

    def __repr__(self):
        return f"<User {self.email} role={self.role}>"


class SecurityAuditLog(Base):
    """
    Append-only security audit events (logins, key registration/rotation,
    permission denials, rate limiting).

    Rows are written once and never updated; the application has no code
    path that modifies or deletes them.
    """
    __tablename__ = "security_audit_log"

    id = Column(String(40), primary_key=True)  # evt_<hex>
    timestamp = Column(DateTime, nullable=False, default=datetime.utcnow)
    event_kind = Column(String(50), nullable=False)
    category = Column(String(30), nullable=False)
    severity = Column(String(10), nullable=False)
    user_id = Column(String(MAX_ACTOR_ID_LENGTH))  # Not a foreign key: events outlive identities
    user_email = Column(String(320))
    ip_address = Column(String(50))  # String instead of INET for compatibility
    user_agent = Column(Text)
    details = Column(JSON, default=dict)

    __table_args__ = (
        Index('ix_security_audit_log_timestamp', 'timestamp'),
        Index('ix_security_audit_log_event_kind', 'event_kind'),
        Index('ix_security_audit_log_category', 'category'),
        Index('ix_security_audit_log_user_id', 'user_id'),
        Index('ix_security_audit_log_ip_address', 'ip_address'),
    )
