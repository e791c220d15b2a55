"""
Shared fixtures: in-memory database, audit trail, keys and an API client.
"""
# Settings are read at import time by the API module
import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("JWT_SECRET", "test-secret-for-blogauth-suite-0123456789")
os.environ.setdefault("AUDIT_CONSOLE", "false")
os.environ.setdefault("RATE_LIMIT_EXEMPT_IPS", "")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec

from blogauth.api.dependencies import get_audit_trail, get_nonce_cache, get_token_issuer
from blogauth.api.main import app
from blogauth.api.rate_limiting import FixedWindowRateLimiter, get_rate_limiter
from blogauth.core.audit import AuditTrail, MemoryAuditSink
from blogauth.core.database import get_db
from blogauth.core.database.models import Base, User
from blogauth.core.keyauth import SessionTokenIssuer
from blogauth.core.signing.keys import generate_keypair, public_key_to_pem
from blogauth.core.signing.permissions import ADMIN_PERMISSIONS, Permission, permission_values

TEST_JWT_SECRET = "test-secret-for-blogauth-suite-0123456789"


@pytest.fixture(scope="function")
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def test_db(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def audit_sink():
    return MemoryAuditSink()


@pytest.fixture
def audit_trail(audit_sink):
    return AuditTrail(audit_sink, mirror_to_log=False)


@pytest.fixture
def token_issuer():
    return SessionTokenIssuer(secret=TEST_JWT_SECRET, lifetime_minutes=60)


@pytest.fixture
def key_pair():
    """(private_key, public_key_pem)"""
    private_key, public_key = generate_keypair()
    return private_key, public_key_to_pem(public_key)


@pytest.fixture
def other_key_pair():
    private_key, public_key = generate_keypair()
    return private_key, public_key_to_pem(public_key)


@pytest.fixture
def sign():
    """sign(private_key, text) -> hex DER ECDSA/SHA-256 signature"""
    def _sign(private_key, text: str) -> str:
        return private_key.sign(text.encode("utf-8"), ec.ECDSA(hashes.SHA256())).hex()
    return _sign


def _add_user(db, email, role, permissions, public_key=""):
    user = User(
        email=email,
        role=role,
        permissions=permission_values(permissions),
        public_key=public_key,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin_user(test_db):
    """Admin created by bootstrap: no key yet."""
    return _add_user(test_db, "admin@example.com", "admin", ADMIN_PERMISSIONS)


@pytest.fixture
def admin_with_key(test_db, key_pair):
    """(admin user with registered key, its private key)"""
    private_key, public_pem = key_pair
    user = _add_user(test_db, "admin@example.com", "admin", ADMIN_PERMISSIONS, public_pem)
    return user, private_key


@pytest.fixture
def regular_user(test_db, other_key_pair):
    """Non-admin that even has a key: still never eligible."""
    _, public_pem = other_key_pair
    return _add_user(test_db, "reader@example.com", "user", [Permission.READ], public_pem)


@pytest.fixture
def rate_limiter():
    return FixedWindowRateLimiter()


@pytest.fixture(scope="function")
def client(test_db, audit_trail, token_issuer, rate_limiter):
    """TestClient with database, audit, token and limiter overrides."""
    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_audit_trail] = lambda: audit_trail
    app.dependency_overrides[get_token_issuer] = lambda: token_issuer
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter
    app.dependency_overrides[get_nonce_cache] = lambda: None
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_token(admin_with_key, token_issuer):
    user, _ = admin_with_key
    return token_issuer.create_token(user.id, user.email, user.role, user.permissions)
