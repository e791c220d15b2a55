"""
Shared FastAPI dependencies.

Process-wide collaborators (audit trail, token issuer, nonce cache) are
built lazily from settings; tests replace them via app.dependency_overrides.
"""
import logging
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from blogauth.core.audit import ActorContext, AuditTrail, create_audit_trail
from blogauth.core.config import get_settings
from blogauth.core.database import get_db
from blogauth.core.keyauth import (
    ChallengeIssuer,
    ConsumedNonceCache,
    KeyRegistrar,
    SessionTokenIssuer,
    SignatureVerifier,
)

logger = logging.getLogger(__name__)

_audit_trail: Optional[AuditTrail] = None
_token_issuer: Optional[SessionTokenIssuer] = None
_nonce_cache: Optional[ConsumedNonceCache] = None


def get_audit_trail() -> AuditTrail:
    global _audit_trail
    if _audit_trail is None:
        _audit_trail = create_audit_trail(get_settings())
    return _audit_trail


def get_token_issuer() -> SessionTokenIssuer:
    global _token_issuer
    if _token_issuer is None:
        _token_issuer = SessionTokenIssuer.from_settings(get_settings())
    return _token_issuer


def get_nonce_cache() -> Optional[ConsumedNonceCache]:
    """Single-use challenge cache, only when CHALLENGE_SINGLE_USE is enabled."""
    global _nonce_cache
    settings = get_settings()
    if not settings.challenge_single_use:
        return None
    if _nonce_cache is None:
        _nonce_cache = ConsumedNonceCache(ttl_ms=settings.challenge_ttl_ms)
    return _nonce_cache


def reset_dependencies():
    """Forget cached collaborators (after reload_settings())."""
    global _audit_trail, _token_issuer, _nonce_cache
    _audit_trail = None
    _token_issuer = None
    _nonce_cache = None


def get_actor(request: Request) -> ActorContext:
    """Source IP and user agent of the current request."""
    return ActorContext(
        ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def get_challenge_issuer(
    db: Session = Depends(get_db),
    audit: AuditTrail = Depends(get_audit_trail),
) -> ChallengeIssuer:
    return ChallengeIssuer(db, audit)


def get_signature_verifier(
    db: Session = Depends(get_db),
    audit: AuditTrail = Depends(get_audit_trail),
    tokens: SessionTokenIssuer = Depends(get_token_issuer),
    nonce_cache: Optional[ConsumedNonceCache] = Depends(get_nonce_cache),
) -> SignatureVerifier:
    return SignatureVerifier(
        db,
        audit,
        tokens,
        challenge_ttl_ms=get_settings().challenge_ttl_ms,
        nonce_cache=nonce_cache,
    )


def get_key_registrar(
    db: Session = Depends(get_db),
    audit: AuditTrail = Depends(get_audit_trail),
) -> KeyRegistrar:
    return KeyRegistrar(db, audit, challenge_ttl_ms=get_settings().challenge_ttl_ms)
