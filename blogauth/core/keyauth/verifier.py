"""
Challenge signature verification and session minting.

Check order is fixed: required fields, identity, signature, challenge
format, freshness, then (only when a nonce cache is configured) single use.
Each call records exactly one audit event.
"""
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from sqlalchemy.orm import Session

from blogauth.core.audit import ActorContext, AuditEventKind, AuditTrail
from blogauth.core.database.models import User
from blogauth.core.database.repository import UserRepository
from blogauth.core.keyauth.challenges import (
    DEFAULT_CHALLENGE_TTL_MS,
    Challenge,
    now_ms,
    parse_challenge,
)
from blogauth.core.keyauth.errors import (
    ChallengeExpiredError,
    ChallengeReplayError,
    InvalidSignatureError,
    InvalidUserError,
    KeyAuthError,
    ValidationError,
)
from blogauth.core.keyauth.tokens import SessionTokenIssuer
from blogauth.core.signing.permissions import Role
from blogauth.core.signing.verify import verify_signature

logger = logging.getLogger(__name__)


def user_view(user: User) -> dict:
    """Public representation of an identity (no key material)."""
    return {
        "id": user.id,
        "email": user.email,
        "role": user.role,
        "permissions": list(user.permissions or []),
    }


@dataclass(frozen=True)
class LoginResult:
    token: str
    user: dict


class ConsumedNonceCache:
    """
    Remembers challenge nonces that already produced a session, until their
    freshness window has passed. Process-local.
    """

    def __init__(self, ttl_ms: int = DEFAULT_CHALLENGE_TTL_MS):
        self.ttl_ms = ttl_ms
        self._consumed: Dict[str, int] = {}
        self._lock = threading.Lock()

    def consume(self, challenge: Challenge, current_ms: int) -> bool:
        """Mark the nonce used. False if it was already used."""
        with self._lock:
            self._purge(current_ms)
            if challenge.nonce in self._consumed:
                return False
            self._consumed[challenge.nonce] = challenge.issued_at_ms + self.ttl_ms
            return True

    def _purge(self, current_ms: int):
        expired = [nonce for nonce, expires in self._consumed.items() if expires < current_ms]
        for nonce in expired:
            del self._consumed[nonce]

    def __len__(self):
        return len(self._consumed)


class SignatureVerifier:
    """Turns a signed challenge into an admin session."""

    def __init__(
        self,
        db: Session,
        audit: AuditTrail,
        tokens: SessionTokenIssuer,
        challenge_ttl_ms: int = DEFAULT_CHALLENGE_TTL_MS,
        nonce_cache: Optional[ConsumedNonceCache] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.users = UserRepository(db)
        self.audit = audit
        self.tokens = tokens
        self.challenge_ttl_ms = challenge_ttl_ms
        self.nonce_cache = nonce_cache
        self.clock = clock

    def verify(
        self,
        challenge: Optional[str],
        signature_hex: Optional[str],
        user_id: Optional[str],
        actor: Optional[ActorContext] = None,
    ) -> LoginResult:
        """
        Raises:
            ValidationError: A required field is missing
            InvalidUserError: Unknown id, not an admin, or no registered key
            InvalidSignatureError: Signature does not verify under the stored key
            MalformedChallengeError: Challenge is not `<nonce>.<integer ms>`
            ChallengeExpiredError: Challenge older than the freshness window
            ChallengeReplayError: Challenge already used (nonce cache only)
        """
        actor = actor or ActorContext()
        try:
            user, parsed = self._check(challenge, signature_hex, user_id)
        except KeyAuthError as e:
            self.audit.record(
                AuditEventKind.LOGIN_FAILURE,
                details={"reason": e.reason},
                actor=actor.with_user(user_id) if user_id else actor,
            )
            logger.warning(f"Admin login failed ({e.reason}) for user_id={user_id} ip={actor.ip}")
            raise

        token = self.tokens.create_token(
            user_id=user.id,
            email=user.email,
            role=user.role,
            permissions=user.permissions or [],
        )
        self.audit.record(
            AuditEventKind.LOGIN_SUCCESS,
            details={"method": "cryptographic"},
            actor=actor.with_user(user.id, user.email),
        )
        logger.info(f"Admin login succeeded for user {user.id}")
        return LoginResult(token=token, user=user_view(user))

    def _check(self, challenge, signature_hex, user_id):
        if not challenge or not signature_hex or not user_id:
            raise ValidationError(
                "Challenge, signature, and user ID are required", reason="missing_fields"
            )

        user = self.users.get_by_id(user_id)
        if not user or user.role != Role.ADMIN.value or not user.has_public_key:
            raise InvalidUserError(reason="invalid_user_or_key")

        result = verify_signature(user.public_key, challenge, signature_hex)
        if not result.success:
            logger.debug(f"Signature rejected: {result.error_message}")
            raise InvalidSignatureError(reason="invalid_signature")

        parsed = parse_challenge(challenge)
        current = self.clock()
        if parsed.is_expired(current, self.challenge_ttl_ms):
            raise ChallengeExpiredError(reason="challenge_expired")

        if self.nonce_cache is not None and not self.nonce_cache.consume(parsed, current):
            raise ChallengeReplayError(reason="challenge_replayed")

        return user, parsed
