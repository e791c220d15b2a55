"""
Login challenges.

A challenge is `<nonce>.<issued_at_ms>`: 32 random bytes as hex, a dot, and
the issuance time in epoch milliseconds. Nothing is stored server-side;
freshness is recomputed from the embedded timestamp when a signature over
the challenge is presented.
"""
import logging
import secrets
import time
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.orm import Session

from blogauth.core.audit import AuditTrail, AuditEventKind, ActorContext
from blogauth.core.database.repository import UserRepository
from blogauth.core.keyauth.errors import (
    MalformedChallengeError,
    NotEligibleError,
    ValidationError,
)
from blogauth.core.signing.permissions import Role

logger = logging.getLogger(__name__)

NONCE_BYTES = 32
DEFAULT_CHALLENGE_TTL_MS = 5 * 60 * 1000


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class Challenge:
    nonce: str
    issued_at_ms: int

    def __str__(self) -> str:
        return f"{self.nonce}.{self.issued_at_ms}"

    def age_ms(self, current_ms: int) -> int:
        return current_ms - self.issued_at_ms

    def is_expired(self, current_ms: int, ttl_ms: int = DEFAULT_CHALLENGE_TTL_MS) -> bool:
        """Expired strictly after ttl; a challenge exactly ttl old is still fresh."""
        return self.age_ms(current_ms) > ttl_ms


def parse_challenge(text: str) -> Challenge:
    """
    Split a challenge string into nonce and timestamp.

    Raises:
        MalformedChallengeError: Not exactly two dot-separated parts, or the
            timestamp is not an integer
    """
    parts = (text or "").split(".")
    if len(parts) != 2:
        raise MalformedChallengeError(reason="malformed_challenge")
    nonce, timestamp = parts
    try:
        issued_at_ms = int(timestamp)
    except ValueError:
        raise MalformedChallengeError(reason="malformed_challenge") from None
    return Challenge(nonce=nonce, issued_at_ms=issued_at_ms)


def new_challenge(clock: Callable[[], int] = now_ms) -> Challenge:
    return Challenge(nonce=secrets.token_hex(NONCE_BYTES), issued_at_ms=clock())


@dataclass(frozen=True)
class IssuedChallenge:
    challenge: str
    user_id: str


class ChallengeIssuer:
    """Issues challenges to the admin identity, provided it has a registered key."""

    def __init__(self, db: Session, audit: AuditTrail, clock: Callable[[], int] = now_ms):
        self.users = UserRepository(db)
        self.audit = audit
        self.clock = clock

    def issue_challenge(self, email: Optional[str], actor: Optional[ActorContext] = None) -> IssuedChallenge:
        """
        Raises:
            ValidationError: No email supplied
            NotEligibleError: Unknown email, not an admin, or no registered key
        """
        actor = actor or ActorContext()
        if not email or not email.strip():
            raise ValidationError("Email is required")

        user = self.users.get_by_email(email)
        if not user or user.role != Role.ADMIN.value or not user.has_public_key:
            self.audit.record(
                AuditEventKind.CHALLENGE_DENIED,
                details={"reason": "not_eligible", "email": email.strip().lower()},
                actor=actor,
            )
            raise NotEligibleError()

        challenge = new_challenge(self.clock)
        self.audit.record(
            AuditEventKind.CHALLENGE_ISSUED,
            actor=actor.with_user(user.id, user.email),
        )
        logger.debug(f"Issued challenge for user {user.id}")
        return IssuedChallenge(challenge=str(challenge), user_id=user.id)
