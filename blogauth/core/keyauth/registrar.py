"""
Public key registration and rotation for the admin identity.

Registration is one-shot. Every later change is a rotation, which must be
signed by the key currently on record; a rotation never adds a second key.
"""
import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from blogauth.core.audit import ActorContext, AuditEventKind, AuditTrail
from blogauth.core.database.repository import UserRepository
from blogauth.core.keyauth.challenges import DEFAULT_CHALLENGE_TTL_MS, now_ms, parse_challenge
from blogauth.core.keyauth.errors import (
    AlreadyRegisteredError,
    ChallengeExpiredError,
    ForbiddenError,
    InvalidSignatureError,
    KeyAuthError,
    NotAdminError,
    ValidationError,
)
from blogauth.core.signing.keys import has_public_key_markers, load_public_key_pem
from blogauth.core.signing.permissions import Role
from blogauth.core.signing.verify import verify_signature

logger = logging.getLogger(__name__)


def validate_public_key_pem(pem: str) -> str:
    """
    Return the trimmed PEM if it is a usable P-256 public key.

    Raises:
        ValidationError: Missing markers or not a P-256 public key
    """
    if not has_public_key_markers(pem):
        raise ValidationError("Invalid public key format", reason="invalid_key_format")
    pem = pem.strip()
    try:
        load_public_key_pem(pem)
    except ValueError as e:
        logger.debug(f"Rejected public key: {e}")
        raise ValidationError("Invalid public key format", reason="invalid_key") from e
    return pem


class KeyRegistrar:
    """Attaches and replaces the admin's public key."""

    def __init__(
        self,
        db: Session,
        audit: AuditTrail,
        challenge_ttl_ms: int = DEFAULT_CHALLENGE_TTL_MS,
        clock: Callable[[], int] = now_ms,
    ):
        self.users = UserRepository(db)
        self.audit = audit
        self.challenge_ttl_ms = challenge_ttl_ms
        self.clock = clock

    def register_initial_key(
        self,
        email: Optional[str],
        public_key_pem: Optional[str],
        actor: Optional[ActorContext] = None,
    ) -> None:
        """
        Raises:
            ValidationError: Missing input or unusable PEM
            NotAdminError: Unknown email or not an admin
            AlreadyRegisteredError: A key is already on record
        """
        actor = actor or ActorContext()
        user = None
        try:
            if not email or not public_key_pem:
                raise ValidationError("Email and public key are required", reason="missing_fields")
            pem = validate_public_key_pem(public_key_pem)

            user = self.users.get_by_email(email)
            if not user or user.role != Role.ADMIN.value:
                raise NotAdminError(reason="not_admin")
            if user.has_public_key:
                raise AlreadyRegisteredError(reason="already_registered")
        except NotAdminError as e:
            self.audit.record(
                AuditEventKind.PERMISSION_DENIED,
                details={"reason": e.reason, "action": "register_key", "email": _folded(email)},
                actor=actor.with_user(user.id if user else None, _folded(email)),
            )
            raise
        except KeyAuthError as e:
            self.audit.record(
                AuditEventKind.REGISTRATION_FAILURE,
                details={"reason": e.reason},
                actor=actor.with_user(user.id if user else None, _folded(email)),
            )
            raise

        self.users.set_public_key(user, pem)
        self.audit.record(
            AuditEventKind.KEY_GENERATION,
            details={"type": "initial_registration"},
            actor=actor.with_user(user.id, user.email),
        )
        logger.info(f"Initial public key registered for admin {user.id}")

    def rotate_key(
        self,
        email: Optional[str],
        new_public_key_pem: Optional[str],
        signature_hex: Optional[str],
        challenge: Optional[str],
        actor: Optional[ActorContext] = None,
    ) -> None:
        """
        Replace the admin's key, authorized by a signature from the current key.

        Raises:
            ValidationError: Missing input or unusable new PEM
            ForbiddenError: Unknown email, not an admin, or nothing to rotate
            InvalidSignatureError: Not signed by the current key
            MalformedChallengeError: Challenge is not `<nonce>.<integer ms>`
            ChallengeExpiredError: Challenge older than the freshness window
        """
        actor = actor or ActorContext()
        user = None
        try:
            if not email or not new_public_key_pem or not signature_hex or not challenge:
                raise ValidationError(
                    "Email, new public key, signature, and challenge are required",
                    reason="missing_fields",
                )

            user = self.users.get_by_email(email)
            if not user or user.role != Role.ADMIN.value or not user.has_public_key:
                raise ForbiddenError(reason="not_eligible")

            result = verify_signature(user.public_key, challenge, signature_hex)
            if not result.success:
                raise InvalidSignatureError(reason="invalid_signature")

            parsed = parse_challenge(challenge)
            if parsed.is_expired(self.clock(), self.challenge_ttl_ms):
                raise ChallengeExpiredError(reason="challenge_expired")

            pem = validate_public_key_pem(new_public_key_pem)
        except KeyAuthError as e:
            self.audit.record(
                AuditEventKind.ROTATION_FAILURE,
                details={"reason": e.reason},
                actor=actor.with_user(user.id if user else None, _folded(email)),
            )
            logger.warning(f"Key rotation refused ({e.reason}) for {_folded(email)} ip={actor.ip}")
            raise

        self.users.set_public_key(user, pem)
        self.audit.record(
            AuditEventKind.KEY_ROTATION,
            details={"type": "successful_rotation"},
            actor=actor.with_user(user.id, user.email),
        )
        logger.info(f"Public key rotated for admin {user.id}")


def _folded(email: Optional[str]) -> Optional[str]:
    return email.strip().lower() if email else None
