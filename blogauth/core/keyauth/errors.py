"""
Key authentication error types.

Every failure carries a stable machine-readable kind and the HTTP status
the API reports it with. Messages are deliberately generic: they never say
which of several checks (unknown user, wrong role, missing key) failed.
"""
from typing import Optional


class KeyAuthError(Exception):
    """Base class for challenge-response and key-management failures."""

    kind = "key_auth_error"
    status_code = 400
    default_message = "Authentication error"

    def __init__(self, message: Optional[str] = None, reason: Optional[str] = None):
        self.message = message or self.default_message
        # Audit reason code; defaults to the kind
        self.reason = reason or self.kind
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message}


class ValidationError(KeyAuthError):
    kind = "validation_error"
    status_code = 400
    default_message = "Invalid request"


class MalformedChallengeError(KeyAuthError):
    kind = "malformed_challenge"
    status_code = 400
    default_message = "Invalid challenge format"


class NotEligibleError(KeyAuthError):
    kind = "not_eligible"
    status_code = 401
    default_message = "Admin user not found or keys not configured"


class InvalidUserError(KeyAuthError):
    kind = "invalid_user"
    status_code = 401
    default_message = "Invalid user or no public key"


class InvalidSignatureError(KeyAuthError):
    kind = "invalid_signature"
    status_code = 401
    default_message = "Invalid signature"


class ChallengeExpiredError(KeyAuthError):
    kind = "challenge_expired"
    status_code = 401
    default_message = "Challenge expired"


class ChallengeReplayError(KeyAuthError):
    kind = "challenge_replayed"
    status_code = 401
    default_message = "Challenge already used"


class NotAdminError(KeyAuthError):
    kind = "not_admin"
    status_code = 403
    default_message = "User not found or not an admin"


class ForbiddenError(KeyAuthError):
    kind = "forbidden"
    status_code = 403
    default_message = "Unauthorized"


class AlreadyRegisteredError(KeyAuthError):
    kind = "already_registered"
    status_code = 409
    default_message = "Public key already registered. Use key rotation instead."
