"""
Admin Key Authentication

Challenge-response login for the admin identity and management of its
registered public key.
"""

from blogauth.core.keyauth.errors import (
    KeyAuthError,
    ValidationError,
    MalformedChallengeError,
    NotEligibleError,
    InvalidUserError,
    InvalidSignatureError,
    ChallengeExpiredError,
    ChallengeReplayError,
    NotAdminError,
    ForbiddenError,
    AlreadyRegisteredError,
)
from blogauth.core.keyauth.challenges import (
    Challenge,
    ChallengeIssuer,
    IssuedChallenge,
    parse_challenge,
)
from blogauth.core.keyauth.tokens import SessionTokenIssuer, TokenError
from blogauth.core.keyauth.verifier import (
    ConsumedNonceCache,
    LoginResult,
    SignatureVerifier,
    user_view,
)
from blogauth.core.keyauth.registrar import KeyRegistrar, validate_public_key_pem

__all__ = [
    # Errors
    "KeyAuthError",
    "ValidationError",
    "MalformedChallengeError",
    "NotEligibleError",
    "InvalidUserError",
    "InvalidSignatureError",
    "ChallengeExpiredError",
    "ChallengeReplayError",
    "NotAdminError",
    "ForbiddenError",
    "AlreadyRegisteredError",
    # Challenges
    "Challenge",
    "ChallengeIssuer",
    "IssuedChallenge",
    "parse_challenge",
    # Sessions
    "SessionTokenIssuer",
    "TokenError",
    "ConsumedNonceCache",
    "LoginResult",
    "SignatureVerifier",
    "user_view",
    # Keys
    "KeyRegistrar",
    "validate_public_key_pem",
]
