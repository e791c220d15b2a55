"""
Admin session tokens (JWT, HS256).

Claims: sub (user id), email, role, permissions, iat, exp, jti, iss, aud.
"""
import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

import jwt

from blogauth.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"


class TokenError(Exception):
    """Session token missing, invalid or expired."""


class SessionTokenIssuer:
    """Creates and validates admin session tokens."""

    def __init__(
        self,
        secret: str,
        issuer: str = "blogauth",
        audience: str = "blogauth-admin",
        lifetime_minutes: int = 60,
    ):
        if not secret:
            raise ValueError("JWT secret must not be empty")
        self.secret = secret
        self.issuer = issuer
        self.audience = audience
        self.lifetime = timedelta(minutes=lifetime_minutes)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "SessionTokenIssuer":
        settings = settings or get_settings()
        return cls(
            secret=settings.jwt_secret,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            lifetime_minutes=settings.admin_session_minutes,
        )

    def create_token(self, user_id: str, email: str, role: str, permissions: list) -> str:
        """Create a session token for an authenticated user."""
        now = datetime.utcnow()
        payload = {
            "sub": user_id,
            "email": email,
            "role": role,
            "permissions": list(permissions or []),
            "iat": now,
            "exp": now + self.lifetime,
            "jti": secrets.token_urlsafe(16),
            "iss": self.issuer,
            "aud": self.audience,
        }
        return jwt.encode(payload, self.secret, algorithm=JWT_ALGORITHM)

    def decode_token(self, token: str) -> dict:
        """
        Decode and validate a session token.

        Validates signature, expiration, issuer, audience and algorithm.

        Raises:
            TokenError: If the token fails any check
        """
        try:
            return jwt.decode(
                token,
                self.secret,
                algorithms=[JWT_ALGORITHM],  # Only accept HS256
                issuer=self.issuer,
                audience=self.audience,
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            raise TokenError("Token has expired")
        except jwt.InvalidIssuerError:
            raise TokenError("Invalid token issuer")
        except jwt.InvalidAudienceError:
            raise TokenError("Invalid token audience")
        except jwt.InvalidTokenError as e:
            logger.debug(f"Token rejected: {e}")
            raise TokenError("Invalid token")
