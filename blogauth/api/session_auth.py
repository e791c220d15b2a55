"""
Admin session authentication for protected endpoints.

Bearer JWT issued by /api/admin/verify.
"""
import logging
from typing import Optional

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from blogauth.api.dependencies import get_actor, get_audit_trail, get_token_issuer
from blogauth.core.audit import ActorContext, AuditEventKind, AuditTrail
from blogauth.core.database import get_db
from blogauth.core.database.models import User
from blogauth.core.database.repository import UserRepository
from blogauth.core.keyauth import SessionTokenIssuer, TokenError
from blogauth.core.signing.permissions import Permission, Role, has_permissions

logger = logging.getLogger(__name__)

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)


def get_current_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    db: Session = Depends(get_db),
    tokens: SessionTokenIssuer = Depends(get_token_issuer),
    audit: AuditTrail = Depends(get_audit_trail),
    actor: ActorContext = Depends(get_actor),
) -> User:
    """
    Resolve the admin behind a Bearer session token.

    Raises 401 if the token is missing, invalid or expired, or its subject
    no longer exists; 403 if the subject is not an admin.
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = tokens.decode_token(credentials.credentials)
    except TokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = UserRepository(db).get_by_id(payload.get("sub"))
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )

    if user.role != Role.ADMIN.value:
        audit.record(
            AuditEventKind.PERMISSION_DENIED,
            details={"reason": "not_admin"},
            actor=actor.with_user(user.id, user.email),
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )

    return user


def require_permissions(*required: Permission):
    """Dependency factory: the current admin must hold every listed permission."""

    def checker(
        user: User = Depends(get_current_admin),
        audit: AuditTrail = Depends(get_audit_trail),
        actor: ActorContext = Depends(get_actor),
    ) -> User:
        if not has_permissions(user.permissions or [], *required):
            audit.record(
                AuditEventKind.PERMISSION_DENIED,
                details={
                    "reason": "missing_permissions",
                    "required": [p.value for p in required],
                },
                actor=actor.with_user(user.id, user.email),
            )
            logger.warning(f"Permission denied for {user.id}: requires {[p.value for p in required]}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return user

    return checker
