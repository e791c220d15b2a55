"""
Database Repository - identity lookups and key persistence.

Emails are stored lower-cased and always looked up case-insensitively.
"""
from typing import Optional, Iterable
from datetime import datetime
from sqlalchemy.orm import Session
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
import hmac
import logging

from .models import User
from blogauth.core.signing.permissions import (
    ADMIN_PERMISSIONS,
    Permission,
    Role,
    permission_values,
)

logger = logging.getLogger(__name__)


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


class UserRepository:
    """Lookups and updates for User rows."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, user_id: Optional[str]) -> Optional[User]:
        if not user_id:
            return None
        return self.db.query(User).filter(User.id == str(user_id)).first()

    def get_by_email(self, email: Optional[str]) -> Optional[User]:
        email = normalize_email(email)
        if not email:
            return None
        return self.db.query(User).filter(func.lower(User.email) == email).first()

    def get_admin(self) -> Optional[User]:
        return self.db.query(User).filter(User.role == Role.ADMIN.value).first()

    def admin_exists(self) -> bool:
        return self.get_admin() is not None

    def create_user(
        self,
        email: str,
        role: Role = Role.USER,
        permissions: Iterable[Permission] = (),
        username: Optional[str] = None,
        name: Optional[str] = None,
        public_key: Optional[str] = None,
    ) -> User:
        """Insert and commit a new user. Raises IntegrityError on duplicate email."""
        user = User(
            email=normalize_email(email),
            role=Role(role).value,
            permissions=permission_values(permissions),
            username=username,
            name=name,
            public_key=public_key or "",
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise
        self.db.refresh(user)
        return user

    def set_public_key(self, user: User, public_key_pem: str) -> User:
        """Replace the stored public key and commit."""
        user.public_key = public_key_pem
        user.updated_at = datetime.utcnow()
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"Public key updated for user {user.id}")
        return user

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()


class BootstrapError(Exception):
    """Admin bootstrap refused."""


def create_admin(
    db: Session,
    email: str,
    provided_token: Optional[str],
    setup_token: Optional[str],
    environment: str = "development",
    username: Optional[str] = None,
    name: Optional[str] = None,
) -> User:
    """
    Create the single admin identity (no key yet, all permissions).

    Raises:
        BootstrapError: Production environment, missing/mismatched setup
            token, invalid email, an admin already exists, or the email is taken
    """
    if environment.lower() == "production":
        raise BootstrapError("Cannot run admin setup in production environment")
    if not setup_token:
        raise BootstrapError("ADMIN_SETUP_TOKEN environment variable is required")
    if not provided_token:
        raise BootstrapError("Setup token is required")
    if not hmac.compare_digest(provided_token.encode(), setup_token.encode()):
        raise BootstrapError("Invalid setup token")

    email = normalize_email(email)
    if not email or "@" not in email:
        raise BootstrapError("Invalid email address")

    repo = UserRepository(db)
    existing_admin = repo.get_admin()
    if existing_admin:
        raise BootstrapError(
            f"An admin user already exists ({existing_admin.email}); only one admin is supported"
        )
    if repo.get_by_email(email):
        raise BootstrapError("A user with this email already exists")

    admin = repo.create_user(
        email=email,
        role=Role.ADMIN,
        permissions=ADMIN_PERMISSIONS,
        username=username,
        name=name,
    )
    logger.info(f"Admin user created: {admin.email} ({admin.id})")
    return admin
