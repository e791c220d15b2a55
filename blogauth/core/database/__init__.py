"""Database package: connection handling, models and repository."""
from .connection import init_db, get_db, create_tables, drop_tables, build_engine
from .models import Base, User, SecurityAuditLog
from .repository import UserRepository, create_admin, BootstrapError, normalize_email

__all__ = [
    'init_db', 'get_db', 'create_tables', 'drop_tables', 'build_engine',
    'Base', 'User', 'SecurityAuditLog',
    'UserRepository', 'create_admin', 'BootstrapError', 'normalize_email',
]
