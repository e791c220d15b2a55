"""
Permission Definitions and Checking

Permissions are a fixed enumerated set stored on the user record.
All membership checks go through has_permissions(); call sites never
inspect raw permission lists themselves.
"""

from enum import Enum
from typing import FrozenSet, Iterable
import logging

logger = logging.getLogger(__name__)


class Permission(str, Enum):
    """Capability tags an identity can hold."""
    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    ADMIN = "admin"
    API_ACCESS = "api_access"


class Role(str, Enum):
    """Identity roles. Only admins take part in key authentication."""
    ADMIN = "admin"
    USER = "user"


# Granted to the admin created by the bootstrap script
ADMIN_PERMISSIONS: FrozenSet[Permission] = frozenset(Permission)

_PERMISSION_VALUES = frozenset(p.value for p in Permission)


def parse_permissions(values: Iterable[str]) -> FrozenSet[Permission]:
    """
    Parse permission strings into Permission members.

    Raises:
        ValueError: If any value is not a known permission
    """
    parsed = set()
    for value in values or ():
        try:
            parsed.add(Permission(value))
        except ValueError:
            raise ValueError(f"Unknown permission '{value}'") from None
    return frozenset(parsed)


def has_permissions(granted: Iterable[Permission], *required: Permission) -> bool:
    """
    Check that every required permission is granted.

    Example:
        >>> has_permissions({Permission.READ, Permission.WRITE}, Permission.READ)
        True
        >>> has_permissions({Permission.READ}, Permission.READ, Permission.DELETE)
        False
    """
    # Unknown stored values grant nothing
    granted_set = frozenset(getattr(p, "value", p) for p in (granted or ())) & _PERMISSION_VALUES
    return all(Permission(r).value in granted_set for r in required)


def permission_values(permissions: Iterable[Permission]) -> list:
    """Sorted string values, for JSON storage and token claims."""
    return sorted(Permission(p).value for p in (permissions or ()))
