"""
Asymmetric Signing Module

ECDSA P-256 signing primitives for admin challenge-response authentication:
key handling, raw-to-DER signature conversion, verification and the
permission set carried by admin identities.
"""

from blogauth.core.signing.keys import (
    generate_keypair,
    public_key_to_pem,
    private_key_to_pem,
    load_public_key_pem,
    load_private_key_pem,
    has_public_key_markers,
    has_private_key_markers,
)
from blogauth.core.signing.der import raw_signature_to_der
from blogauth.core.signing.permissions import (
    Permission,
    Role,
    ADMIN_PERMISSIONS,
    has_permissions,
    parse_permissions,
)
from blogauth.core.signing.verify import (
    verify_signature,
    VerificationResult,
    VerificationError,
)

__all__ = [
    # Keys
    "generate_keypair",
    "public_key_to_pem",
    "private_key_to_pem",
    "load_public_key_pem",
    "load_private_key_pem",
    "has_public_key_markers",
    "has_private_key_markers",
    # DER
    "raw_signature_to_der",
    # Permissions
    "Permission",
    "Role",
    "ADMIN_PERMISSIONS",
    "has_permissions",
    "parse_permissions",
    # Verification
    "verify_signature",
    "VerificationResult",
    "VerificationError",
]
