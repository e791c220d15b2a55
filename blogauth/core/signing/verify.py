"""
Signature Verification

Verifies ECDSA/SHA-256 signatures over challenge strings.

Signatures arrive hex-encoded in ASN.1 DER form (see der.py for the
conversion clients perform). The signed message is the UTF-8 encoding of the
challenge text exactly as issued.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec

from blogauth.core.signing.keys import load_public_key_pem

logger = logging.getLogger(__name__)


class VerificationError(Enum):
    """Enumeration of possible verification failures."""
    INVALID_PUBLIC_KEY = "invalid_public_key"
    INVALID_SIGNATURE_FORMAT = "invalid_signature_format"
    SIGNATURE_VERIFICATION_FAILED = "signature_verification_failed"


@dataclass
class VerificationResult:
    """
    Result of signature verification.

    Attributes:
        success: Whether verification succeeded
        error: Error type if verification failed
        error_message: Human-readable error message
    """
    success: bool
    error: Optional[VerificationError] = None
    error_message: Optional[str] = None

    @classmethod
    def ok(cls) -> "VerificationResult":
        """Create a successful result."""
        return cls(success=True)

    @classmethod
    def fail(cls, error: VerificationError, message: str) -> "VerificationResult":
        """Create a failed result."""
        return cls(success=False, error=error, error_message=message)


def decode_signature_hex(signature_hex: str) -> bytes:
    """
    Decode a hex signature string.

    Raises:
        ValueError: If the string is empty or not valid hex
    """
    if not signature_hex:
        raise ValueError("Empty signature")
    return bytes.fromhex(signature_hex.strip())


def verify_signature(
    public_key: Union[str, ec.EllipticCurvePublicKey],
    message: str,
    signature_hex: str,
) -> VerificationResult:
    """
    Verify a hex-encoded DER ECDSA/SHA-256 signature over a message.

    Never raises: every failure (bad key, bad hex, bad DER, wrong key,
    tampered message) is reported through the result.

    Args:
        public_key: PEM text or loaded public key
        message: The signed text (UTF-8 encoded before verification)
        signature_hex: Hex-encoded DER signature

    Returns:
        VerificationResult with success status and details
    """
    if isinstance(public_key, str):
        try:
            public_key = load_public_key_pem(public_key)
        except ValueError as e:
            return VerificationResult.fail(VerificationError.INVALID_PUBLIC_KEY, str(e))

    try:
        signature_bytes = decode_signature_hex(signature_hex)
    except (ValueError, TypeError, AttributeError) as e:
        return VerificationResult.fail(
            VerificationError.INVALID_SIGNATURE_FORMAT,
            f"Invalid hex signature: {e}"
        )

    try:
        public_key.verify(signature_bytes, message.encode("utf-8"), ec.ECDSA(hashes.SHA256()))
    except InvalidSignature:
        return VerificationResult.fail(
            VerificationError.SIGNATURE_VERIFICATION_FAILED,
            "Signature verification failed"
        )
    except Exception as e:
        # Malformed DER surfaces as ValueError from the backend
        logger.debug(f"Signature verification error: {type(e).__name__}: {e}")
        return VerificationResult.fail(
            VerificationError.SIGNATURE_VERIFICATION_FAILED,
            f"Signature verification error: {e}"
        )

    return VerificationResult.ok()
