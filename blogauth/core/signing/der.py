"""
Raw ECDSA signature -> ASN.1 DER conversion

Browser WebCrypto (and other P1363-style signers) emit ECDSA signatures as
the fixed-width concatenation r || s. Server-side verifiers, including the
cryptography library, expect the DER form:

    SEQUENCE {
        INTEGER r,
        INTEGER s
    }

This module is pure byte manipulation so it can be tested in isolation.
"""

SEQUENCE_TAG = 0x30
INTEGER_TAG = 0x02


def _encode_length(length: int) -> bytes:
    """DER length octets (short form below 128, long form above)."""
    if length < 0x80:
        return bytes([length])
    octets = length.to_bytes((length.bit_length() + 7) // 8, "big")
    return bytes([0x80 | len(octets)]) + octets


def encode_der_integer(value: bytes) -> bytes:
    """
    Encode big-endian unsigned bytes as a DER INTEGER.

    Leading zero bytes are stripped (one byte is always kept), then a single
    zero byte is re-added when the high bit is set so the INTEGER stays
    non-negative.
    """
    if not value:
        raise ValueError("Cannot encode an empty integer")

    start = 0
    while start < len(value) - 1 and value[start] == 0:
        start += 1
    trimmed = value[start:]

    if trimmed[0] & 0x80:
        trimmed = b"\x00" + trimmed

    return bytes([INTEGER_TAG]) + _encode_length(len(trimmed)) + trimmed


def raw_signature_to_der(raw_signature: bytes) -> bytes:
    """
    Convert a raw r || s ECDSA signature to DER.

    Args:
        raw_signature: Concatenated r and s of equal width (64 bytes for P-256)

    Returns:
        DER-encoded signature bytes

    Raises:
        ValueError: If the input is empty or has odd length

    Example:
        >>> raw_signature_to_der(bytes(31) + b"\\x01" + bytes(31) + b"\\x02").hex()
        '3006020101020102'
    """
    if not raw_signature or len(raw_signature) % 2:
        raise ValueError(
            f"Invalid raw signature length: {len(raw_signature)} bytes (expected even, non-zero)"
        )

    half = len(raw_signature) // 2
    r_encoded = encode_der_integer(raw_signature[:half])
    s_encoded = encode_der_integer(raw_signature[half:])

    content = r_encoded + s_encoded
    return bytes([SEQUENCE_TAG]) + _encode_length(len(content)) + content
