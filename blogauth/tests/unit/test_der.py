"""
Tests for raw (r || s) to DER signature conversion
"""
import pytest

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature, encode_dss_signature

from blogauth.core.signing.der import encode_der_integer, raw_signature_to_der
from blogauth.core.signing.keys import generate_keypair


def _raw(r: int, s: int, width: int = 32) -> bytes:
    return r.to_bytes(width, "big") + s.to_bytes(width, "big")


def test_small_components():
    """Leading zeros are stripped down to a single byte."""
    assert raw_signature_to_der(_raw(1, 2)).hex() == "3006020101020102"


def test_high_bit_gets_zero_prefix():
    r = bytes([0x80]) + bytes(31)
    s = bytes(31) + b"\x7f"
    der = raw_signature_to_der(r + s)
    # r: 33 bytes (0x00 prefix), s: 1 byte
    assert der[:4] == bytes([0x30, 2 + 33 + 2 + 1, 0x02, 33])
    assert der[4] == 0x00
    assert der[5:37] == r
    assert der[37:] == bytes([0x02, 0x01, 0x7f])


def test_zero_component_keeps_one_byte():
    assert encode_der_integer(bytes(32)) == bytes([0x02, 0x01, 0x00])


def test_matches_cryptography_encoding():
    """For real signatures the conversion equals encode_dss_signature."""
    private_key, _ = generate_keypair()
    for i in range(25):
        der = private_key.sign(f"challenge-{i}".encode(), ec.ECDSA(hashes.SHA256()))
        r, s = decode_dss_signature(der)
        assert raw_signature_to_der(_raw(r, s)) == encode_dss_signature(r, s)


def test_edge_values_match_cryptography():
    top = (1 << 256) - 1
    for r, s in [(1, 1), (0x7f, 0x80), (top, 1), (1 << 255, (1 << 255) - 1), (0, top)]:
        assert raw_signature_to_der(_raw(r, s)) == encode_dss_signature(r, s)


def test_converted_signature_verifies():
    private_key, public_key = generate_keypair()
    message = b"abc.1700000000000"
    r, s = decode_dss_signature(private_key.sign(message, ec.ECDSA(hashes.SHA256())))
    public_key.verify(raw_signature_to_der(_raw(r, s)), message, ec.ECDSA(hashes.SHA256()))


@pytest.mark.parametrize("raw", [b"", b"\x01", bytes(63)])
def test_rejects_empty_or_odd_length(raw):
    with pytest.raises(ValueError):
        raw_signature_to_der(raw)


def test_encode_integer_rejects_empty():
    with pytest.raises(ValueError):
        encode_der_integer(b"")
