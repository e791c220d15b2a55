"""
Client-side admin key pair handling.

The private key never leaves the device except through an explicit
export. Signatures are produced in the raw fixed-width r || s form that
browser WebCrypto emits, then re-encoded to DER, which is what the server
verifies.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature

from blogauth.client.keystore import KeyStore, KeyStoreError, MemoryKeyStore
from blogauth.core.signing.der import raw_signature_to_der
from blogauth.core.signing.keys import (
    COMPONENT_SIZE,
    generate_keypair,
    has_private_key_markers,
    load_private_key_pem,
    private_key_to_pem,
    public_key_to_pem,
)

logger = logging.getLogger(__name__)

PRIVATE_KEY_ID = "admin-private-key"


class KeyProviderError(Exception):
    """Base class for client key failures."""


class KeyGenerationError(KeyProviderError):
    pass


class NoPrivateKeyError(KeyProviderError):
    pass


class SigningError(KeyProviderError):
    pass


class InvalidFormatError(KeyProviderError):
    pass


@dataclass(frozen=True)
class KeyPair:
    public_key: str   # PEM SubjectPublicKeyInfo
    private_key: str  # PEM PKCS8

    def __repr__(self):
        # Keep private key material out of logs and tracebacks
        return f"KeyPair(public_key={self.public_key[:40]!r}..., private_key=<redacted>)"


class KeyPairProvider:
    """Generates, stores, imports/exports and signs with the admin key."""

    def __init__(self, store: Optional[KeyStore] = None, key_id: str = PRIVATE_KEY_ID):
        self.store = store if store is not None else MemoryKeyStore()
        self.key_id = key_id

    def generate_key_pair(self, persist: bool = True) -> KeyPair:
        """
        Create a new P-256 key pair.

        With persist=True (default) the private key replaces whatever is
        stored under the key id. Rotation passes persist=False and calls
        store_key_pair() once the server has accepted the new public key.

        Raises:
            KeyGenerationError: Generation, serialization or storage failed
        """
        try:
            private_key, public_key = generate_keypair()
            pair = KeyPair(
                public_key=public_key_to_pem(public_key),
                private_key=private_key_to_pem(private_key),
            )
        except (ValueError, TypeError) as e:
            raise KeyGenerationError(f"Failed to generate key pair: {e}") from e

        if persist:
            try:
                self.store.put(self.key_id, pair.private_key)
            except KeyStoreError as e:
                raise KeyGenerationError(f"Failed to store private key: {e}") from e
            logger.info("Generated and stored new admin key pair")
        return pair

    def store_key_pair(self, pair: KeyPair) -> None:
        """Persist a pair made with persist=False. Raises KeyGenerationError."""
        try:
            self.store.put(self.key_id, pair.private_key)
        except KeyStoreError as e:
            raise KeyGenerationError(f"Failed to store private key: {e}") from e

    def has_private_key(self) -> bool:
        try:
            return bool(self.store.get(self.key_id))
        except KeyStoreError as e:
            logger.warning(f"Could not read key store: {e}")
            return False

    def export_private_key(self) -> Optional[str]:
        """The stored private key PEM, for backup. None if there is none or it can't be read."""
        try:
            return self.store.get(self.key_id)
        except KeyStoreError as e:
            logger.warning(f"Could not read key store: {e}")
            return None

    def import_private_key(self, pem: str) -> None:
        """
        Replace the stored private key (disaster recovery).

        Raises:
            InvalidFormatError: Not a PKCS8 PEM private key for P-256
        """
        if not pem or not has_private_key_markers(pem):
            raise InvalidFormatError("Invalid private key format")
        try:
            load_private_key_pem(pem)
        except ValueError as e:
            raise InvalidFormatError(f"Invalid private key: {e}") from e
        self.store.put(self.key_id, pem.strip() + "\n")
        logger.info("Imported admin private key")

    def _load_private_key(self) -> ec.EllipticCurvePrivateKey:
        try:
            pem = self.store.get(self.key_id)
        except KeyStoreError as e:
            raise SigningError(f"Failed to read private key: {e}") from e
        if not pem:
            raise NoPrivateKeyError("No private key found. Please generate keys first.")
        try:
            return load_private_key_pem(pem)
        except ValueError as e:
            raise SigningError(f"Stored private key is unusable: {e}") from e

    def public_key_pem(self) -> str:
        """Public half of the stored key."""
        return public_key_to_pem(self._load_private_key().public_key())

    def sign_challenge_raw(self, challenge: str) -> bytes:
        """
        ECDSA/SHA-256 signature over the UTF-8 challenge as raw r || s
        (2 x 32 bytes).
        """
        private_key = self._load_private_key()
        try:
            der = private_key.sign(challenge.encode("utf-8"), ec.ECDSA(hashes.SHA256()))
            r, s = decode_dss_signature(der)
            return r.to_bytes(COMPONENT_SIZE, "big") + s.to_bytes(COMPONENT_SIZE, "big")
        except (ValueError, TypeError, AttributeError) as e:
            raise SigningError(f"Failed to sign challenge: {e}") from e

    def sign_challenge(self, challenge: str) -> str:
        """
        Sign a challenge for the server: lower-case hex of the DER signature.

        Raises:
            NoPrivateKeyError: No key stored
            SigningError: Signing failed
        """
        raw = self.sign_challenge_raw(challenge)
        try:
            return raw_signature_to_der(raw).hex()
        except ValueError as e:
            raise SigningError(f"Failed to encode signature: {e}") from e
