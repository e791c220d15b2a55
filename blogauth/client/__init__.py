"""
Admin client: key pair management and the login/rotation flows.
"""
from blogauth.client.api_client import AdminAuthClient, AdminAuthClientError, AdminSession
from blogauth.client.key_provider import (
    KeyPair,
    KeyPairProvider,
    KeyProviderError,
    KeyGenerationError,
    NoPrivateKeyError,
    SigningError,
    InvalidFormatError,
    PRIVATE_KEY_ID,
)
from blogauth.client.keystore import KeyStore, MemoryKeyStore, FileKeyStore, KeychainKeyStore

__all__ = [
    "AdminAuthClient",
    "AdminAuthClientError",
    "AdminSession",
    "KeyPair",
    "KeyPairProvider",
    "KeyProviderError",
    "KeyGenerationError",
    "NoPrivateKeyError",
    "SigningError",
    "InvalidFormatError",
    "PRIVATE_KEY_ID",
    "KeyStore",
    "MemoryKeyStore",
    "FileKeyStore",
    "KeychainKeyStore",
]
