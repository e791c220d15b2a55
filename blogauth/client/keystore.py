"""
Private key storage for the admin client.

A key store maps a key identifier to PEM text. Three backends:
- MemoryKeyStore: process-local (tests, one-shot scripts)
- FileKeyStore: one `<id>.pem` file per key, owner read/write only
- KeychainKeyStore: OS credential store through keyring

Usage:
    store = FileKeyStore("~/.blogauth")
    store.put("admin-private-key", pem)
"""
import logging
import os
import re
import threading
from pathlib import Path
from typing import Dict, Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

logger = logging.getLogger(__name__)

SERVICE_NAME = "blogauth"

_SAFE_KEY_ID = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyStoreError(Exception):
    """Underlying storage failed."""


class KeyStore:
    """Interface: get / put / delete PEM text by identifier."""

    def get(self, key_id: str) -> Optional[str]:
        raise NotImplementedError

    def put(self, key_id: str, pem: str) -> None:
        raise NotImplementedError

    def delete(self, key_id: str) -> bool:
        raise NotImplementedError


class MemoryKeyStore(KeyStore):
    def __init__(self):
        self._keys: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key_id: str) -> Optional[str]:
        with self._lock:
            return self._keys.get(key_id)

    def put(self, key_id: str, pem: str) -> None:
        with self._lock:
            self._keys[key_id] = pem

    def delete(self, key_id: str) -> bool:
        with self._lock:
            return self._keys.pop(key_id, None) is not None


class FileKeyStore(KeyStore):
    """Stores each key as `<directory>/<key_id>.pem` with mode 0600."""

    def __init__(self, directory):
        self.directory = Path(directory).expanduser()

    def _path(self, key_id: str) -> Path:
        if not _SAFE_KEY_ID.match(key_id):
            raise ValueError(f"Invalid key id: {key_id!r}")
        return self.directory / f"{key_id}.pem"

    def get(self, key_id: str) -> Optional[str]:
        path = self._path(key_id)
        try:
            return path.read_text(encoding="ascii")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise KeyStoreError(f"Failed to read {path}: {e}") from e

    def put(self, key_id: str, pem: str) -> None:
        path = self._path(key_id)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            # Create with restrictive permissions before any key material is written
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="ascii") as f:
                f.write(pem)
            os.chmod(path, 0o600)  # Owner read/write only
        except OSError as e:
            raise KeyStoreError(f"Failed to write {path}: {e}") from e
        logger.info(f"Stored key {key_id} in {self.directory}")

    def delete(self, key_id: str) -> bool:
        path = self._path(key_id)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise KeyStoreError(f"Failed to delete {path}: {e}") from e


class KeychainKeyStore(KeyStore):
    """OS keychain (macOS Keychain, Secret Service, Windows Credential Locker)."""

    def __init__(self, service_name: str = SERVICE_NAME):
        self.service_name = service_name

    def get(self, key_id: str) -> Optional[str]:
        try:
            return keyring.get_password(self.service_name, key_id)
        except KeyringError as e:
            raise KeyStoreError(f"Failed to read {key_id} from keychain: {e}") from e

    def put(self, key_id: str, pem: str) -> None:
        try:
            keyring.set_password(self.service_name, key_id, pem)
        except KeyringError as e:
            raise KeyStoreError(f"Failed to store {key_id} in keychain: {e}") from e
        logger.info(f"Stored {key_id} in keychain")

    def delete(self, key_id: str) -> bool:
        try:
            keyring.delete_password(self.service_name, key_id)
            return True
        except PasswordDeleteError:
            # Key didn't exist
            return False
        except KeyringError as e:
            raise KeyStoreError(f"Failed to delete {key_id} from keychain: {e}") from e
