"""Cryptographic helpers — hashing, key derivation, secret encryption."""

from __future__ import annotations

import base64
import hashlib
import hmac
import os

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

SALT_SIZE = 16

# Plaintext sealed into the key check token
_KEY_CHECK_MARKER = b"nxt-connector-wallet"


def sha256(data: bytes) -> bytes:
    """Single SHA-256 hash."""
    return hashlib.sha256(data).digest()


def new_salt() -> bytes:
    """Return a fresh random KDF salt."""
    return os.urandom(SALT_SIZE)


def keys_match(a: str, b: str) -> bool:
    """Constant-time comparison of two encryption keys."""
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def derive_fernet_key(key: str, salt: bytes, iterations: int) -> bytes:
    """Stretch a user key into a urlsafe base64 Fernet key with PBKDF2-HMAC-SHA256."""
    kdf = PBKDF2HMAC(algorithm=hashes.SHA256(), length=32, salt=salt, iterations=iterations)
    return base64.urlsafe_b64encode(kdf.derive(key.encode("utf-8")))


class SecretCipher:
    """Encrypts account secrets under the wallet encryption key.

    An empty key means no encryption: secrets pass through unchanged and
    there is no key check token.
    """

    def __init__(self, key: str, salt: bytes, iterations: int) -> None:
        self._fernet: Fernet | None = None
        if key:
            self._fernet = Fernet(derive_fernet_key(key, salt, iterations))

    @property
    def encrypted(self) -> bool:
        return self._fernet is not None

    def encrypt(self, plaintext: str) -> str:
        if self._fernet is None:
            return plaintext
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")

    def decrypt(self, stored: str) -> str:
        """Decrypt a stored secret.

        Raises:
            InvalidToken: If *stored* was not produced under this key.
        """
        if self._fernet is None:
            return stored
        return self._fernet.decrypt(stored.encode("ascii")).decode("utf-8")

    def key_check(self) -> str | None:
        """Token proving knowledge of the key, or None when unencrypted."""
        if self._fernet is None:
            return None
        return self._fernet.encrypt(_KEY_CHECK_MARKER).decode("ascii")

    def verify(self, key_check: str | None) -> bool:
        """Return True if this cipher's key produced *key_check*."""
        if key_check is None:
            return self._fernet is None
        if self._fernet is None:
            return False
        try:
            return self._fernet.decrypt(key_check.encode("ascii")) == _KEY_CHECK_MARKER
        except InvalidToken:
            return False
