"""AES-256-GCM authenticated encryption.

Ciphertext layout: nonce (12 bytes) || ciphertext || tag (16 bytes).
"""

from __future__ import annotations

import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

NONCE_SIZE = 12
KEY_SIZE = 32


class CryptoError(ValueError):
    """Raised for invalid keys and for ciphertexts that fail to decrypt."""


class Encryptor:
    """Encrypts and decrypts data with a 32-byte AES key given as hex."""

    def __init__(self, hex_key: str) -> None:
        if not hex_key:
            raise CryptoError("APP_ENCRYPTION_KEY is required")
        try:
            key = binascii.unhexlify(hex_key)
        except (binascii.Error, ValueError) as exc:
            raise CryptoError(f"decode encryption key: {exc}") from exc
        if len(key) != KEY_SIZE:
            raise CryptoError(
                f"encryption key must be 32 bytes (64 hex chars), got {len(key)}"
            )
        self._aead = AESGCM(key)

    def encrypt(self, plaintext: bytes) -> bytes:
        """Return nonce || ciphertext || tag for ``plaintext``."""
        nonce = os.urandom(NONCE_SIZE)
        return nonce + self._aead.encrypt(nonce, bytes(plaintext), None)

    def decrypt(self, ciphertext: bytes) -> bytes:
        """Reverse :meth:`encrypt`."""
        if len(ciphertext) < NONCE_SIZE:
            raise CryptoError("ciphertext too short")
        nonce, sealed = bytes(ciphertext[:NONCE_SIZE]), bytes(ciphertext[NONCE_SIZE:])
        try:
            return self._aead.decrypt(nonce, sealed, None)
        except (InvalidTag, ValueError) as exc:
            raise CryptoError(f"decrypt: {exc or 'message authentication failed'}") from exc