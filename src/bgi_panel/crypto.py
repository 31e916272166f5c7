"""Secret encryption capability for stored game passwords."""

from __future__ import annotations

import hashlib
import logging
import os
from typing import Protocol

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

logger = logging.getLogger(__name__)

IV_LENGTH = 16


class SecretCipher(Protocol):
    def encrypt(self, plaintext: str) -> str: ...

    def decrypt(self, token: str) -> str | None: ...


class AesCbcCipher:
    """AES-256-CBC with PKCS7 padding.

    Tokens are ``<iv hex>:<ciphertext hex>`` and the key is the SHA-256 digest of the
    configured secret, which keeps tokens written by the account management layer
    readable here.
    """

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("Encryption secret must not be empty.")
        self._key = hashlib.sha256(secret.encode("utf-8")).digest()

    def encrypt(self, plaintext: str) -> str:
        iv = os.urandom(IV_LENGTH)
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).encryptor()
        encrypted = encryptor.update(padded) + encryptor.finalize()
        return f"{iv.hex()}:{encrypted.hex()}"

    def decrypt(self, token: str) -> str | None:
        """Return the plaintext, or ``None`` when the token cannot be decrypted."""

        try:
            iv_hex, _, encrypted_hex = token.partition(":")
            iv = bytes.fromhex(iv_hex)
            encrypted = bytes.fromhex(encrypted_hex)
            decryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).decryptor()
            padded = decryptor.update(encrypted) + decryptor.finalize()
            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            plain = unpadder.update(padded) + unpadder.finalize()
            return plain.decode("utf-8")
        except ValueError as error:
            logger.error("Secret decryption failed: %s", error)
            return None
