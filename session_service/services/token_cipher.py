"""Symmetric encryption utilities for protecting stored tokens."""

from __future__ import annotations

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken


class TokenCipherService:
    """Encrypt and decrypt sensitive values using a derived Fernet key."""

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        key = base64.urlsafe_b64encode(digest)
        self._fernet = Fernet(key)

    def seal(self, plaintext: str) -> bytes:
        """Encrypt a plaintext string into bytes suitable for the session store."""
        return self._fernet.encrypt(plaintext.encode("utf-8"))

    def unseal(self, ciphertext: bytes) -> str:
        """Decrypt bytes previously produced by :meth:`seal`."""
        try:
            plaintext = self._fernet.decrypt(ciphertext)
        except (InvalidToken, TypeError) as exc:
            raise ValueError(
                "Failed to decrypt token; invalid ciphertext provided."
            ) from exc
        return plaintext.decode("utf-8")


__all__ = ["TokenCipherService"]
