"""Artifact Cipher — Fernet encryption of artifact bytes at rest.

Invariants:
    - encrypt() output is what gets stored and checksummed
    - decrypt() raises MalformedArtifactError on a wrong key or tampered token
"""

import logging

from cryptography.fernet import Fernet, InvalidToken

from stockroom.core.errors import MalformedArtifactError

logger = logging.getLogger(__name__)


class ArtifactCipher:
    """Symmetric encryption for artifacts (Fernet: AES-128-CBC + HMAC-SHA256)."""

    def __init__(self, key: str | bytes):
        self._fernet = Fernet(key)

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode("ascii")

    def encrypt(self, data: bytes) -> bytes:
        return self._fernet.encrypt(data)

    def decrypt(self, token: bytes) -> bytes:
        try:
            return self._fernet.decrypt(token)
        except InvalidToken:
            logger.warning("Artifact decryption failed: invalid token or key")
            raise MalformedArtifactError("encrypted artifact", "invalid token or key")
