"""AES-256-GCM encryption for withdrawal bank details."""

import os
from functools import lru_cache

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from safari_ledger.config import settings

NONCE_SIZE = 12


class EncryptionService:
    """Encrypts bank account numbers at rest."""

    def __init__(self, key: bytes) -> None:
        if len(key) != 32:
            raise ValueError("Encryption key must be 32 bytes for AES-256")
        self._aesgcm = AESGCM(key)

    def encrypt(self, plaintext: str) -> bytes:
        """Return the 12-byte nonce followed by the ciphertext."""
        nonce = os.urandom(NONCE_SIZE)
        return nonce + self._aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)

    def decrypt(self, ciphertext: bytes) -> str:
        if len(ciphertext) < NONCE_SIZE:
            raise ValueError("Ciphertext too short")
        nonce, encrypted = ciphertext[:NONCE_SIZE], ciphertext[NONCE_SIZE:]
        return self._aesgcm.decrypt(nonce, encrypted, None).decode("utf-8")


@lru_cache
def get_encryption_service() -> EncryptionService:
    """Get cached encryption service instance."""
    # Pad or truncate the configured key to 32 bytes
    key = settings.encryption_key.encode("utf-8")[:32].ljust(32, b"\0")
    return EncryptionService(key)


def mask_account_number(account_number: str | None) -> str | None:
    """Show only the last four digits."""
    if not account_number:
        return None
    if len(account_number) <= 4:
        return account_number
    return "*" * (len(account_number) - 4) + account_number[-4:]
