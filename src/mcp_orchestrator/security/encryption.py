"""Authenticated symmetric encryption for secrets at rest."""

import hashlib
import os
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from ..exceptions import DecryptionError
from ..models import EncryptedPayload

MIN_KEY_LENGTH = 32
NONCE_SIZE = 12
TAG_SIZE = 16
HKDF_INFO = b"mcp-orchestrator/aes-256-gcm"


class EncryptionService:
    """AES-256-GCM encryption keyed from a master secret.

    The 32-byte AEAD key is derived from the master key with HKDF-SHA256, so
    the whole master key contributes to the cipher key.
    """

    def __init__(self, master_key: str) -> None:
        """Initialize the encryption service.

        Args:
            master_key: Master secret, at least 32 characters

        Raises:
            ValueError: If the master key is too short
        """
        if len(master_key) < MIN_KEY_LENGTH:
            raise ValueError(f"Encryption key must be at least {MIN_KEY_LENGTH} characters")

        key = HKDF(
            algorithm=hashes.SHA256(),
            length=32,
            salt=None,
            info=HKDF_INFO,
        ).derive(master_key.encode("utf-8"))
        self._aead = AESGCM(key)

    def encrypt(self, text: str) -> EncryptedPayload:
        """Encrypt a string.

        Args:
            text: Plaintext

        Returns:
            Hex-encoded ciphertext, nonce and authentication tag
        """
        nonce = os.urandom(NONCE_SIZE)
        sealed = self._aead.encrypt(nonce, text.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]
        return EncryptedPayload(encrypted=ciphertext.hex(), iv=nonce.hex(), tag=tag.hex())

    def decrypt(self, payload: EncryptedPayload | dict) -> str:
        """Decrypt and authenticate a payload.

        Args:
            payload: Payload produced by ``encrypt``

        Returns:
            Plaintext

        Raises:
            DecryptionError: If the payload is malformed or was tampered with
        """
        if isinstance(payload, dict):
            payload = EncryptedPayload.model_validate(payload)

        try:
            nonce = bytes.fromhex(payload.iv)
            sealed = bytes.fromhex(payload.encrypted) + bytes.fromhex(payload.tag)
        except ValueError as e:
            raise DecryptionError(f"Malformed encrypted payload: {e}")

        try:
            plaintext = self._aead.decrypt(nonce, sealed, None)
        except (InvalidTag, ValueError):
            raise DecryptionError("Decryption failed: payload could not be authenticated")

        return plaintext.decode("utf-8")

    @staticmethod
    def hash(text: str) -> str:
        """SHA-256 hex digest of a string."""
        return hashlib.sha256(text.encode("utf-8")).hexdigest()

    @staticmethod
    def generate_secure_token(nbytes: int = 32) -> str:
        """Generate a random hex token."""
        return secrets.token_hex(nbytes)
