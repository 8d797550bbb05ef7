"""Envelope encryption service for Pinref.

Encrypts bookmark content fields with AES-256-GCM under a DEK/KEK hierarchy
and produces the keyed one-way hashes used as blind index tokens.
"""

from __future__ import annotations

from dataclasses import dataclass

from pinref.utils.crypto import (
    aes_gcm_decrypt,
    aes_gcm_encrypt,
    derive_master_key,
    derive_subkey,
    generate_dek,
    hmac_sha256,
)


@dataclass(frozen=True, slots=True)
class EncryptedEnvelope:
    """Immutable container for envelope-encrypted data."""

    ciphertext: bytes  # nonce (12B) || AES-GCM ciphertext+tag
    encrypted_dek: bytes  # nonce (12B) || KEK-wrapped DEK
    algo: str  # "aes-256-gcm"
    version: int  # 1


class UnsupportedEnvelopeError(Exception):
    """Raised when an envelope's algo or version is not supported by this service."""


class EncryptionService:
    """Envelope encryption with crypto-agility, plus blind index hashing.

    Every encrypted blob carries metadata identifying the algorithm used,
    enabling future algorithm upgrades without re-encrypting everything at once.
    """

    CURRENT_ALGO: str = "aes-256-gcm"
    CURRENT_VERSION: int = 1

    SUPPORTED_VERSIONS: dict[str, set[int]] = {
        "aes-256-gcm": {1},
    }

    __slots__ = ("_kek", "_search_key")

    def __init__(self, master_key: bytes) -> None:
        """Derive the KEK and the search key via HKDF; the master key is not kept."""
        self._kek = derive_subkey(master_key, b"kek")
        self._search_key = derive_subkey(master_key, b"search")

    @classmethod
    def from_secret(cls, secret: str, salt: str) -> EncryptionService:
        """Build a service from the configured server secret and salt."""
        return cls(derive_master_key(secret, salt.encode("utf-8")))

    def encrypt(self, plaintext: bytes) -> EncryptedEnvelope:
        """Encrypt data with a fresh DEK, wrapped by KEK."""
        dek = generate_dek()
        ciphertext = aes_gcm_encrypt(dek, plaintext)
        encrypted_dek = aes_gcm_encrypt(self._kek, dek)
        return EncryptedEnvelope(
            ciphertext=ciphertext,
            encrypted_dek=encrypted_dek,
            algo=self.CURRENT_ALGO,
            version=self.CURRENT_VERSION,
        )

    def _validate_envelope(self, envelope: EncryptedEnvelope) -> None:
        supported_versions = self.SUPPORTED_VERSIONS.get(envelope.algo)
        if supported_versions is None:
            raise UnsupportedEnvelopeError(
                f"Unsupported encryption algorithm: {envelope.algo!r}. "
                f"Supported: {sorted(self.SUPPORTED_VERSIONS.keys())}"
            )
        if envelope.version not in supported_versions:
            raise UnsupportedEnvelopeError(
                f"Unsupported version {envelope.version} for algorithm {envelope.algo!r}. "
                f"Supported versions: {sorted(supported_versions)}"
            )

    def decrypt(self, envelope: EncryptedEnvelope) -> bytes:
        """Decrypt an envelope back to plaintext.

        Raises UnsupportedEnvelopeError if the envelope's algo/version is not
        supported. Raises cryptography.exceptions.InvalidTag on tampered
        ciphertext or wrong KEK.
        """
        self._validate_envelope(envelope)
        dek = aes_gcm_decrypt(self._kek, envelope.encrypted_dek)
        return aes_gcm_decrypt(dek, envelope.ciphertext)

    def encrypt_field(self, value: str) -> tuple[str, str]:
        """Encrypt a text field. Returns (ciphertext_hex, encrypted_dek_hex)."""
        envelope = self.encrypt(value.encode("utf-8"))
        return envelope.ciphertext.hex(), envelope.encrypted_dek.hex()

    def decrypt_field(
        self,
        ciphertext_hex: str,
        dek_hex: str,
        algo: str = CURRENT_ALGO,
        version: int = CURRENT_VERSION,
    ) -> str:
        envelope = EncryptedEnvelope(
            ciphertext=bytes.fromhex(ciphertext_hex),
            encrypted_dek=bytes.fromhex(dek_hex),
            algo=algo,
            version=version,
        )
        return self.decrypt(envelope).decode("utf-8")

    def hmac_search_token(self, token: str) -> str:
        """Generate a blind index token.

        Tokens are compared by exact digest equality only, so every
        substring that should be searchable must be hashed individually.
        """
        return hmac_sha256(self._search_key, token.encode("utf-8"))
