"""Cryptographic primitives behind bookmark field encryption and the blind index.

Key hierarchy: server secret --Argon2id--> master key --HKDF--> KEK and
search key. Each bookmark field gets its own random DEK, sealed with
AES-256-GCM and wrapped by the KEK. Search tokens are HMAC-SHA256 digests
under the search key.
"""

from __future__ import annotations

import hashlib
import hmac
import os

from argon2.low_level import Type, hash_secret_raw
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.hashes import SHA256
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

KEY_BYTES = 32
NONCE_BYTES = 12


def derive_master_key(secret: str, salt: bytes) -> bytes:
    """Stretch the server secret into a 256-bit master key with Argon2id.

    time_cost=3, memory_cost=64 MiB, parallelism=1.
    """
    return hash_secret_raw(
        secret=secret.encode("utf-8"),
        salt=salt,
        time_cost=3,
        memory_cost=65536,
        parallelism=1,
        hash_len=KEY_BYTES,
        type=Type.ID,
    )


def derive_subkey(master: bytes, info: bytes, length: int = KEY_BYTES) -> bytes:
    """HKDF-SHA256 subkey; ``info`` separates the KEK from the search key."""
    return HKDF(algorithm=SHA256(), length=length, salt=None, info=info).derive(master)


def aes_gcm_encrypt(key: bytes, plaintext: bytes) -> bytes:
    """Seal ``plaintext``. Returns nonce (12 bytes) || ciphertext+tag."""
    nonce = os.urandom(NONCE_BYTES)
    return nonce + AESGCM(key).encrypt(nonce, plaintext, None)


def aes_gcm_decrypt(key: bytes, data: bytes) -> bytes:
    """Open data produced by aes_gcm_encrypt.

    Raises cryptography.exceptions.InvalidTag on tampered data or a wrong key.
    """
    return AESGCM(key).decrypt(data[:NONCE_BYTES], data[NONCE_BYTES:], None)


def generate_dek() -> bytes:
    """Fresh random 256-bit data key for one bookmark field."""
    return AESGCM.generate_key(bit_length=KEY_BYTES * 8)


def hmac_sha256(key: bytes, data: bytes) -> str:
    """Hex HMAC-SHA256 digest; the stored form of a blind index token."""
    return hmac.new(key, data, hashlib.sha256).hexdigest()
