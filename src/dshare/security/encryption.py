"""
Symmetric encryption engine for shared files.

Files are encrypted once, in memory, with AES-256-GCM. The key either comes
from ``os.urandom`` and is handed back to the caller (to be embedded in a
delegation token), or is stretched from a password with a salted KDF, in
which case only the salt leaves this module.

The nonce is returned next to the ciphertext instead of being prefixed to
it; the share link carries it out of band.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..core.exceptions import DecryptionError
from ..core.models import EncryptionResult
from .kdf import DEFAULT_KDF, derive_key, generate_salt

logger = logging.getLogger(__name__)

NONCE_LEN = 12
KEY_LEN = 32


def generate_key() -> bytes:
    return os.urandom(KEY_LEN)


def generate_iv() -> bytes:
    return os.urandom(NONCE_LEN)


def encrypt(
    plaintext: bytes,
    password: Optional[str] = None,
    kdf: str = DEFAULT_KDF,
) -> EncryptionResult:
    """
    Encrypt ``plaintext`` and return ciphertext plus the material needed to reverse it.

    Encryption details:
    - AES-256-GCM (via :class:`cryptography.hazmat.primitives.ciphers.aead.AESGCM`)
    - fresh 96-bit random nonce per call
    - without ``password``: fresh random key, returned in ``result.key``
    - with ``password``: fresh salt, key derived with the ``kdf`` profile
      (:mod:`dshare.security.kdf`); the derived key is never returned
    """
    iv = generate_iv()
    if password is None:
        key = generate_key()
        ct = AESGCM(key).encrypt(iv, plaintext, None)
        return EncryptionResult(ciphertext=ct, iv=iv, key=key)

    salt = generate_salt()
    key = derive_key(password, salt, kdf)
    ct = AESGCM(key).encrypt(iv, plaintext, None)
    logger.debug("encrypted %d bytes with password-derived key (%s)", len(plaintext), kdf)
    return EncryptionResult(ciphertext=ct, iv=iv, salt=salt, kdf=kdf)


def decrypt(ciphertext: bytes, key: bytes, iv: bytes) -> bytes:
    """
    Decrypt ``ciphertext`` produced by :func:`encrypt`.

    Any failure (wrong key, wrong iv, corrupted data, malformed key) raises
    :class:`DecryptionError` without saying which.
    """
    try:
        aead = AESGCM(key)
        return aead.decrypt(iv, ciphertext, None)
    except (InvalidTag, ValueError, TypeError) as exc:
        raise DecryptionError() from exc


def decrypt_with_password(
    ciphertext: bytes,
    password: str,
    salt: bytes,
    iv: bytes,
    kdf: str = DEFAULT_KDF,
) -> bytes:
    """Re-derive the key from ``(password, salt)`` with the same profile, then decrypt."""
    try:
        key = derive_key(password, salt, kdf)
    except ValueError as exc:
        raise DecryptionError() from exc
    return decrypt(ciphertext, key, iv)
