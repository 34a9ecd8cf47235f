import os
from typing import Dict

from argon2.low_level import Type, hash_secret_raw
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC


KDF_PBKDF2_SHA256 = "pbkdf2-sha256"
KDF_ARGON2ID = "argon2id"
DEFAULT_KDF = KDF_PBKDF2_SHA256

PBKDF2_ITERATIONS = 100_000
KEY_LEN = 32
SALT_LEN = 16

# Parameters are fixed per profile name; a viewer re-derives from the name alone.
PROFILES: Dict[str, Dict[str, int]] = {
    KDF_PBKDF2_SHA256: {"iterations": PBKDF2_ITERATIONS},
    KDF_ARGON2ID: {"time": 3, "memory": 65536, "parallelism": 1},
}


def generate_salt(length: int = SALT_LEN) -> bytes:
    """Return a cryptographically secure random salt."""
    return os.urandom(length)


def derive_pbkdf2_key(
    password: bytes,
    salt: bytes,
    iterations: int = PBKDF2_ITERATIONS,
    key_len: int = KEY_LEN,
) -> bytes:
    """
    Derive a file key from a password using PBKDF2-HMAC-SHA256.
    Returns raw derived key bytes.
    """
    if isinstance(password, str):
        password = password.encode("utf-8")

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=key_len,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(password)


def derive_argon2_key(
    password: bytes,
    salt: bytes,
    time_cost: int = 3,
    memory_cost: int = 65536,
    parallelism: int = 1,
    key_len: int = KEY_LEN,
) -> bytes:
    """
    Derive a file key from a password using Argon2id.
    Returns raw derived key bytes.
    """
    if isinstance(password, str):
        password = password.encode("utf-8")

    return hash_secret_raw(
        secret=password,
        salt=salt,
        time_cost=time_cost,
        memory_cost=memory_cost,
        parallelism=parallelism,
        hash_len=key_len,
        type=Type.ID,
    )


def derive_key(password: bytes | str, salt: bytes, profile: str = DEFAULT_KDF) -> bytes:
    """Derive a key with the named profile; raises ``ValueError`` for unknown names."""
    params = PROFILES.get(profile)
    if params is None:
        raise ValueError(f"Unknown key derivation profile: {profile}")
    if profile == KDF_ARGON2ID:
        return derive_argon2_key(
            password,
            salt,
            time_cost=params["time"],
            memory_cost=params["memory"],
            parallelism=params["parallelism"],
        )
    return derive_pbkdf2_key(password, salt, iterations=params["iterations"])
