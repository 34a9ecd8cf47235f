"""Security helpers: KDF, identities and file encryption for dshare.

This package provides:
- PBKDF2-SHA256 (default) and Argon2id password key derivation
- Ed25519 issuer identities addressed as did:key
- AES-GCM file encryption with random or password-derived keys
- a client context that lazily establishes the signing identity

The encryption engine lives in :mod:`dshare.security.encryption`.
"""

from .kdf import generate_salt, derive_key, DEFAULT_KDF
from .identity import Identity, WILDCARD, parse_audience, verify_signature
from .session import ClientContext, get_default_context
from .keystore import save_key, load_key, delete_key

__all__ = [
    "generate_salt",
    "derive_key",
    "DEFAULT_KDF",
    "Identity",
    "WILDCARD",
    "parse_audience",
    "verify_signature",
    "ClientContext",
    "get_default_context",
    "save_key",
    "load_key",
    "delete_key",
]
