"""Ed25519 signing identities addressed as ``did:key`` DIDs.

An :class:`Identity` signs delegation tokens. Its public half is encoded as
``did:key:z<base58btc(0xed01 || public_key)>`` so a verifier can recover the
verification key from the issuer field of a token without any lookup.

Audiences are only compared, never used to verify anything, so
:func:`parse_audience` accepts any syntactically valid DID.
"""
from __future__ import annotations

import re
from typing import Optional

import base58
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

WILDCARD = "*"
DID_KEY_PREFIX = "did:key:z"
# multicodec varint for ed25519-pub
ED25519_MULTICODEC = b"\xed\x01"
SEED_LEN = 32

_DID_RE = re.compile(r"^did:[a-z0-9]+:[A-Za-z0-9._:%-]+$")


class Identity:
    def __init__(self, private_key: Ed25519PrivateKey):
        self._private_key = private_key
        self._public_key = private_key.public_key()
        self.did = did_from_public_key(self._public_key)

    @classmethod
    def generate(cls) -> "Identity":
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_seed(cls, seed: bytes) -> "Identity":
        if len(seed) != SEED_LEN:
            raise ValueError("Ed25519 seed must be 32 bytes")
        return cls(Ed25519PrivateKey.from_private_bytes(seed))

    def seed(self) -> bytes:
        """Raw 32-byte private seed, for keystore persistence only."""
        return self._private_key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        )

    def sign(self, data: bytes) -> bytes:
        return self._private_key.sign(data)

    def __repr__(self):
        return f"Identity(did={self.did!r})"


def did_from_public_key(public_key: Ed25519PublicKey) -> str:
    raw = public_key.public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return DID_KEY_PREFIX + base58.b58encode(ED25519_MULTICODEC + raw).decode("ascii")


def public_key_from_did(did: str) -> Ed25519PublicKey:
    """Recover the Ed25519 verification key from a ``did:key`` string.

    Raises ``ValueError`` when the DID is not an Ed25519 ``did:key``.
    """
    if not isinstance(did, str) or not did.startswith(DID_KEY_PREFIX):
        raise ValueError("issuer is not a did:key identity")
    try:
        decoded = base58.b58decode(did[len(DID_KEY_PREFIX):])
    except ValueError as exc:
        raise ValueError("issuer did:key is not base58btc") from exc
    if not decoded.startswith(ED25519_MULTICODEC) or len(decoded) != 2 + 32:
        raise ValueError("issuer did:key is not an Ed25519 key")
    return Ed25519PublicKey.from_public_bytes(decoded[2:])


def verify_signature(did: str, signature: bytes, data: bytes) -> bool:
    """Return True if ``signature`` over ``data`` verifies under the key of ``did``."""
    try:
        public_key = public_key_from_did(did)
        public_key.verify(signature, data)
    except (InvalidSignature, ValueError):
        return False
    return True


def is_did(value: str) -> bool:
    return isinstance(value, str) and bool(_DID_RE.match(value))


def parse_audience(audience: Optional[str]) -> str:
    """Normalize an audience argument to a DID or the wildcard.

    ``None``, empty strings and ``"*"`` all mean "anyone".
    """
    if audience is None:
        return WILDCARD
    audience = audience.strip()
    if audience in ("", WILDCARD):
        return WILDCARD
    if not is_did(audience):
        raise ValueError(f"Audience is not a DID: {audience!r}")
    return audience
