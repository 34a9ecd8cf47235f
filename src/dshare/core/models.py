"""
Base data models for encryption results, token facts and share links
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from ..security.kdf import DEFAULT_KDF


DEFAULT_FILENAME = "file"
DEFAULT_MIME_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class EncryptionResult:
    """Output of one encryption. Exactly one of ``key`` / ``salt`` is set."""

    ciphertext: bytes
    iv: bytes
    key: Optional[bytes] = None
    salt: Optional[bytes] = None
    kdf: Optional[str] = None

    def __post_init__(self):
        if (self.key is None) == (self.salt is None):
            raise ValueError("EncryptionResult needs exactly one of key or salt")

    @property
    def password_protected(self) -> bool:
        return self.salt is not None

    def __repr__(self):
        # keep key bytes out of logs and tracebacks
        return (
            f"EncryptionResult(ciphertext=<{len(self.ciphertext)} bytes>, "
            f"password_protected={self.password_protected})"
        )


# === Facts variants ===


@dataclass(frozen=True, repr=False)
class OpenFacts:
    """Facts for a share decryptable with the embedded raw key."""

    iv: bytes
    key: bytes

    restricted = False
    password_protected = False

    def __repr__(self):
        return "OpenFacts(iv=..., key=<redacted>)"


@dataclass(frozen=True, repr=False)
class PasswordFacts:
    """Facts for a share whose key must be re-derived from a password."""

    iv: bytes
    salt: bytes
    kdf: str = DEFAULT_KDF

    restricted = False
    password_protected = True

    def __repr__(self):
        return f"PasswordFacts(kdf={self.kdf!r})"


@dataclass(frozen=True)
class Restricted:
    """Wraps facts that may only be used by one audience identity."""

    audience: str
    inner: Union[OpenFacts, PasswordFacts]

    restricted = True

    @property
    def password_protected(self) -> bool:
        return self.inner.password_protected

    @property
    def iv(self) -> bytes:
        return self.inner.iv


Facts = Union[OpenFacts, PasswordFacts, Restricted]


def unwrap_facts(facts: Facts) -> Union[OpenFacts, PasswordFacts]:
    """Return the decryption parameters, dropping any audience wrapper."""
    if isinstance(facts, Restricted):
        return facts.inner
    return facts


# === Share links ===


@dataclass(frozen=True)
class ShareLink:
    locator: str
    encoded_token: str
    filename: str = DEFAULT_FILENAME
    mime_type: str = DEFAULT_MIME_TYPE


@dataclass(frozen=True, repr=False)
class LegacyShareLink:
    """Older link shape: raw key and iv in the query string, unsigned proof."""

    locator: str
    key: bytes
    iv: bytes
    proof: Optional[str] = None
    filename: str = DEFAULT_FILENAME
    mime_type: str = DEFAULT_MIME_TYPE
    expires_at: Optional[int] = None

    def __repr__(self):
        return f"LegacyShareLink(locator={self.locator!r}, filename={self.filename!r})"


class ViewState(Enum):
    # Where a viewing session currently is
    FETCHING = "fetching"
    TOKEN_VERIFYING = "token_verifying"
    NEEDS_PASSWORD = "needs_password"
    NEEDS_IDENTITY_CHALLENGE = "needs_identity_challenge"
    READY = "ready"
    DECRYPTING = "decrypting"
    SHOWN = "shown"
    FAILED = "failed"
