"""Conversion between facts variants and their JSON wire form.

Wire form, all byte fields standard base64::

    {"iv": ..., "key": ...}                                   open share
    {"iv": ..., "salt": ..., "passwordProtected": true,
     "kdf": "pbkdf2-sha256"}                                  password share
    ... plus "restricted": true when the audience is a specific DID

A missing ``kdf`` means the default profile, which is what tokens issued
before the field existed relied on.
"""

from __future__ import annotations

import base64
import binascii
from typing import Any, Dict

from ..core.exceptions import MalformedTokenError
from ..core.models import (
    EncryptionResult,
    Facts,
    OpenFacts,
    PasswordFacts,
    Restricted,
    unwrap_facts,
)
from ..security.identity import WILDCARD
from ..security.kdf import DEFAULT_KDF


def b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def b64decode(value: Any) -> bytes:
    if not isinstance(value, str):
        raise MalformedTokenError("expected base64 string")
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MalformedTokenError("invalid base64 field") from exc


def facts_from_encryption(result: EncryptionResult, audience: str = WILDCARD) -> Facts:
    """Build the facts a viewer needs to reverse ``result``."""
    if result.password_protected:
        inner = PasswordFacts(iv=result.iv, salt=result.salt, kdf=result.kdf or DEFAULT_KDF)
    else:
        inner = OpenFacts(iv=result.iv, key=result.key)
    if audience == WILDCARD:
        return inner
    return Restricted(audience=audience, inner=inner)


def facts_to_wire(facts: Facts) -> Dict[str, Any]:
    inner = unwrap_facts(facts)
    wire: Dict[str, Any] = {"iv": b64encode(inner.iv)}
    if isinstance(inner, PasswordFacts):
        wire["salt"] = b64encode(inner.salt)
        wire["passwordProtected"] = True
        wire["kdf"] = inner.kdf
    else:
        wire["key"] = b64encode(inner.key)
    if facts.restricted:
        wire["restricted"] = True
    return wire


def _flag(wire: Dict[str, Any], name: str) -> bool:
    value = wire.get(name, False)
    if not isinstance(value, bool):
        raise MalformedTokenError(f"facts field {name} must be boolean")
    return value


def facts_from_wire(wire: Any, audience: str) -> Facts:
    """
    Rebuild facts from their wire form, enforcing the variant invariants:
    exactly one of key/salt, ``passwordProtected`` iff salt, ``restricted``
    iff the audience is not the wildcard.
    """
    if not isinstance(wire, dict) or "iv" not in wire:
        raise MalformedTokenError("facts missing iv")

    iv = b64decode(wire["iv"])
    has_key = "key" in wire
    has_salt = "salt" in wire
    password_protected = _flag(wire, "passwordProtected")
    restricted = _flag(wire, "restricted")

    if has_key == has_salt:
        raise MalformedTokenError("facts must carry exactly one of key or salt")
    if password_protected != has_salt:
        raise MalformedTokenError("passwordProtected flag disagrees with facts")
    if restricted != (audience != WILDCARD):
        raise MalformedTokenError("restricted flag disagrees with audience")

    if has_salt:
        kdf = wire.get("kdf", DEFAULT_KDF)
        if not isinstance(kdf, str):
            raise MalformedTokenError("kdf must be a string")
        inner = PasswordFacts(iv=iv, salt=b64decode(wire["salt"]), kdf=kdf)
    else:
        inner = OpenFacts(iv=iv, key=b64decode(wire["key"]))

    if restricted:
        return Restricted(audience=audience, inner=inner)
    return inner
