"""
Delegation token codec.

A token is three base64url segments, ``header.payload.signature``, where the
signature is Ed25519 over the first two segments as ASCII. The payload::

    {
      "iss": "did:key:z...",                 signing identity
      "aud": "*" | "did:...",                anyone, or one recipient
      "att": [{"with": "storage://<cid>", "can": "share/read"}],
      "exp": 1767225600 | null,              unix seconds, null = never
      "nnc": "<hex>",                        nonce, keeps tokens unique
      "fct": {...}                           facts, see dshare.token.facts
    }

Verification runs as a fixed sequence of stages. Each stage only accepts the
object produced by the one before it:

    decode_token      -> DecodedToken      (MalformedTokenError)
    verify_signature  -> SignedToken       (TamperedError)
    check_expiration  -> LiveToken         (ExpiredError)
    check_audience    -> AuthorizedToken   (UnauthorizedError)

Nothing from the payload is trusted before the signature stage.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from ..core.exceptions import (
    ExpiredError,
    MalformedTokenError,
    TamperedError,
    UnauthorizedError,
)
from ..core.models import Facts
from ..security import identity as ident
from ..security.identity import WILDCARD, Identity, parse_audience
from .facts import facts_from_wire, facts_to_wire

logger = logging.getLogger(__name__)

HEADER = {"alg": "EdDSA", "typ": "JWT", "ucv": "0.10.0"}
CAPABILITY = "share/read"
RESOURCE_PREFIX = "storage://"
DEFAULT_LIFETIME = 365 * 24 * 60 * 60


class _Never:
    def __repr__(self):
        return "NEVER"


# Pass as ``expiration`` for a token that never expires.
NEVER = _Never()

Expiration = Union[int, float, datetime, _Never, None]

_STAGE_KEY = object()


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(segment: str) -> bytes:
    padded = segment + "=" * (-len(segment) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


def _canonical_json(obj: Dict[str, Any]) -> bytes:
    return json.dumps(obj, separators=(",", ":"), sort_keys=True).encode("utf-8")


def _resolve_expiration(expiration: Expiration, now: float) -> Optional[int]:
    if expiration is NEVER:
        return None
    if expiration is None:
        return int(now) + DEFAULT_LIFETIME
    if isinstance(expiration, datetime):
        return int(expiration.timestamp())
    return int(expiration)


# ------------------------------------------------------------------
# Encoding
# ------------------------------------------------------------------


def create_token(
    facts: Facts,
    issuer: Identity,
    audience: Optional[str] = None,
    expiration: Expiration = None,
    scope: Optional[str] = None,
    now: Optional[float] = None,
) -> str:
    """
    Sign ``facts`` into an encoded delegation token.

    ``audience`` of ``None`` means anyone; otherwise it must be a DID and
    ``facts`` must already be wrapped in :class:`Restricted` for that DID
    (see :func:`dshare.token.facts.facts_from_encryption`). ``expiration``
    defaults to one year from ``now``; pass :data:`NEVER` to disable it.
    ``scope`` binds the capability to one storage locator.
    """
    now = time.time() if now is None else now
    aud = parse_audience(audience)
    if facts.restricted != (aud != WILDCARD):
        raise ValueError("restricted facts require a specific audience and vice versa")
    if facts.restricted and facts.audience != aud:
        raise ValueError("facts are restricted to a different audience")

    payload = {
        "iss": issuer.did,
        "aud": aud,
        "att": [{"with": RESOURCE_PREFIX + (scope or "*"), "can": CAPABILITY}],
        "exp": _resolve_expiration(expiration, now),
        "nnc": os.urandom(8).hex(),
        "fct": facts_to_wire(facts),
    }
    signing_input = _b64url_encode(_canonical_json(HEADER)) + "." + _b64url_encode(_canonical_json(payload))
    signature = issuer.sign(signing_input.encode("ascii"))
    logger.debug("issued token from %s to %s (exp=%s)", issuer.did, aud, payload["exp"])
    return signing_input + "." + _b64url_encode(signature)


# ------------------------------------------------------------------
# Verification stages
# ------------------------------------------------------------------


@dataclass(frozen=True)
class DecodedToken:
    signing_input: bytes
    signature: bytes
    encoded_signature: str
    header: Dict[str, Any]
    payload: Dict[str, Any]
    _key: object = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        if self._key is not _STAGE_KEY:
            raise TypeError("DecodedToken is produced by decode_token()")

    @property
    def issuer(self) -> str:
        return self.payload["iss"]

    @property
    def audience(self) -> str:
        return self.payload["aud"]

    @property
    def expiration(self) -> Optional[int]:
        return self.payload["exp"]

    @property
    def capabilities(self) -> List[Dict[str, Any]]:
        return self.payload["att"]


@dataclass(frozen=True)
class SignedToken:
    """A token whose signature verified; facts are parsed from here on."""

    token: DecodedToken
    facts: Facts
    _key: object = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        if self._key is not _STAGE_KEY:
            raise TypeError("SignedToken is produced by verify_signature()")


@dataclass(frozen=True)
class LiveToken:
    token: DecodedToken
    facts: Facts
    _key: object = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        if self._key is not _STAGE_KEY:
            raise TypeError("LiveToken is produced by check_expiration()")

    @property
    def restricted(self) -> bool:
        return self.facts.restricted


@dataclass(frozen=True)
class AuthorizedToken:
    token: DecodedToken
    facts: Facts
    _key: object = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        if self._key is not _STAGE_KEY:
            raise TypeError("AuthorizedToken is produced by check_audience()")

    def grants(self, locator: str) -> bool:
        """True if a ``share/read`` capability covers ``locator``."""
        for cap in self.token.capabilities:
            if cap.get("can") != CAPABILITY:
                continue
            if cap.get("with") in (RESOURCE_PREFIX + "*", RESOURCE_PREFIX + locator):
                return True
        return False


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise MalformedTokenError(message)


def decode_token(encoded: str) -> DecodedToken:
    """Stage 1: split and parse the token without trusting any of it."""
    _require(isinstance(encoded, str), "token must be text")
    # a stray "." can only land in the signature segment, where it fails verification
    parts = encoded.strip().split(".", 2)
    _require(len(parts) == 3 and all(parts), "token must have three segments")
    try:
        header = json.loads(_b64url_decode(parts[0]))
        payload = json.loads(_b64url_decode(parts[1]))
    except (binascii.Error, ValueError, UnicodeDecodeError) as exc:
        raise MalformedTokenError("token segments are not base64url JSON") from exc
    try:
        signature = _b64url_decode(parts[2])
    except (binascii.Error, ValueError):
        signature = b""

    _require(isinstance(header, dict) and header.get("alg") == HEADER["alg"], "unsupported token header")
    _require(isinstance(payload, dict), "token payload must be an object")
    _require(isinstance(payload.get("iss"), str), "token has no issuer")
    _require(isinstance(payload.get("aud"), str), "token has no audience")
    exp = payload.get("exp")
    _require(exp is None or (isinstance(exp, int) and not isinstance(exp, bool)), "token expiration must be an integer or null")
    _require(isinstance(payload.get("att"), list) and all(isinstance(c, dict) for c in payload["att"]), "token has no capabilities")
    _require(isinstance(payload.get("fct"), dict), "token has no facts")

    return DecodedToken(
        signing_input=(parts[0] + "." + parts[1]).encode("ascii"),
        signature=signature,
        encoded_signature=parts[2],
        header=header,
        payload=payload,
        _key=_STAGE_KEY,
    )


def verify_signature(decoded: DecodedToken) -> SignedToken:
    """Stage 2: verify the signature against the embedded issuer DID."""
    if not isinstance(decoded, DecodedToken):
        raise TypeError("verify_signature() needs a DecodedToken")
    # the segment must be the one encoding of the signature bytes, so no two texts verify
    canonical = _b64url_encode(decoded.signature) == decoded.encoded_signature
    if not canonical or not ident.verify_signature(decoded.issuer, decoded.signature, decoded.signing_input):
        logger.warning("rejected token with invalid signature")
        raise TamperedError()
    facts = facts_from_wire(decoded.payload["fct"], decoded.audience)
    return SignedToken(token=decoded, facts=facts, _key=_STAGE_KEY)


def check_expiration(signed: SignedToken, now: Optional[float] = None) -> LiveToken:
    """Stage 3: reject tokens past their expiration. ``null`` never expires."""
    if not isinstance(signed, SignedToken):
        raise TypeError("check_expiration() needs a SignedToken")
    exp = signed.token.expiration
    now = time.time() if now is None else now
    if exp is not None and now > exp:
        raise ExpiredError("This link has expired")
    return LiveToken(token=signed.token, facts=signed.facts, _key=_STAGE_KEY)


def check_audience(live: LiveToken, viewer_identity: Optional[str] = None) -> AuthorizedToken:
    """Stage 4: restricted tokens only open for the audience identity."""
    if not isinstance(live, LiveToken):
        raise TypeError("check_audience() needs a LiveToken")
    if live.restricted:
        if viewer_identity is None:
            raise UnauthorizedError("This link is restricted to a specific identity")
        if viewer_identity != live.token.audience:
            raise UnauthorizedError("This link was not shared with your identity")
    if not any(c.get("can") == CAPABILITY for c in live.token.capabilities):
        raise UnauthorizedError("Token does not grant read access")
    return AuthorizedToken(token=live.token, facts=live.facts, _key=_STAGE_KEY)


def verify_token(
    encoded: str,
    viewer_identity: Optional[str] = None,
    now: Optional[float] = None,
) -> AuthorizedToken:
    """Run every stage in order."""
    decoded = decode_token(encoded)
    signed = verify_signature(decoded)
    live = check_expiration(signed, now=now)
    return check_audience(live, viewer_identity)


def extract_token(
    encoded: str,
    viewer_identity: Optional[str] = None,
    now: Optional[float] = None,
) -> Facts:
    """Verify ``encoded`` and return its facts; raises on the first failing stage."""
    return verify_token(encoded, viewer_identity=viewer_identity, now=now).facts
