"""Share-link composition and parsing.

Current links::

    <base>/view?cid=<locator>&d=<token>&filename=<name>&type=<mime>

Legacy links (still accepted so already-issued URLs keep working) carry the
raw key and iv instead of a token, plus an unsigned ``proof`` and an
optional ``exp`` in unix seconds::

    <base>/view?cid=...&key=<b64>&iv=<b64>&proof=<b64 json>&filename=...&type=...&exp=...
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import time
from typing import Optional, Union
from urllib.parse import parse_qs, urlencode, urlsplit

from ..core.exceptions import ExpiredError, MissingParametersError
from ..core.models import DEFAULT_FILENAME, DEFAULT_MIME_TYPE, LegacyShareLink, ShareLink

logger = logging.getLogger(__name__)

VIEW_PATH = "/view"


def compose(
    locator: str,
    encoded_token: str,
    filename: str,
    mime_type: str,
    base_url: str = "http://localhost:5173",
) -> str:
    """Join the locator, token and display metadata into one URL. No validation."""
    params = urlencode(
        {
            "cid": locator,
            "d": encoded_token,
            "filename": filename,
            "type": mime_type,
        }
    )
    return f"{base_url.rstrip('/')}{VIEW_PATH}?{params}"


def compose_legacy(
    locator: str,
    key: bytes,
    iv: bytes,
    proof: str,
    filename: str,
    mime_type: str,
    expires_at: Optional[int] = None,
    base_url: str = "http://localhost:5173",
) -> str:
    """Build a link in the old raw-key format. Kept for tooling and tests."""
    params = {
        "cid": locator,
        "key": base64.b64encode(key).decode("ascii"),
        "iv": base64.b64encode(iv).decode("ascii"),
        "proof": proof,
        "filename": filename,
        "type": mime_type,
    }
    if expires_at is not None:
        params["exp"] = str(int(expires_at))
    return f"{base_url.rstrip('/')}{VIEW_PATH}?{urlencode(params)}"


def _first(query: dict, name: str) -> Optional[str]:
    values = query.get(name)
    if not values or not values[0]:
        return None
    return values[0]


def _decode_bytes(value: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MissingParametersError("Missing required parameters") from exc


def parse(url: str) -> Union[ShareLink, LegacyShareLink]:
    """Split a share URL back into its parts.

    Raises :class:`MissingParametersError` when the locator is absent, or
    when neither a token nor a legacy key/iv pair is present.
    """
    query = parse_qs(urlsplit(url).query, keep_blank_values=True)
    locator = _first(query, "cid")
    token = _first(query, "d")
    filename = _first(query, "filename") or DEFAULT_FILENAME
    mime_type = _first(query, "type") or DEFAULT_MIME_TYPE

    if locator is None:
        raise MissingParametersError("Missing required parameters")

    if token is not None:
        return ShareLink(locator=locator, encoded_token=token, filename=filename, mime_type=mime_type)

    key = _first(query, "key")
    iv = _first(query, "iv")
    if key is None or iv is None:
        raise MissingParametersError("Missing required parameters")

    exp = _first(query, "exp")
    expires_at = None
    if exp is not None:
        try:
            expires_at = int(exp)
        except ValueError as exc:
            raise MissingParametersError("Missing required parameters") from exc

    return LegacyShareLink(
        locator=locator,
        key=_decode_bytes(key),
        iv=_decode_bytes(iv),
        proof=_first(query, "proof"),
        filename=filename,
        mime_type=mime_type,
        expires_at=expires_at,
    )


def encode_legacy_proof(audience: str, expiration: int, scope: str) -> str:
    """Encode a legacy delegation proof: base64 of a JSON string of JSON."""
    proof = json.dumps({"audience": audience, "expiration": expiration, "scope": scope})
    return base64.b64encode(json.dumps(proof).encode("utf-8")).decode("ascii")


def _proof_expiration(proof: str) -> Optional[int]:
    decoded = json.loads(base64.b64decode(proof, validate=True))
    # the proof was JSON-stringified twice on the way in
    if isinstance(decoded, str):
        decoded = json.loads(decoded)
    if not isinstance(decoded, dict):
        return None
    exp = decoded.get("exp", decoded.get("expiration"))
    return int(exp) if exp is not None else None


def check_legacy(link: LegacyShareLink, now: Optional[float] = None) -> None:
    """Apply the expiration checks legacy links support.

    The ``proof`` is unsigned, so it can only ever shorten a link's life; an
    unreadable proof is logged and ignored.
    """
    now = time.time() if now is None else now
    if link.expires_at is not None and now > link.expires_at:
        raise ExpiredError("This link has expired")
    if link.proof:
        try:
            exp = _proof_expiration(link.proof)
        except (binascii.Error, ValueError, TypeError) as exc:
            logger.warning("could not read legacy proof: %s", type(exc).__name__)
            return
        if exp is not None and now > exp:
            raise ExpiredError("This link has expired")
