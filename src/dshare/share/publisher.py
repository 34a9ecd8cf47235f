"""Producer side: encrypt, upload, sign, compose."""

from __future__ import annotations

import logging
import mimetypes
from pathlib import Path
from typing import Optional

from ..core.models import DEFAULT_MIME_TYPE
from ..network.transport import StorageTransport
from ..security import encryption
from ..security.identity import parse_audience
from ..security.kdf import DEFAULT_KDF
from ..security.session import ClientContext
from ..token import codec
from ..token.facts import facts_from_encryption
from . import link as share_link

logger = logging.getLogger(__name__)


class SharePublisher:
    """
    Turns plaintext into a share URL.

    The key material produced by the encryption engine goes straight into
    the token facts; the publisher does not keep it.
    """

    def __init__(self, context: ClientContext, transport: StorageTransport, base_url: str):
        self.context = context
        self.transport = transport
        self.base_url = base_url

    def publish(
        self,
        data: bytes,
        filename: str,
        mime_type: Optional[str] = None,
        password: Optional[str] = None,
        audience: Optional[str] = None,
        expiration: codec.Expiration = None,
        kdf: str = DEFAULT_KDF,
    ) -> str:
        aud = parse_audience(audience)
        mime_type = mime_type or DEFAULT_MIME_TYPE

        result = encryption.encrypt(data, password or None, kdf=kdf)
        locator = self.transport.upload(result.ciphertext, f"encrypted-{filename}")

        facts = facts_from_encryption(result, aud)
        token = codec.create_token(
            facts,
            self.context.identity,
            audience=aud,
            expiration=expiration,
            scope=locator,
        )
        logger.info(
            "shared %s as %s (password=%s, restricted=%s)",
            filename,
            locator,
            result.password_protected,
            facts.restricted,
        )
        return share_link.compose(locator, token, filename, mime_type, base_url=self.base_url)

    def publish_file(self, path: str | Path, **kwargs) -> str:
        path = Path(path).expanduser()
        mime_type = kwargs.pop("mime_type", None) or mimetypes.guess_type(path.name)[0]
        return self.publish(path.read_bytes(), path.name, mime_type=mime_type, **kwargs)
