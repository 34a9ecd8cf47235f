"""
Storage transports for ciphertext blobs.

Commands every transport supports:
  upload(data, name) -> locator
  download(locator)  -> bytes

GatewayTransport talks HTTP to an IPFS-style add endpoint and fetches back
through an ordered list of content-addressed gateways; the first gateway
that answers wins. LocalTransport keeps blobs on disk under their SHA-256,
which is enough to run the whole share/view flow offline.

Transports only ever see ciphertext.
"""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Optional, Protocol, Sequence

import requests

from ..core.exceptions import TransportError
from ..core.hashing import calculate_sha256, calculate_sha256_bytes

logger = logging.getLogger(__name__)

DEFAULT_GATEWAYS = (
    "https://{cid}.ipfs.w3s.link",
    "https://{cid}.ipfs.dweb.link",
    "https://ipfs.io/ipfs/{cid}",
    "https://gateway.pinata.cloud/ipfs/{cid}",
)
DEFAULT_UPLOAD_ENDPOINTS = ("https://ipfs.infura.io:5001/api/v0/add",)
DEFAULT_TIMEOUT = 30.0

# CIDs and hex digests only; anything else could escape a gateway template or the blob root
_LOCATOR_RE = re.compile(r"^[A-Za-z0-9]+$")


class StorageTransport(Protocol):
    def upload(self, data: bytes, name: str) -> str: ...

    def download(self, locator: str) -> bytes: ...


def _check_locator(locator: str) -> None:
    if not isinstance(locator, str) or not _LOCATOR_RE.match(locator):
        raise TransportError("invalid storage locator")


class GatewayTransport:
    def __init__(
        self,
        gateways: Sequence[str] = DEFAULT_GATEWAYS,
        upload_endpoints: Sequence[str] = DEFAULT_UPLOAD_ENDPOINTS,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        if not gateways:
            raise ValueError("at least one gateway is required")
        self.gateways = list(gateways)
        self.upload_endpoints = list(upload_endpoints)
        self.timeout = timeout
        self.session = session or requests.Session()

    def upload(self, data: bytes, name: str) -> str:
        """
        POST ``data`` as multipart ``file`` to each upload endpoint in turn.
        The endpoint replies with JSON carrying the CID under ``Hash``.
        """
        for endpoint in self.upload_endpoints:
            try:
                response = self.session.post(
                    endpoint,
                    files={"file": (name, data, "application/octet-stream")},
                    timeout=self.timeout,
                )
                response.raise_for_status()
                locator = response.json()["Hash"]
            except (requests.RequestException, ValueError, KeyError, TypeError) as exc:
                logger.warning("upload to %s failed: %s", endpoint, type(exc).__name__)
                continue
            logger.info("uploaded %d bytes as %s via %s", len(data), locator, endpoint)
            return locator
        raise TransportError("Upload failed on every storage endpoint")

    def download(self, locator: str) -> bytes:
        _check_locator(locator)
        for template in self.gateways:
            url = template.format(cid=locator)
            try:
                response = self.session.get(url, timeout=self.timeout)
            except requests.RequestException as exc:
                logger.debug("gateway %s failed: %s", url, type(exc).__name__)
                continue
            if response.ok:
                logger.info("fetched %s from %s", locator, url)
                return response.content
            logger.debug("gateway %s answered %s", url, response.status_code)
        raise TransportError("Failed to fetch file from any gateway")


class LocalTransport:
    """Content-addressed blob store on the local filesystem."""

    def __init__(self, root_path: Optional[str | Path] = None):
        self.root = (
            Path(root_path).expanduser() if root_path else Path.home() / ".dshare"
        )
        self.blob_root.mkdir(parents=True, exist_ok=True)

    @property
    def blob_root(self) -> Path:
        return self.root / "blobs"

    def blob_path(self, locator: str) -> Path:
        return self.blob_root / locator

    def upload(self, data: bytes, name: str) -> str:
        locator = calculate_sha256_bytes(data)
        destination = self.blob_path(locator)
        try:
            if not destination.exists():
                destination.write_bytes(data)
        except OSError as exc:
            raise TransportError("Could not write blob") from exc
        logger.info("stored %s (%s, %d bytes)", locator, name, len(data))
        return locator

    def download(self, locator: str) -> bytes:
        _check_locator(locator)
        path = self.blob_path(locator)
        if not path.is_file():
            raise TransportError("Blob not found")
        if calculate_sha256(path) != locator:
            # a blob that no longer matches its address is as good as missing
            raise TransportError("Blob failed integrity check")
        return path.read_bytes()
