"""Small helper to build a dshare app context for the CLI."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

from dshare.config import Settings, load_settings
from dshare.network.transport import GatewayTransport, LocalTransport, StorageTransport
from dshare.security.session import ClientContext


@dataclass
class AppContext:
    """Container for runtime objects the commands need."""

    settings: Settings
    client: ClientContext
    transport: StorageTransport


def build_transport(settings: Settings) -> StorageTransport:
    # A configured storage root means offline, on-disk blobs.
    if settings.storage_root:
        return LocalTransport(settings.storage_root)
    return GatewayTransport(
        gateways=settings.gateways,
        upload_endpoints=settings.upload_endpoints,
        timeout=settings.http_timeout,
    )


def build_context(
    settings: Optional[Settings] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> AppContext:
    """
    Load settings and wire the client context and storage transport.

    The issuer identity is not created here; :class:`ClientContext` loads it
    from the keyring service in the settings (or creates and stores it) the
    first time something needs it.
    """
    settings = settings or load_settings(environ)
    client = ClientContext(keyring_service=settings.keyring_service)
    return AppContext(settings=settings, client=client, transport=build_transport(settings))
