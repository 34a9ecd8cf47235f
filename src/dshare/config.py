"""Environment-driven settings for the share client."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from .core.exceptions import ConfigurationError
from .network.identity import DEFAULT_CHALLENGE_TIMEOUT
from .network.transport import DEFAULT_GATEWAYS, DEFAULT_TIMEOUT, DEFAULT_UPLOAD_ENDPOINTS

DEFAULT_BASE_URL = "http://localhost:5173"
DEFAULT_KEYRING_SERVICE = "dshare"


@dataclass(frozen=True)
class Settings:
    base_url: str = DEFAULT_BASE_URL
    gateways: Tuple[str, ...] = DEFAULT_GATEWAYS
    upload_endpoints: Tuple[str, ...] = DEFAULT_UPLOAD_ENDPOINTS
    storage_root: Optional[str] = None
    keyring_service: Optional[str] = DEFAULT_KEYRING_SERVICE
    http_timeout: float = DEFAULT_TIMEOUT
    log_level: int = logging.INFO
    challenge_timeout: float = DEFAULT_CHALLENGE_TIMEOUT


def _split(value: str) -> Tuple[str, ...]:
    return tuple(part.strip() for part in value.split(",") if part.strip())


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build :class:`Settings` from ``DSHARE_*`` environment variables.

    - ``DSHARE_BASE_URL``: origin used when composing links
    - ``DSHARE_GATEWAYS``: comma-separated gateway templates containing ``{cid}``
    - ``DSHARE_UPLOAD_ENDPOINTS``: comma-separated upload URLs
    - ``DSHARE_STORAGE_ROOT``: when set, blobs go to a local directory instead
    - ``DSHARE_KEYRING_SERVICE``: keyring service holding the issuer identity
      (default ``dshare``); ``none`` keeps the identity in memory only
    - ``DSHARE_HTTP_TIMEOUT``, ``DSHARE_CHALLENGE_TIMEOUT``: seconds
    - ``DSHARE_LOG_LEVEL``: logging level name
    """
    env = os.environ if environ is None else environ
    kwargs = {}

    if env.get("DSHARE_BASE_URL"):
        kwargs["base_url"] = env["DSHARE_BASE_URL"]

    if env.get("DSHARE_GATEWAYS"):
        gateways = _split(env["DSHARE_GATEWAYS"])
        if not gateways or any("{cid}" not in g for g in gateways):
            raise ConfigurationError("DSHARE_GATEWAYS entries must contain {cid}")
        kwargs["gateways"] = gateways

    if env.get("DSHARE_UPLOAD_ENDPOINTS"):
        kwargs["upload_endpoints"] = _split(env["DSHARE_UPLOAD_ENDPOINTS"])

    if env.get("DSHARE_STORAGE_ROOT"):
        kwargs["storage_root"] = env["DSHARE_STORAGE_ROOT"]

    if env.get("DSHARE_KEYRING_SERVICE"):
        service = env["DSHARE_KEYRING_SERVICE"].strip()
        kwargs["keyring_service"] = None if service.lower() in ("", "none") else service

    for var, name in (("DSHARE_HTTP_TIMEOUT", "http_timeout"), ("DSHARE_CHALLENGE_TIMEOUT", "challenge_timeout")):
        if env.get(var):
            try:
                value = float(env[var])
            except ValueError as exc:
                raise ConfigurationError(f"{var} must be a number") from exc
            if value <= 0:
                raise ConfigurationError(f"{var} must be positive")
            kwargs[name] = value

    if env.get("DSHARE_LOG_LEVEL"):
        level = logging.getLevelName(env["DSHARE_LOG_LEVEL"].upper())
        if not isinstance(level, int):
            raise ConfigurationError("DSHARE_LOG_LEVEL is not a logging level")
        kwargs["log_level"] = level

    return Settings(**kwargs)
