"""Client context owning the issuer identity used to sign share tokens.

A :class:`ClientContext` is created once and passed to every operation that
needs to sign. The identity behind it is created lazily on first use:
loaded from the OS keystore when a keyring service is configured, otherwise
generated fresh. An identity that could not be stored is still usable but
``persistent`` stays False, and it is gone when the process exits.
Initialization is guarded by a lock, so concurrent first callers all get the
same identity. Once established the identity is only read.
"""
from __future__ import annotations

import logging
import threading
from typing import Optional

from .identity import Identity
from .keystore import save_key, load_key, delete_key, assess_keyring_backend

logger = logging.getLogger(__name__)

KEYRING_ACCOUNT = "issuer"


class ClientContext:
    def __init__(self, keyring_service: Optional[str] = None, identity: Optional[Identity] = None):
        self.keyring_service = keyring_service
        self._identity: Optional[Identity] = identity
        self._lock = threading.Lock()
        # True once the identity is known to be stored in the keyring
        self.persistent = False

    @property
    def identity(self) -> Identity:
        """Return the issuer identity, creating it on first access."""
        if self._identity is not None:
            return self._identity
        with self._lock:
            if self._identity is None:
                self._identity = self._establish_identity()
        return self._identity

    def _establish_identity(self) -> Identity:
        if self.keyring_service:
            try:
                seed = load_key(self.keyring_service, KEYRING_ACCOUNT)
            except RuntimeError as exc:
                logger.warning("keyring unavailable, identity will not outlive this process: %s", exc)
                return Identity.generate()
            if seed is not None:
                try:
                    identity = Identity.from_seed(seed)
                except ValueError:
                    logger.warning("stored issuer seed is invalid; generating a new identity")
                else:
                    logger.info("loaded issuer identity %s from keyring", identity.did)
                    self.persistent = True
                    return identity

        identity = Identity.generate()
        logger.info("generated issuer identity %s", identity.did)
        if self.keyring_service:
            try:
                self.persist_to_keyring(identity)
            except RuntimeError as exc:
                logger.warning("identity will not outlive this process: %s", exc)
        return identity

    def persist_to_keyring(self, identity: Identity) -> None:
        """
        Persist ``identity`` to the OS keystore under the configured service.
        Raises RuntimeError if no service is configured or the backend looks insecure.
        """
        if not self.keyring_service:
            raise RuntimeError("No keyring service configured")
        # Check keyring backend security heuristics before persisting. avoids storing keys in plaintext
        secure, msg = assess_keyring_backend()
        if not secure:
            raise RuntimeError(f"refusing to persist issuer identity to OS keystore: {msg}")
        save_key(self.keyring_service, KEYRING_ACCOUNT, identity.seed())
        self.persistent = True

    def forget(self) -> None:
        """Drop the in-memory identity and any persisted copy."""
        with self._lock:
            self._identity = None
            self.persistent = False
            if self.keyring_service:
                delete_key(self.keyring_service, KEYRING_ACCOUNT)


_default_context: Optional[ClientContext] = None
_default_lock = threading.Lock()


def get_default_context(keyring_service: Optional[str] = None) -> ClientContext:
    """Return the process-wide context, creating it at most once."""
    global _default_context
    if _default_context is None:
        with _default_lock:
            if _default_context is None:
                _default_context = ClientContext(keyring_service=keyring_service)
    return _default_context
