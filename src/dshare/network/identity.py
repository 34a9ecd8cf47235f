"""Viewer identity verification.

A verifier turns a challenge (an email address, a login code, a nonce) into
a DID the viewer has proven control of. Real deployments plug in an
account/email service; :class:`LocalKeyVerifier` covers the case where the
viewer holds the audience key on this machine.

Verification may need out-of-band user action, so :func:`challenge_identity`
bounds the wait. Any failure, timeout or empty answer is reported as
:class:`UnauthorizedError`.
"""
from __future__ import annotations

import logging
import threading
from typing import Optional, Protocol

from ..core.exceptions import UnauthorizedError
from ..security.identity import Identity, is_did

logger = logging.getLogger(__name__)

DEFAULT_CHALLENGE_TIMEOUT = 120.0


class IdentityVerifier(Protocol):
    def verify_viewer_identity(self, email_or_challenge: str) -> str: ...


class LocalKeyVerifier:
    """
    Answers with the DID of an identity held in this process.

    Holding the private key is the proof, so there is nothing to exchange and
    this verifier never fails. It is for a viewer opening shares addressed to
    its own keyring identity, not for checking someone else.
    """

    def __init__(self, identity: Identity):
        self.identity = identity

    def verify_viewer_identity(self, email_or_challenge: str) -> str:
        return self.identity.did


def challenge_identity(
    verifier: IdentityVerifier,
    email_or_challenge: str,
    timeout: Optional[float] = DEFAULT_CHALLENGE_TIMEOUT,
) -> str:
    """
    Run ``verifier`` with a bounded wait and return the verified DID.

    The verifier runs in a daemon thread. After a timeout it is abandoned,
    not cancelled, and it does not keep the process alive at exit.
    """
    outcome = {}

    def run():
        try:
            outcome["did"] = verifier.verify_viewer_identity(email_or_challenge)
        except Exception as exc:  # any verifier failure denies access
            outcome["error"] = exc

    worker = threading.Thread(target=run, name="identity-challenge", daemon=True)
    worker.start()
    worker.join(timeout)
    if worker.is_alive():
        logger.warning("identity verification timed out after %ss", timeout)
        raise UnauthorizedError("Identity verification timed out")

    error = outcome.get("error")
    if isinstance(error, UnauthorizedError):
        raise error
    if error is not None:
        logger.warning("identity verification failed: %s", type(error).__name__)
        raise UnauthorizedError("Identity verification failed") from error

    did = outcome.get("did")
    if not isinstance(did, str) or not is_did(did):
        raise UnauthorizedError("Identity verification returned no identity")
    return did
