"""Viewer-side orchestration of a share link.

    FETCHING -> TOKEN_VERIFYING -> NEEDS_IDENTITY_CHALLENGE -> NEEDS_PASSWORD -> DECRYPTING -> SHOWN
                                \\-> NEEDS_PASSWORD ------------/            /
                                 \\-> READY --------------------------------/
    any verification failure -> FAILED

A wrong password goes back to NEEDS_PASSWORD and bumps ``failed_attempts``;
after a few free attempts further tries are throttled with an exponential
delay. Every other failure is terminal for the session.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional, Union

from ..core.exceptions import (
    DecryptionError,
    DShareError,
    RateLimitedError,
    UnauthorizedError,
)
from ..core.models import (
    LegacyShareLink,
    OpenFacts,
    PasswordFacts,
    ShareLink,
    ViewState,
    unwrap_facts,
)
from ..network.identity import DEFAULT_CHALLENGE_TIMEOUT, IdentityVerifier, challenge_identity
from ..network.transport import StorageTransport
from ..security import encryption
from ..token import codec
from . import link as share_link

logger = logging.getLogger(__name__)


class ShareViewer:
    def __init__(
        self,
        link: Union[str, ShareLink, LegacyShareLink],
        transport: StorageTransport,
        clock: Callable[[], float] = time.time,
        free_attempts: int = 3,
        backoff_base: float = 1.0,
        backoff_max: float = 60.0,
    ):
        self._raw_link = link
        self.link: Optional[Union[ShareLink, LegacyShareLink]] = None
        self.transport = transport
        self.clock = clock
        self.free_attempts = free_attempts
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max

        self.state = ViewState.FETCHING
        self.history: List[ViewState] = [ViewState.FETCHING]
        self.error: Optional[DShareError] = None
        self.failed_attempts = 0
        self.plaintext: Optional[bytes] = None

        self._ciphertext: Optional[bytes] = None
        self._live: Optional[codec.LiveToken] = None
        self._params: Optional[Union[OpenFacts, PasswordFacts]] = None
        self._last_failure: Optional[float] = None

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------

    def _enter(self, state: ViewState) -> None:
        self.state = state
        self.history.append(state)

    def _fail(self, error: DShareError) -> ViewState:
        logger.info("view failed: %s", error.category)
        self.error = error
        self._params = None
        self._enter(ViewState.FAILED)
        return self.state

    def _require(self, *states: ViewState) -> None:
        if self.state not in states:
            raise RuntimeError(f"not allowed in state {self.state.value}")

    @property
    def filename(self) -> Optional[str]:
        return self.link.filename if self.link else None

    @property
    def mime_type(self) -> Optional[str]:
        return self.link.mime_type if self.link else None

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def load(self) -> ViewState:
        """Fetch the ciphertext and verify the token, stopping at the first challenge."""
        self._require(ViewState.FETCHING)
        try:
            if isinstance(self._raw_link, str):
                self.link = share_link.parse(self._raw_link)
            else:
                self.link = self._raw_link
            self._ciphertext = self.transport.download(self.link.locator)
        except DShareError as exc:
            return self._fail(exc)

        self._enter(ViewState.TOKEN_VERIFYING)
        try:
            if isinstance(self.link, LegacyShareLink):
                share_link.check_legacy(self.link, now=self.clock())
                self._params = OpenFacts(iv=self.link.iv, key=self.link.key)
                return self._after_authorization()

            signed = codec.verify_signature(codec.decode_token(self.link.encoded_token))
            self._live = codec.check_expiration(signed, now=self.clock())
        except DShareError as exc:
            return self._fail(exc)

        if self._live.restricted:
            self._enter(ViewState.NEEDS_IDENTITY_CHALLENGE)
            return self.state
        return self._authorize(None)

    def present_identity(self, viewer_identity: Optional[str]) -> ViewState:
        """Continue a restricted view with an identity that was already verified."""
        self._require(ViewState.NEEDS_IDENTITY_CHALLENGE)
        return self._authorize(viewer_identity)

    def verify_identity(
        self,
        verifier: IdentityVerifier,
        email_or_challenge: str,
        timeout: Optional[float] = DEFAULT_CHALLENGE_TIMEOUT,
    ) -> ViewState:
        """Run the identity challenge with a bounded wait, then continue."""
        self._require(ViewState.NEEDS_IDENTITY_CHALLENGE)
        try:
            did = challenge_identity(verifier, email_or_challenge, timeout=timeout)
        except UnauthorizedError as exc:
            return self._fail(exc)
        return self._authorize(did)

    def _authorize(self, viewer_identity: Optional[str]) -> ViewState:
        try:
            authorized = codec.check_audience(self._live, viewer_identity)
            if not authorized.grants(self.link.locator):
                raise UnauthorizedError("Token does not cover this file")
        except DShareError as exc:
            return self._fail(exc)
        self._params = unwrap_facts(authorized.facts)
        return self._after_authorization()

    def _after_authorization(self) -> ViewState:
        if self._params.password_protected:
            self._enter(ViewState.NEEDS_PASSWORD)
            return self.state
        self._enter(ViewState.READY)
        return self._decrypt_open()

    def _decrypt_open(self) -> ViewState:
        self._enter(ViewState.DECRYPTING)
        try:
            self.plaintext = encryption.decrypt(self._ciphertext, self._params.key, self._params.iv)
        except DecryptionError as exc:
            return self._fail(exc)
        self._enter(ViewState.SHOWN)
        self._params = None
        return self.state

    def retry_after(self) -> float:
        """Seconds until the next password attempt is accepted (0 if allowed now)."""
        if self.failed_attempts < self.free_attempts or self._last_failure is None:
            return 0.0
        exponent = self.failed_attempts - self.free_attempts
        delay = min(self.backoff_base * (2 ** exponent), self.backoff_max)
        return max(0.0, self._last_failure + delay - self.clock())

    def submit_password(self, password: str) -> ViewState:
        """
        Try ``password``. Success moves to SHOWN; a wrong password returns to
        NEEDS_PASSWORD with ``failed_attempts`` incremented.
        """
        self._require(ViewState.NEEDS_PASSWORD)
        wait = self.retry_after()
        if wait > 0:
            raise RateLimitedError(wait)

        self._enter(ViewState.DECRYPTING)
        params = self._params
        try:
            self.plaintext = encryption.decrypt_with_password(
                self._ciphertext, password, params.salt, params.iv, kdf=params.kdf
            )
        except DecryptionError as exc:
            self.failed_attempts += 1
            self._last_failure = self.clock()
            self.error = exc
            logger.info("wrong password (attempt %d)", self.failed_attempts)
            self._enter(ViewState.NEEDS_PASSWORD)
            return self.state

        self.error = None
        self._params = None
        self._enter(ViewState.SHOWN)
        return self.state

    def result(self) -> bytes:
        """Return the plaintext, or raise the error that stopped the view."""
        if self.state is ViewState.SHOWN:
            return self.plaintext
        if self.state is ViewState.FAILED:
            raise self.error
        raise RuntimeError(f"view is waiting in state {self.state.value}")
