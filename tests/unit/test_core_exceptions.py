"""Unit tests for the error taxonomy."""

import pytest
from dshare.core import exceptions as exc


@pytest.mark.parametrize(
    "cls",
    [
        exc.MalformedTokenError,
        exc.TamperedError,
        exc.ExpiredError,
        exc.UnauthorizedError,
        exc.DecryptionError,
        exc.MissingParametersError,
        exc.TransportError,
        exc.ConfigurationError,
    ],
)
def test_all_errors_share_base_and_category(cls):
    err = cls()
    assert isinstance(err, exc.DShareError)
    assert err.category
    assert str(err)


def test_tampered_message_is_fixed():
    assert str(exc.TamperedError("signature on fct.key")) == "tampered"


def test_decryption_message_is_fixed():
    assert str(exc.DecryptionError("wrong password")) == "decryption failed"


def test_only_transport_and_rate_limit_are_retryable():
    assert exc.TransportError.retryable
    assert exc.RateLimitedError(1.0).retryable
    assert not exc.TamperedError.retryable
    assert not exc.DecryptionError.retryable
