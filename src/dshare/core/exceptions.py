"""
Exceptions for dshare
Every failure a viewer or sharer can hit maps to one of these, so the CLI
has a single place to turn errors into human-readable categories.
Messages never carry key material or signature internals.
"""


class DShareError(Exception):
    # general container for errors
    category = "Error"
    retryable = False

    def __init__(self, message: str | None = None):
        super().__init__(message or self.category)


class MalformedTokenError(DShareError):
    # raised when a token cannot be decoded into a token shape
    category = "Invalid link"


class TamperedError(DShareError):
    # raised when the token signature does not verify
    category = "Link has been tampered with"

    def __init__(self, message: str | None = None):
        # never say which part was altered
        super().__init__("tampered")


class ExpiredError(DShareError):
    # raised when the token (or legacy link) is past its expiration
    category = "Link expired"


class UnauthorizedError(DShareError):
    # raised when the viewer identity does not match the token audience
    category = "Not authorized"


class DecryptionError(DShareError):
    # raised on any AEAD failure: wrong key, wrong password or corrupted data
    category = "Decryption failed"

    def __init__(self, message: str | None = None):
        # wrong password and corruption must look identical
        super().__init__("decryption failed")


class MissingParametersError(DShareError):
    # raised when a share URL lacks the locator or the token
    category = "Missing required parameters"


class TransportError(DShareError):
    # raised when storage upload/download fails on every endpoint
    category = "Storage unavailable"
    retryable = True


class RateLimitedError(DShareError):
    # raised when password attempts come faster than the backoff allows
    category = "Too many attempts"
    retryable = True

    def __init__(self, retry_after: float):
        self.retry_after = retry_after
        super().__init__(f"try again in {retry_after:.1f}s")


class ConfigurationError(DShareError):
    # raised when environment settings cannot be parsed
    category = "Configuration error"
