"""
Errors - Rendezvous Error Taxonomy

Transient failures are retried by the handshake loops; the rest are
reported to the caller.
"""

from typing import Optional


class RendezvousError(Exception):
    """Base class for every error raised by this package."""


class TransientIO(RendezvousError):
    """Store or network unavailable, or nothing published yet."""


class FeedStoreError(TransientIO):
    """The feed store gateway rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: int = 0, response_text: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.response_text = response_text


class FeedNotFound(FeedStoreError):
    """No content is published under the requested feed yet."""


class DecodeFailure(RendezvousError):
    """Payload is not a well-formed message."""


class ValidationFailure(RendezvousError):
    """Payload decoded but was rejected by the acceptance predicate."""


class InvalidSeed(RendezvousError):
    """Key material is not a valid secp256k1 private scalar."""


class SigningError(RendezvousError):
    """A write could not be signed."""


class RetryExhausted(RendezvousError):
    """A bounded retry policy ran out of attempts."""

    def __init__(self, message: str, attempts: int, last_error: Optional[Exception] = None):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


class ConfigError(RendezvousError):
    """Configuration file is missing or invalid."""
