"""Error types raised by the quote update subsystem."""

from typing import Optional


class FetchError(Exception):
    """A single quote lookup failed. Retryable on the next cycle."""


class TransportError(FetchError):
    """Network failure, timeout or non-2xx HTTP response."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ProviderError(FetchError):
    """The quote provider answered with an error payload."""


class InvalidDataError(FetchError):
    """The payload was malformed or the numbers made no sense."""


class PersistenceError(Exception):
    """Reading or writing the local quote store failed."""


class RetryableError(Exception):
    """A cycle failed unexpectedly; the scheduler should try again later."""
