"""Exception hierarchy shared by the tonsend submission pipeline."""

from __future__ import annotations


class TonSendError(RuntimeError):
    """Base class for every failure raised by tonsend."""


class NetworkError(TonSendError):
    """Raised when the remote service is unreachable or returns malformed data."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedResponse(NetworkError):
    """Raised when a successful HTTP response does not carry valid JSON."""


class RateLimited(TonSendError):
    """Raised when the service keeps answering HTTP 429 after every retry."""

    def __init__(self, attempts: int, retry_after: float | None = None) -> None:
        super().__init__(f"Rate limited by remote service after {attempts} attempt(s)")
        self.attempts = attempts
        self.retry_after = retry_after


class RemoteRejected(TonSendError):
    """Raised when the service answers with ``ok: false`` or a non-2xx status."""

    def __init__(
        self, message: str, status_code: int | None = None, body: str | None = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body


class EstimationFailed(RemoteRejected):
    """Raised when a fee estimate response cannot be interpreted."""


class FeeComputationError(TonSendError):
    """Raised when fee components are negative or overflow the fee range."""


class EncodingError(TonSendError):
    """Raised when a message body cannot be built or parsed."""


class InsufficientBalance(TonSendError):
    """Raised when the wallet balance does not cover the requested amount."""

    def __init__(self, balance: int, requested: int) -> None:
        super().__init__(
            f"Insufficient balance: requested {requested} nanotons, available {balance}"
        )
        self.balance = balance
        self.requested = requested


class BroadcastTimeout(NetworkError):
    """Raised when a broadcast message is not confirmed before the deadline."""


class AddressError(TonSendError, ValueError):
    """Raised when a wallet address cannot be parsed."""


class CredentialError(TonSendError):
    """Raised when the credential file is missing, incomplete, or malformed."""
