"""TON transfer submission toolkit."""

from .errors import (
    AddressError,
    BroadcastTimeout,
    CredentialError,
    EncodingError,
    EstimationFailed,
    FeeComputationError,
    InsufficientBalance,
    MalformedResponse,
    NetworkError,
    RateLimited,
    RemoteRejected,
    TonSendError,
)
from .fees import FeeEstimator, format_display, nano_to_display
from .http_client import RateLimitedHTTPClient, RetryPolicy
from .message import BodyEncoding, build_comment_body, decode_comment_body
from .model import (
    AssetKind,
    FeeBreakdown,
    OutcomeKind,
    SubmissionOutcome,
    TransferRequest,
)
from .submission import SubmissionState, TransferOrchestrator

__all__ = [
    "AddressError",
    "AssetKind",
    "BodyEncoding",
    "BroadcastTimeout",
    "CredentialError",
    "EncodingError",
    "EstimationFailed",
    "FeeBreakdown",
    "FeeComputationError",
    "FeeEstimator",
    "InsufficientBalance",
    "MalformedResponse",
    "NetworkError",
    "OutcomeKind",
    "RateLimited",
    "RateLimitedHTTPClient",
    "RemoteRejected",
    "RetryPolicy",
    "SubmissionOutcome",
    "SubmissionState",
    "TonSendError",
    "TransferOrchestrator",
    "TransferRequest",
    "build_comment_body",
    "decode_comment_body",
    "format_display",
    "nano_to_display",
]
