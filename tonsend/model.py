"""Domain models for the tonsend submission pipeline.

Amounts are always integers in nanotons. Conversions to whole TON happen only
at presentation time (see :func:`tonsend.fees.format_display`).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import Optional

from .errors import FeeComputationError

MAX_NANO_VALUE = 2**64 - 1


class AssetKind(str, enum.Enum):
    """Closed set of assets the wallet can send."""

    TON = "ton"
    USDT = "usdt"

    @property
    def default_comment(self) -> str:
        return _DEFAULT_COMMENTS[self]

    @classmethod
    def parse(cls, raw: str) -> "AssetKind":
        try:
            return cls(raw.strip().lower())
        except ValueError as exc:
            raise ValueError(f"Unknown asset kind: {raw!r} (expected 'ton' or 'usdt')") from exc


_DEFAULT_COMMENTS = {
    AssetKind.TON: "Sending TON",
    AssetKind.USDT: "Sending USDT",
}


@dataclass(frozen=True)
class TransferRequest:
    """A single submission attempt; retries build a new request."""

    destination: str
    amount: int
    asset: AssetKind = AssetKind.TON
    comment: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.destination or not self.destination.strip():
            raise ValueError("Destination address must not be empty")
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise TypeError("Amount must be an integer number of nanotons")
        if self.amount < 0 or self.amount > MAX_NANO_VALUE:
            raise ValueError(f"Amount out of range: {self.amount}")

    @property
    def comment_text(self) -> str:
        """Comment to encode, falling back to the asset's default text."""

        if self.comment is not None:
            return self.comment
        return self.asset.default_comment

    def with_amount(self, amount: int) -> "TransferRequest":
        return replace(self, amount=amount)


@dataclass(frozen=True)
class FeeBreakdown:
    """The four source fee components reported by ``estimateFee``."""

    in_fwd_fee: int
    storage_fee: int
    gas_fee: int
    fwd_fee: int

    def __post_init__(self) -> None:
        for name in ("in_fwd_fee", "storage_fee", "gas_fee", "fwd_fee"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise FeeComputationError(f"{name} must be an integer, got {value!r}")
            if value < 0:
                raise FeeComputationError(f"{name} must not be negative, got {value}")
        if self.total > MAX_NANO_VALUE:
            raise FeeComputationError(f"Total fee {self.total} overflows the fee range")

    @property
    def total(self) -> int:
        return self.in_fwd_fee + self.storage_fee + self.gas_fee + self.fwd_fee

    def as_dict(self) -> dict[str, int]:
        return {
            "in_fwd_fee": self.in_fwd_fee,
            "storage_fee": self.storage_fee,
            "gas_fee": self.gas_fee,
            "fwd_fee": self.fwd_fee,
            "total": self.total,
        }


class OutcomeKind(str, enum.Enum):
    SENT = "sent"
    CANCELLED = "cancelled"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    FAILED = "failed"


@dataclass(frozen=True)
class SubmissionOutcome:
    """Terminal result of :meth:`TransferOrchestrator.submit`.

    Use the named constructors; each one fills exactly the fields that belong
    to its kind.
    """

    kind: OutcomeKind
    request: TransferRequest
    tx_hash: Optional[str] = None
    error: Optional[BaseException] = field(default=None, compare=False)
    fee: Optional[FeeBreakdown] = None

    @classmethod
    def sent(
        cls, request: TransferRequest, tx_hash: str, fee: FeeBreakdown
    ) -> "SubmissionOutcome":
        return cls(OutcomeKind.SENT, request, tx_hash=tx_hash, fee=fee)

    @classmethod
    def cancelled(
        cls, request: TransferRequest, fee: FeeBreakdown | None = None
    ) -> "SubmissionOutcome":
        return cls(OutcomeKind.CANCELLED, request, fee=fee)

    @classmethod
    def insufficient_balance(
        cls, request: TransferRequest, error: BaseException
    ) -> "SubmissionOutcome":
        return cls(OutcomeKind.INSUFFICIENT_BALANCE, request, error=error)

    @classmethod
    def failed(cls, request: TransferRequest, error: BaseException) -> "SubmissionOutcome":
        return cls(OutcomeKind.FAILED, request, error=error)

    @property
    def is_sent(self) -> bool:
        return self.kind is OutcomeKind.SENT

    def summary(self) -> dict[str, object]:
        data: dict[str, object] = {
            "outcome": self.kind.value,
            "destination": self.request.destination,
            "amount": self.request.amount,
            "asset": self.request.asset.value,
        }
        if self.tx_hash is not None:
            data["tx_hash"] = self.tx_hash
        if self.fee is not None:
            data["fee"] = self.fee.total
        if self.error is not None:
            data["error"] = str(self.error)
        return data
