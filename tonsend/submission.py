"""Transfer submission pipeline.

:class:`TransferOrchestrator` walks one transfer through balance check,
message selection, fee estimation, operator confirmation and broadcast. Each
call to :meth:`TransferOrchestrator.submit` ends in exactly one
:class:`~tonsend.model.SubmissionOutcome`; errors are captured in the outcome
rather than raised so callers always get the request that was last attempted
back along with the reason it stopped.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import replace
from typing import Optional, Protocol

from tonsdk.boc import Cell

from .errors import InsufficientBalance, TonSendError
from .fees import FeeEstimator, format_display
from .history import TransactionHistory
from .message import BodyEncoding, body_from_boc_b64, body_to_boc_b64, build_comment_body
from .model import FeeBreakdown, SubmissionOutcome, TransferRequest
from .wallet import WalletClient

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3


class SubmissionState(str, enum.Enum):
    CHECKING_BALANCE = "checking_balance"
    AWAITING_SMALLER_AMOUNT = "awaiting_smaller_amount"
    BUILDING_MESSAGE = "building_message"
    ESTIMATING_FEE = "estimating_fee"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    BROADCASTING = "broadcasting"
    SENT = "sent"
    CANCELLED = "cancelled"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    FAILED = "failed"


class Operator(Protocol):
    """Decisions the pipeline delegates to a human (or a policy)."""

    def choose_smaller_amount(self, request: TransferRequest, balance: int) -> Optional[int]:
        """Return a new amount to retry with, or ``None`` to cancel."""

    def confirm_fee(self, request: TransferRequest, fee: FeeBreakdown) -> bool:
        """Return ``True`` to broadcast ``request`` at the estimated ``fee``."""


class TransferOrchestrator:
    """Drive a transfer from balance check to broadcast."""

    def __init__(
        self,
        wallet: WalletClient,
        estimator: FeeEstimator,
        history: TransactionHistory,
        operator: Operator,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        body_encoding: BodyEncoding = BodyEncoding.DOUBLE_BASE64,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.wallet = wallet
        self.estimator = estimator
        self.history = history
        self.operator = operator
        self.max_attempts = max_attempts
        self.body_encoding = body_encoding
        self.state = SubmissionState.CHECKING_BALANCE

    def _enter(self, state: SubmissionState) -> None:
        logger.info("Submission state %s -> %s", self.state.value, state.value)
        self.state = state

    def submit(self, request: TransferRequest) -> SubmissionOutcome:
        self.state = SubmissionState.CHECKING_BALANCE
        logger.info("Submitting %d nanotons to %s", request.amount, request.destination)
        try:
            current = replace(
                request, destination=self.wallet.parse_address(request.destination)
            )
        except (TonSendError, ValueError) as exc:
            return self._fail(request, exc)

        attempt = 1
        while True:
            try:
                balance = self.wallet.current_balance()
            except TonSendError as exc:
                return self._fail(current, exc)

            if balance >= current.amount:
                break

            shortfall = InsufficientBalance(balance, current.amount)
            logger.warning("%s", shortfall)
            self._enter(SubmissionState.AWAITING_SMALLER_AMOUNT)
            if attempt >= self.max_attempts:
                logger.warning("Giving up after %d balance check(s)", attempt)
                self._enter(SubmissionState.INSUFFICIENT_BALANCE)
                return SubmissionOutcome.insufficient_balance(current, shortfall)

            new_amount = self.operator.choose_smaller_amount(current, balance)
            if new_amount is None:
                self._enter(SubmissionState.CANCELLED)
                return SubmissionOutcome.cancelled(current)
            if isinstance(new_amount, bool) or not isinstance(new_amount, int) or not (
                0 < new_amount < current.amount
            ):
                logger.warning(
                    "Retry amount %r is not smaller than %d; aborting", new_amount, current.amount
                )
                self._enter(SubmissionState.INSUFFICIENT_BALANCE)
                return SubmissionOutcome.insufficient_balance(current, shortfall)

            current = current.with_amount(new_amount)
            attempt += 1
            self._enter(SubmissionState.CHECKING_BALANCE)

        try:
            self._enter(SubmissionState.BUILDING_MESSAGE)
            body = self._select_body(current)
            body_b64 = body_to_boc_b64(body)

            self._enter(SubmissionState.ESTIMATING_FEE)
            init_code, init_data = self.wallet.init_state()
            fee = self.estimator.estimate(self.wallet.address, body_b64, init_code, init_data)
        except TonSendError as exc:
            return self._fail(current, exc)

        self._enter(SubmissionState.AWAITING_CONFIRMATION)
        if not self.operator.confirm_fee(current, fee):
            logger.info("Transfer cancelled at fee %s TON", format_display(fee.total))
            self._enter(SubmissionState.CANCELLED)
            return SubmissionOutcome.cancelled(current, fee)

        self._enter(SubmissionState.BROADCASTING)
        try:
            tx_hash = self.wallet.broadcast_and_await_hash(current, body)
        except TonSendError as exc:
            return self._fail(current, exc)

        self._enter(SubmissionState.SENT)
        logger.info("Transfer of %d nanotons sent: %s", current.amount, tx_hash)
        return SubmissionOutcome.sent(current, tx_hash, fee)

    def _select_body(self, request: TransferRequest) -> Cell:
        prior = self.history.latest_body(request.destination)
        if prior:
            logger.info("Reusing the last transaction body for %s", request.destination)
            return body_from_boc_b64(prior)
        return build_comment_body(request.comment_text, self.body_encoding)

    def _fail(self, request: TransferRequest, exc: BaseException) -> SubmissionOutcome:
        logger.error(
            "Submission failed in %s: %s",
            self.state.value,
            exc,
            exc_info=logger.isEnabledFor(logging.DEBUG),
        )
        self._enter(SubmissionState.FAILED)
        return SubmissionOutcome.failed(request, exc)
