from __future__ import annotations

import pytest

from tonsend.errors import (
    AddressError,
    BroadcastTimeout,
    EncodingError,
    EstimationFailed,
    RateLimited,
    RemoteRejected,
)
from tonsend.fees import FeeEstimator
from tonsend.message import body_to_boc_b64, build_comment_body, decode_comment_body
from tonsend.model import AssetKind, FeeBreakdown, OutcomeKind, TransferRequest
from tonsend.submission import SubmissionState, TransferOrchestrator

FEES = FeeBreakdown(in_fwd_fee=100, storage_fee=50, gas_fee=2000, fwd_fee=300)


class StubWallet:
    address = "EQsource"

    def __init__(self, balance: int, broadcast_error: Exception | None = None) -> None:
        self.balance = balance
        self.broadcast_error = broadcast_error
        self.balance_checks = 0
        self.broadcasts: list[tuple[TransferRequest, object]] = []

    def parse_address(self, text: str) -> str:
        if text == "bad":
            raise AddressError("Invalid TON address 'bad'")
        return text

    def current_balance(self) -> int:
        self.balance_checks += 1
        return self.balance

    def init_state(self):
        return "", ""

    def broadcast_and_await_hash(self, request, body) -> str:
        if self.broadcast_error is not None:
            raise self.broadcast_error
        self.broadcasts.append((request, body))
        return "hash-1"


class StubEstimator:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[tuple] = []

    def estimate(self, address, body_b64, init_code="", init_data=""):
        self.calls.append((address, body_b64, init_code, init_data))
        if self.error is not None:
            raise self.error
        return FEES


class StubHistory:
    def __init__(self, body: str | None = None) -> None:
        self.body = body
        self.lookups: list[str] = []

    def latest_body(self, address: str):
        self.lookups.append(address)
        return self.body


class ScriptedOperator:
    def __init__(self, amounts=(), confirm: bool = True) -> None:
        self.amounts = list(amounts)
        self.confirm = confirm
        self.asked: list[tuple[int, int]] = []
        self.confirmations: list[FeeBreakdown] = []

    def choose_smaller_amount(self, request, balance):
        self.asked.append((request.amount, balance))
        return self.amounts.pop(0) if self.amounts else None

    def confirm_fee(self, request, fee):
        self.confirmations.append(fee)
        return self.confirm


def _orchestrator(wallet, *, estimator=None, history=None, operator=None, **kwargs):
    return TransferOrchestrator(
        wallet,
        estimator or StubEstimator(),
        history or StubHistory(),
        operator or ScriptedOperator(),
        **kwargs,
    )


def test_happy_path_sends_and_returns_hash() -> None:
    wallet = StubWallet(balance=2_000_000_000)
    estimator = StubEstimator()
    orchestrator = _orchestrator(wallet, estimator=estimator)
    request = TransferRequest("EQdest", 1_000_000_000, AssetKind.TON)

    outcome = orchestrator.submit(request)

    assert outcome.kind is OutcomeKind.SENT
    assert outcome.tx_hash == "hash-1"
    assert outcome.fee == FEES
    assert orchestrator.state is SubmissionState.SENT
    sent_request, body = wallet.broadcasts[0]
    assert sent_request == request
    assert decode_comment_body(body) == "Sending TON"
    address, body_b64, _, _ = estimator.calls[0]
    assert address == "EQsource"
    assert body_b64 == body_to_boc_b64(body)


def test_declined_retry_on_insufficient_balance_cancels_without_broadcast() -> None:
    wallet = StubWallet(balance=500_000_000)
    estimator = StubEstimator()
    operator = ScriptedOperator(amounts=[])
    orchestrator = _orchestrator(wallet, estimator=estimator, operator=operator)

    outcome = orchestrator.submit(TransferRequest("EQdest", 1_000_000_000))

    assert outcome.kind is OutcomeKind.CANCELLED
    assert operator.asked == [(1_000_000_000, 500_000_000)]
    assert wallet.broadcasts == []
    assert estimator.calls == []


def test_smaller_amount_restarts_pipeline_with_new_request() -> None:
    wallet = StubWallet(balance=500_000_000)
    operator = ScriptedOperator(amounts=[400_000_000])
    orchestrator = _orchestrator(wallet, operator=operator)
    original = TransferRequest("EQdest", 1_000_000_000, AssetKind.USDT)

    outcome = orchestrator.submit(original)

    assert outcome.kind is OutcomeKind.SENT
    assert outcome.request.amount == 400_000_000
    assert original.amount == 1_000_000_000
    assert wallet.balance_checks == 2
    assert decode_comment_body(wallet.broadcasts[0][1]) == "Sending USDT"


def test_retry_attempts_are_bounded() -> None:
    wallet = StubWallet(balance=10)
    operator = ScriptedOperator(amounts=[900, 800, 700, 600])
    orchestrator = _orchestrator(wallet, operator=operator, max_attempts=3)

    outcome = orchestrator.submit(TransferRequest("EQdest", 1000))

    assert outcome.kind is OutcomeKind.INSUFFICIENT_BALANCE
    assert len(operator.asked) == 2
    assert wallet.balance_checks == 3
    assert wallet.broadcasts == []


def test_amount_that_is_not_smaller_never_broadcasts() -> None:
    wallet = StubWallet(balance=10)
    operator = ScriptedOperator(amounts=[1000])
    orchestrator = _orchestrator(wallet, operator=operator)

    outcome = orchestrator.submit(TransferRequest("EQdest", 1000))

    assert outcome.kind is OutcomeKind.INSUFFICIENT_BALANCE
    assert wallet.broadcasts == []


def test_rejected_estimate_fails_without_broadcast() -> None:
    wallet = StubWallet(balance=10**10)
    estimator = StubEstimator(error=RemoteRejected("estimateFee rejected: boom"))
    operator = ScriptedOperator()
    orchestrator = _orchestrator(wallet, estimator=estimator, operator=operator)

    outcome = orchestrator.submit(TransferRequest("EQdest", 1))

    assert outcome.kind is OutcomeKind.FAILED
    assert isinstance(outcome.error, RemoteRejected)
    assert operator.confirmations == []
    assert wallet.broadcasts == []


def test_operator_declining_fee_cancels() -> None:
    wallet = StubWallet(balance=10**10)
    orchestrator = _orchestrator(wallet, operator=ScriptedOperator(confirm=False))

    outcome = orchestrator.submit(TransferRequest("EQdest", 1))

    assert outcome.kind is OutcomeKind.CANCELLED
    assert outcome.fee == FEES
    assert wallet.broadcasts == []


def test_prior_body_is_reused_verbatim() -> None:
    prior = body_to_boc_b64(build_comment_body("earlier"))
    wallet = StubWallet(balance=10**10)
    history = StubHistory(body=prior)
    estimator = StubEstimator()
    orchestrator = _orchestrator(wallet, history=history, estimator=estimator)

    outcome = orchestrator.submit(TransferRequest("EQdest", 5, comment="ignored"))

    assert outcome.is_sent
    assert history.lookups == ["EQdest"]
    assert estimator.calls[0][1] == prior
    assert decode_comment_body(wallet.broadcasts[0][1]) == "earlier"


def test_corrupt_prior_body_is_fatal() -> None:
    wallet = StubWallet(balance=10**10)
    orchestrator = _orchestrator(wallet, history=StubHistory(body="!!!"))

    outcome = orchestrator.submit(TransferRequest("EQdest", 5))

    assert outcome.kind is OutcomeKind.FAILED
    assert isinstance(outcome.error, EncodingError)


def test_broadcast_failure_is_reported() -> None:
    wallet = StubWallet(balance=10**10, broadcast_error=BroadcastTimeout("not confirmed"))
    orchestrator = _orchestrator(wallet)

    outcome = orchestrator.submit(TransferRequest("EQdest", 5))

    assert outcome.kind is OutcomeKind.FAILED
    assert "not confirmed" in str(outcome.error)
    assert outcome.summary()["error"] == "not confirmed"


def test_invalid_destination_fails_before_balance_check() -> None:
    wallet = StubWallet(balance=10**10)
    orchestrator = _orchestrator(wallet)

    outcome = orchestrator.submit(TransferRequest("bad", 5))

    assert outcome.kind is OutcomeKind.FAILED
    assert wallet.balance_checks == 0


def test_caller_comment_overrides_asset_default() -> None:
    wallet = StubWallet(balance=10**10)
    orchestrator = _orchestrator(wallet)

    orchestrator.submit(TransferRequest("EQdest", 5, AssetKind.USDT, comment="invoice 42"))

    assert decode_comment_body(wallet.broadcasts[0][1]) == "invoice 42"


def test_max_attempts_must_be_positive() -> None:
    with pytest.raises(ValueError):
        _orchestrator(StubWallet(balance=0), max_attempts=0)


class EstimateHTTP:
    def __init__(self, document: object = None, error: Exception | None = None) -> None:
        self.document = document
        self.error = error
        self.posts: list[str] = []

    def post(self, path, payload):
        self.posts.append(path)
        if self.error is not None:
            raise self.error
        return self.document


def test_remote_ok_false_estimate_fails_without_broadcast() -> None:
    wallet = StubWallet(balance=10**10)
    operator = ScriptedOperator()
    http = EstimateHTTP({"ok": False, "error": "cannot apply external message"})
    orchestrator = _orchestrator(wallet, estimator=FeeEstimator(http), operator=operator)

    outcome = orchestrator.submit(TransferRequest("EQdest", 1))

    assert outcome.kind is OutcomeKind.FAILED
    assert isinstance(outcome.error, EstimationFailed)
    assert "cannot apply external message" in str(outcome.error)
    assert http.posts == ["estimateFee"]
    assert operator.confirmations == []
    assert wallet.broadcasts == []


def test_rate_limited_estimate_fails_without_broadcast() -> None:
    wallet = StubWallet(balance=10**10)
    http = EstimateHTTP(error=RateLimited(5, retry_after=30.0))
    orchestrator = _orchestrator(wallet, estimator=FeeEstimator(http))

    outcome = orchestrator.submit(TransferRequest("EQdest", 1))

    assert outcome.kind is OutcomeKind.FAILED
    assert isinstance(outcome.error, RateLimited)
    assert orchestrator.state is SubmissionState.FAILED
    assert wallet.broadcasts == []
