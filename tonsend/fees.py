"""Fee estimation and conversion helpers for TON transfers."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict

from .errors import EstimationFailed, FeeComputationError, MalformedResponse, RemoteRejected
from .http_client import RateLimitedHTTPClient, unwrap_result
from .model import FeeBreakdown

logger = logging.getLogger(__name__)

NANO_PER_TON = 10**9
ESTIMATE_FEE_PATH = "estimateFee"
_FEE_FIELDS = ("in_fwd_fee", "storage_fee", "gas_fee", "fwd_fee")


def nano_to_display(nano: int) -> Decimal:
    """Convert nanotons to TON for display only."""

    return Decimal(nano) / NANO_PER_TON


def format_display(nano: int) -> str:
    """Format nanotons as TON with nine decimals."""

    return f"{nano_to_display(nano):.9f}"


def build_estimate_payload(
    address: str, body_b64: str, init_code: str = "", init_data: str = ""
) -> Dict[str, Any]:
    """Return the ``estimateFee`` request payload for an encoded body."""

    return {
        "address": address,
        "body": body_b64,
        "ignore_chksig": True,
        "init_code": init_code,
        "init_data": init_data,
    }


def parse_source_fees(result: Any) -> FeeBreakdown:
    """Extract the four ``source_fees`` components from an estimate result."""

    if not isinstance(result, dict):
        raise EstimationFailed("estimateFee returned no result object")
    source_fees = result.get("source_fees")
    if not isinstance(source_fees, dict):
        raise EstimationFailed("estimateFee result is missing source_fees")

    values: Dict[str, int] = {}
    for name in _FEE_FIELDS:
        raw = source_fees.get(name)
        if isinstance(raw, bool) or raw is None:
            raise EstimationFailed(f"estimateFee source_fees.{name} is missing")
        try:
            values[name] = int(raw)
        except (TypeError, ValueError) as exc:
            raise EstimationFailed(
                f"estimateFee source_fees.{name} is not an integer: {raw!r}"
            ) from exc
        if isinstance(raw, float) and not raw.is_integer():
            raise EstimationFailed(f"estimateFee source_fees.{name} is fractional: {raw!r}")
    return FeeBreakdown(**values)


class FeeEstimator:
    """Ask the remote service what a message would cost to process."""

    def __init__(self, http: RateLimitedHTTPClient) -> None:
        self.http = http

    def estimate(
        self, address: str, body_b64: str, init_code: str = "", init_data: str = ""
    ) -> FeeBreakdown:
        payload = build_estimate_payload(address, body_b64, init_code, init_data)
        logger.debug("Estimating fee for %s (body %d chars)", address, len(body_b64))
        try:
            document = self.http.post(ESTIMATE_FEE_PATH, payload)
            result = unwrap_result(document, operation="estimateFee")
        except RemoteRejected as exc:
            raise EstimationFailed(exc.message, status_code=exc.status_code, body=exc.body) from exc
        except MalformedResponse as exc:
            raise EstimationFailed(
                f"estimateFee returned malformed JSON: {exc}", status_code=exc.status_code
            ) from exc
        try:
            fees = parse_source_fees(result)
        except FeeComputationError as exc:
            raise EstimationFailed(f"estimateFee returned invalid fees: {exc}") from exc
        logger.info(
            "Estimated fee %d nanotons (%s TON)", fees.total, format_display(fees.total)
        )
        return fees


def format_fee_table(fees: FeeBreakdown) -> str:
    """Render a fee breakdown for console output."""

    rows = [
        ("In forward fee", fees.in_fwd_fee),
        ("Storage fee", fees.storage_fee),
        ("Gas fee", fees.gas_fee),
        ("Forward fee", fees.fwd_fee),
        ("Total", fees.total),
    ]
    return "\n".join(
        f"{label:<15} {value:>12} nanoton ({format_display(value)} TON)" for label, value in rows
    )
