"""Transaction history lookups against the toncenter API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .errors import RemoteRejected
from .http_client import RateLimitedHTTPClient, unwrap_result

logger = logging.getLogger(__name__)

GET_TRANSACTIONS_PATH = "getTransactions"


@dataclass
class TransactionRecord:
    """Fees and inbound message body of a single past transaction."""

    fee: int
    storage_fee: int
    other_fee: int
    fwd_fee: int
    body: str | None = None


def _as_int(raw: Any, field_name: str) -> int:
    if raw is None or raw == "":
        return 0
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise RemoteRejected(f"getTransactions field {field_name} is not an integer: {raw!r}") from exc


def parse_transaction(entry: Dict[str, Any]) -> TransactionRecord:
    in_msg = entry.get("in_msg") or {}
    msg_data = in_msg.get("msg_data") or {}
    body = msg_data.get("body") or None
    return TransactionRecord(
        fee=_as_int(entry.get("fee"), "fee"),
        storage_fee=_as_int(entry.get("storage_fee"), "storage_fee"),
        other_fee=_as_int(entry.get("other_fee"), "other_fee"),
        fwd_fee=_as_int(in_msg.get("fwd_fee"), "in_msg.fwd_fee"),
        body=body,
    )


class TransactionHistory:
    """Read-only view of an address's recent transactions."""

    def __init__(self, http: RateLimitedHTTPClient) -> None:
        self.http = http

    def get_transactions(
        self,
        address: str,
        *,
        limit: int = 1,
        tx_hash: str | None = None,
        to_lt: int = 0,
        archival: bool = False,
    ) -> List[TransactionRecord]:
        params: Dict[str, Any] = {
            "address": address,
            "limit": limit,
            "to_lt": to_lt,
            "archival": "true" if archival else "false",
        }
        if tx_hash:
            params["hash"] = tx_hash
        document = self.http.get(GET_TRANSACTIONS_PATH, params)
        result = unwrap_result(document, operation="getTransactions")
        if not isinstance(result, list):
            raise RemoteRejected("getTransactions returned no transaction list")
        records = [parse_transaction(entry) for entry in result if isinstance(entry, dict)]
        logger.debug("Fetched %d transaction(s) for %s", len(records), address)
        return records

    def latest_body(self, address: str) -> Optional[str]:
        """Return the inbound body of the most recent transaction, if any."""

        records = self.get_transactions(address, limit=1)
        if not records:
            return None
        return records[0].body
