"""Wallet client used by the submission pipeline.

:class:`WalletClient` is the seam the orchestrator depends on. The shipped
implementation, :class:`ToncenterWallet`, signs v4r2 wallet messages with
``tonsdk`` and talks to toncenter for balance, seqno and broadcast. Other
backends (a liteserver client, a hardware signer) only have to provide the
same five members.
"""

from __future__ import annotations

import base64
import logging
import time
from typing import Callable, Protocol, Tuple

from tonsdk.boc import Cell
from tonsdk.contract.wallet import Wallets, WalletVersionEnum
from tonsdk.utils import Address

from .errors import AddressError, BroadcastTimeout, EncodingError, RemoteRejected
from .http_client import RateLimitedHTTPClient, unwrap_result
from .model import TransferRequest

logger = logging.getLogger(__name__)

# Pay transfer fees separately from the transferred value.
SEND_MODE_PAY_FEES_SEPARATELY = 1


class WalletClient(Protocol):
    """Operations the orchestrator needs from a wallet backend."""

    @property
    def address(self) -> str: ...

    def current_balance(self) -> int: ...

    def parse_address(self, text: str) -> str: ...

    def init_state(self) -> Tuple[str, str]: ...

    def broadcast_and_await_hash(self, request: TransferRequest, body: Cell) -> str: ...


def parse_address(text: str) -> str:
    """Validate ``text`` and return it in non-bounceable user-friendly form."""

    if not text or not text.strip():
        raise AddressError("Wallet address cannot be empty")
    try:
        parsed = Address(text.strip())
    except Exception as exc:
        raise AddressError(f"Invalid TON address {text!r}: {exc}") from exc
    return parsed.to_string(True, True, False)


def _cell_to_b64(cell: Cell) -> str:
    return base64.b64encode(bytes(cell.to_boc(False))).decode("ascii")


class ToncenterWallet:
    """v4r2 wallet signing locally and broadcasting through toncenter."""

    def __init__(
        self,
        http: RateLimitedHTTPClient,
        public_key: bytes,
        private_key: bytes,
        *,
        workchain: int = 0,
        confirm_timeout: float = 120.0,
        poll_interval: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        self.http = http
        self._contract = Wallets.ALL[WalletVersionEnum.v4r2](
            public_key=public_key, private_key=private_key, wc=workchain
        )
        self.confirm_timeout = confirm_timeout
        self.poll_interval = poll_interval
        self._sleep = sleep

    def __repr__(self) -> str:
        return f"ToncenterWallet(address={self.address!r})"

    @property
    def address(self) -> str:
        return self._contract.address.to_string(True, True, False)

    def parse_address(self, text: str) -> str:
        return parse_address(text)

    def current_balance(self) -> int:
        document = self.http.get("getAddressBalance", {"address": self.address})
        result = unwrap_result(document, operation="getAddressBalance")
        try:
            return int(result)
        except (TypeError, ValueError) as exc:
            raise RemoteRejected(f"getAddressBalance returned a non-integer: {result!r}") from exc

    def seqno(self) -> int:
        document = self.http.get("getWalletInformation", {"address": self.address})
        info = unwrap_result(document, operation="getWalletInformation") or {}
        if not isinstance(info, dict):
            raise RemoteRejected("getWalletInformation returned no wallet object")
        try:
            return int(info.get("seqno") or 0)
        except (TypeError, ValueError) as exc:
            raise RemoteRejected(f"Invalid seqno in wallet information: {info!r}") from exc

    def init_state(self) -> Tuple[str, str]:
        """Return base64 code/data BOCs while the wallet is not deployed yet."""

        if self.seqno() > 0:
            return "", ""
        state = self._contract.create_state_init()
        return _cell_to_b64(state["code"]), _cell_to_b64(state["data"])

    def build_transfer(self, request: TransferRequest, body: Cell, seqno: int) -> Cell:
        destination = parse_address(request.destination)
        try:
            query = self._contract.create_transfer_message(
                destination,
                request.amount,
                seqno,
                payload=body,
                send_mode=SEND_MODE_PAY_FEES_SEPARATELY,
            )
        except Exception as exc:
            raise EncodingError(f"Failed to sign transfer message: {exc}") from exc
        return query["message"]

    def broadcast_and_await_hash(self, request: TransferRequest, body: Cell) -> str:
        """Broadcast a signed transfer and wait until the wallet seqno advances."""

        seqno = self.seqno()
        message = self.build_transfer(request, body, seqno)
        document = self.http.post("sendBocReturnHash", {"boc": _cell_to_b64(message)})
        result = unwrap_result(document, operation="sendBocReturnHash") or {}
        tx_hash = result.get("hash") if isinstance(result, dict) else None
        if not tx_hash:
            raise RemoteRejected("sendBocReturnHash did not return a message hash")
        logger.info("Broadcasted message %s (seqno %d)", tx_hash, seqno)

        # At most confirm_timeout / poll_interval sleeps.
        max_polls = int(self.confirm_timeout // self.poll_interval)
        polls = 0
        while self.seqno() <= seqno:
            if polls >= max_polls:
                raise BroadcastTimeout(
                    f"Message {tx_hash} was not confirmed within {self.confirm_timeout:.0f}s"
                )
            self._sleep(self.poll_interval)
            polls += 1
        logger.info("Message %s confirmed", tx_hash)
        return str(tx_hash)
