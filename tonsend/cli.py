"""Command line interface for tonsend.

The CLI wires the configuration, credential store, HTTP client and wallet
adapter together and hands control to the submission pipeline, printing
results as compact JSON so they can be piped into other tools.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Sequence

from .config import ConfigurationError, ServiceConfig, load_service_config, set_default_config_path
from .console import ConsoleOperator, prompt_str, prompt_yes_no
from .credentials import CredentialStore, generate_credentials
from .errors import TonSendError
from .fees import FeeEstimator, format_display, format_fee_table
from .history import TransactionHistory
from .http_client import RateLimitedHTTPClient
from .message import BodyEncoding, body_to_boc_b64, build_comment_body
from .model import AssetKind, OutcomeKind, TransferRequest
from .submission import TransferOrchestrator
from .wallet import ToncenterWallet, parse_address

logger = logging.getLogger(__name__)

COMPACT_JSON_SEPARATORS = (",", ":")


class CLIError(RuntimeError):
    """Raised when CLI arguments are invalid."""


def _parse_nano(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"amount must be an integer in nanotons: {raw}") from exc
    if value <= 0:
        raise argparse.ArgumentTypeError("amount must be positive")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Send TON transfers with fee estimation")
    parser.add_argument("--config", default=None, help="Path to a tonsend YAML config file")
    parser.add_argument(
        "--credentials",
        default=None,
        help="Path to the wallet credential env file (default: .env)",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    send_parser = subparsers.add_parser(
        "send", help="check balance, estimate the fee, confirm and broadcast a transfer"
    )
    send_parser.add_argument(
        "--asset",
        type=AssetKind.parse,
        default=AssetKind.TON,
        help="Asset to send: ton or usdt (default: ton)",
    )
    send_parser.add_argument(
        "--amount", type=_parse_nano, required=True, help="Amount in nanotons"
    )
    send_parser.add_argument(
        "--to",
        dest="to_address",
        default=None,
        help="Destination address (prompted when omitted)",
    )
    send_parser.add_argument(
        "--comment", default=None, help="Comment text (defaults to a per-asset text)"
    )
    send_parser.add_argument(
        "--plain-comment",
        action="store_true",
        help="Encode the comment as a standard text comment instead of base64",
    )
    send_parser.add_argument(
        "--yes", action="store_true", help="Skip the fee confirmation prompt"
    )

    estimate_parser = subparsers.add_parser(
        "estimate", help="estimate the fee for a comment body without sending"
    )
    estimate_parser.add_argument("--comment", required=True, help="Comment text to encode")
    estimate_parser.add_argument(
        "--address", default=None, help="Address to estimate for (default: wallet address)"
    )
    estimate_parser.add_argument(
        "--plain-comment",
        action="store_true",
        help="Encode the comment as a standard text comment instead of base64",
    )

    history_parser = subparsers.add_parser(
        "history", help="show the body and fees of recent transactions"
    )
    history_parser.add_argument("--address", required=True, help="Address to inspect")
    history_parser.add_argument(
        "--limit", type=int, default=1, help="Number of transactions (default: 1)"
    )
    history_parser.add_argument(
        "--archival", action="store_true", help="Query archival nodes"
    )

    init_parser = subparsers.add_parser(
        "init-wallet", help="generate wallet credentials and save them"
    )
    init_parser.add_argument(
        "--force", action="store_true", help="Overwrite an existing credential file"
    )
    return parser


def _load_config(args: argparse.Namespace) -> ServiceConfig:
    if args.config:
        set_default_config_path(args.config)
    overrides = {}
    if args.credentials:
        overrides["credentials_path"] = args.credentials
    return load_service_config(overrides=overrides)


def _build_wallet(config: ServiceConfig, http: RateLimitedHTTPClient) -> ToncenterWallet:
    store = CredentialStore(config.credentials_path)
    if store.exists():
        print(f"{store.path} found, loading wallet data...")
    else:
        print(f"{store.path} not found, generating new wallet data...")
    credentials, created = store.load_or_create()
    if created:
        print(f"New wallet address: {credentials.address}")
    return ToncenterWallet(
        http,
        credentials.public_key_bytes(),
        credentials.private_key_bytes(),
        confirm_timeout=config.confirm_timeout,
        poll_interval=config.poll_interval,
    )


def _body_encoding(args: argparse.Namespace) -> BodyEncoding:
    return BodyEncoding.PLAIN_COMMENT if args.plain_comment else BodyEncoding.DOUBLE_BASE64


def cmd_send(args: argparse.Namespace, config: ServiceConfig) -> int:
    http = RateLimitedHTTPClient(config)
    wallet = _build_wallet(config, http)

    destination = args.to_address
    if destination is None:
        if prompt_yes_no("Do you want to use the default wallet address?"):
            destination = wallet.address
        else:
            destination = prompt_str("Please enter the wallet address")

    request = TransferRequest(
        destination=destination,
        amount=args.amount,
        asset=args.asset,
        comment=args.comment,
    )
    orchestrator = TransferOrchestrator(
        wallet,
        FeeEstimator(http),
        TransactionHistory(http),
        ConsoleOperator(assume_yes=args.yes),
        max_attempts=config.max_attempts,
        body_encoding=_body_encoding(args),
    )
    outcome = orchestrator.submit(request)
    print(json.dumps(outcome.summary(), separators=COMPACT_JSON_SEPARATORS))
    if outcome.kind is OutcomeKind.FAILED:
        return 1
    if outcome.kind is OutcomeKind.INSUFFICIENT_BALANCE:
        return 2
    return 0


def cmd_estimate(args: argparse.Namespace, config: ServiceConfig) -> int:
    http = RateLimitedHTTPClient(config)
    if args.address:
        address = parse_address(args.address)
        init_code, init_data = "", ""
    else:
        wallet = _build_wallet(config, http)
        address = wallet.address
        init_code, init_data = wallet.init_state()
    body_b64 = body_to_boc_b64(build_comment_body(args.comment, _body_encoding(args)))
    print(f"Transaction body (base64): {body_b64}")
    fees = FeeEstimator(http).estimate(address, body_b64, init_code, init_data)
    print(format_fee_table(fees))
    return 0


def cmd_history(args: argparse.Namespace, config: ServiceConfig) -> int:
    if args.limit < 1:
        raise CLIError("--limit must be at least 1")
    history = TransactionHistory(RateLimitedHTTPClient(config))
    records = history.get_transactions(args.address, limit=args.limit, archival=args.archival)
    if not records:
        print("No transactions found.")
        return 0
    for index, record in enumerate(records, start=1):
        print(f"Transaction {index}")
        print(f"  Body: {record.body or '-'}")
        for label, value in (
            ("Transaction fee", record.fee),
            ("Storage fee", record.storage_fee),
            ("Other fee", record.other_fee),
            ("Forward fee", record.fwd_fee),
        ):
            print(f"  {label}: {value} nanoton ({format_display(value)} TON)")
    return 0


def cmd_init_wallet(args: argparse.Namespace, config: ServiceConfig) -> int:
    store = CredentialStore(config.credentials_path)
    if store.exists() and not args.force:
        raise CLIError(f"{store.path} already exists; pass --force to overwrite it")
    credentials = generate_credentials()
    store.save(credentials)
    print(json.dumps({"address": credentials.address, "path": str(store.path)}))
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    try:
        config = _load_config(args)
        if args.command == "send":
            code = cmd_send(args, config)
        elif args.command == "estimate":
            code = cmd_estimate(args, config)
        elif args.command == "history":
            code = cmd_history(args, config)
        elif args.command == "init-wallet":
            code = cmd_init_wallet(args, config)
        else:  # pragma: no cover - argparse enforces choices
            raise CLIError(f"Unknown command: {args.command}")
    except KeyboardInterrupt:  # pragma: no cover - interactive use
        logger.info("Interrupted by user")
        return
    except (CLIError, ConfigurationError, TonSendError, ValueError) as exc:
        parser.exit(1, f"error: {exc}\n")
    if code:
        parser.exit(code)


if __name__ == "__main__":
    main(sys.argv[1:])
