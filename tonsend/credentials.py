"""Wallet credential storage and first-run key generation.

Credentials live in a ``KEY=VALUE`` env file (``.env`` by default) holding
``PUBLIC_KEY``, ``PRIVATE_KEY``, ``WALLET_ADDRESS``, ``MNEMONIC`` and
``SEED``. Keys are base64 encoded; the private key is the 64 byte Ed25519
secret (seed followed by public key) expected by the wallet signer.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from dotenv import dotenv_values, set_key
from mnemonic import Mnemonic
from tonsdk.contract.wallet import Wallets, WalletVersionEnum

from .errors import CredentialError

logger = logging.getLogger(__name__)

PRIVATE_KEY_SIZE = 64
PUBLIC_KEY_SIZE = 32
_MNEMONIC_STRENGTH = 256

_FIELDS = {
    "public_key": "PUBLIC_KEY",
    "private_key": "PRIVATE_KEY",
    "address": "WALLET_ADDRESS",
    "mnemonic": "MNEMONIC",
    "seed": "SEED",
}


@dataclass(frozen=True)
class Credentials:
    """Opaque wallet credential strings."""

    public_key: str
    private_key: str = field(repr=False)
    address: str
    mnemonic: str = field(repr=False)
    seed: str = field(repr=False)

    def public_key_bytes(self) -> bytes:
        key = _b64decode_padded(self.public_key, label="public key")
        if len(key) != PUBLIC_KEY_SIZE:
            raise CredentialError(
                f"Public key must be {PUBLIC_KEY_SIZE} bytes, got {len(key)}"
            )
        return key

    def private_key_bytes(self) -> bytes:
        return decode_private_key(self.private_key)


def _b64decode_padded(encoded: str, *, label: str) -> bytes:
    padding = -len(encoded) % 4
    try:
        return base64.b64decode(encoded + "=" * padding, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise CredentialError(f"Failed to decode {label}") from exc


def decode_private_key(encoded: str) -> bytes:
    """Decode a base64 private key, restoring stripped padding."""

    decoded = _b64decode_padded(encoded.strip(), label="private key")
    if len(decoded) < PRIVATE_KEY_SIZE:
        raise CredentialError(
            f"Private key must be {PRIVATE_KEY_SIZE} bytes, got {len(decoded)}"
        )
    return decoded[:PRIVATE_KEY_SIZE]


def wallet_address_for(public_key: bytes, private_key: bytes, workchain: int = 0) -> str:
    contract = Wallets.ALL[WalletVersionEnum.v4r2](
        public_key=public_key, private_key=private_key, wc=workchain
    )
    return contract.address.to_string(True, True, False)


def generate_credentials(passphrase: str = "") -> Credentials:
    """Create a fresh BIP-39 mnemonic and the wallet credentials derived from it."""

    words = Mnemonic("english").generate(strength=_MNEMONIC_STRENGTH)
    seed = Mnemonic.to_seed(words, passphrase=passphrase)
    signing_key = Ed25519PrivateKey.from_private_bytes(seed[:32])
    public_key = signing_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
    private_key = seed[:32] + public_key
    address = wallet_address_for(public_key, private_key)
    logger.info("Generated new wallet %s", address)
    return Credentials(
        public_key=base64.b64encode(public_key).decode("ascii"),
        private_key=base64.b64encode(private_key).decode("ascii"),
        address=address,
        mnemonic=words,
        seed=seed.hex(),
    )


class CredentialStore:
    """Load and save :class:`Credentials` in an env file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> Credentials:
        if not self.exists():
            raise CredentialError(f"Credential file not found: {self.path}")
        values = dotenv_values(self.path)
        missing = [key for key in _FIELDS.values() if not values.get(key)]
        if missing:
            raise CredentialError(
                f"Failed to load wallet data from {self.path}; missing {', '.join(missing)}"
            )
        logger.debug("Loaded wallet credentials from %s", self.path)
        return Credentials(**{name: str(values[key]) for name, key in _FIELDS.items()})

    def save(self, credentials: Credentials) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        os.close(fd)
        # O_CREAT ignores the mode for a file that already exists.
        os.chmod(self.path, 0o600)
        for name, key in _FIELDS.items():
            set_key(self.path, key, getattr(credentials, name), quote_mode="never")
        logger.info("Saved wallet credentials to %s", self.path)

    def load_or_create(self) -> tuple[Credentials, bool]:
        """Return stored credentials, generating and saving them on first run."""

        if self.exists():
            return self.load(), False
        credentials = generate_credentials()
        self.save(credentials)
        return credentials, True
