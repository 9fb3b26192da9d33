# ownables/crypto/keys.py
"""
Ed25519 signing identities backed by LTO accounts.

A seed phrase is turned into a key pair the way the LTO network does it, so
the same seed always yields the same key and the same base58 ledger address
as any other LTO wallet.
"""

import secrets
from typing import Dict, Optional

import base58
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from lto.accounts.ed25519 import AccountFactory
from lto.crypto import validate_address

from ownables.core.encoding import b64url_decode, b64url_encode

NETWORK_IDS = ("L", "T")


def is_valid_address(address: str, network_id: Optional[str] = None) -> bool:
    """Checksummed LTO address, optionally restricted to one network."""
    if not isinstance(address, str) or not address:
        return False
    try:
        if not validate_address(address):
            return False
        raw = base58.b58decode(address)
    # lto reports every malformed address with a plain Exception
    except Exception:
        return False
    return network_id is None or raw[1:2] == network_id.encode("ascii")


class Account:
    """
    Ed25519 key pair. Verify-only when constructed from a public key.
    Only seed-backed accounts have ledger addresses.
    """

    def __init__(self, private_key: Optional[Ed25519PrivateKey] = None,
                 public_key: Optional[Ed25519PublicKey] = None,
                 seed: Optional[str] = None):
        if private_key is None and public_key is None:
            raise ValueError("Account needs a private or public key")
        self._private_key = private_key
        self._public_key = public_key or private_key.public_key()
        self._seed = seed
        self._ledger_accounts: Dict[str, object] = {}

    @classmethod
    def generate(cls) -> "Account":
        return cls.from_seed(secrets.token_hex(32))

    @classmethod
    def from_seed(cls, seed: str) -> "Account":
        seed = seed.strip()
        if not seed:
            raise ValueError("Seed phrase cannot be empty")
        ledger_account = AccountFactory(NETWORK_IDS[0]).create_from_seed(seed)
        key = Ed25519PrivateKey.from_private_bytes(bytes(ledger_account.private_key)[:32])
        account = cls(key, seed=seed)
        account._ledger_accounts[NETWORK_IDS[0]] = ledger_account
        return account

    @classmethod
    def from_public_b64url(cls, public_b64: str) -> "Account":
        return cls(public_key=Ed25519PublicKey.from_public_bytes(b64url_decode(public_b64)))

    @property
    def can_sign(self) -> bool:
        return self._private_key is not None

    def ledger_account(self, network_id: str):
        """The lto account for `network_id`; used to sign ledger transactions."""
        if network_id not in NETWORK_IDS:
            raise ValueError(f"Unknown network id: {network_id!r}")
        if self._seed is None:
            raise ValueError("Ledger accounts need a seed-backed identity")
        if network_id not in self._ledger_accounts:
            self._ledger_accounts[network_id] = AccountFactory(network_id).create_from_seed(self._seed)
        return self._ledger_accounts[network_id]

    def public_key_bytes(self) -> bytes:
        return self._public_key.public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )

    def public_key_b64url(self) -> str:
        return b64url_encode(self.public_key_bytes())

    def address(self, network_id: str) -> str:
        return self.ledger_account(network_id).address

    def sign_bytes(self, data: bytes) -> bytes:
        if self._private_key is None:
            raise ValueError("Cannot sign with a verify-only account")
        return self._private_key.sign(data)

    def verify_bytes(self, signature: bytes, data: bytes) -> bool:
        try:
            self._public_key.verify(signature, data)
            return True
        except InvalidSignature:
            return False
