# tests/conftest.py
import json
import zipfile
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from ownables.config import Settings
from ownables.core.errors import AnchoringError, DeliveryError
from ownables.core.types import Commitment
from ownables.crypto.keys import Account


def demo_entries(**extra: bytes) -> Dict[str, bytes]:
    entries = {
        "package.json": json.dumps({"name": "demo", "version": "1.0.0", "keywords": ["art"]}).encode(),
        "ownable_bg.wasm": b"\x00asm\x01\x00\x00\x00" + bytes(range(256)),
        "ownable.js": b"export default function init() {}\n",
        "index.html": b"<html><body>demo</body></html>",
        "images/cover.png": b"\x89PNG fake image bytes",
        "metadata.json": b'{"name":"demo"}',
    }
    entries.update(extra)
    return entries


def make_zip(path: Path, entries: Dict[str, bytes]) -> Path:
    with zipfile.ZipFile(path, "w") as zf:
        for name, content in entries.items():
            zf.writestr(name, content)
    return path


def read_zip(path: Path) -> Dict[str, bytes]:
    with zipfile.ZipFile(path) as zf:
        return {info.filename: zf.read(info) for info in zf.infolist() if not info.is_dir()}


class FakeNode:
    """In-memory ledger node recording every call."""

    def __init__(self, balance: Decimal = Decimal("100"), fail_on: Optional[int] = None):
        self._balance = balance
        self.fail_on = fail_on
        self.balance_calls: List[str] = []
        self.anchor_calls: List[list] = []

    async def balance(self, address: str) -> Decimal:
        self.balance_calls.append(address)
        return self._balance

    async def anchor(self, identity, anchors):
        self.anchor_calls.append(list(anchors))
        n = len(self.anchor_calls)
        if self.fail_on == n:
            raise AnchoringError("ledger rejected anchor transaction")
        tx_id = f"tx-{n}"
        return Commitment(
            transaction_id=tx_id,
            network="testnet",
            explorer_url=f"https://explorer.testnet.lto.network/transactions/{tx_id}",
            anchors=tuple(anchors),
        )


class FakeRelay:
    def __init__(self, fail_on: Optional[int] = None):
        self.fail_on = fail_on
        self.sent = []

    async def send(self, message) -> None:
        self.sent.append(message)
        if self.fail_on == len(self.sent):
            raise DeliveryError("relay unavailable")


@pytest.fixture
def sender() -> Account:
    return Account.from_seed("test seed phrase for the sending account")


@pytest.fixture
def recipient() -> str:
    return Account.from_seed("recipient seed").address("T")


@pytest.fixture
def settings() -> Settings:
    return Settings(network="testnet", iteration_delay=0)


@pytest.fixture
def archive(tmp_path: Path) -> Path:
    return make_zip(tmp_path / "demo.zip", demo_entries())


def make_corrupt_zip(path: Path, name: str = "big.bin") -> Path:
    """Valid package whose `name` entry has a damaged deflate stream."""
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for entry, content in demo_entries().items():
            zf.writestr(entry, content)
        zf.writestr(name, bytes(range(256)) * 400)
    with zipfile.ZipFile(path) as zf:
        info = zf.getinfo(name)
    raw = bytearray(path.read_bytes())
    start = info.header_offset + 30 + len(info.filename.encode("utf-8")) + len(info.extra)
    for i in range(start + 2, start + 12):
        raw[i] ^= 0xFF
    path.write_bytes(bytes(raw))
    return path
