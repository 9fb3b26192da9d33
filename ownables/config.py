# ownables/config.py
"""
Configuration for transfers.

Values resolve in this order:
1. explicit arguments (CLI flags)
2. OWNABLES_* environment variables
3. defaults below
"""

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Mapping, Optional

TRANSFER_FEE = Decimal("0.5")
MIN_TRANSFER_COUNT = 1
MAX_TRANSFER_COUNT = 50
DEFAULT_RELAY_URL = "https://relay-dev.lto.network"
DEFAULT_NETWORK = "mainnet"
DEFAULT_ITERATION_DELAY = 2.0
DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class NetworkProfile:
    name: str
    network_id: str     # address prefix char
    api_url: str
    explorer_url: str

    def transaction_url(self, transaction_id: str) -> str:
        return f"{self.explorer_url}/transactions/{transaction_id}"


NETWORKS = {
    "mainnet": NetworkProfile(
        name="mainnet",
        network_id="L",
        api_url="https://nodes.lto.network",
        explorer_url="https://explorer.lto.network",
    ),
    "testnet": NetworkProfile(
        name="testnet",
        network_id="T",
        api_url="https://testnet.lto.network",
        explorer_url="https://explorer.testnet.lto.network",
    ),
}

_NETWORK_ALIASES = {"main": "mainnet", "l": "mainnet", "test": "testnet", "t": "testnet"}


def get_network(selector: str) -> NetworkProfile:
    """Accepts 'mainnet'/'testnet', 'main'/'test' or the network id char."""
    key = (selector or "").strip().lower()
    key = _NETWORK_ALIASES.get(key, key)
    if key not in NETWORKS:
        raise ValueError(f"Unknown network: {selector!r} (expected mainnet or testnet)")
    return NETWORKS[key]


@dataclass(frozen=True)
class Settings:
    network: str = DEFAULT_NETWORK
    relay_url: str = DEFAULT_RELAY_URL
    iteration_delay: float = DEFAULT_ITERATION_DELAY
    timeout: float = DEFAULT_TIMEOUT
    transfer_fee: Decimal = TRANSFER_FEE
    node_url: Optional[str] = None

    @property
    def profile(self) -> NetworkProfile:
        return get_network(self.network)

    @property
    def api_url(self) -> str:
        return self.node_url or self.profile.api_url

    @classmethod
    def resolve(
        cls,
        network: Optional[str] = None,
        relay_url: Optional[str] = None,
        iteration_delay: Optional[float] = None,
        node_url: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> "Settings":
        env = os.environ if env is None else env

        delay = iteration_delay
        if delay is None and env.get("OWNABLES_ITERATION_DELAY"):
            try:
                delay = float(env["OWNABLES_ITERATION_DELAY"])
            except ValueError:
                raise ValueError("OWNABLES_ITERATION_DELAY must be a number") from None

        fee = TRANSFER_FEE
        if env.get("OWNABLES_TRANSFER_FEE"):
            try:
                fee = Decimal(env["OWNABLES_TRANSFER_FEE"])
            except InvalidOperation:
                raise ValueError("OWNABLES_TRANSFER_FEE must be a decimal amount") from None

        settings = cls(
            network=network or env.get("OWNABLES_NETWORK") or DEFAULT_NETWORK,
            relay_url=relay_url or env.get("OWNABLES_RELAY_URL") or DEFAULT_RELAY_URL,
            iteration_delay=DEFAULT_ITERATION_DELAY if delay is None else delay,
            transfer_fee=fee,
            node_url=node_url or env.get("OWNABLES_NODE_URL") or None,
        )
        get_network(settings.network)
        return settings
