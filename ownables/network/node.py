# ownables/network/node.py
"""
Ledger node client: anchoring event hashes and querying balances.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Sequence

import httpx
from lto.transactions.anchor import Anchor as AnchorTransaction

from ownables.config import DEFAULT_TIMEOUT, NetworkProfile, get_network
from ownables.core.errors import AnchoringError, BalanceQueryError
from ownables.core.types import Anchor, Commitment
from ownables.crypto.keys import Account

logger = logging.getLogger(__name__)

UNITS_PER_TOKEN = Decimal(10) ** 8


class NodeClient:
    """
    Talks to one ledger instance. Every failure (HTTP error status, transport
    error, timeout, unexpected response) surfaces as the operation's error
    type; nothing is retried.
    """

    def __init__(
        self,
        network: str = "mainnet",
        base_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.profile: NetworkProfile = get_network(network)
        self.base_url = (base_url or self.profile.api_url).rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self._timeout, transport=self._transport)

    def build_anchor_transaction(self, identity: Account, anchors: Sequence[Anchor],
                                 timestamp: Optional[int] = None) -> dict:
        """Signed LTO anchor transaction (JSON form) over the raw event hashes."""
        tx = AnchorTransaction(*[bytes.fromhex(a.event_hash) for a in anchors])
        if timestamp is not None:
            tx.timestamp = timestamp
        tx.sign_with(identity.ledger_account(self.profile.network_id))
        return tx.to_json()

    async def anchor(self, identity: Account, anchors: List[Anchor]) -> Commitment:
        """Commit the hashes of one or more events in a single anchor transaction."""
        if not anchors:
            raise ValueError("anchor() needs at least one anchor")

        tx = self.build_anchor_transaction(identity, anchors)
        logger.info("Anchoring %d event hash(es) on %s", len(anchors), self.profile.name)

        try:
            async with self._client() as client:
                response = await client.post("/transactions/broadcast", json=tx)
        except httpx.TimeoutException as e:
            raise AnchoringError(f"Anchoring timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise AnchoringError(f"Anchoring request failed: {e}") from e

        if response.status_code >= 400:
            raise AnchoringError(
                f"Ledger rejected anchor transaction: HTTP {response.status_code} {response.text[:200]}"
            )
        try:
            tx_id = response.json().get("id")
        except (ValueError, AttributeError) as e:
            raise AnchoringError("Ledger returned an unreadable response") from e
        if not tx_id:
            raise AnchoringError("Ledger response has no transaction id")

        return Commitment(
            transaction_id=str(tx_id),
            network=self.profile.name,
            explorer_url=self.profile.transaction_url(str(tx_id)),
            anchors=tuple(anchors),
        )

    async def balance(self, address: str) -> Decimal:
        """Available balance for `address`, in whole tokens."""
        try:
            async with self._client() as client:
                response = await client.get(f"/addresses/balance/{address}")
        except httpx.TimeoutException as e:
            raise BalanceQueryError(f"Balance query timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise BalanceQueryError(f"Balance query failed: {e}") from e

        if response.status_code >= 400:
            raise BalanceQueryError(f"Balance query failed: HTTP {response.status_code}")
        try:
            units = Decimal(str(response.json()["balance"]))
        except (ValueError, KeyError, TypeError, InvalidOperation) as e:
            raise BalanceQueryError("Balance response is malformed") from e
        return units / UNITS_PER_TOKEN
