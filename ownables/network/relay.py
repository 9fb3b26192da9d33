# ownables/network/relay.py
import base64
import hashlib
import logging
import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional

import httpx

from ownables.config import DEFAULT_TIMEOUT
from ownables.core.canon import canonical_digest
from ownables.core.encoding import b64url_decode, b64url_encode
from ownables.core.errors import DeliveryError
from ownables.crypto.keys import Account

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Message:
    """Signed envelope addressed to a recipient, carrying an opaque payload."""
    recipient: str
    sender: str                 # base64url public key
    media_type: str
    data: bytes
    timestamp: int
    meta: Dict[str, Any] = field(default_factory=dict)
    hash: str = ""
    signature: str = ""

    def header(self) -> dict:
        return {
            "recipient": self.recipient,
            "sender": self.sender,
            "mediaType": self.media_type,
            "timestamp": self.timestamp,
            "meta": self.meta,
            "dataHash": hashlib.sha256(self.data).hexdigest(),
        }

    def compute_hash(self) -> str:
        return canonical_digest(self.header())

    @classmethod
    def build(
        cls,
        data: bytes,
        media_type: str,
        meta: Dict[str, Any],
        recipient: str,
        sender: Account,
        timestamp: Optional[int] = None,
    ) -> "Message":
        """Create the envelope, hash the header and sign the hash."""
        # drop unset meta fields (e.g. no thumbnail)
        meta = {k: v for k, v in meta.items() if v is not None}
        unsigned = cls(
            recipient=recipient,
            sender=sender.public_key_b64url(),
            media_type=media_type,
            data=bytes(data),
            timestamp=timestamp if timestamp is not None else int(time.time() * 1000),
            meta=meta,
        )
        digest = unsigned.compute_hash()
        signature = b64url_encode(sender.sign_bytes(bytes.fromhex(digest)))
        return replace(unsigned, hash=digest, signature=signature)

    def verify(self) -> bool:
        if not self.hash or self.hash != self.compute_hash():
            return False
        signer = Account.from_public_b64url(self.sender)
        return signer.verify_bytes(b64url_decode(self.signature), bytes.fromhex(self.hash))

    def to_dict(self) -> dict:
        return {
            **self.header(),
            "data": base64.b64encode(self.data).decode("ascii"),
            "hash": self.hash,
            "signature": self.signature,
        }


class RelayClient:
    """Delivers signed envelopes to a relay endpoint. No payload comes back."""

    def __init__(self, endpoint: str, timeout: float = DEFAULT_TIMEOUT,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        if not endpoint or not endpoint.startswith(("http://", "https://")):
            raise ValueError(f"Relay endpoint must be an http(s) URL: {endpoint!r}")
        self.endpoint = endpoint.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def send(self, message: Message) -> None:
        if not message.signature:
            raise DeliveryError("Cannot send an unsigned message")

        logger.info("Sending message %s to %s via %s", message.hash[:16], message.recipient, self.endpoint)
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(f"{self.endpoint}/messages", json=message.to_dict())
        except httpx.TimeoutException as e:
            raise DeliveryError(f"Relay delivery timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise DeliveryError(f"Relay delivery failed: {e}") from e

        if response.status_code >= 400:
            raise DeliveryError(f"Relay rejected message: HTTP {response.status_code} {response.text[:200]}")
