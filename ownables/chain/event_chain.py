# ownables/chain/event_chain.py
import hashlib
import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ownables.core.canon import canonical_json
from ownables.core.encoding import b64url_encode
from ownables.core.errors import ChainIntegrityError, ChainParseError
from ownables.core.types import EVENT_CONTEXTS, Anchor, Event
from ownables.crypto.hashing import compute_event_hash, genesis_hash
from ownables.crypto.keys import Account

logger = logging.getLogger(__name__)

_EVENT_FIELDS = ("context", "payload", "signer", "previous_hash", "hash", "signature")


def utc_iso_now_ms() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


def derive_chain_id(public_key: bytes, nonce: Optional[bytes] = None) -> str:
    nonce = nonce if nonce is not None else os.urandom(20)
    return b64url_encode(hashlib.sha256(nonce + public_key).digest()[:20])


@dataclass
class EventChain:
    """
    Append-only, hash-linked log of signed lifecycle events for one ownable.
    Events are never removed or reordered; the owner appends in place.
    """
    id: str
    identity: str                   # base64url public key of the creating account
    events: List[Event] = field(default_factory=list)

    # ── construction ────────────────────────────────────────────────────────

    @classmethod
    def create(cls, identity: Account, nonce: Optional[bytes] = None) -> "EventChain":
        """Genesis chain with zero events."""
        chain_id = derive_chain_id(identity.public_key_bytes(), nonce)
        logger.debug("Created event chain %s", chain_id)
        return cls(id=chain_id, identity=identity.public_key_b64url())

    @classmethod
    def load(cls, serialized) -> "EventChain":
        """
        Deserialize and verify a chain. Raises ChainParseError on malformed
        input and ChainIntegrityError if any event fails verification.
        Never falls back to a fresh chain.
        """
        from ownables.verify.verifier import ChainVerifier

        chain = cls.parse(serialized)
        result = ChainVerifier().verify(chain)
        if not result.is_valid:
            raise ChainIntegrityError(str(result), result.failures)
        logger.debug("Loaded event chain %s with %d events", chain.id, chain.length)
        return chain

    @classmethod
    def parse(cls, serialized) -> "EventChain":
        """Structural deserialization only; see load() for verified loading."""
        if isinstance(serialized, (bytes, bytearray)):
            try:
                serialized = serialized.decode("utf-8")
            except UnicodeDecodeError as e:
                raise ChainParseError(f"Chain state is not UTF-8: {e}") from e
        if isinstance(serialized, str):
            try:
                data = json.loads(serialized)
            except json.JSONDecodeError as e:
                raise ChainParseError(f"Chain state is not valid JSON: {e}") from e
        else:
            data = serialized

        if not isinstance(data, dict):
            raise ChainParseError("Chain state must be a JSON object")
        for key in ("id", "identity"):
            if not isinstance(data.get(key), str) or not data[key]:
                raise ChainParseError(f"Chain state is missing '{key}'")
        raw_events = data.get("events", [])
        if not isinstance(raw_events, list):
            raise ChainParseError("Chain 'events' must be a list")

        return cls(
            id=data["id"],
            identity=data["identity"],
            events=[_parse_event(raw, i) for i, raw in enumerate(raw_events)],
        )

    # ── queries ─────────────────────────────────────────────────────────────

    @property
    def length(self) -> int:
        return len(self.events)

    @property
    def genesis_hash(self) -> str:
        return genesis_hash(self.id)

    @property
    def latest_hash(self) -> str:
        """Hash of the tail event, or the genesis hash for an empty chain."""
        if not self.events:
            return self.genesis_hash
        return self.events[-1].hash

    def get_chain(self) -> List[Event]:
        """Returns copy of the full signed chain"""
        return self.events.copy()

    def unanchored_since(self, last_anchored_hash: Optional[str]) -> List[Event]:
        """
        Events strictly after the one whose hash is `last_anchored_hash`.
        Without a match the whole chain is returned (never anchored).
        """
        if last_anchored_hash:
            for i, event in enumerate(self.events):
                if event.hash == last_anchored_hash:
                    return self.events[i + 1:]
        return self.events.copy()

    # ── mutation ────────────────────────────────────────────────────────────

    def append(
        self,
        context: str,
        payload: Dict[str, Any],
        signer: Account,
        timestamp: Optional[str] = None,
    ) -> Event:
        """
        Hash over the tail hash, canonical payload and signer key → sign → append.
        Returns the newly signed event.
        """
        if context not in EVENT_CONTEXTS:
            raise ValueError(f"Unknown event context: {context!r}")
        if not isinstance(payload, dict):
            raise ValueError("Event payload must be a mapping")

        previous_hash = self.latest_hash
        signer_key = signer.public_key_b64url()
        # payload is stored in its JSON form
        payload = json.loads(canonical_json(payload))
        event_hash = compute_event_hash(previous_hash, payload, signer_key)
        signature = b64url_encode(signer.sign_bytes(bytes.fromhex(event_hash)))

        event = Event(
            context=context,
            payload=payload,
            signer=signer_key,
            previous_hash=previous_hash,
            hash=event_hash,
            signature=signature,
            timestamp=timestamp or utc_iso_now_ms(),
        )
        self.events.append(event)
        logger.debug("Appended %s event #%d to chain %s", context, self.length - 1, self.id)
        return event

    # ── persistence ─────────────────────────────────────────────────────────

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "identity": self.identity,
            "events": [e.to_dict() for e in self.events],
        }

    def serialize(self) -> bytes:
        return canonical_json(self.to_dict())


def anchor_map(events: List[Event]) -> List[Anchor]:
    """(hash, signature) pairs for the given events, in chain order."""
    return [Anchor(event_hash=e.hash, signature=e.signature) for e in events]


def _parse_event(raw: Any, index: int) -> Event:
    if not isinstance(raw, dict):
        raise ChainParseError("Event must be a JSON object", index)
    missing = [k for k in _EVENT_FIELDS if k not in raw]
    if missing:
        raise ChainParseError(f"Event is missing fields: {', '.join(missing)}", index)
    if not isinstance(raw["payload"], dict):
        raise ChainParseError("Event payload must be an object", index)
    for key in ("context", "signer", "previous_hash", "hash", "signature"):
        if not isinstance(raw[key], str):
            raise ChainParseError(f"Event field '{key}' must be a string", index)
    for key in ("previous_hash", "hash"):
        try:
            bytes.fromhex(raw[key])
        except ValueError:
            raise ChainParseError(f"Event field '{key}' is not hex", index) from None

    return Event(
        context=raw["context"],
        payload=raw["payload"],
        signer=raw["signer"],
        previous_hash=raw["previous_hash"],
        hash=raw["hash"],
        signature=raw["signature"],
        timestamp=raw.get("timestamp", "") or "",
    )
