# ownables/core/types.py
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Literal, Optional, Tuple

EventContext = Literal["create", "transfer"]
EVENT_CONTEXTS: Tuple[str, ...] = ("create", "transfer")

# payload "@context" schema carried by each kind of event
CONTEXT_SCHEMAS: Dict[str, str] = {
    "create": "instantiate_msg.json",
    "transfer": "execute_msg.json",
}


@dataclass(frozen=True)
class Event:
    """Single signed entry in the hash-linked ownable event chain."""
    context: EventContext           # not hashed; must agree with payload "@context"
    payload: Dict[str, Any]
    signer: str                     # base64url Ed25519 public key
    previous_hash: str              # hex(sha256); genesis hash for the first event
    hash: str = ""                  # hex(sha256), set on append
    signature: str = ""             # base64url Ed25519 sig over the raw hash bytes
    timestamp: str = ""             # ISO 8601 UTC, informational only (not hashed)

    def to_dict(self) -> dict:
        return asdict(self)

    @property
    def is_signed(self) -> bool:
        return bool(self.hash and self.signature)


@dataclass(frozen=True)
class Anchor:
    """An event hash + signature waiting to be committed to the ledger."""
    event_hash: str
    signature: str


@dataclass(frozen=True)
class Commitment:
    """A ledger transaction batching one or more anchors."""
    transaction_id: str
    network: str
    explorer_url: str
    anchors: Tuple[Anchor, ...] = field(default_factory=tuple)

    @property
    def anchor_count(self) -> int:
        return len(self.anchors)


@dataclass(frozen=True)
class IterationResult:
    """Outcome of one completed transfer iteration."""
    iteration: int
    message_hash: str
    cid: str
    commitment: Optional[Commitment] = None

    @property
    def transaction_reference(self) -> Optional[str]:
        return self.commitment.explorer_url if self.commitment else None
