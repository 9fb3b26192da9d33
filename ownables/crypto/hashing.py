# ownables/crypto/hashing.py
import hashlib

from ownables.core.canon import canonical_json
from ownables.core.encoding import b64url_decode
from ownables.core.types import Event


def genesis_hash(chain_id: str) -> str:
    """previous_hash of the first event in a chain."""
    return hashlib.sha256(chain_id.encode("utf-8")).hexdigest()


def compute_event_hash(previous_hash: str, payload: dict, signer: str) -> str:
    """sha256(previous_hash ‖ canonical(payload) ‖ signer public key), hex encoded."""
    h = hashlib.sha256()
    h.update(bytes.fromhex(previous_hash))
    h.update(canonical_json(payload))
    h.update(b64url_decode(signer))
    return h.hexdigest()


def event_hash(event: Event, previous_hash: str = None) -> str:
    """
    Recompute the hash of a stored event. Pass `previous_hash` to chain from a
    recomputed predecessor instead of the value stored on the event.
    """
    prev = event.previous_hash if previous_hash is None else previous_hash
    return compute_event_hash(prev, event.payload, event.signer)
