# ownables/verify/verifier.py
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

from ownables.core.encoding import b64url_decode
from ownables.core.types import CONTEXT_SCHEMAS, EVENT_CONTEXTS
from ownables.crypto.hashing import event_hash, genesis_hash
from ownables.crypto.keys import Account

if TYPE_CHECKING:
    from ownables.chain.event_chain import EventChain


@dataclass
class VerificationFailure:
    index: int
    message: str
    category: str = "general"  # e.g. "hash", "hash_chain", "signature", "context"


@dataclass
class VerificationResult:
    is_valid: bool
    message: str = ""
    failures: List[VerificationFailure] = None

    def __post_init__(self):
        if self.failures is None:
            self.failures = []

    @property
    def first_failure(self) -> Optional[VerificationFailure]:
        return self.failures[0] if self.failures else None

    def failed_indices(self) -> List[int]:
        return sorted({f.index for f in self.failures})

    def __bool__(self):
        return self.is_valid

    def __str__(self):
        if self.is_valid:
            return "Chain is valid ✓"
        lines = [f"Verification FAILED ({len(self.failures)} issues):"]
        for f in self.failures:
            lines.append(f"  • [{f.index}] {f.category}: {f.message}")
        return "\n".join(lines)


class ChainVerifier:
    """
    Offline verifier for ownable event chains.

    Every hash is recomputed from the stored payload and signer,
    chained from the *recomputed* predecessor hash starting at the genesis
    value. A change to event k therefore invalidates k and every event after it.
    """

    def verify(self, chain: "EventChain") -> VerificationResult:
        if not chain.events:
            return VerificationResult(True, "Empty chain is valid")

        result = VerificationResult(True)
        running = genesis_hash(chain.id)

        for i, ev in enumerate(chain.events):
            if ev.context not in EVENT_CONTEXTS:
                result.failures.append(VerificationFailure(i, f"Unknown context: {ev.context}", "context"))
            elif "@context" in ev.payload and ev.payload["@context"] != CONTEXT_SCHEMAS[ev.context]:
                result.failures.append(VerificationFailure(
                    i, f"Context {ev.context} does not match payload @context {ev.payload['@context']!r}", "context"))

            if ev.previous_hash != running:
                result.failures.append(VerificationFailure(
                    i, "previous_hash does not match the preceding event hash", "hash_chain"))

            try:
                expected = event_hash(ev, previous_hash=running)
            except (ValueError, TypeError) as e:
                result.failures.append(VerificationFailure(i, f"Cannot recompute hash: {e}", "hash"))
                break

            if expected != ev.hash:
                result.failures.append(VerificationFailure(i, "Stored hash does not match recomputed hash", "hash"))
            else:
                self._check_signature(i, ev, result)

            running = expected

        result.is_valid = not result.failures
        result.message = "Valid chain" if result.is_valid else f"Failed with {len(result.failures)} issues"
        return result

    @staticmethod
    def _check_signature(index: int, ev, result: VerificationResult) -> None:
        try:
            signer = Account.from_public_b64url(ev.signer)
            if not signer.verify_bytes(b64url_decode(ev.signature), bytes.fromhex(ev.hash)):
                result.failures.append(VerificationFailure(index, "Invalid signature", "signature"))
        except ValueError as e:
            result.failures.append(VerificationFailure(index, f"Key loading failed: {str(e)}", "signature"))
