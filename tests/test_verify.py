# tests/test_verify.py
import hashlib
from dataclasses import replace

import jcs

from ownables.chain.event_chain import EventChain
from ownables.core.encoding import b64url_decode, b64url_encode
from ownables.crypto.hashing import compute_event_hash
from ownables.crypto.keys import Account
from ownables.verify.verifier import ChainVerifier


def create_test_chain(n_events=4):
    alice, bob = Account.generate(), Account.generate()
    chain = EventChain.create(alice)
    chain.append("create", {"title": "demo"}, alice)
    for i in range(1, n_events):
        signer = bob if i % 2 else alice
        chain.append("transfer", {"recipient": f"owner-{i}"}, signer)
    return chain, (alice, bob)


def test_valid_chain():
    chain, _ = create_test_chain(6)
    result = ChainVerifier().verify(chain)
    assert result.is_valid is True
    assert len(result.failures) == 0


def test_empty_chain_is_valid():
    assert ChainVerifier().verify(EventChain.create(Account.generate()))


def test_tampered_payload_fails_every_later_event():
    chain, _ = create_test_chain(6)
    k = 2
    chain.events[k] = replace(chain.events[k], payload={"recipient": "HACKED"})

    result = ChainVerifier().verify(chain)
    assert result.is_valid is False
    assert result.failed_indices() == list(range(k, 6))


def test_tampered_last_event():
    chain, _ = create_test_chain(4)
    chain.events[3] = replace(chain.events[3], payload={"recipient": "HACKED"})
    result = ChainVerifier().verify(chain)
    assert result.failed_indices() == [3]


def test_broken_hash_link():
    chain, _ = create_test_chain(5)
    chain.events[3] = replace(chain.events[3], previous_hash="deadbeef" * 8)

    result = ChainVerifier().verify(chain)
    assert result.is_valid is False
    assert any(f.category == "hash_chain" and f.index == 3 for f in result.failures)


def test_relabelled_context_detected():
    alice = Account.generate()
    chain = EventChain.create(alice)
    chain.append("create", {"@context": "instantiate_msg.json", "title": "demo"}, alice)
    chain.append("transfer", {"@context": "execute_msg.json", "recipient": "owner-1"}, alice)
    assert ChainVerifier().verify(chain)

    chain.events[1] = replace(chain.events[1], context="create")
    result = ChainVerifier().verify(chain)
    assert result.failed_indices() == [1]
    assert result.first_failure.category == "context"


def test_hash_covers_payload_only():
    chain, _ = create_test_chain(2)
    ev = chain.events[1]
    expected = hashlib.sha256(
        bytes.fromhex(ev.previous_hash)
        + jcs.canonicalize(ev.payload)
        + b64url_decode(ev.signer)
    ).hexdigest()
    assert ev.hash == expected


def test_forged_signature():
    chain, (alice, bob) = create_test_chain(3)
    mallory = Account.generate()
    ev = chain.events[2]
    # rehash with the right key but sign with another one
    forged = replace(ev, signature=b64url_encode(mallory.sign_bytes(bytes.fromhex(ev.hash))))
    chain.events[2] = forged

    result = ChainVerifier().verify(chain)
    assert [f.category for f in result.failures] == ["signature"]


def test_swapped_signer_key():
    chain, (alice, bob) = create_test_chain(2)
    mallory = Account.generate()
    ev = chain.events[1]
    new_hash = compute_event_hash(ev.previous_hash, ev.payload, mallory.public_key_b64url())
    chain.events[1] = replace(ev, signer=mallory.public_key_b64url(), hash=new_hash)

    result = ChainVerifier().verify(chain)
    assert result.is_valid is False
    assert result.first_failure.category == "signature"


def test_result_string():
    chain, _ = create_test_chain(3)
    chain.events[0] = replace(chain.events[0], payload={})
    text = str(ChainVerifier().verify(chain))
    assert text.startswith("Verification FAILED")
