# tests/test_chain.py
import json

import pytest

from ownables.chain.event_chain import EventChain, anchor_map
from ownables.core.errors import ChainIntegrityError, ChainParseError
from ownables.crypto.hashing import event_hash, genesis_hash
from ownables.crypto.keys import Account


@pytest.fixture
def owner():
    return Account.generate()


@pytest.fixture
def empty_chain(owner):
    return EventChain.create(owner)


def build_chain(owner, n_events=4):
    chain = EventChain.create(owner)
    chain.append("create", {"title": "demo"}, owner)
    for i in range(1, n_events):
        chain.append("transfer", {"recipient": f"agent-{i}", "n": i}, owner)
    return chain


def test_chain_starts_empty(empty_chain, owner):
    assert empty_chain.length == 0
    assert empty_chain.identity == owner.public_key_b64url()
    assert empty_chain.latest_hash == genesis_hash(empty_chain.id)


def test_chain_ids_differ_per_lineage(owner):
    assert EventChain.create(owner).id != EventChain.create(owner).id
    assert EventChain.create(owner, nonce=b"n").id == EventChain.create(owner, nonce=b"n").id


def test_append_one_event(empty_chain, owner):
    event = empty_chain.append("create", {"title": "demo"}, owner)

    assert empty_chain.length == 1
    assert event.previous_hash == empty_chain.genesis_hash
    assert event.hash == event_hash(event)
    assert event.signature != ""
    assert event.timestamp != ""


def test_chain_links_hashes(owner):
    chain = build_chain(owner, 4)
    events = chain.get_chain()
    for i in range(1, len(events)):
        assert events[i].previous_hash == events[i - 1].hash
    assert chain.latest_hash == events[-1].hash


def test_append_rejects_unknown_context(empty_chain, owner):
    with pytest.raises(ValueError):
        empty_chain.append("burn", {}, owner)
    assert empty_chain.length == 0


def test_get_chain_is_a_copy(owner):
    chain = build_chain(owner, 2)
    copy = chain.get_chain()
    copy.pop()
    assert chain.length == 2


def test_serialize_roundtrip(owner):
    chain = build_chain(owner, 3)
    loaded = EventChain.load(chain.serialize())
    assert loaded == chain
    assert loaded.serialize() == chain.serialize()


def test_unanchored_since_returns_suffix(owner):
    chain = build_chain(owner, 5)
    events = chain.get_chain()

    assert chain.unanchored_since(events[1].hash) == events[2:]
    assert chain.unanchored_since(events[-1].hash) == []


def test_unanchored_since_without_match_returns_all(owner):
    chain = build_chain(owner, 3)
    assert chain.unanchored_since("ab" * 32) == chain.events
    assert chain.unanchored_since(None) == chain.events


def test_anchor_map_pairs(owner):
    chain = build_chain(owner, 2)
    anchors = anchor_map(chain.events)
    assert [a.event_hash for a in anchors] == [e.hash for e in chain.events]
    assert [a.signature for a in anchors] == [e.signature for e in chain.events]


@pytest.mark.parametrize("raw", [
    b"not json",
    b"[]",
    b'{"identity": "x", "events": []}',
    b'{"id": "x", "identity": "y", "events": {}}',
    b'{"id": "x", "identity": "y", "events": [{"context": "create"}]}',
    b"\xff\xfe",
])
def test_load_malformed(raw):
    with pytest.raises(ChainParseError):
        EventChain.load(raw)


def test_load_reports_event_index(owner):
    data = json.loads(build_chain(owner, 3).serialize())
    data["events"][2]["hash"] = "zz-not-hex"
    with pytest.raises(ChainParseError) as exc:
        EventChain.load(json.dumps(data))
    assert exc.value.index == 2


def test_load_rejects_tampered_chain(owner):
    data = json.loads(build_chain(owner, 3).serialize())
    data["events"][1]["payload"]["recipient"] = "mallory"
    with pytest.raises(ChainIntegrityError) as exc:
        EventChain.load(json.dumps(data))
    assert exc.value.index == 1
