# tests/test_cli.py
from pathlib import Path

import pytest
from typer.testing import CliRunner

from conftest import demo_entries, make_zip, read_zip
from ownables.archive import read_package, write_package, write_volatile
from ownables.chain.event_chain import EventChain
from ownables.cid import compute_cid
from ownables.cli.main import app
from ownables.crypto.keys import Account

runner = CliRunner()


@pytest.fixture
def chained_archive(archive: Path, sender: Account) -> Path:
    """Archive with a two-event chain already embedded."""
    chain = EventChain.create(sender)
    chain.append("create", {"title": "demo"}, sender)
    chain.append("transfer", {"recipient": "T" + "1" * 40}, sender)
    write_package(write_volatile(read_package(archive), {"chain.json": chain.serialize()}))
    return archive


def test_cid_prints_identifier(archive: Path):
    result = runner.invoke(app, ["cid", str(archive)])
    assert result.exit_code == 0
    assert result.stdout.strip() == str(compute_cid(read_package(archive)))


def test_cid_missing_archive(tmp_path: Path):
    result = runner.invoke(app, ["cid", str(tmp_path / "missing.zip")])
    assert result.exit_code == 1
    assert "not found" in result.stdout.lower()


def test_cid_exclude_option(tmp_path: Path):
    archive = make_zip(tmp_path / "x.zip", demo_entries(**{"notes.tmp": b"draft"}))
    plain = runner.invoke(app, ["cid", str(archive)]).stdout.strip()
    excluded = runner.invoke(app, ["cid", str(archive), "--exclude", "*.tmp"]).stdout.strip()
    assert plain != excluded
    assert excluded == str(compute_cid(demo_entries()))


def test_verify_without_chain(archive: Path):
    result = runner.invoke(app, ["verify", str(archive)])
    assert result.exit_code == 0
    assert "no chain.json" in result.stdout.lower()


def test_verify_valid_chain(chained_archive: Path):
    result = runner.invoke(app, ["verify", str(chained_archive)])
    assert result.exit_code == 0
    assert "is valid" in result.stdout


def test_verify_tampered_chain(chained_archive: Path, tmp_path: Path):
    entries = read_zip(chained_archive)
    entries["chain.json"] = entries["chain.json"].replace(b'"title":"demo"', b'"title":"evil"')
    tampered = make_zip(tmp_path / "tampered.zip", entries)

    result = runner.invoke(app, ["verify", str(tampered)])
    assert result.exit_code == 1
    assert "verification failed" in result.stdout.lower()


def test_chain_lists_events(chained_archive: Path):
    result = runner.invoke(app, ["chain", str(chained_archive)])
    assert result.exit_code == 0
    assert "create" in result.stdout
    assert "transfer" in result.stdout


def test_address_for_seed():
    result = runner.invoke(app, ["address", "--seed", "alpha beta", "--network", "testnet"])
    assert result.exit_code == 0
    assert result.stdout.strip() == Account.from_seed("alpha beta").address("T")


def test_transfer_rejects_out_of_range_count(archive: Path, recipient: str):
    result = runner.invoke(app, [
        "transfer",
        "--recipient", recipient,
        "--seed", "alpha beta",
        "--network", "testnet",
        "--count", "0",
        "--archive", str(archive),
    ])
    assert result.exit_code == 1
    assert "transfer count" in result.stdout.lower()
    assert "chain.json" not in read_zip(archive)


def test_transfer_rejects_unknown_network(archive: Path, recipient: str):
    result = runner.invoke(app, [
        "transfer", "--recipient", recipient, "--seed", "alpha", "--network", "moon",
        "--archive", str(archive),
    ])
    assert result.exit_code == 1
    assert "unknown network" in result.stdout.lower()
