# tests/test_config.py
from decimal import Decimal

import pytest

from ownables.config import (
    DEFAULT_ITERATION_DELAY,
    DEFAULT_RELAY_URL,
    TRANSFER_FEE,
    Settings,
    get_network,
)


def test_defaults_without_env():
    settings = Settings.resolve(env={})
    assert settings.network == "mainnet"
    assert settings.relay_url == DEFAULT_RELAY_URL
    assert settings.iteration_delay == DEFAULT_ITERATION_DELAY
    assert settings.transfer_fee == TRANSFER_FEE
    assert settings.api_url == "https://nodes.lto.network"


def test_env_overrides_defaults():
    env = {
        "OWNABLES_NETWORK": "testnet",
        "OWNABLES_RELAY_URL": "https://relay.example",
        "OWNABLES_ITERATION_DELAY": "0.25",
        "OWNABLES_TRANSFER_FEE": "0.75",
        "OWNABLES_NODE_URL": "http://localhost:6869",
    }
    settings = Settings.resolve(env=env)
    assert settings.profile.network_id == "T"
    assert settings.relay_url == "https://relay.example"
    assert settings.iteration_delay == 0.25
    assert settings.transfer_fee == Decimal("0.75")
    assert settings.api_url == "http://localhost:6869"


def test_explicit_arguments_win_over_env():
    settings = Settings.resolve(network="mainnet", iteration_delay=0, env={"OWNABLES_NETWORK": "testnet",
                                                                         "OWNABLES_ITERATION_DELAY": "5"})
    assert settings.network == "mainnet"
    assert settings.iteration_delay == 0


@pytest.mark.parametrize("env", [
    {"OWNABLES_ITERATION_DELAY": "soon"},
    {"OWNABLES_TRANSFER_FEE": "cheap"},
    {"OWNABLES_NETWORK": "moon"},
])
def test_bad_env_values_rejected(env):
    with pytest.raises(ValueError):
        Settings.resolve(env=env)


@pytest.mark.parametrize("selector,name", [("T", "testnet"), ("main", "mainnet"), (" Testnet ", "testnet")])
def test_network_aliases(selector, name):
    assert get_network(selector).name == name


def test_transaction_url():
    assert get_network("testnet").transaction_url("abc") == "https://explorer.testnet.lto.network/transactions/abc"
