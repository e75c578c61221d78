import asyncio
from decimal import Decimal

import pytest

from core.errors import DecodeError, NetworkError
from core.oracles.account_feed import COIN_STORE, AccountBalanceFeed
from fakes import SENDER, DummyGateway


def test_balance_is_normalized():
    gateway = DummyGateway()
    gateway.resources[(SENDER, COIN_STORE)] = {"coin": {"value": "250000000"}}
    assert asyncio.run(AccountBalanceFeed(gateway).fetch_balance(SENDER)) == Decimal("2.5")


def test_missing_coin_store_is_zero():
    assert asyncio.run(AccountBalanceFeed(DummyGateway()).fetch_balance(SENDER)) == 0


def test_malformed_coin_store_raises():
    gateway = DummyGateway()
    gateway.resources[(SENDER, COIN_STORE)] = {"coin": {}}
    with pytest.raises(DecodeError):
        asyncio.run(AccountBalanceFeed(gateway).fetch_balance(SENDER))


def test_network_error_propagates():
    gateway = DummyGateway()
    gateway.read_error = NetworkError("down")
    with pytest.raises(NetworkError):
        asyncio.run(AccountBalanceFeed(gateway).fetch_balance(SENDER))
