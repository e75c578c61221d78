"""Account balance feed for the connected wallet."""

from __future__ import annotations

from decimal import Decimal

from adapters.ledger_gateway import LedgerGateway
from core.catalog.decoder import normalize_price
from core.errors import DecodeError
from core.logger import log_error

COIN_STORE = "0x1::coin::CoinStore<0x1::aptos_coin::AptosCoin>"


class AccountBalanceFeed:
    """Read native coin balances; an account without a coin store holds 0."""

    def __init__(self, gateway: LedgerGateway, coin_store: str = COIN_STORE) -> None:
        self.gateway = gateway
        self.coin_store = coin_store

    async def fetch_balance(self, address: str) -> Decimal:
        data = await self.gateway.read_resource(address, self.coin_store)
        if data is None:
            return Decimal(0)
        try:
            return normalize_price(data["coin"]["value"])
        except (KeyError, TypeError, ValueError) as exc:
            log_error("AccountBalanceFeed", f"bad coin store: {exc}", event="fetch_balance", address=address)
            raise DecodeError(f"unreadable coin store for {address}") from exc
