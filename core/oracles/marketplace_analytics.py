"""Marketplace analytics feed.

Module purpose and system role:
    - Periodically pull aggregate counters, the per-rarity histogram and
      the active listings from marketplace view functions.
    - Independent of :class:`core.catalog.CatalogStore`; it only shares
      the gateway.

Integration points and dependencies:
    - :class:`adapters.ledger_gateway.LedgerGateway` for view calls.
    - Publishes gauges through ``core.metrics``.

Failure handling:
    - A failed poll keeps the previously computed stats, is logged and
      re-raised as :class:`core.errors.NetworkError` from ``poll_once``.
      The background loop reports it to error subscribers and continues.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

from adapters.ledger_gateway import LedgerGateway
from core.catalog.decoder import PRICE_SCALE, normalize_price
from core.catalog.models import Rarity
from core.config import MarketConfig
from core.errors import DecodeError, NetworkError
from core.logger import StructuredLogger
from core import metrics

LOG = StructuredLogger("marketplace_analytics")


@dataclass(frozen=True)
class ListedNFT:
    id: int
    price: Decimal
    rarity: int


@dataclass(frozen=True)
class MarketplaceStats:
    total_nfts: int = 0
    total_sales: int = 0
    total_auctions: int = 0
    average_price: Decimal = Decimal(0)
    rarity_histogram: Dict[Rarity, int] = field(default_factory=dict)
    listings: Tuple[ListedNFT, ...] = ()
    updated_at: float = 0.0


def average_price(raw_prices: List[int]) -> Decimal:
    """``sum(price) / (10^8 * count)``; zero when nothing is listed."""
    if not raw_prices:
        return Decimal(0)
    return Decimal(sum(raw_prices)) / (Decimal(PRICE_SCALE) * len(raw_prices))


def _first_scalar(values: List[Any], name: str) -> int:
    if not values:
        raise DecodeError(f"{name} returned no values")
    try:
        return int(values[0])
    except (TypeError, ValueError) as exc:
        raise DecodeError(f"{name} returned {values[0]!r}, expected a u64") from exc


def _first_list(values: List[Any], name: str) -> List[Any]:
    if not values or not isinstance(values[0], list):
        raise DecodeError(f"{name} did not return a vector")
    return values[0]


class AnalyticsAggregator:
    """Poll marketplace aggregates on a fixed interval."""

    def __init__(self, gateway: LedgerGateway, config: MarketConfig | None = None, *, interval: float | None = None) -> None:
        self.gateway = gateway
        self.config = config or MarketConfig()
        self.interval = interval if interval is not None else self.config.analytics_interval
        self.stats = MarketplaceStats()
        self.last_error: Optional[NetworkError] = None
        self._task: Optional[asyncio.Task[None]] = None
        self._subscribers: List[Callable[[MarketplaceStats], None]] = []
        self._error_subscribers: List[Callable[[NetworkError], None]] = []

    # ---------------------------------------------------------------
    def subscribe(self, func: Callable[[MarketplaceStats], None]) -> None:
        self._subscribers.append(func)

    def on_error(self, func: Callable[[NetworkError], None]) -> None:
        self._error_subscribers.append(func)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ---------------------------------------------------------------
    async def _view(self, name: str, *args: Any) -> List[Any]:
        return await self.gateway.view(self.config.function_id(name), [self.config.marketplace_addr, *args])

    async def _fetch(self) -> MarketplaceStats:
        total_nfts = _first_scalar(await self._view("get_total_nfts"), "get_total_nfts")
        total_sales = _first_scalar(await self._view("get_total_sales"), "get_total_sales")
        total_auctions = _first_scalar(await self._view("get_total_auctions"), "get_total_auctions")

        histogram: Dict[Rarity, int] = {}
        for tier in Rarity:
            nfts = _first_list(await self._view("get_nfts_by_rarity", int(tier)), "get_nfts_by_rarity")
            histogram[tier] = len(nfts)

        raw_listed = _first_list(
            await self._view("get_all_nfts_for_sale", str(self.config.listing_limit), "0"),
            "get_all_nfts_for_sale",
        )
        raw_prices: List[int] = []
        listings: List[ListedNFT] = []
        for item in raw_listed:
            try:
                price = int(item["price"])
                listings.append(ListedNFT(int(item["id"]), normalize_price(price), int(item.get("rarity", 0))))
            except (KeyError, TypeError, ValueError, AttributeError) as exc:
                raise DecodeError(f"malformed listing {item!r}: {exc}") from exc
            raw_prices.append(price)

        return MarketplaceStats(
            total_nfts=total_nfts,
            total_sales=total_sales,
            total_auctions=total_auctions,
            average_price=average_price(raw_prices),
            rarity_histogram=histogram,
            listings=tuple(listings),
            updated_at=time.time(),
        )

    async def poll_once(self) -> MarketplaceStats:
        """Fetch fresh stats; on failure keep the previous ones and raise NetworkError."""

        try:
            stats = await self._fetch()
        except (NetworkError, DecodeError, TypeError, ValueError) as exc:
            error = exc if isinstance(exc, NetworkError) else NetworkError(f"analytics decode failed: {exc}")
            self.last_error = error
            metrics.record_analytics_fail()
            LOG.log("poll_fail", risk_level="medium", error=str(exc))
            raise error from exc

        self.stats = stats
        self.last_error = None
        metrics.record_stats(
            {
                "total_nfts": stats.total_nfts,
                "total_sales": stats.total_sales,
                "total_auctions": stats.total_auctions,
                "average_price": float(stats.average_price),
            },
            {tier.label: count for tier, count in stats.rarity_histogram.items()},
        )
        LOG.log(
            "poll_ok",
            risk_level="low",
            total_nfts=stats.total_nfts,
            listed=len(stats.listings),
            average_price=stats.average_price,
        )
        for func in list(self._subscribers):
            try:
                func(stats)
            except Exception as exc:
                LOG.log("subscriber_fail", risk_level="high", error=str(exc))
        return stats

    # ---------------------------------------------------------------
    async def _run(self) -> None:
        while True:
            try:
                await self.poll_once()
            except NetworkError as exc:
                self._report(exc)
            except Exception as exc:
                metrics.record_analytics_fail()
                LOG.log("poll_crash", risk_level="high", error=f"{type(exc).__name__}: {exc}")
                self.last_error = NetworkError(f"analytics poll failed: {exc}")
                self._report(self.last_error)
            await asyncio.sleep(self.interval)

    def _report(self, exc: NetworkError) -> None:
        for func in list(self._error_subscribers):
            try:
                func(exc)
            except Exception as cb_exc:
                LOG.log("subscriber_fail", risk_level="high", error=str(cb_exc))

    def start(self) -> None:
        """Start polling immediately and then every ``interval`` seconds."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        LOG.log("started", risk_level="low", interval=self.interval)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        LOG.log("stopped", risk_level="low")
