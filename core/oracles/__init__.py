"""Ledger-derived feeds that run alongside the catalog."""

from .marketplace_analytics import AnalyticsAggregator, ListedNFT, MarketplaceStats
from .account_feed import AccountBalanceFeed

__all__ = [
    "AnalyticsAggregator",
    "ListedNFT",
    "MarketplaceStats",
    "AccountBalanceFeed",
]
