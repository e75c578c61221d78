"""Typed catalog records and snapshots."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from decimal import Decimal
from enum import IntEnum
from typing import Optional, Tuple


class Rarity(IntEnum):
    COMMON = 1
    UNCOMMON = 2
    RARE = 3
    SUPER_RARE = 4

    @property
    def label(self) -> str:
        return self.name.replace("_", " ").title()


@dataclass(frozen=True)
class NFTRecord:
    """Immutable view of one marketplace NFT, valid within its snapshot."""

    id: int
    owner: str
    name: str
    description: str
    uri: str
    price: Decimal
    for_sale: bool
    rarity: Rarity
    is_auction: bool = False
    auction_end: Optional[int] = None
    highest_bid: Optional[Decimal] = None
    highest_bidder: Optional[str] = None

    def auction_ended(self, now: float | None = None) -> bool:
        if not self.is_auction or self.auction_end is None:
            return False
        return (now if now is not None else time.time()) > self.auction_end

    def time_remaining(self, now: float | None = None) -> Optional[str]:
        """Return ``"<d>d <h>h <m>m"`` until auction end, or None if not an auction."""

        if not self.is_auction or self.auction_end is None:
            return None
        if self.auction_ended(now):
            return "Auction Ended"
        diff = int(self.auction_end - (now if now is not None else time.time()))
        days, rest = divmod(diff, 86400)
        hours, rest = divmod(rest, 3600)
        return f"{days}d {hours}h {rest // 60}m"


@dataclass(frozen=True)
class CatalogSnapshot:
    records: Tuple[NFTRecord, ...] = ()
    version: int = 0
    fetched_at: float = field(default_factory=time.time)

    def __len__(self) -> int:
        return len(self.records)

    def get(self, nft_id: int) -> Optional[NFTRecord]:
        for record in self.records:
            if record.id == nft_id:
                return record
        return None


EMPTY_SNAPSHOT = CatalogSnapshot(version=0, fetched_at=0.0)
