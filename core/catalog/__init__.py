"""Ledger-sourced NFT catalog: records, decoding and the snapshot store."""

from .models import CatalogSnapshot, NFTRecord, Rarity
from .decoder import decode_field, denormalize_price, normalize_price
from .store import CatalogStore, RefreshResult

__all__ = [
    "CatalogSnapshot",
    "NFTRecord",
    "Rarity",
    "decode_field",
    "denormalize_price",
    "normalize_price",
    "CatalogStore",
    "RefreshResult",
]
