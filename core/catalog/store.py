"""Catalog store: owns the current snapshot and its refresh lifecycle.

Module purpose and system role:
    - Read the marketplace resource through a :class:`LedgerGateway`,
      decode it and publish an immutable :class:`CatalogSnapshot`.
    - Order snapshot replacement by issue sequence so a slow, older
      response can never overwrite a newer one.

Integration points and dependencies:
    - ``core.catalog.decoder`` for record decoding.
    - Subscribers (e.g. :class:`core.search.QueryView`) are notified after
      each applied snapshot.

Failure containment:
    - Network and decode failures are logged and returned in a
      :class:`RefreshResult`; the last good snapshot is kept.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from adapters.ledger_gateway import LedgerGateway
from core.catalog.decoder import decode_details, decode_record
from core.catalog.models import EMPTY_SNAPSHOT, CatalogSnapshot, NFTRecord
from core.config import MarketConfig
from core.errors import DecodeError, MarketplaceError, NetworkError, StaleDataError
from core.logger import StructuredLogger
from core import metrics

LOG = StructuredLogger("catalog_store")

Listener = Callable[[CatalogSnapshot], None]


@dataclass(frozen=True)
class RefreshResult:
    sequence: int
    snapshot: CatalogSnapshot
    error: Optional[MarketplaceError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def stale(self) -> bool:
        return isinstance(self.error, StaleDataError)


class CatalogStore:
    """Hold the latest ledger-confirmed catalog snapshot."""

    def __init__(self, gateway: LedgerGateway, config: MarketConfig | None = None) -> None:
        self.gateway = gateway
        self.config = config or MarketConfig()
        self._snapshot: CatalogSnapshot = EMPTY_SNAPSHOT
        self._issued = 0
        self._listeners: List[Listener] = []

    # ------------------------------------------------------------------
    @property
    def snapshot(self) -> CatalogSnapshot:
        return self._snapshot

    def subscribe(self, func: Listener) -> Callable[[], None]:
        """Register ``func`` for snapshot changes; returns an unsubscribe callable."""

        self._listeners.append(func)

        def _unsubscribe() -> None:
            if func in self._listeners:
                self._listeners.remove(func)

        return _unsubscribe

    def get(self, nft_id: int) -> Optional[NFTRecord]:
        return self._snapshot.get(nft_id)

    def owned_by(self, address: str) -> List[NFTRecord]:
        addr = address.lower()
        return [r for r in self._snapshot.records if r.owner.lower() == addr]

    # ------------------------------------------------------------------
    async def _fetch_records(self) -> List[NFTRecord]:
        data = await self.gateway.read_resource(self.config.marketplace_addr, self.config.resource_type)
        if data is None:
            raise NetworkError(f"resource {self.config.resource_type} not found")
        raw_nfts = data.get("nfts") if isinstance(data, dict) else None
        if not isinstance(raw_nfts, list):
            raise DecodeError("marketplace resource has no 'nfts' list")
        records: List[NFTRecord] = []
        for raw in raw_nfts:
            try:
                records.append(decode_record(raw))
            except DecodeError as exc:
                metrics.record_decode_error()
                LOG.log(
                    "record_skipped",
                    nft_id=raw.get("id", "") if isinstance(raw, dict) else "",
                    risk_level="medium",
                    error=str(exc),
                )
        return records

    async def refresh(self) -> RefreshResult:
        """Fetch, decode and (if still the newest request) publish a snapshot."""

        self._issued += 1
        sequence = self._issued
        try:
            records = await self._fetch_records()
        except (NetworkError, DecodeError) as exc:
            if sequence != self._issued:
                return self._discard(sequence)
            metrics.record_refresh("fail")
            LOG.log("refresh_fail", risk_level="medium", error=str(exc), sequence=sequence,
                    kept_version=self._snapshot.version)
            return RefreshResult(sequence, self._snapshot, exc)

        if sequence != self._issued:
            return self._discard(sequence)

        snapshot = CatalogSnapshot(
            records=tuple(records),
            version=self._snapshot.version + 1,
            fetched_at=time.time(),
        )
        self._snapshot = snapshot
        metrics.record_refresh("ok")
        LOG.log("refresh_ok", risk_level="low", sequence=sequence, version=snapshot.version, count=len(records))
        self._notify(snapshot)
        return RefreshResult(sequence, snapshot)

    def _discard(self, sequence: int) -> RefreshResult:
        stale = StaleDataError(sequence, self._issued)
        metrics.record_refresh("stale")
        LOG.log("refresh_stale", risk_level="low", sequence=sequence, latest=self._issued)
        return RefreshResult(sequence, self._snapshot, stale)

    def _notify(self, snapshot: CatalogSnapshot) -> None:
        for func in list(self._listeners):
            try:
                func(snapshot)
            except Exception as exc:
                LOG.log("listener_fail", risk_level="high", error=str(exc))

    # ------------------------------------------------------------------
    async def fetch_details(self, nft_id: int) -> NFTRecord:
        """Read one NFT through ``get_nft_details`` without touching the snapshot."""

        values = await self.gateway.view(
            self.config.function_id("get_nft_details"),
            [self.config.marketplace_addr, int(nft_id)],
        )
        return decode_details(values)

    async def fetch_owned(self, owner: str, limit: int = 100, offset: int = 0) -> List[NFTRecord]:
        """Return the NFTs ``owner`` holds, read id by id from the ledger."""

        result = await self.gateway.view(
            self.config.function_id("get_all_nfts_for_owner"),
            [self.config.marketplace_addr, owner, str(limit), str(offset)],
        )
        ids: List[Any] = result[0] if result and isinstance(result[0], list) else result
        details = await asyncio.gather(
            *(self.fetch_details(int(i)) for i in ids), return_exceptions=True
        )
        owned: List[NFTRecord] = []
        for nft_id, item in zip(ids, details):
            if isinstance(item, (NetworkError, DecodeError)):
                LOG.log("owned_detail_fail", nft_id=str(nft_id), risk_level="medium", error=str(item))
                continue
            if isinstance(item, BaseException):
                raise item
            owned.append(item)
        return owned
