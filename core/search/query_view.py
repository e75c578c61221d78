"""Faceted, ranked, paginated view over the catalog snapshot.

``compute_view`` is the pure pipeline (sale filter -> rarity facet ->
relevance ranking -> stable sort -> page slice). :class:`QueryView`
keeps the current filters, listens to :class:`CatalogStore` and
recomputes on change, debouncing query keystrokes.
"""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass, replace
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, Union

from core.catalog.models import CatalogSnapshot, NFTRecord, Rarity
from core.catalog.store import CatalogStore
from core.config import MarketConfig
from core.errors import ValidationError
from core.logger import StructuredLogger
from core.search import ranker
from core.search.debounce import Debouncer

LOG = StructuredLogger("query_view")

DEFAULT_PAGE_SIZE = 8

RarityFacet = Union[Rarity, int, str, None]


@dataclass(frozen=True)
class ViewFilters:
    query: str = ""
    rarity: Optional[Rarity] = None
    for_sale_only: bool = True


@dataclass(frozen=True)
class Page:
    items: Tuple[NFTRecord, ...]
    total: int
    page: int
    page_size: int

    @property
    def page_count(self) -> int:
        return math.ceil(self.total / self.page_size) if self.total else 0


def parse_rarity_facet(value: RarityFacet) -> Optional[Rarity]:
    """``"all"``/None select every tier; anything else must be a known tier."""

    if value is None or (isinstance(value, str) and value.strip().lower() == "all"):
        return None
    try:
        return Rarity(int(value))
    except (TypeError, ValueError) as exc:
        raise ValidationError("rarity", f"unknown rarity facet {value!r}") from exc


def filter_and_rank(records: Iterable[NFTRecord], filters: ViewFilters) -> List[NFTRecord]:
    matched = [
        r
        for r in records
        if (not filters.for_sale_only or r.for_sale)
        and (filters.rarity is None or r.rarity == filters.rarity)
    ]
    if not filters.query.strip():
        return matched
    scored = [(ranker.score(filters.query, r), r) for r in matched]
    # sorted() is stable, ties keep catalog order
    ranked = sorted((pair for pair in scored if pair[0] > 0), key=lambda pair: pair[0], reverse=True)
    return [r for _, r in ranked]


def paginate(items: Sequence[NFTRecord], page: int, page_size: int = DEFAULT_PAGE_SIZE) -> Page:
    if page_size <= 0:
        raise ValueError("page_size must be > 0")
    page = max(1, int(page))
    start = (page - 1) * page_size
    return Page(tuple(items[start:start + page_size]), len(items), page, page_size)


def compute_view(
    records: Iterable[NFTRecord],
    filters: ViewFilters,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> Page:
    return paginate(filter_and_rank(records, filters), page, page_size)


class QueryView:
    """Materialized page of the catalog for the presentation layer."""

    def __init__(
        self,
        store: CatalogStore,
        config: MarketConfig | None = None,
        *,
        for_sale_only: bool = True,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.config = config or store.config
        self.filters = ViewFilters(for_sale_only=for_sale_only)
        self._records: Tuple[NFTRecord, ...] = store.snapshot.records
        self._matches: List[NFTRecord] = []
        self._page_number = 1
        self._listeners: List[Callable[[Page], None]] = []
        self._closed = False
        self._debouncer = Debouncer(self.config.debounce_seconds, self._recompute, loop=loop)
        self._unsubscribe = store.subscribe(self.on_catalog_changed)
        self._recompute()

    # ------------------------------------------------------------------
    @property
    def page(self) -> Page:
        return paginate(self._matches, self._page_number, self.config.page_size)

    @property
    def total(self) -> int:
        return len(self._matches)

    def subscribe(self, func: Callable[[Page], None]) -> None:
        self._listeners.append(func)

    # ------------------------------------------------------------------
    def set_query(self, text: str) -> None:
        """Record a keystroke; the recompute fires after the quiet interval."""
        if self._closed:
            return
        self.filters = replace(self.filters, query=text)
        self._debouncer.trigger()

    def set_rarity(self, value: RarityFacet) -> None:
        if self._closed:
            return
        self.filters = replace(self.filters, rarity=parse_rarity_facet(value))
        self._recompute_now()

    def set_for_sale_only(self, enabled: bool) -> None:
        if self._closed:
            return
        self.filters = replace(self.filters, for_sale_only=bool(enabled))
        self._recompute_now()

    def set_page(self, page: int) -> Page:
        self._page_number = max(1, int(page))
        current = self.page
        self._emit(current)
        return current

    def on_catalog_changed(self, snapshot: CatalogSnapshot) -> None:
        if self._closed:
            return
        self._records = snapshot.records
        self._recompute_now()

    def close(self) -> None:
        """Cancel any pending recompute and detach from the store."""
        self._debouncer.close()
        self._unsubscribe()
        self._listeners.clear()
        self._closed = True

    # ------------------------------------------------------------------
    def _recompute_now(self) -> None:
        self._debouncer.cancel()
        self._recompute()

    def _recompute(self) -> None:
        if self._closed:
            return
        self._matches = filter_and_rank(self._records, self.filters)
        self._page_number = 1
        LOG.log(
            "recompute",
            risk_level="low",
            query=self.filters.query,
            rarity=self.filters.rarity.label if self.filters.rarity else "all",
            total=len(self._matches),
        )
        self._emit(self.page)

    def _emit(self, page: Page) -> None:
        for func in list(self._listeners):
            try:
                func(page)
            except Exception as exc:
                LOG.log("listener_fail", risk_level="high", error=str(exc))
