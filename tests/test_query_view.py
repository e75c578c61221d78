"""Tests for the pure view pipeline and the debounced QueryView."""

import asyncio
from decimal import Decimal

import pytest

from core.catalog.models import NFTRecord, Rarity
from core.catalog.store import CatalogStore
from core.errors import ValidationError
from core.search.query_view import QueryView, ViewFilters, compute_view, parse_rarity_facet
from fakes import DummyGateway, make_config, raw_nft


def nft(nft_id, name="", description="", rarity=1, for_sale=True):
    return NFTRecord(nft_id, "0x1", name, description, "", Decimal(1), for_sale, Rarity(rarity))


def ids(page):
    return [r.id for r in page.items]


def test_query_ranks_name_match_above_description_match():
    catalog = [nft(1, "Red Fox", "a blue fox plushie"), nft(2, "Blue Dragon")]
    page = compute_view(catalog, ViewFilters(query="blue"))
    assert ids(page) == [2, 1]


def test_empty_query_keeps_catalog_order():
    catalog = [nft(1, "Blue Dragon"), nft(2, "Red Fox", "a blue fox plushie")]
    assert ids(compute_view(catalog, ViewFilters(query=""))) == [1, 2]
    assert ids(compute_view(catalog, ViewFilters(query="  "))) == [1, 2]


def test_non_matching_records_are_dropped():
    catalog = [nft(1, "Blue Dragon"), nft(2, "Green Turtle")]
    page = compute_view(catalog, ViewFilters(query="dragon"))
    assert ids(page) == [1]
    assert page.total == 1


def test_tied_scores_keep_catalog_order():
    catalog = [nft(i, "Blue Gem") for i in (5, 3, 9)]
    assert ids(compute_view(catalog, ViewFilters(query="gem"))) == [5, 3, 9]


def test_rarity_facet_selects_tier_in_order():
    catalog = [nft(i, f"n{i}", rarity=r) for i, r in enumerate([1, 2, 2, 3, 2])]
    page = compute_view(catalog, ViewFilters(rarity=Rarity(2)))
    assert ids(page) == [1, 2, 4]
    assert ids(compute_view(catalog, ViewFilters(rarity=None))) == [0, 1, 2, 3, 4]


def test_for_sale_filter():
    catalog = [nft(1, for_sale=False), nft(2)]
    assert ids(compute_view(catalog, ViewFilters())) == [2]
    assert ids(compute_view(catalog, ViewFilters(for_sale_only=False))) == [1, 2]


def test_pagination_page_sizes():
    catalog = [nft(i) for i in range(20)]
    filters = ViewFilters()
    assert len(compute_view(catalog, filters, 1, 8).items) == 8
    assert len(compute_view(catalog, filters, 3, 8).items) == 4
    assert len(compute_view(catalog, filters, 4, 8).items) == 0
    page = compute_view(catalog, filters, 2, 8)
    assert ids(page) == list(range(8, 16))
    assert page.total == 20
    assert page.page_count == 3


def test_parse_rarity_facet():
    assert parse_rarity_facet("all") is None
    assert parse_rarity_facet(None) is None
    assert parse_rarity_facet("3") is Rarity.RARE
    with pytest.raises(ValidationError):
        parse_rarity_facet(7)


# ----------------------------------------------------------------------
# Reactive view
# ----------------------------------------------------------------------

def _store(nfts):
    gateway = DummyGateway(nfts)
    return gateway, CatalogStore(gateway, make_config())


def test_query_keystrokes_are_debounced():
    async def run():
        _, store = _store([raw_nft(1, name="Blue Dragon"), raw_nft(2, name="Red Fox")])
        await store.refresh()
        view = QueryView(store)
        pages = []
        view.subscribe(pages.append)
        for text in ("b", "bl", "blu", "blue"):
            view.set_query(text)
            await asyncio.sleep(0.01)
        assert pages == []
        await asyncio.sleep(0.1)
        view.close()
        return pages

    pages = asyncio.run(run())
    assert len(pages) == 1
    assert ids(pages[0]) == [1]


def test_close_cancels_pending_recompute():
    async def run():
        _, store = _store([raw_nft(1, name="Blue Dragon")])
        await store.refresh()
        view = QueryView(store)
        pages = []
        view.subscribe(pages.append)
        view.set_query("zzz")
        view.close()
        await asyncio.sleep(0.1)
        view.set_query("blue")
        await asyncio.sleep(0.1)
        return view, pages

    view, pages = asyncio.run(run())
    assert pages == []
    assert view.total == 1


def test_catalog_change_and_facet_recompute_immediately():
    async def run():
        gateway, store = _store([raw_nft(1, name="A", rarity=1)])
        view = QueryView(store)
        assert view.total == 0
        await store.refresh()
        assert view.total == 1
        gateway.nfts.append(raw_nft(2, name="B", rarity=2))
        await store.refresh()
        assert view.total == 2
        view.set_rarity(2)
        assert ids(view.page) == [2]
        view.set_rarity("all")
        view.set_page(2)
        assert view.page.items == ()
        view.close()

    asyncio.run(run())


def test_recompute_resets_page():
    async def run():
        _, store = _store([raw_nft(i, name=f"Gem {i}") for i in range(10)])
        await store.refresh()
        view = QueryView(store)
        assert view.set_page(2).page == 2
        view.set_rarity(1)
        assert view.page.page == 1
        view.close()

    asyncio.run(run())
