"""Decode raw marketplace records read from the ledger.

The ledger stores ``name``/``description``/``uri`` as ``vector<u8>``,
returned over JSON as ``0x``-prefixed hex strings, and prices as u64
minor units (octas). Optional Move values arrive either as
``{"vec": [...]}`` or as a plain value / null depending on the node.
"""

from __future__ import annotations

import binascii
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from core.catalog.models import NFTRecord, Rarity
from core.errors import DecodeError
from core.logger import StructuredLogger
from core import metrics

LOG = StructuredLogger("catalog_decoder")

PRICE_SCALE = 100_000_000
_SCALE = Decimal(PRICE_SCALE)


def _decode_hex(hex_str: str) -> str:
    body = hex_str[2:] if hex_str[:2] in ("0x", "0X") else hex_str
    if len(body) % 2:
        raise DecodeError(f"odd-length hex field ({len(body)} chars)")
    try:
        raw = binascii.unhexlify(body)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"non-hex field: {exc}") from exc
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodeError(f"invalid utf-8: {exc}") from exc


def decode_field(hex_str: Any) -> str:
    """Return the UTF-8 text behind ``hex_str``, or the raw input on failure."""

    if not isinstance(hex_str, str):
        return "" if hex_str is None else str(hex_str)
    try:
        return _decode_hex(hex_str)
    except DecodeError as exc:
        metrics.record_decode_error()
        LOG.log("decode_field_fallback", risk_level="low", reason=str(exc))
        return hex_str


def encode_field(text: str) -> str:
    return "0x" + text.encode("utf-8").hex()


def normalize_price(raw: int | str) -> Decimal:
    return Decimal(int(raw)) / _SCALE


def denormalize_price(display: Decimal | int | float | str) -> int:
    try:
        value = Decimal(str(display)) * _SCALE
    except InvalidOperation as exc:
        raise DecodeError(f"not a number: {display!r}") from exc
    return int(value.to_integral_value())


# ----------------------------------------------------------------------
# Record decoding
# ----------------------------------------------------------------------

def _unwrap_option(value: Any) -> Any:
    if isinstance(value, dict) and "vec" in value:
        vec = value["vec"]
        return vec[0] if vec else None
    return value


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def _as_rarity(value: Any) -> Rarity:
    try:
        return Rarity(int(value))
    except (TypeError, ValueError) as exc:
        raise DecodeError(f"rarity {value!r} outside tier set") from exc


def _optional_int(value: Any) -> Optional[int]:
    value = _unwrap_option(value)
    if value in (None, ""):
        return None
    return int(value)


def decode_record(raw: Dict[str, Any]) -> NFTRecord:
    """Convert one marketplace resource entry into an :class:`NFTRecord`."""

    try:
        nft_id = int(raw["id"])
        price_raw = int(raw.get("price") or 0)
        auction_end = _optional_int(raw.get("auction_end"))
        bid_raw = _optional_int(raw.get("highest_bid"))
    except (KeyError, TypeError, ValueError) as exc:
        raise DecodeError(f"malformed record: {exc}") from exc
    if nft_id < 0 or price_raw < 0:
        raise DecodeError(f"negative id or price in record {raw.get('id')!r}")
    is_auction = _as_bool(_unwrap_option(raw.get("is_auction", raw.get("auction", False))))
    bidder = _unwrap_option(raw.get("highest_bidder"))
    has_bid = bid_raw is not None and bidder not in (None, "")
    return NFTRecord(
        id=nft_id,
        owner=str(raw.get("owner", "")),
        name=decode_field(raw.get("name", "")),
        description=decode_field(raw.get("description", "")),
        uri=decode_field(raw.get("uri", "")),
        price=normalize_price(price_raw),
        for_sale=_as_bool(raw.get("for_sale", False)),
        rarity=_as_rarity(raw.get("rarity")),
        is_auction=is_auction,
        auction_end=auction_end if is_auction else None,
        highest_bid=normalize_price(bid_raw) if has_bid else None,
        highest_bidder=str(bidder) if has_bid else None,
    )


def decode_details(values: List[Any]) -> NFTRecord:
    """Decode the ``get_nft_details`` view tuple.

    The view carries no auction state, so the record is never marked as
    an auction here.
    """

    if len(values) < 8:
        raise DecodeError(f"expected 8 detail values, got {len(values)}")
    nft_id, owner, name, description, uri, price, for_sale, rarity = values[:8]
    return decode_record(
        {
            "id": nft_id,
            "owner": owner,
            "name": name,
            "description": description,
            "uri": uri,
            "price": price,
            "for_sale": for_sale,
            "rarity": rarity,
        }
    )
