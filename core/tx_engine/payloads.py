"""Argument validation and entry-function payload construction.

Every builder validates first and raises :class:`ValidationError`
before anything is sent anywhere. Payloads follow the fullnode
``entry_function_payload`` JSON shape: u64 values are decimal strings
and ``vector<u8>`` arguments are ``0x`` hex strings.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List

from core.catalog.decoder import denormalize_price, encode_field
from core.catalog.models import Rarity
from core.config import MarketConfig
from core.errors import ValidationError

ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")
MAX_U64 = 2**64 - 1


@dataclass(frozen=True)
class WriteIntent:
    """A validated write request ready to be signed."""

    action: str
    function: str
    arguments: List[Any] = field(default_factory=list)
    nft_id: int | None = None

    def payload(self) -> Dict[str, Any]:
        return {
            "type": "entry_function_payload",
            "function": self.function,
            "type_arguments": [],
            "arguments": list(self.arguments),
        }


# ----------------------------------------------------------------------
# Validators
# ----------------------------------------------------------------------

def validate_address(value: Any, field_name: str = "address") -> str:
    if not isinstance(value, str) or not ADDRESS_RE.match(value.strip()):
        raise ValidationError(field_name, "expected 0x followed by 64 hex characters")
    return value.strip().lower()


def validate_nft_id(value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError("nft_id", "must be an integer")
    try:
        nft_id = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError("nft_id", f"not an integer: {value!r}") from exc
    if nft_id < 0 or nft_id > MAX_U64 or (isinstance(value, float) and value != nft_id):
        raise ValidationError("nft_id", f"out of range: {value!r}")
    return nft_id


def parse_amount(value: Any, field_name: str = "price") -> int:
    """Parse a display amount and return it in minor units (must be > 0)."""

    if isinstance(value, bool) or value is None:
        raise ValidationError(field_name, "amount required")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValidationError(field_name, f"not a number: {value!r}") from exc
    if not amount.is_finite() or amount <= 0:
        raise ValidationError(field_name, "must be a positive amount")
    minor = denormalize_price(amount)
    if minor <= 0:
        raise ValidationError(field_name, "rounds to zero minor units")
    if minor > MAX_U64:
        raise ValidationError(field_name, "exceeds u64 range")
    return minor


def _require_text(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(field_name, "must be a non-empty string")
    return value


# ----------------------------------------------------------------------
# Builders
# ----------------------------------------------------------------------

class PayloadBuilder:
    """Build validated :class:`WriteIntent` objects for the marketplace module."""

    def __init__(self, config: MarketConfig) -> None:
        self.config = config

    @property
    def market(self) -> str:
        return self.config.marketplace_addr

    def mint(self, name: str, description: str, uri: str, rarity: Any) -> WriteIntent:
        name = _require_text(name, "name")
        description = _require_text(description, "description")
        uri = _require_text(uri, "uri")
        try:
            tier = Rarity(int(rarity))
        except (TypeError, ValueError) as exc:
            raise ValidationError("rarity", f"unknown rarity {rarity!r}") from exc
        return WriteIntent(
            "mint",
            self.config.function_id("mint_nft"),
            [self.market, encode_field(name), encode_field(description), encode_field(uri), int(tier)],
        )

    def list_for_sale(self, nft_id: Any, price: Any) -> WriteIntent:
        nft_id = validate_nft_id(nft_id)
        minor = parse_amount(price, "price")
        return WriteIntent(
            "list_for_sale",
            self.config.function_id("list_for_sale"),
            [self.market, str(nft_id), str(minor)],
            nft_id,
        )

    def purchase(self, nft_id: Any) -> WriteIntent:
        nft_id = validate_nft_id(nft_id)
        return WriteIntent(
            "purchase",
            self.config.function_id("purchase_nft"),
            [self.market, str(nft_id)],
            nft_id,
        )

    def place_bid(self, nft_id: Any, amount: Any) -> WriteIntent:
        nft_id = validate_nft_id(nft_id)
        minor = parse_amount(amount, "amount")
        return WriteIntent(
            "place_bid",
            self.config.function_id("place_bid"),
            [self.market, str(nft_id), str(minor)],
            nft_id,
        )

    def transfer(self, nft_id: Any, recipient: Any, sender: str) -> WriteIntent:
        nft_id = validate_nft_id(nft_id)
        to_addr = validate_address(recipient, "recipient")
        if to_addr == sender.strip().lower():
            raise ValidationError("recipient", "cannot transfer to the sending account")
        return WriteIntent(
            "transfer",
            self.config.function_id("transfer_ownership"),
            [self.market, str(nft_id), to_addr],
            nft_id,
        )
