"""Runtime configuration for the marketplace client.

Values come from a YAML file (``load_config``, default path
``$MARKET_CONFIG``) and are overlaid with environment variables
(``MarketConfig.from_env``).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, cast

import yaml

DEFAULT_NODE_URL = "https://fullnode.testnet.aptoslabs.com/v1"
DEFAULT_MARKETPLACE = "0xf87c7acfed155f11fae502d5d3c2f2a8bda1c96d89cfd0252bca321fa0cc5402"

# numeric Move abort codes -> ErrorKind value; names in vm_status take precedence
DEFAULT_ABORT_CODES: Dict[int, str] = {
    1: "not_authorized",
    2: "already_listed",
    3: "insufficient_balance",
    4: "invalid_recipient",
    5: "listed_cannot_transfer",
}

_ENV_KEYS = {
    "node_url": "APTOS_NODE_URL",
    "marketplace_addr": "MARKETPLACE_ADDR",
    "module_name": "MARKETPLACE_MODULE",
    "page_size": "PAGE_SIZE",
    "debounce_seconds": "SEARCH_DEBOUNCE_SECONDS",
    "confirm_timeout": "TX_CONFIRM_TIMEOUT",
    "analytics_interval": "ANALYTICS_INTERVAL",
    "listing_limit": "LISTING_LIMIT",
    "request_timeout": "REQUEST_TIMEOUT",
}


@dataclass
class MarketConfig:
    node_url: str = DEFAULT_NODE_URL
    marketplace_addr: str = DEFAULT_MARKETPLACE
    module_name: str = "NFTMarketplace"
    page_size: int = 8
    debounce_seconds: float = 0.3
    confirm_timeout: float = 30.0
    analytics_interval: float = 30.0
    listing_limit: int = 100
    request_timeout: float = 10.0
    abort_codes: Dict[int, str] = field(default_factory=lambda: dict(DEFAULT_ABORT_CODES))

    @property
    def resource_type(self) -> str:
        """Fully qualified type of the marketplace resource."""
        return f"{self.marketplace_addr}::{self.module_name}::Marketplace"

    def function_id(self, name: str) -> str:
        return f"{self.marketplace_addr}::{self.module_name}::{name}"

    # ------------------------------------------------------------------
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MarketConfig":
        known = {f.name: f for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            if key not in known:
                continue
            if key == "abort_codes":
                kwargs[key] = {int(k): str(v) for k, v in (value or {}).items()}
            else:
                kwargs[key] = value
        cfg = cls(**kwargs)
        cfg._coerce()
        return cfg

    @classmethod
    def from_env(cls, base: "MarketConfig | None" = None) -> "MarketConfig":
        """Return ``base`` (or defaults) overlaid with environment variables."""

        cfg = base or cls()
        for attr, env_var in _ENV_KEYS.items():
            value = os.getenv(env_var)
            if value:
                setattr(cfg, attr, value)
        cfg._coerce()
        return cfg

    def _coerce(self) -> None:
        self.page_size = int(self.page_size)
        self.listing_limit = int(self.listing_limit)
        self.debounce_seconds = float(self.debounce_seconds)
        self.confirm_timeout = float(self.confirm_timeout)
        self.analytics_interval = float(self.analytics_interval)
        self.request_timeout = float(self.request_timeout)
        self.node_url = str(self.node_url).rstrip("/")
        if self.page_size <= 0:
            raise ValueError("page_size must be > 0")


def load_config(path: str | Path | None = None) -> MarketConfig:
    """Load YAML config from ``path`` (or ``$MARKET_CONFIG``) and apply env overrides."""

    path = path or os.getenv("MARKET_CONFIG")
    if path and Path(path).exists():
        raw = cast(Dict[str, Any], yaml.safe_load(Path(path).read_text()) or {})
        return MarketConfig.from_env(MarketConfig.from_dict(raw))
    return MarketConfig.from_env()
