"""Prometheus metrics for the marketplace client.

Module purpose and system role:
    - Track catalog refresh health, transaction outcomes and the latest
      analytics aggregates.
    - Expose an HTTP ``/metrics`` endpoint consumable by Prometheus.

Integration points and dependencies:
    - Uses ``prometheus_client`` for counters, gauges and the exporter.
    - Components call the ``record_*`` helpers; ``summary()`` returns the
      in-process counters for tests and debugging.
"""

from __future__ import annotations

import os
import threading
from typing import Any, Dict, Mapping, cast

from prometheus_client import Counter, Gauge, Histogram, start_http_server

_METRICS: Dict[str, Any] = {
    "refresh_ok": 0,
    "refresh_fail": 0,
    "refresh_stale": 0,
    "decode_errors": 0,
    "tx_ok": 0,
    "tx_fail": 0,
    "tx_by_kind": {},
    "analytics_fail": 0,
}
_LOCK = threading.Lock()

PROM_REFRESH = Counter("catalog_refresh_total", "Catalog refreshes by outcome", ["outcome"])
PROM_DECODE = Counter("catalog_decode_error_total", "Ledger fields or records that failed to decode")
PROM_TX = Counter("marketplace_tx_total", "Write operations by action and outcome", ["action", "outcome"])
PROM_CONFIRM = Histogram("marketplace_tx_confirm_seconds", "Submission to confirmation latency")
PROM_ANALYTICS_FAIL = Counter("marketplace_analytics_fail_total", "Failed analytics polls")
PROM_STAT = Gauge("marketplace_stat", "Latest marketplace aggregate", ["name"])
PROM_RARITY = Gauge("marketplace_rarity_count", "NFT count per rarity tier", ["rarity"])


# ----------------------------------------------------------------------
# Metric update helpers
# ----------------------------------------------------------------------

def record_refresh(outcome: str) -> None:
    """Record a refresh finishing as ``ok``, ``fail`` or ``stale``."""
    with _LOCK:
        key = f"refresh_{outcome}"
        _METRICS[key] = cast(int, _METRICS.get(key, 0)) + 1
    PROM_REFRESH.labels(outcome=outcome).inc()


def record_decode_error() -> None:
    with _LOCK:
        _METRICS["decode_errors"] = cast(int, _METRICS["decode_errors"]) + 1
    PROM_DECODE.inc()


def record_tx(action: str, ok: bool, kind: str = "", latency: float | None = None) -> None:
    with _LOCK:
        if ok:
            _METRICS["tx_ok"] = cast(int, _METRICS["tx_ok"]) + 1
        else:
            _METRICS["tx_fail"] = cast(int, _METRICS["tx_fail"]) + 1
            by_kind = cast(Dict[str, int], _METRICS["tx_by_kind"])
            by_kind[kind or "unknown"] = by_kind.get(kind or "unknown", 0) + 1
    PROM_TX.labels(action=action, outcome="ok" if ok else (kind or "fail")).inc()
    if latency is not None:
        PROM_CONFIRM.observe(latency)


def record_analytics_fail() -> None:
    with _LOCK:
        _METRICS["analytics_fail"] = cast(int, _METRICS["analytics_fail"]) + 1
    PROM_ANALYTICS_FAIL.inc()


def record_stats(values: Mapping[str, float], rarity_counts: Mapping[str, int]) -> None:
    for name, value in values.items():
        PROM_STAT.labels(name=name).set(float(value))
    for label, count in rarity_counts.items():
        PROM_RARITY.labels(rarity=label).set(count)


def summary() -> Dict[str, Any]:
    """Return a copy of the in-process counters."""
    with _LOCK:
        data = dict(_METRICS)
        data["tx_by_kind"] = dict(cast(Dict[str, int], _METRICS["tx_by_kind"]))
        return data


def start_metrics_server(port: int | None = None, addr: str = "0.0.0.0") -> int:
    """Start the Prometheus exporter on ``port`` (or ``$METRICS_PORT``)."""

    port = int(os.getenv("METRICS_PORT", port if port is not None else 8000))
    try:
        start_http_server(port, addr=addr)
    except OSError as exc:
        if "Address already in use" in str(exc):
            raise OSError(
                f"Port {port} already in use. Set METRICS_PORT or pass port."
            ) from exc
        raise
    return port
