"""Ledger gateway: async read/view/submit/confirm access to a fullnode.

Module purpose and system role:
    - Single seam between the marketplace client and the remote ledger.
    - Every catalog, analytics and transaction component receives a
      gateway instance in its constructor; nothing reaches the network
      through a module-level client.

Integration points and dependencies:
    - ``RestLedgerGateway`` speaks the Aptos fullnode REST API through
      ``aiohttp``.
    - Transport failures, non-2xx answers and confirmation timeouts are
      raised as :class:`core.errors.NetworkError`.
"""

from __future__ import annotations

import abc
import asyncio
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote

import aiohttp

from core.errors import NetworkError
from core.logger import StructuredLogger

LOG = StructuredLogger("ledger_gateway")


@dataclass(frozen=True)
class Confirmation:
    """Final state of a committed transaction."""

    tx_hash: str
    success: bool
    vm_status: str = ""
    version: Optional[int] = None


class LedgerGateway(abc.ABC):
    """Abstract access to the ledger; all methods suspend the caller."""

    @abc.abstractmethod
    async def read_resource(self, account: str, resource_type: str) -> Optional[Dict[str, Any]]:
        """Return the ``data`` of ``resource_type`` under ``account`` or None if absent."""

    @abc.abstractmethod
    async def view(self, function_id: str, args: Sequence[Any], type_args: Sequence[str] = ()) -> List[Any]:
        """Call a view function and return its ordered return values."""

    @abc.abstractmethod
    async def submit(self, signed_txn: Dict[str, Any]) -> str:
        """Submit an already signed transaction and return its hash."""

    @abc.abstractmethod
    async def await_confirmation(self, tx_hash: str, timeout: float) -> Confirmation:
        """Wait until ``tx_hash`` is committed; raise NetworkError after ``timeout``."""

    async def close(self) -> None:  # pragma: no cover - interface
        return None


class RestLedgerGateway(LedgerGateway):
    """Gateway backed by a fullnode REST endpoint."""

    def __init__(
        self,
        node_url: str,
        *,
        request_timeout: float = 10.0,
        poll_interval: float = 1.0,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.node_url = node_url.rstrip("/")
        self.request_timeout = request_timeout
        self.poll_interval = poll_interval
        self._session = session
        self._owns_session = session is None

    # ---------------------------------------------------------------
    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.request_timeout)
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()

    # ---------------------------------------------------------------
    async def _request(self, method: str, path: str, *, json_body: Any = None, allow_404: bool = False) -> Any:
        url = f"{self.node_url}{path}"
        session = self._get_session()
        try:
            async with session.request(method, url, json=json_body) as resp:
                if resp.status == 404 and allow_404:
                    return None
                if resp.status >= 400:
                    text = await resp.text()
                    LOG.log("http_error", risk_level="medium", error=f"{resp.status}: {text[:200]}", path=path)
                    raise NetworkError(f"{method} {path} -> HTTP {resp.status}: {text[:200]}")
                return await resp.json()
        except asyncio.TimeoutError as exc:
            LOG.log("http_timeout", risk_level="medium", error=str(exc) or "timeout", path=path)
            raise NetworkError(f"{method} {path} timed out", timeout=True) from exc
        except aiohttp.ClientError as exc:
            LOG.log("http_fail", risk_level="medium", error=str(exc), path=path)
            raise NetworkError(f"{method} {path} failed: {exc}") from exc
        except ValueError as exc:
            LOG.log("http_bad_json", risk_level="medium", error=str(exc), path=path)
            raise NetworkError(f"{method} {path} returned malformed JSON: {exc}") from exc

    # ---------------------------------------------------------------
    async def read_resource(self, account: str, resource_type: str) -> Optional[Dict[str, Any]]:
        path = f"/accounts/{account}/resource/{quote(resource_type, safe='')}"
        body = await self._request("GET", path, allow_404=True)
        if body is None:
            return None
        data = _expect_object(body, path).get("data", {})
        if not isinstance(data, dict):
            raise NetworkError(f"resource {resource_type} has non-object data")
        return data

    async def view(self, function_id: str, args: Sequence[Any], type_args: Sequence[str] = ()) -> List[Any]:
        payload = {
            "function": function_id,
            "type_arguments": list(type_args),
            "arguments": [str(a) if isinstance(a, int) and not isinstance(a, bool) else a for a in args],
        }
        body = await self._request("POST", "/view", json_body=payload)
        if not isinstance(body, list):
            raise NetworkError(f"view {function_id} returned {type(body).__name__}, expected list")
        return body

    async def submit(self, signed_txn: Dict[str, Any]) -> str:
        body = await self._request("POST", "/transactions", json_body=signed_txn)
        tx_hash = str(_expect_object(body, "/transactions").get("hash", ""))
        LOG.log("submitted", tx_hash=tx_hash, risk_level="low")
        return tx_hash

    async def await_confirmation(self, tx_hash: str, timeout: float) -> Confirmation:
        start = time.monotonic()
        try:
            return await asyncio.wait_for(self._poll_until_committed(tx_hash), timeout)
        except asyncio.TimeoutError as exc:
            LOG.log(
                "confirm_timeout",
                tx_hash=tx_hash,
                risk_level="high",
                error=f"not committed after {timeout}s",
                waited=round(time.monotonic() - start, 3),
            )
            raise NetworkError(f"transaction {tx_hash} not confirmed within {timeout}s", timeout=True) from exc

    async def _poll_until_committed(self, tx_hash: str) -> Confirmation:
        while True:
            body = await self._request("GET", f"/transactions/by_hash/{tx_hash}", allow_404=True)
            if body is not None and _expect_object(body, tx_hash).get("type") != "pending_transaction":
                version = body.get("version")
                return Confirmation(
                    tx_hash=tx_hash,
                    success=bool(body.get("success")),
                    vm_status=str(body.get("vm_status", "")),
                    version=int(version) if str(version or "").isdigit() else None,
                )
            await asyncio.sleep(self.poll_interval)


def _expect_object(body: Any, path: str) -> Dict[str, Any]:
    if not isinstance(body, dict):
        raise NetworkError(f"{path} returned {type(body).__name__}, expected an object")
    return body
