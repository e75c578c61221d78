"""Signer capability boundary.

Signing keys never live in this client: an external wallet agent signs
and submits entry-function payloads. This module only describes the
capability and adapts a plain async callable to it.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Optional, Protocol

from core.errors import NetworkError, SignerRejected

Payload = Dict[str, Any]


class Signer(Protocol):
    @property
    def address(self) -> Optional[str]:
        """Account of the active session, or None when disconnected."""

    async def sign_and_submit(self, payload: Payload) -> str:
        """Sign ``payload``, submit it and return the transaction hash."""


class CallbackSigner:
    """Wrap an async ``(payload) -> dict | str`` wallet callback."""

    def __init__(
        self,
        callback: Callable[[Payload], Awaitable[Any]] | None,
        address: str | None = None,
    ) -> None:
        self._callback = callback
        self._address = address

    @property
    def address(self) -> Optional[str]:
        return self._address

    def connect(self, address: str, callback: Callable[[Payload], Awaitable[Any]]) -> None:
        self._address = address
        self._callback = callback

    def disconnect(self) -> None:
        self._address = None
        self._callback = None

    async def sign_and_submit(self, payload: Payload) -> str:
        if self._callback is None or self._address is None:
            raise SignerRejected("no active wallet session")
        try:
            response = await self._callback(payload)
        except (SignerRejected, NetworkError):
            raise
        except Exception as exc:
            # the wallet's message is kept verbatim so abort names survive
            raise SignerRejected(f"wallet refused payload: {exc}") from exc
        if isinstance(response, dict):
            tx_hash = response.get("hash")
        else:
            tx_hash = response
        if not tx_hash:
            raise SignerRejected("wallet returned no transaction hash")
        return str(tx_hash)
