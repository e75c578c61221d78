"""Transaction orchestrator for marketplace write operations.

Module purpose and system role:
    - Validate user intents, build entry-function payloads, hand them to
      the external signer and wait for ledger confirmation.
    - Map ledger aborts to :class:`core.errors.ErrorKind`.
    - After a confirmed success, refresh the catalog exactly once. The
      catalog is never patched locally with an expected post-state.

Integration points and dependencies:
    - :class:`adapters.signer.Signer` signs and submits.
    - :class:`adapters.ledger_gateway.LedgerGateway` awaits confirmation.
    - :class:`core.tx_engine.entity_locks.EntityLockManager` serializes
      writes per NFT id.
    - JSON log at ``$TX_LOG_FILE`` (``logs/tx_log.json``).

Failure handling:
    - Validation errors raise before any network access.
    - Network and ledger failures are returned in :class:`TxResult`;
      nothing is retried automatically.
"""

from __future__ import annotations

import os
import time
from dataclasses import dataclass
from typing import Any, Optional, Union

from adapters.ledger_gateway import LedgerGateway
from adapters.signer import Signer
from core.catalog.store import CatalogStore, RefreshResult
from core.config import MarketConfig
from core.errors import ErrorKind, NetworkError, SignerRejected, TransactionError
from core.logger import StructuredLogger
from core import metrics
from core.tx_engine.abort_codes import map_abort
from core.tx_engine.entity_locks import EntityLockManager
from core.tx_engine.payloads import PayloadBuilder, WriteIntent, validate_address, validate_nft_id

TxFailure = Union[NetworkError, TransactionError]


@dataclass(frozen=True)
class TxResult:
    action: str
    nft_id: Optional[int]
    ok: bool
    tx_hash: str = ""
    error: Optional[TxFailure] = None
    refresh: Optional[RefreshResult] = None

    @property
    def kind(self) -> Optional[ErrorKind]:
        if isinstance(self.error, TransactionError):
            return self.error.kind
        return None


class TransactionOrchestrator:
    """Submit marketplace writes and keep the catalog ledger-sourced."""

    def __init__(
        self,
        gateway: LedgerGateway,
        signer: Signer,
        store: CatalogStore,
        config: MarketConfig | None = None,
        *,
        locks: EntityLockManager | None = None,
        log_path: str | None = None,
    ) -> None:
        self.gateway = gateway
        self.signer = signer
        self.store = store
        self.config = config or store.config
        self.builder = PayloadBuilder(self.config)
        self.locks = locks or EntityLockManager()
        if log_path is None:
            log_path = os.getenv("TX_LOG_FILE", "logs/tx_log.json")
        self.logger = StructuredLogger("tx_orchestrator", log_file=log_path)

    # ------------------------------------------------------------------
    # Write intents
    # ------------------------------------------------------------------
    async def mint(self, name: str, description: str, uri: str, rarity: Any) -> TxResult:
        return await self._execute(self.builder.mint(name, description, uri, rarity))

    async def list_for_sale(self, nft_id: Any, price: Any) -> TxResult:
        return await self._execute(self.builder.list_for_sale(nft_id, price))

    async def purchase(self, nft_id: Any) -> TxResult:
        return await self._execute(self.builder.purchase(nft_id))

    async def place_bid(self, nft_id: Any, amount: Any) -> TxResult:
        return await self._execute(self.builder.place_bid(nft_id, amount))

    async def transfer(self, nft_id: Any, recipient: Any) -> TxResult:
        nft_id = validate_nft_id(nft_id)
        recipient = validate_address(recipient, "recipient")
        sender = self.signer.address
        if not sender:
            intent = WriteIntent("transfer", self.config.function_id("transfer_ownership"), nft_id=nft_id)
            return self._fail(intent, TransactionError(ErrorKind.NOT_AUTHORIZED, "no active wallet session"))
        return await self._execute(self.builder.transfer(nft_id, recipient, sender))

    # ------------------------------------------------------------------
    async def _execute(self, intent: WriteIntent) -> TxResult:
        if intent.nft_id is None:
            result = await self._submit_and_confirm(intent)
        else:
            async with self.locks.hold(intent.nft_id, action=intent.action):
                result = await self._submit_and_confirm(intent)
        if not result.ok:
            return result
        refresh = await self.store.refresh()
        return TxResult(intent.action, intent.nft_id, True, result.tx_hash, refresh=refresh)

    async def _submit_and_confirm(self, intent: WriteIntent) -> TxResult:
        payload = intent.payload()
        self.logger.log("submit", action=intent.action, nft_id=_id(intent), risk_level="low",
                        function=intent.function)
        try:
            tx_hash = await self.signer.sign_and_submit(payload)
        except SignerRejected as exc:
            return self._fail(intent, self._classify_rejection(exc))
        except NetworkError as exc:
            return self._fail(intent, exc)

        start = time.monotonic()
        try:
            confirmation = await self.gateway.await_confirmation(tx_hash, self.config.confirm_timeout)
        except NetworkError as exc:
            return self._fail(intent, exc, tx_hash)
        latency = time.monotonic() - start

        if not confirmation.success:
            kind = map_abort(confirmation.vm_status, self.config.abort_codes)
            error = TransactionError(kind, confirmation.vm_status or kind.value, vm_status=confirmation.vm_status)
            return self._fail(intent, error, tx_hash, latency)

        metrics.record_tx(intent.action, True, latency=latency)
        self.logger.log(
            "confirmed",
            tx_hash=tx_hash,
            action=intent.action,
            nft_id=_id(intent),
            risk_level="low",
            latency=round(latency, 3),
            version=confirmation.version,
        )
        return TxResult(intent.action, intent.nft_id, True, tx_hash)

    def _classify_rejection(self, exc: SignerRejected) -> TransactionError:
        """Wallets surface simulation aborts as errors; classify them like ledger aborts."""

        message = str(exc)
        kind = map_abort(message, self.config.abort_codes)
        if kind is ErrorKind.UNKNOWN:
            kind = ErrorKind.NOT_AUTHORIZED
        return TransactionError(kind, message, vm_status=message)

    def _fail(self, intent: WriteIntent, error: TxFailure, tx_hash: str = "", latency: float | None = None) -> TxResult:
        if isinstance(error, TransactionError):
            kind = error.kind.value
        else:
            kind = "timeout" if error.timeout else "network"
        metrics.record_tx(intent.action, False, kind, latency)
        self.logger.log(
            "failed",
            tx_hash=tx_hash,
            action=intent.action,
            nft_id=_id(intent),
            risk_level="medium",
            error=str(error),
            kind=kind,
        )
        return TxResult(intent.action, intent.nft_id, False, tx_hash, error)


def _id(intent: WriteIntent) -> int | str:
    return intent.nft_id if intent.nft_id is not None else ""
