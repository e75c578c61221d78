"""Tests for validated writes, abort mapping and post-confirmation refresh."""

import asyncio

import pytest

from adapters.ledger_gateway import Confirmation
from adapters.signer import CallbackSigner
from core.catalog.store import CatalogStore
from core.errors import ErrorKind, NetworkError, SignerRejected, ValidationError
from core.tx_engine.orchestrator import TransactionOrchestrator
from fakes import MARKET, OTHER, SENDER, DummyGateway, DummySigner, make_config, raw_nft


class TracingGateway(DummyGateway):
    def __init__(self, nfts=None):
        super().__init__(nfts)
        self.trace = []

    async def await_confirmation(self, tx_hash, timeout):
        self.trace.append(("start", tx_hash))
        result = await super().await_confirmation(tx_hash, timeout)
        self.trace.append(("end", tx_hash))
        return result


def _setup(gateway=None, signer=None, tmp_path=None):
    gateway = gateway or DummyGateway([raw_nft(1, name="Blue Dragon")])
    signer = signer or DummySigner()
    store = CatalogStore(gateway, make_config())
    log_path = str(tmp_path / "tx.json") if tmp_path else None
    orch = TransactionOrchestrator(gateway, signer, store, log_path=log_path)
    return gateway, signer, store, orch


def test_transfer_to_self_is_rejected_before_any_call(tmp_path):
    gateway, signer, _, orch = _setup(tmp_path=tmp_path)
    with pytest.raises(ValidationError) as exc:
        asyncio.run(orch.transfer(1, SENDER))
    assert exc.value.field == "recipient"
    assert gateway.calls == []
    assert signer.payloads == []


@pytest.mark.parametrize(
    "call",
    [
        lambda o: o.transfer(1, "0x1234"),
        lambda o: o.list_for_sale(1, "abc"),
        lambda o: o.list_for_sale(1, 0),
        lambda o: o.list_for_sale(1, "-2"),
        lambda o: o.list_for_sale("seven", 1),
        lambda o: o.place_bid(-1, 1),
        lambda o: o.mint("", "desc", "uri", 1),
        lambda o: o.mint("name", "desc", "uri", 9),
    ],
)
def test_invalid_arguments_raise_validation_error(call, tmp_path):
    gateway, signer, _, orch = _setup(tmp_path=tmp_path)
    with pytest.raises(ValidationError):
        asyncio.run(call(orch))
    assert gateway.calls == []
    assert signer.payloads == []


def test_successful_listing_refreshes_once(tmp_path):
    gateway, signer, store, orch = _setup(tmp_path=tmp_path)
    result = asyncio.run(orch.list_for_sale(1, "1.5"))

    assert result.ok
    assert result.tx_hash == "0xhash1"
    assert result.refresh is not None and result.refresh.ok
    assert gateway.count("read") == 1
    assert store.snapshot.version == 1
    payload = signer.payloads[0]
    assert payload["function"] == f"{MARKET}::NFTMarketplace::list_for_sale"
    assert payload["arguments"] == [MARKET, "1", "150000000"]
    assert (tmp_path / "tx.json").exists()


def test_mint_encodes_text_fields(tmp_path):
    _, signer, _, orch = _setup(tmp_path=tmp_path)
    result = asyncio.run(orch.mint("Fox", "a fox", "ipfs://x", "2"))
    assert result.ok
    assert result.nft_id is None
    assert signer.payloads[0]["arguments"] == [MARKET, "0x466f78", "0x6120666f78", "0x697066733a2f2f78", 2]


def test_insufficient_balance_abort_is_classified(tmp_path):
    gateway, _, store, orch = _setup(tmp_path=tmp_path)
    gateway.confirmations["0xhash1"] = Confirmation(
        "0xhash1", False, f"Move abort in {MARKET}::NFTMarketplace: E_INSUFFICIENT_BALANCE(0x10003)"
    )
    result = asyncio.run(orch.purchase(1))

    assert not result.ok
    assert result.kind is ErrorKind.INSUFFICIENT_BALANCE
    assert result.tx_hash == "0xhash1"
    assert gateway.count("read") == 0
    assert store.snapshot.version == 0


def test_numeric_abort_uses_code_table(tmp_path):
    gateway, _, _, orch = _setup(tmp_path=tmp_path)
    gateway.confirmations["0xhash1"] = Confirmation(
        "0xhash1", False, f"Move abort in {MARKET}::NFTMarketplace: 0x50002"
    )
    result = asyncio.run(orch.list_for_sale(1, 2))
    assert result.kind is ErrorKind.ALREADY_LISTED


def test_confirmation_timeout_is_a_network_failure(tmp_path):
    gateway, _, _, orch = _setup(tmp_path=tmp_path)
    gateway.confirmations["0xhash1"] = NetworkError("not confirmed in time", timeout=True)
    result = asyncio.run(orch.place_bid(1, "3"))

    assert not result.ok
    assert isinstance(result.error, NetworkError)
    assert result.error.timeout
    assert result.kind is None
    assert gateway.count("read") == 0


def test_signer_rejection_maps_to_not_authorized(tmp_path):
    signer = DummySigner()
    signer.error = SignerRejected("user closed the wallet prompt")
    gateway, _, _, orch = _setup(signer=signer, tmp_path=tmp_path)
    result = asyncio.run(orch.purchase(1))
    assert result.kind is ErrorKind.NOT_AUTHORIZED
    assert gateway.count("confirm") == 0


def test_transfer_without_session_is_not_authorized(tmp_path):
    gateway, _, _, orch = _setup(signer=DummySigner(address=None), tmp_path=tmp_path)
    result = asyncio.run(orch.transfer(1, OTHER))
    assert result.kind is ErrorKind.NOT_AUTHORIZED
    assert gateway.calls == []


def test_transfer_payload_lowercases_recipient(tmp_path):
    _, signer, _, orch = _setup(tmp_path=tmp_path)
    result = asyncio.run(orch.transfer("3", OTHER.upper().replace("0X", "0x")))
    assert result.ok
    assert signer.payloads[0]["arguments"] == [MARKET, "3", OTHER]


def test_writes_on_same_nft_are_serialized(tmp_path):
    gateway = TracingGateway([raw_nft(1)])
    gateway.confirm_delay = 0.02
    _, _, _, orch = _setup(gateway=gateway, tmp_path=tmp_path)

    async def run():
        return await asyncio.gather(orch.list_for_sale(1, 1), orch.place_bid(1, 2))

    results = asyncio.run(run())
    assert all(r.ok for r in results)
    assert gateway.trace == [
        ("start", "0xhash1"),
        ("end", "0xhash1"),
        ("start", "0xhash2"),
        ("end", "0xhash2"),
    ]
    assert len(orch.locks) == 0


def test_writes_on_different_nfts_overlap(tmp_path):
    gateway = TracingGateway([raw_nft(1), raw_nft(2)])
    gateway.confirm_delay = 0.02
    _, _, _, orch = _setup(gateway=gateway, tmp_path=tmp_path)

    async def run():
        return await asyncio.gather(orch.purchase(1), orch.purchase(2))

    results = asyncio.run(run())
    assert all(r.ok for r in results)
    assert [step for step, _ in gateway.trace[:2]] == ["start", "start"]


def test_wallet_simulation_abort_is_classified_by_name(tmp_path):
    async def wallet(payload):
        raise Exception(f"Move abort in {MARKET}::NFTMarketplace: E_INSUFFICIENT_BALANCE(0x10003)")

    gateway = DummyGateway([raw_nft(1)])
    _, _, store, orch = _setup(gateway=gateway, signer=CallbackSigner(wallet, SENDER), tmp_path=tmp_path)
    result = asyncio.run(orch.purchase(1))

    assert not result.ok
    assert result.kind is ErrorKind.INSUFFICIENT_BALANCE
    assert gateway.count("confirm") == 0
    assert store.snapshot.version == 0


def test_wallet_refusal_without_abort_is_not_authorized(tmp_path):
    async def wallet(payload):
        raise Exception("User rejected the request")

    _, _, _, orch = _setup(signer=CallbackSigner(wallet, SENDER), tmp_path=tmp_path)
    result = asyncio.run(orch.list_for_sale(1, 1))
    assert result.kind is ErrorKind.NOT_AUTHORIZED


def test_transfer_validates_before_session_check(tmp_path):
    gateway, _, _, orch = _setup(signer=DummySigner(address=None), tmp_path=tmp_path)
    with pytest.raises(ValidationError) as exc:
        asyncio.run(orch.transfer(1, "0x1234"))
    assert exc.value.field == "recipient"
    with pytest.raises(ValidationError):
        asyncio.run(orch.transfer(-1, OTHER))
    assert gateway.calls == []
