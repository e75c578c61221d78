import asyncio

import pytest

from adapters.signer import CallbackSigner
from core.errors import NetworkError, SignerRejected
from fakes import SENDER

PAYLOAD = {"type": "entry_function_payload", "function": "0x1::m::f", "type_arguments": [], "arguments": []}


def test_no_session_is_rejected():
    signer = CallbackSigner(None)
    assert signer.address is None
    with pytest.raises(SignerRejected):
        asyncio.run(signer.sign_and_submit(PAYLOAD))


def test_connect_sign_disconnect():
    seen = []

    async def wallet(payload):
        seen.append(payload)
        return {"hash": "0xfeed"}

    signer = CallbackSigner(None)
    signer.connect(SENDER, wallet)
    assert signer.address == SENDER
    assert asyncio.run(signer.sign_and_submit(PAYLOAD)) == "0xfeed"
    assert seen == [PAYLOAD]
    signer.disconnect()
    with pytest.raises(SignerRejected):
        asyncio.run(signer.sign_and_submit(PAYLOAD))


def test_wallet_errors():
    async def refuse(payload):
        raise RuntimeError("user declined")

    async def offline(payload):
        raise NetworkError("wallet relay down")

    async def empty(payload):
        return {}

    with pytest.raises(SignerRejected):
        asyncio.run(CallbackSigner(refuse, SENDER).sign_and_submit(PAYLOAD))
    with pytest.raises(NetworkError):
        asyncio.run(CallbackSigner(offline, SENDER).sign_and_submit(PAYLOAD))
    with pytest.raises(SignerRejected):
        asyncio.run(CallbackSigner(empty, SENDER).sign_and_submit(PAYLOAD))
