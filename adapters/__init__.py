"""Adapters package for the ledger and the external signer."""

from .ledger_gateway import Confirmation, LedgerGateway, RestLedgerGateway
from .signer import CallbackSigner, Signer

__all__ = [
    "Confirmation",
    "LedgerGateway",
    "RestLedgerGateway",
    "CallbackSigner",
    "Signer",
]
