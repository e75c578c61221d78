"""Error taxonomy shared by the catalog, search and transaction layers."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Stable, user-facing classification of ledger aborts."""

    NOT_AUTHORIZED = "not_authorized"
    ALREADY_LISTED = "already_listed"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    INVALID_RECIPIENT = "invalid_recipient"
    LISTED_CANNOT_TRANSFER = "listed_cannot_transfer"
    UNKNOWN = "unknown"


class MarketplaceError(Exception):
    """Base class for every error raised by this package."""


class DecodeError(MarketplaceError):
    """A byte-encoded ledger field or record could not be decoded."""


class NetworkError(MarketplaceError):
    """The ledger was unreachable or a confirmation wait timed out."""

    def __init__(self, message: str, *, timeout: bool = False) -> None:
        super().__init__(message)
        self.timeout = timeout


class ValidationError(MarketplaceError):
    """A user-supplied argument was rejected before submission."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field


class TransactionError(MarketplaceError):
    """The ledger aborted a submitted transaction."""

    def __init__(self, kind: ErrorKind, message: str = "", *, vm_status: str = "") -> None:
        super().__init__(message or kind.value)
        self.kind = kind
        self.vm_status = vm_status


class StaleDataError(MarketplaceError):
    """A catalog refresh completed after a newer one was issued."""

    def __init__(self, sequence: int, latest: int) -> None:
        super().__init__(f"refresh #{sequence} superseded by #{latest}")
        self.sequence = sequence
        self.latest = latest


class SignerRejected(MarketplaceError):
    """The external signer refused to sign, e.g. no active wallet session."""
