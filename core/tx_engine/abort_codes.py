"""Map ledger abort statuses to :class:`core.errors.ErrorKind`."""

from __future__ import annotations

import re
from typing import Dict, Mapping, Tuple

from core.errors import ErrorKind

# checked in order; E_NFT_ALREADY_LISTED must win over E_NFT_LISTED
_NAMED_ABORTS: Tuple[Tuple[str, ErrorKind], ...] = (
    ("E_NFT_ALREADY_LISTED", ErrorKind.ALREADY_LISTED),
    ("E_NOT_AUTHORIZED", ErrorKind.NOT_AUTHORIZED),
    ("E_INSUFFICIENT_BALANCE", ErrorKind.INSUFFICIENT_BALANCE),
    ("EINSUFFICIENT_BALANCE", ErrorKind.INSUFFICIENT_BALANCE),
    ("INSUFFICIENT_BALANCE_FOR_TRANSACTION_FEE", ErrorKind.INSUFFICIENT_BALANCE),
    ("E_INVALID_RECIPIENT", ErrorKind.INVALID_RECIPIENT),
    ("E_NFT_LISTED", ErrorKind.LISTED_CANNOT_TRANSFER),
)

_ABORT_CODE_RE = re.compile(r"(?:code\s*|:\s+|\()(0x[0-9a-fA-F]+|\d+)\b")


def _parse_code(vm_status: str) -> int | None:
    if "abort" not in vm_status.lower():
        return None
    matches = _ABORT_CODE_RE.findall(vm_status)
    if not matches:
        return None
    token = matches[-1]
    return int(token, 16) if token.lower().startswith("0x") else int(token)


def map_abort(vm_status: str, codes: Mapping[int, str] | None = None) -> ErrorKind:
    """Classify ``vm_status``; named aborts first, then the numeric reason table."""

    upper = vm_status.upper()
    for name, kind in _NAMED_ABORTS:
        if name in upper:
            return kind
    if codes:
        code = _parse_code(vm_status)
        if code is not None:
            # Move error codes carry a category in the high bits; the reason is the low 16
            reason = code & 0xFFFF
            table: Dict[int, str] = {int(k): v for k, v in codes.items()}
            value = table.get(reason)
            if value is not None:
                try:
                    return ErrorKind(value)
                except ValueError:
                    return ErrorKind.UNKNOWN
    return ErrorKind.UNKNOWN
