from __future__ import annotations
# burnvault/errors.py
"""
Error types for the burnvault accounting core. Every failure is a rejected
operation: the component that raises has not mutated any state. Errors are
lightweight, serializable, and safe to surface over logs or an RPC layer.

Exports:
- BurnVaultError (base)
- InsufficientAmount
- InsufficientBalance
- AllowanceExceeded
- InsufficientReserve
- Forbidden
- AlreadyInitialized
- TransferLimitExceeded
- InvalidDistribution
- InvariantViolation
"""


import json
from typing import Any, Dict, Mapping, Optional


class BurnVaultError(Exception):
    """Base class for burnvault domain errors."""

    code: str = "BV_ERROR"

    def __init__(self, message: str = "", *, details: Optional[Mapping[str, Any]] = None) -> None:
        self.message = message or self.__class__.__name__
        self.details = dict(details or {})
        super().__init__(self.__str__())

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}

    def __str__(self) -> str:  # pragma: no cover - trivial
        if self.details:
            # Keep this compact and stable for logs
            packed = json.dumps(self.details, sort_keys=True, separators=(",", ":"), default=str)
            return f"{self.code}: {self.message} [{packed}]"
        return f"{self.code}: {self.message}"


class InsufficientAmount(BurnVaultError):
    """Zero or otherwise degenerate amount (or a supply cap that would be exceeded)."""
    code = "BV_INSUFFICIENT_AMOUNT"

    def __init__(
        self,
        message: str = "insufficient amount",
        *,
        amount: Optional[int] = None,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        if amount is not None:
            d.setdefault("amount", int(amount))
        super().__init__(message, details=d)


class InsufficientBalance(BurnVaultError):
    """Requested amount exceeds a tracked share, ledger or cash balance."""
    code = "BV_INSUFFICIENT_BALANCE"

    def __init__(
        self,
        *,
        account: str,
        required: int,
        available: int,
        message: str = "insufficient balance",
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        d.update({"account": account, "required": int(required), "available": int(available)})
        super().__init__(message, details=d)


class AllowanceExceeded(BurnVaultError):
    """A delegated transfer was attempted without sufficient prior approval."""
    code = "BV_ALLOWANCE_EXCEEDED"

    def __init__(
        self,
        *,
        owner: str,
        spender: str,
        required: int,
        allowance: int,
        message: str = "transfer amount exceeds allowance",
    ) -> None:
        super().__init__(
            message,
            details={
                "owner": owner,
                "spender": spender,
                "required": int(required),
                "allowance": int(allowance),
            },
        )


class InsufficientReserve(BurnVaultError):
    """The floor payout for a burn exceeds the available reserve."""
    code = "BV_INSUFFICIENT_RESERVE"

    def __init__(
        self,
        *,
        required: int,
        reserve: int,
        message: str = "refund exceeds reserve",
    ) -> None:
        super().__init__(message, details={"required": int(required), "reserve": int(reserve)})


class Forbidden(BurnVaultError):
    """The caller lacks the role required for the operation."""
    code = "BV_FORBIDDEN"

    def __init__(
        self,
        *,
        sender: str,
        action: str,
        message: str = "forbidden",
    ) -> None:
        super().__init__(message, details={"sender": sender, "action": action})


class AlreadyInitialized(BurnVaultError):
    """A one-time binding (e.g. the ledger's floor) was set a second time."""
    code = "BV_ALREADY_INITIALIZED"

    def __init__(self, *, field: str, message: str = "already initialized") -> None:
        super().__init__(message, details={"field": field})


class TransferLimitExceeded(BurnVaultError):
    """A transfer violated the operator's max-transfer or min-holding limits."""
    code = "BV_TRANSFER_LIMIT"


class InvalidDistribution(BurnVaultError):
    """A distributor rate table is malformed (length mismatch, negative rate)."""
    code = "BV_INVALID_DISTRIBUTION"


class InvariantViolation(BurnVaultError):
    """
    An internal accounting identity did not hold after an operation. This
    indicates a bug, never a user error.
    """
    code = "BV_INVARIANT_VIOLATION"


__all__ = [
    "BurnVaultError",
    "InsufficientAmount",
    "InsufficientBalance",
    "AllowanceExceeded",
    "InsufficientReserve",
    "Forbidden",
    "AlreadyInitialized",
    "TransferLimitExceeded",
    "InvalidDistribution",
    "InvariantViolation",
]
