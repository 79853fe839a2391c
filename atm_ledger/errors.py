"""
Ledger Errors and Operation Results

Every engine operation returns an OperationResult. Business-rule
violations are reported as a LedgerError tagged with an ErrorKind, so
callers branch on result.error.kind instead of catching exception types.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar


T = TypeVar("T")


class ErrorKind(Enum):
    """Kinds of ledger failures"""
    # Input and session
    INVALID_INPUT = "invalid_input"
    NO_ACTIVE_SESSION = "no_active_session"
    ACCOUNT_LOCKED = "account_locked"
    ACCOUNT_UNAVAILABLE = "account_unavailable"

    # Amount rules
    INVALID_AMOUNT = "invalid_amount"
    BELOW_MINIMUM = "below_minimum"
    ABOVE_MAXIMUM = "above_maximum"
    INVALID_DENOMINATION = "invalid_denomination"
    DAILY_LIMIT_EXCEEDED = "daily_limit_exceeded"
    INSUFFICIENT_FUNDS = "insufficient_funds"

    # Transfers
    INVALID_ACCOUNT_FORMAT = "invalid_account_format"
    SELF_TRANSFER = "self_transfer"
    ACCOUNT_NOT_FOUND = "account_not_found"
    RECIPIENT_UNAVAILABLE = "recipient_unavailable"
    TRANSFER_FAILED = "transfer_failed"

    # PIN change
    INCORRECT_PIN = "incorrect_pin"
    INVALID_PIN = "invalid_pin"
    PIN_UNCHANGED = "pin_unchanged"
    PIN_MISMATCH = "pin_mismatch"
    WEAK_PIN = "weak_pin"


class LedgerError(Exception):
    """A business-rule violation with a human-readable reason"""

    def __init__(self, kind: ErrorKind, message: str):
        self.kind = kind
        self.message = message
        super().__init__(message)

    def __repr__(self) -> str:
        return f"LedgerError({self.kind.name}, {self.message!r})"


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Outcome of one engine operation: a value or a LedgerError"""
    value: Optional[T] = None
    error: Optional[LedgerError] = None

    @classmethod
    def success(cls, value: Any = None) -> 'OperationResult':
        return cls(value=value)

    @classmethod
    def failure(cls, error: LedgerError) -> 'OperationResult':
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> Optional[ErrorKind]:
        """Error kind, or None on success"""
        return self.error.kind if self.error else None

    def unwrap(self) -> T:
        """Return the value, raising the LedgerError on failure"""
        if self.error is not None:
            raise self.error
        return self.value
