"""
Transaction Records Module

Immutable audit records of completed balance-affecting events. A record
is created by the ledger engine at the moment an operation commits and is
appended to the history of every account involved; a transfer produces one
record per side, linked by counterparty account id.
"""

from decimal import Decimal
from datetime import datetime
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from enum import Enum
import time
import uuid

from .money import to_amount, format_amount, ZERO


class TransactionType(Enum):
    """Types of ledger transactions"""
    DEPOSIT = ("deposit", "Deposit")
    WITHDRAWAL = ("withdrawal", "Withdrawal")
    TRANSFER_OUT = ("transfer_out", "Transfer Out")
    TRANSFER_IN = ("transfer_in", "Transfer In")
    BALANCE_INQUIRY = ("balance_inquiry", "Balance Inquiry")
    PIN_CHANGE = ("pin_change", "PIN Change")

    def __init__(self, code: str, display_name: str):
        self.code = code
        self.display_name = display_name

    @property
    def is_transfer(self) -> bool:
        return self in (TransactionType.TRANSFER_OUT, TransactionType.TRANSFER_IN)


class TransactionStatus(Enum):
    """Transaction states; the engine only ever produces COMPLETED"""
    COMPLETED = "completed"
    PENDING = "pending"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REVERSED = "reversed"


def generate_transaction_id() -> str:
    """TXN + epoch millis + 8 random hex characters"""
    millis = int(time.time() * 1000)
    return f"TXN{millis}{uuid.uuid4().hex[:8].upper()}"


@dataclass
class Transaction:
    """
    Audit record of one completed ledger event

    Every field except status is frozen once the record is constructed.
    """
    account_id: str
    transaction_type: TransactionType
    amount: Decimal
    balance_after: Decimal
    description: str
    counterparty_account_id: Optional[str] = None
    status: TransactionStatus = TransactionStatus.COMPLETED
    timestamp: datetime = field(default_factory=datetime.now)
    transaction_id: str = field(default_factory=generate_transaction_id)

    def __post_init__(self):
        self.amount = to_amount(self.amount)
        self.balance_after = to_amount(self.balance_after)

        if self.amount < ZERO:
            raise ValueError("Transaction amount cannot be negative")

        if self.transaction_type == TransactionType.PIN_CHANGE:
            if self.amount != ZERO:
                raise ValueError("PIN change transactions carry a zero amount")
        elif self.amount == ZERO:
            raise ValueError(f"{self.transaction_type.display_name} amount must be positive")

        if self.transaction_type.is_transfer and not self.counterparty_account_id:
            raise ValueError("Transfer transactions require a counterparty account")
        if not self.transaction_type.is_transfer and self.counterparty_account_id:
            raise ValueError("Only transfer transactions have a counterparty account")

        object.__setattr__(self, '_sealed', True)

    def __setattr__(self, name: str, value: Any) -> None:
        if name != 'status' and getattr(self, '_sealed', False):
            raise AttributeError(f"Transaction field '{name}' is immutable")
        object.__setattr__(self, name, value)

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"Transaction field '{name}' cannot be deleted")

    @property
    def is_completed(self) -> bool:
        return self.status == TransactionStatus.COMPLETED

    @property
    def is_debit(self) -> bool:
        """Check if the record reduced the account balance"""
        return self.transaction_type in (TransactionType.WITHDRAWAL, TransactionType.TRANSFER_OUT)

    @property
    def is_credit(self) -> bool:
        """Check if the record increased the account balance"""
        return self.transaction_type in (TransactionType.DEPOSIT, TransactionType.TRANSFER_IN)

    @property
    def signed_amount(self) -> Decimal:
        """Amount with the sign of its effect on the balance"""
        return -self.amount if self.is_debit else self.amount

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        return {
            'transaction_id': self.transaction_id,
            'account_id': self.account_id,
            'transaction_type': self.transaction_type.name,
            'amount': str(self.amount),
            'balance_after': str(self.balance_after),
            'timestamp': self.timestamp.isoformat(),
            'description': self.description,
            'counterparty_account_id': self.counterparty_account_id,
            'status': self.status.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Transaction':
        """Create Transaction from stored dictionary"""
        return cls(
            transaction_id=data['transaction_id'],
            account_id=data['account_id'],
            transaction_type=TransactionType[data['transaction_type']],
            amount=Decimal(data['amount']),
            balance_after=Decimal(data['balance_after']),
            timestamp=datetime.fromisoformat(data['timestamp']),
            description=data['description'],
            counterparty_account_id=data.get('counterparty_account_id'),
            status=TransactionStatus(data['status']),
        )

    def __str__(self) -> str:
        counterparty = f" | {self.counterparty_account_id}" if self.counterparty_account_id else ""
        return (
            f"{self.timestamp:%d-%m-%Y %H:%M:%S} | {self.transaction_id} | "
            f"{self.transaction_type.display_name} | {format_amount(self.amount)} | "
            f"Bal: {format_amount(self.balance_after)}{counterparty}"
        )
