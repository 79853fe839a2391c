"""
Account Model Module

Customer accounts with PIN security state, daily withdrawal tracking and
an append-only transaction history. Accounts are owned by the account
store; the engine only ever works on checked-out copies.
"""

from decimal import Decimal
from datetime import date, datetime
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from enum import Enum

from .money import to_amount, ZERO
from .storage import StorageRecord
from .transactions import Transaction
from .validation import is_valid_pin


DEFAULT_DAILY_WITHDRAWAL_LIMIT = Decimal('50000.00')


class AccountType(Enum):
    """Banking product types"""
    SAVINGS = ("savings", "Savings Account")
    CURRENT = ("current", "Current Account")
    SALARY = ("salary", "Salary Account")
    FIXED_DEPOSIT = ("fixed_deposit", "Fixed Deposit Account")

    def __init__(self, code: str, display_name: str):
        self.code = code
        self.display_name = display_name


class AccountStatus(Enum):
    """Account lifecycle states"""
    ACTIVE = ("active", "Active")            # Normal operation
    INACTIVE = ("inactive", "Inactive")      # Dormant, no activity allowed
    SUSPENDED = ("suspended", "Suspended")   # Administrative suspension
    CLOSED = ("closed", "Closed")            # Permanently closed
    FROZEN = ("frozen", "Frozen")            # Temporarily blocked

    def __init__(self, code: str, display_name: str):
        self.code = code
        self.display_name = display_name


@dataclass
class Account(StorageRecord):
    """
    Customer account

    The record id is the account id. Balance is not constrained on the
    field itself; minimum-balance rules are enforced by the operations that
    move money.
    """
    user_id: str
    pin: str
    holder_name: str
    balance: Decimal
    account_type: AccountType = AccountType.SAVINGS
    status: AccountStatus = AccountStatus.ACTIVE
    failed_login_count: int = 0
    locked: bool = False
    daily_withdrawal_limit: Decimal = DEFAULT_DAILY_WITHDRAWAL_LIMIT
    daily_withdrawn: Decimal = ZERO
    last_withdrawal_reset: Optional[date] = None
    last_access: Optional[datetime] = None
    transaction_history: List[Transaction] = field(default_factory=list)

    def __post_init__(self):
        if not is_valid_pin(self.pin):
            raise ValueError("PIN must be 4 digits")

        if self.failed_login_count < 0:
            raise ValueError("Failed login count cannot be negative")

        self.balance = to_amount(self.balance)
        self.daily_withdrawal_limit = to_amount(self.daily_withdrawal_limit)
        self.daily_withdrawn = to_amount(self.daily_withdrawn)

        if self.last_withdrawal_reset is None:
            self.last_withdrawal_reset = self.created_at.date()

    @classmethod
    def open(
        cls,
        account_id: str,
        user_id: str,
        pin: str,
        holder_name: str,
        balance: Any,
        account_type: AccountType = AccountType.SAVINGS,
        daily_withdrawal_limit: Any = DEFAULT_DAILY_WITHDRAWAL_LIMIT,
        opened_at: Optional[datetime] = None
    ) -> 'Account':
        """Provision a new active account with a starting balance"""
        now = opened_at or datetime.now()
        return cls(
            id=account_id,
            created_at=now,
            updated_at=now,
            user_id=user_id,
            pin=pin,
            holder_name=holder_name,
            balance=balance,
            account_type=account_type,
            daily_withdrawal_limit=daily_withdrawal_limit,
            last_access=now
        )

    @property
    def account_id(self) -> str:
        return self.id

    def can_transact(self) -> bool:
        """Only active accounts may transact or receive transfers"""
        return self.status == AccountStatus.ACTIVE

    @property
    def remaining_daily_limit(self) -> Decimal:
        return self.daily_withdrawal_limit - self.daily_withdrawn

    def record_failed_login(self, max_attempts: int) -> bool:
        """Count a wrong PIN; returns True if this attempt locked the account"""
        self.failed_login_count += 1
        if self.failed_login_count >= max_attempts and not self.locked:
            self.locked = True
            return True
        return False

    def reset_failed_logins(self) -> None:
        self.failed_login_count = 0

    def unlock(self) -> None:
        self.locked = False
        self.failed_login_count = 0

    def needs_daily_reset(self, today: date) -> bool:
        return self.last_withdrawal_reset < today

    def reset_daily_withdrawn(self, today: date) -> None:
        self.daily_withdrawn = ZERO
        self.last_withdrawal_reset = today

    def add_transaction(self, transaction: Transaction) -> None:
        if transaction.account_id != self.id:
            raise ValueError(
                f"Transaction {transaction.transaction_id} belongs to {transaction.account_id}, not {self.id}"
            )
        self.transaction_history.append(transaction)

    @property
    def transactions(self) -> List[Transaction]:
        """Copy of the history, oldest first"""
        return list(self.transaction_history)

    def to_dict(self) -> Dict[str, Any]:
        """Convert Account to dictionary for storage"""
        return {
            'id': self.id,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
            'user_id': self.user_id,
            'pin': self.pin,
            'holder_name': self.holder_name,
            'balance': str(self.balance),
            'account_type': self.account_type.name,
            'status': self.status.name,
            'failed_login_count': self.failed_login_count,
            'locked': self.locked,
            'daily_withdrawal_limit': str(self.daily_withdrawal_limit),
            'daily_withdrawn': str(self.daily_withdrawn),
            'last_withdrawal_reset': self.last_withdrawal_reset.isoformat(),
            'last_access': self.last_access.isoformat() if self.last_access else None,
            'transaction_history': [t.to_dict() for t in self.transaction_history],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Account':
        """Convert stored dictionary to Account"""
        last_access = None
        if data.get('last_access'):
            last_access = datetime.fromisoformat(data['last_access'])

        return cls(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            user_id=data['user_id'],
            pin=data['pin'],
            holder_name=data['holder_name'],
            balance=Decimal(data['balance']),
            account_type=AccountType[data['account_type']],
            status=AccountStatus[data['status']],
            failed_login_count=data['failed_login_count'],
            locked=data['locked'],
            daily_withdrawal_limit=Decimal(data['daily_withdrawal_limit']),
            daily_withdrawn=Decimal(data['daily_withdrawn']),
            last_withdrawal_reset=date.fromisoformat(data['last_withdrawal_reset']),
            last_access=last_access,
            transaction_history=[Transaction.from_dict(t) for t in data['transaction_history']],
        )

    def __repr__(self) -> str:
        return f"Account({self.id!r}, user={self.user_id!r}, balance={self.balance}, status={self.status.name})"
