"""
Ledger Engine Module

Session-scoped service that authenticates one user and applies deposits,
withdrawals, transfers and PIN changes against the account store. Every
operation either commits completely (balance, history and persistence) or
returns a failed OperationResult with nothing changed.

The engine keeps only the authenticated account id between operations.
Each operation checks the account out of the store under its lock, works
on that copy and saves it back before returning.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from functools import wraps
from typing import Callable, List, Optional

from .account_store import AccountStore
from .accounts import Account
from .audit import AuditEventType
from .clock import Clock
from .config import LedgerConfig
from .errors import ErrorKind, LedgerError, OperationResult
from .logging_config import get_logger, log_action
from .money import PRECISION, ZERO, format_amount, is_whole_cents, to_amount, to_decimal
from .transactions import Transaction, TransactionType
from .validation import (
    is_valid_account_id, is_valid_pin, is_valid_user_id, is_weak_pin, mask_account_id
)


class SessionState(Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class AccountSummary:
    """Point-in-time view of the session account"""
    account_id: str
    holder_name: str
    account_type: str
    balance: Decimal
    available_balance: Decimal
    daily_withdrawal_limit: Decimal
    withdrawn_today: Decimal
    remaining_daily_limit: Decimal


def ledger_operation(func: Callable) -> Callable:
    """Convert LedgerError raised inside an operation into a failed result"""
    @wraps(func)
    def wrapper(self, *args, **kwargs) -> OperationResult:
        try:
            return OperationResult.success(func(self, *args, **kwargs))
        except LedgerError as e:
            log_action(
                self.logger, "info", f"{func.__name__} rejected: {e.message}",
                user_id=self._user_id, action=func.__name__,
                extra={"error_kind": e.kind.value}
            )
            return OperationResult.failure(e)
    return wrapper


class LedgerEngine:
    """
    One engine instance serves at most one authenticated session
    """

    def __init__(
        self,
        store: AccountStore,
        clock: Optional[Clock] = None,
        config: Optional[LedgerConfig] = None
    ):
        self.store = store
        self.clock = clock or store.clock
        self.config = config or store.config
        self.logger = get_logger("atm_ledger.engine")

        self._account_id: Optional[str] = None
        self._user_id: Optional[str] = None

        self.minimum_balance = Decimal(self.config.minimum_balance)
        self.minimum_withdrawal = Decimal(self.config.minimum_withdrawal)
        self.maximum_withdrawal = Decimal(self.config.maximum_withdrawal)
        self.withdrawal_denomination = Decimal(self.config.withdrawal_denomination)
        self.maximum_deposit = Decimal(self.config.maximum_deposit)
        self.minimum_transfer = Decimal(self.config.minimum_transfer)
        self.maximum_transfer = Decimal(self.config.maximum_transfer)

    # Session

    @property
    def state(self) -> SessionState:
        if self._account_id is None:
            return SessionState.UNAUTHENTICATED
        return SessionState.AUTHENTICATED

    @property
    def is_logged_in(self) -> bool:
        return self._account_id is not None

    @property
    def current_account_id(self) -> Optional[str]:
        return self._account_id

    @ledger_operation
    def login(self, user_id: str, pin: str) -> bool:
        """
        Authenticate a user and open the session

        Returns True on success and False on a wrong PIN that did not lock
        the account; the caller decides whether to prompt again.
        """
        if not is_valid_user_id(user_id):
            raise LedgerError(ErrorKind.INVALID_INPUT, "Invalid User ID format")
        if not is_valid_pin(pin):
            raise LedgerError(ErrorKind.INVALID_INPUT, "Invalid PIN format")

        account = self.store.authenticate(user_id, pin)
        if account is None:
            existing = self.store.find_by_user_id(user_id)
            if existing is not None and existing.locked:
                raise LedgerError(
                    ErrorKind.ACCOUNT_LOCKED,
                    "Account is locked due to multiple failed login attempts. Please contact bank."
                )
            log_action(self.logger, "info", "Login failed", user_id=user_id, action="login")
            return False

        self._require_active(account)

        with self.store.checkout(account.id) as current:
            current.last_access = self.clock.now()
            self._reset_daily_limit_if_new_day(current)
            self.store.save(current)

        self._account_id = account.id
        self._user_id = user_id

        self._audit(AuditEventType.LOGIN_SUCCESS, "session", account.id)
        log_action(
            self.logger, "info", "Login successful",
            user_id=user_id, action="login", resource=f"account:{account.id}"
        )
        return True

    @ledger_operation
    def logout(self) -> None:
        """End the session; safe to call when already logged out"""
        if self._account_id is not None:
            self._audit(AuditEventType.LOGOUT, "session", self._account_id)
            log_action(
                self.logger, "info", "Logout",
                user_id=self._user_id, action="logout", resource=f"account:{self._account_id}"
            )
        self._account_id = None
        self._user_id = None

    def _require_session(self) -> str:
        if self._account_id is None:
            raise LedgerError(ErrorKind.NO_ACTIVE_SESSION, "No active session. Please login first.")
        return self._account_id

    # Money movement

    @ledger_operation
    def withdraw(self, amount) -> Transaction:
        """Dispense cash from the session account"""
        account_id = self._require_session()
        amount = self._positive_amount(amount, "Withdrawal")

        if amount < self.minimum_withdrawal:
            raise LedgerError(
                ErrorKind.BELOW_MINIMUM,
                f"Minimum withdrawal amount is {format_amount(self.minimum_withdrawal)}"
            )
        if amount > self.maximum_withdrawal:
            raise LedgerError(
                ErrorKind.ABOVE_MAXIMUM,
                f"Maximum withdrawal per transaction is {format_amount(self.maximum_withdrawal)}"
            )
        if amount % self.withdrawal_denomination != 0:
            raise LedgerError(
                ErrorKind.INVALID_DENOMINATION,
                f"Amount must be in multiples of {self.withdrawal_denomination}"
            )

        with self.store.checkout(account_id) as account:
            self._require_active(account)
            if self._reset_daily_limit_if_new_day(account):
                self.store.save(account)

            if account.daily_withdrawn + amount > account.daily_withdrawal_limit:
                raise LedgerError(
                    ErrorKind.DAILY_LIMIT_EXCEEDED,
                    f"Daily withdrawal limit exceeded. Limit: {format_amount(account.daily_withdrawal_limit)}, "
                    f"Already withdrawn: {format_amount(account.daily_withdrawn)}"
                )
            self._check_minimum_balance(account, amount)

            account.balance -= amount
            account.daily_withdrawn += amount
            transaction = self._record(account, TransactionType.WITHDRAWAL, amount, "ATM Withdrawal")
            self.store.save(account)

        self._posted(transaction)
        return transaction

    @ledger_operation
    def deposit(self, amount) -> Transaction:
        """Credit the session account"""
        account_id = self._require_session()
        amount = self._positive_amount(amount, "Deposit")

        if amount > self.maximum_deposit:
            raise LedgerError(
                ErrorKind.ABOVE_MAXIMUM,
                f"Single deposit cannot exceed {format_amount(self.maximum_deposit)}. "
                f"Please visit branch for larger deposits."
            )

        with self.store.checkout(account_id) as account:
            self._require_active(account)
            account.balance += amount
            transaction = self._record(account, TransactionType.DEPOSIT, amount, "ATM Deposit")
            self.store.save(account)

        self._posted(transaction)
        return transaction

    @ledger_operation
    def transfer(self, recipient_account_id: str, amount) -> Transaction:
        """
        Move funds from the session account to another active account

        Both sides are debited/credited, recorded and saved together under
        both account locks. Returns the sender-side record.
        """
        sender_id = self._require_session()

        if not is_valid_account_id(recipient_account_id):
            raise LedgerError(ErrorKind.INVALID_ACCOUNT_FORMAT, "Invalid recipient account number format")
        if recipient_account_id == sender_id:
            raise LedgerError(ErrorKind.SELF_TRANSFER, "Cannot transfer to same account")
        if not self.store.account_exists(recipient_account_id):
            raise LedgerError(ErrorKind.ACCOUNT_NOT_FOUND, f"Recipient account not found: {recipient_account_id}")

        with self.store.checkout_pair(sender_id, recipient_account_id) as (sender, recipient):
            self._require_active(sender)
            if not recipient.can_transact():
                raise LedgerError(ErrorKind.RECIPIENT_UNAVAILABLE, "Recipient account is not active")

            amount = self._positive_amount(amount, "Transfer")
            if amount < self.minimum_transfer:
                raise LedgerError(
                    ErrorKind.BELOW_MINIMUM,
                    f"Minimum transfer amount is {format_amount(self.minimum_transfer)}"
                )
            if amount > self.maximum_transfer:
                raise LedgerError(
                    ErrorKind.ABOVE_MAXIMUM,
                    f"Maximum transfer per transaction is {format_amount(self.maximum_transfer)}"
                )
            self._check_minimum_balance(sender, amount)

            try:
                sender.balance -= amount
                sent = self._record(
                    sender, TransactionType.TRANSFER_OUT, amount,
                    f"Transfer to {recipient.id}", counterparty=recipient.id
                )
                recipient.balance += amount
                received = self._record(
                    recipient, TransactionType.TRANSFER_IN, amount,
                    f"Transfer from {sender.id}", counterparty=sender.id
                )
                self.store.save_all([sender, recipient])
            except Exception as e:
                self.logger.exception("Transfer commit failed")
                raise LedgerError(ErrorKind.TRANSFER_FAILED, f"Transfer failed: {e}") from e

        self._posted(sent)
        self._posted(received)
        return sent

    # PIN

    @ledger_operation
    def change_pin(self, old_pin: str, new_pin: str, confirm_pin: str) -> None:
        """
        Replace the PIN of the session account

        The session stays open; callers are expected to log out right after
        a successful change.
        """
        account_id = self._require_session()

        with self.store.checkout(account_id) as account:
            if account.pin != old_pin:
                raise LedgerError(ErrorKind.INCORRECT_PIN, "Current PIN is incorrect")
            if not is_valid_pin(new_pin):
                raise LedgerError(ErrorKind.INVALID_PIN, "New PIN must be 4 digits")
            if new_pin == old_pin:
                raise LedgerError(ErrorKind.PIN_UNCHANGED, "New PIN must be different from current PIN")
            if new_pin != confirm_pin:
                raise LedgerError(ErrorKind.PIN_MISMATCH, "New PIN and confirmation PIN do not match")
            if is_weak_pin(new_pin):
                raise LedgerError(
                    ErrorKind.WEAK_PIN,
                    "Weak PIN detected. Avoid sequential numbers (1234) or repeated digits (1111)"
                )

            account.pin = new_pin
            transaction = self._record(
                account, TransactionType.PIN_CHANGE, ZERO, "PIN Changed Successfully"
            )
            self.store.save(account)

        self._audit(AuditEventType.PIN_CHANGED, "account", account_id)
        self._posted(transaction)

    # Queries

    @ledger_operation
    def check_balance(self) -> Decimal:
        return self._load_current().balance

    @ledger_operation
    def transaction_history(self, limit: Optional[int] = None) -> List[Transaction]:
        """
        Transactions of the session account, oldest first

        With a limit, only the most recent `limit` entries are returned,
        still oldest first.
        """
        history = self._load_current().transactions
        if limit is None:
            return history
        if limit <= 0:
            return []
        return history[-limit:]

    @ledger_operation
    def account_summary(self) -> AccountSummary:
        account = self._load_current()
        today = self.clock.today()
        withdrawn = ZERO if account.needs_daily_reset(today) else account.daily_withdrawn

        return AccountSummary(
            account_id=account.id,
            holder_name=account.holder_name,
            account_type=account.account_type.display_name,
            balance=account.balance,
            available_balance=account.balance - self.minimum_balance,
            daily_withdrawal_limit=account.daily_withdrawal_limit,
            withdrawn_today=withdrawn,
            remaining_daily_limit=account.daily_withdrawal_limit - withdrawn
        )

    # Internals

    def _load_current(self) -> Account:
        account_id = self._require_session()
        account = self.store.find_by_account_id(account_id)
        if account is None:
            raise LedgerError(ErrorKind.NO_ACTIVE_SESSION, f"Session account {account_id} no longer exists")
        return account

    def _require_active(self, account: Account) -> None:
        """Status is re-read on every operation; an admin change applies mid-session"""
        if not account.can_transact():
            raise LedgerError(
                ErrorKind.ACCOUNT_UNAVAILABLE,
                f"Account is {account.status.display_name}. Please contact bank."
            )

    def _positive_amount(self, amount, label: str) -> Decimal:
        """Validate the exact amount given; sub-cent values are rejected, never rounded"""
        try:
            exact = to_decimal(amount)
        except ValueError:
            raise LedgerError(ErrorKind.INVALID_AMOUNT, f"{label} amount must be a valid number")
        if exact <= ZERO:
            raise LedgerError(ErrorKind.INVALID_AMOUNT, f"{label} amount must be positive")
        if not is_whole_cents(exact):
            raise LedgerError(
                ErrorKind.INVALID_AMOUNT,
                f"{label} amount cannot have more than {PRECISION} decimal places"
            )
        return to_amount(exact)

    def _check_minimum_balance(self, account: Account, amount: Decimal) -> None:
        if account.balance - amount < self.minimum_balance:
            raise LedgerError(
                ErrorKind.INSUFFICIENT_FUNDS,
                f"Insufficient funds. Available balance: {format_amount(account.balance)} "
                f"(Minimum balance: {format_amount(self.minimum_balance)} required)"
            )

    def _reset_daily_limit_if_new_day(self, account: Account) -> bool:
        """Zero the daily withdrawn amount if the calendar day changed"""
        today = self.clock.today()
        if not account.needs_daily_reset(today):
            return False

        previous = account.daily_withdrawn
        account.reset_daily_withdrawn(today)
        log_action(
            self.logger, "debug", "Daily withdrawal limit reset",
            user_id=self._user_id or account.user_id, action="reset_daily_limit",
            resource=f"account:{account.id}", extra={"previous_withdrawn": str(previous)}
        )
        return True

    def _record(self, account: Account, transaction_type: TransactionType, amount: Decimal,
                description: str, counterparty: Optional[str] = None) -> Transaction:
        transaction = Transaction(
            account_id=account.id,
            transaction_type=transaction_type,
            amount=amount,
            balance_after=account.balance,
            description=description,
            counterparty_account_id=counterparty,
            timestamp=self.clock.now()
        )
        account.add_transaction(transaction)
        return transaction

    def _posted(self, transaction: Transaction) -> None:
        extra = {
            "transaction_id": transaction.transaction_id,
            "transaction_type": transaction.transaction_type.code,
            "amount": str(transaction.amount),
            "balance_after": str(transaction.balance_after),
        }
        if transaction.counterparty_account_id:
            extra["counterparty"] = mask_account_id(transaction.counterparty_account_id)

        log_action(
            self.logger, "info", f"Transaction posted: {transaction.transaction_type.code}",
            user_id=self._user_id, action="post_transaction",
            resource=f"account:{transaction.account_id}", extra=extra
        )
        self._audit(AuditEventType.TRANSACTION_POSTED, "transaction", transaction.transaction_id, {
            "account_id": transaction.account_id,
            "transaction_type": transaction.transaction_type,
            "amount": transaction.amount,
            "balance_after": transaction.balance_after,
            "counterparty_account_id": transaction.counterparty_account_id
        })

    def _audit(self, event_type: AuditEventType, entity_type: str, entity_id: str,
               metadata: Optional[dict] = None) -> None:
        if self.store.audit_trail:
            self.store.audit_trail.log_event(
                event_type=event_type,
                entity_type=entity_type,
                entity_id=entity_id,
                metadata=metadata,
                user_id=self._user_id
            )
