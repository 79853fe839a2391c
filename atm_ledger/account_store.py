"""
Account Store Module

Keyed repository that owns the canonical account records. Lookups by user
id and by account id are O(1). Callers always receive detached copies;
mutations go through checkout()/checkout_pair(), which hold per-account
locks for the duration of one operation, followed by save()/save_all().
"""

from contextlib import ExitStack, contextmanager
from decimal import Decimal
from typing import Dict, Iterator, List, Optional, Tuple
import threading

from .accounts import Account, AccountStatus, AccountType
from .audit import AuditTrail, AuditEventType
from .clock import Clock, SystemClock
from .config import LedgerConfig, get_config
from .logging_config import get_logger, log_action
from .storage import StorageInterface, InMemoryStorage
from .validation import is_valid_account_id, is_valid_user_id


SAMPLE_ACCOUNTS = [
    # account_id, user_id, pin, holder_name, opening balance
    ("ACC1001", "user1", "1234", "Suraj Gupta", "50000.00"),
    ("ACC1002", "user2", "5678", "Virat Kohli", "75000.00"),
    ("ACC1003", "user3", "9012", "Amit Patel", "25000.50"),
    ("ACC1004", "user4", "3456", "Samrudhi Pitale", "100000.00"),
    ("ACC1005", "admin", "0000", "System Admin", "1000000.00"),
]


class AccountStore:
    """
    In-memory account repository with per-account locking

    Lock order for multi-account work is ascending account id, which keeps
    two opposing transfers from deadlocking.
    """

    def __init__(
        self,
        storage: Optional[StorageInterface] = None,
        config: Optional[LedgerConfig] = None,
        audit_trail: Optional[AuditTrail] = None,
        clock: Optional[Clock] = None,
        seed: Optional[bool] = None
    ):
        self.storage = storage or InMemoryStorage()
        self.config = config or get_config()
        self.clock = clock or SystemClock()
        self.accounts_table = "accounts"
        self.logger = get_logger("atm_ledger.account_store")

        if audit_trail is None and self.config.enable_audit_logging:
            audit_trail = AuditTrail(self.storage)
        self.audit_trail = audit_trail

        self._lock = threading.RLock()
        self._account_locks: Dict[str, threading.RLock] = {}
        self._user_index: Dict[str, str] = {}
        self._rebuild_index()

        self._seed = self.config.seed_sample_accounts if seed is None else seed
        if self._seed and self.storage.count(self.accounts_table) == 0:
            self.seed_sample_accounts()

    def _rebuild_index(self) -> None:
        with self._lock:
            self._user_index = {
                data['user_id']: data['id']
                for data in self.storage.load_all(self.accounts_table)
            }

    def _account_lock(self, account_id: str) -> threading.RLock:
        with self._lock:
            lock = self._account_locks.get(account_id)
            if lock is None:
                lock = threading.RLock()
                self._account_locks[account_id] = lock
            return lock

    def _audit(self, event_type: AuditEventType, account_id: str,
               metadata: Optional[dict] = None, user_id: Optional[str] = None) -> None:
        if self.audit_trail:
            self.audit_trail.log_event(
                event_type=event_type,
                entity_type="account",
                entity_id=account_id,
                metadata=metadata,
                user_id=user_id
            )

    # Provisioning

    def create_account(
        self,
        account_id: str,
        user_id: str,
        pin: str,
        holder_name: str,
        balance,
        account_type: AccountType = AccountType.SAVINGS,
        daily_withdrawal_limit=None
    ) -> Account:
        """
        Provision a new active account

        Raises:
            ValueError: On malformed or duplicate identifiers
        """
        if not is_valid_account_id(account_id):
            raise ValueError(f"Invalid account id format: {account_id}")
        if not is_valid_user_id(user_id):
            raise ValueError(f"Invalid user id format: {user_id}")

        if daily_withdrawal_limit is None:
            daily_withdrawal_limit = Decimal(self.config.default_daily_withdrawal_limit)

        account = Account.open(
            account_id=account_id,
            user_id=user_id,
            pin=pin,
            holder_name=holder_name,
            balance=balance,
            account_type=account_type,
            daily_withdrawal_limit=daily_withdrawal_limit,
            opened_at=self.clock.now()
        )

        with self._lock:
            if self.storage.exists(self.accounts_table, account_id):
                raise ValueError(f"Account {account_id} already exists")
            if user_id in self._user_index:
                raise ValueError(f"User {user_id} already has an account")

            self.storage.save(self.accounts_table, account.id, account.to_dict())
            self._user_index[user_id] = account.id

        self._audit(AuditEventType.ACCOUNT_CREATED, account.id, {
            "user_id": user_id,
            "account_type": account_type,
            "opening_balance": account.balance
        })
        log_action(
            self.logger, "info", f"Account created: {account.id}",
            user_id=user_id, action="create_account", resource=f"account:{account.id}"
        )

        return account

    def seed_sample_accounts(self) -> List[Account]:
        """Provision the demonstration accounts"""
        return [
            self.create_account(account_id, user_id, pin, holder_name, Decimal(balance))
            for account_id, user_id, pin, holder_name, balance in SAMPLE_ACCOUNTS
        ]

    # Lookups

    def find_by_user_id(self, user_id: str) -> Optional[Account]:
        with self._lock:
            account_id = self._user_index.get(user_id)
        if account_id is None:
            return None
        return self.find_by_account_id(account_id)

    def find_by_account_id(self, account_id: str) -> Optional[Account]:
        data = self.storage.load(self.accounts_table, account_id)
        if data:
            return Account.from_dict(data)
        return None

    def account_exists(self, account_id: str) -> bool:
        return self.storage.exists(self.accounts_table, account_id)

    def all_accounts(self) -> List[Account]:
        """Consistent snapshot of every account"""
        return [Account.from_dict(data) for data in self.storage.load_all(self.accounts_table)]

    # Persistence

    def save(self, account: Account) -> None:
        """Upsert the full account state"""
        self.save_all([account])

    def save_all(self, accounts: List[Account]) -> None:
        """
        Upsert several accounts as one unit

        All records are serialized before any is written and the write
        happens in one storage step, so readers see either none or all of
        the changes.
        """
        now = self.clock.now()
        ordered = sorted(accounts, key=lambda a: a.id)

        with ExitStack() as stack:
            for account in ordered:
                stack.enter_context(self._account_lock(account.id))

            with self._lock:
                for account in ordered:
                    owner = self._user_index.get(account.user_id)
                    if owner is not None and owner != account.id:
                        raise ValueError(f"User {account.user_id} already has an account")

                records = {}
                for account in ordered:
                    account.updated_at = now
                    records[account.id] = account.to_dict()

                self.storage.save_many(self.accounts_table, records)
                for account in ordered:
                    self._user_index[account.user_id] = account.id

    @contextmanager
    def checkout(self, account_id: str) -> Iterator[Account]:
        """
        Borrow one account under its lock

        The yielded copy is only persisted if the caller saves it.

        Raises:
            ValueError: If the account does not exist
        """
        with self._account_lock(account_id):
            account = self.find_by_account_id(account_id)
            if account is None:
                raise ValueError(f"Account {account_id} not found")
            yield account

    @contextmanager
    def checkout_pair(self, first_id: str, second_id: str) -> Iterator[Tuple[Account, Account]]:
        """
        Borrow two accounts under both locks, acquired in account id order

        Yields the accounts in argument order.
        """
        if first_id == second_id:
            raise ValueError("Cannot check out the same account twice")

        with ExitStack() as stack:
            for account_id in sorted((first_id, second_id)):
                stack.enter_context(self._account_lock(account_id))

            first = self.find_by_account_id(first_id)
            second = self.find_by_account_id(second_id)
            if first is None:
                raise ValueError(f"Account {first_id} not found")
            if second is None:
                raise ValueError(f"Account {second_id} not found")

            yield first, second

    # Security

    def authenticate(self, user_id: str, pin: str) -> Optional[Account]:
        """
        Check a PIN against the account of a user

        Locked accounts return None without touching the failure counter.
        A match resets the counter; a mismatch increments it and locks the
        account once it reaches the configured maximum.
        """
        with self._lock:
            account_id = self._user_index.get(user_id)
        if account_id is None:
            return None

        with self.checkout(account_id) as account:
            if account.locked:
                return None

            if account.pin == pin:
                if account.failed_login_count:
                    account.reset_failed_logins()
                    self.save(account)
                return account

            locked_now = account.record_failed_login(self.config.max_failed_login_attempts)
            self.save(account)

        self._audit(AuditEventType.LOGIN_FAILED, account_id, {
            "failed_login_count": account.failed_login_count
        }, user_id=user_id)

        if locked_now:
            self._audit(AuditEventType.ACCOUNT_LOCKED, account_id, {
                "failed_login_count": account.failed_login_count
            }, user_id=user_id)
            log_action(
                self.logger, "warning", f"Account locked after {account.failed_login_count} failed logins",
                user_id=user_id, action="lock_account", resource=f"account:{account_id}"
            )

        return None

    def unlock_account(self, account_id: str, reason: str = "") -> Account:
        """Clear the lock and failure counter of an account"""
        with self.checkout(account_id) as account:
            account.unlock()
            self.save(account)

        self._audit(AuditEventType.ACCOUNT_UNLOCKED, account_id, {"reason": reason})
        log_action(
            self.logger, "info", f"Account unlocked: {account_id}",
            action="unlock_account", resource=f"account:{account_id}",
            extra={"reason": reason}
        )
        return account

    def update_status(self, account_id: str, status: AccountStatus, reason: str = "") -> Account:
        """Change the lifecycle status of an account"""
        with self.checkout(account_id) as account:
            old_status = account.status
            account.status = status
            self.save(account)

        self._audit(AuditEventType.ACCOUNT_STATUS_CHANGED, account_id, {
            "old_status": old_status,
            "new_status": status,
            "reason": reason
        })
        log_action(
            self.logger, "info", f"Account {account_id} status {old_status.name} -> {status.name}",
            action="update_status", resource=f"account:{account_id}"
        )
        return account

    # Lifecycle

    def reset(self) -> None:
        """Drop every account and re-seed if seeding is enabled"""
        with self._lock:
            self.storage.clear_table(self.accounts_table)
            self._user_index = {}
            self._account_locks = {}
        if self._seed:
            self.seed_sample_accounts()

    def close(self) -> None:
        self.storage.close()
