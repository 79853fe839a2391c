"""
Test suite for the ledger engine

Tests session handling, withdrawals, deposits, transfers, PIN changes and
queries, including every rejection path and the ledger invariants that
must hold afterwards.
"""

import pytest
from decimal import Decimal
from datetime import date, datetime

from atm_ledger.account_store import AccountStore
from atm_ledger.accounts import AccountStatus
from atm_ledger.clock import FixedClock
from atm_ledger.engine import LedgerEngine, SessionState
from atm_ledger.errors import ErrorKind, LedgerError
from atm_ledger.transactions import TransactionType


START = datetime(2024, 3, 15, 10, 0, 0)


class EngineTestCase:
    """Shared fixture: three customer accounts and a logged-out engine"""

    def setup_method(self):
        self.clock = FixedClock(START)
        self.store = AccountStore(clock=self.clock, seed=False)
        self.store.create_account("SAV20001", "alice", "2580", "Alice Rao", Decimal("50000.00"))
        self.store.create_account("SAV20002", "bob", "1357", "Bob Shah", Decimal("10000.00"))
        self.store.create_account("SAV20003", "carol", "8642", "Carol Das", Decimal("500.00"))
        self.engine = LedgerEngine(self.store)

    def login_alice(self):
        assert self.engine.login("alice", "2580").value is True

    def balance_of(self, account_id):
        return self.store.find_by_account_id(account_id).balance

    def history_of(self, account_id):
        return self.store.find_by_account_id(account_id).transactions


class TestLogin(EngineTestCase):
    """Test authentication and lockout through the engine"""

    def test_successful_login(self):
        result = self.engine.login("alice", "2580")

        assert result.ok
        assert result.value is True
        assert self.engine.is_logged_in
        assert self.engine.state == SessionState.AUTHENTICATED
        assert self.engine.current_account_id == "SAV20001"
        assert self.store.find_by_account_id("SAV20001").last_access == START

    @pytest.mark.parametrize("user_id,pin,message", [
        ("a!", "2580", "Invalid User ID format"),
        ("", "2580", "Invalid User ID format"),
        ("alice", "25", "Invalid PIN format"),
        ("alice", "abcd", "Invalid PIN format"),
        (12345, "2580", "Invalid User ID format"),
        (None, "2580", "Invalid User ID format"),
        ("alice", 2580, "Invalid PIN format"),
        ("alice", None, "Invalid PIN format"),
    ])
    def test_malformed_credentials(self, user_id, pin, message):
        result = self.engine.login(user_id, pin)

        assert result.kind == ErrorKind.INVALID_INPUT
        assert result.error.message == message
        assert self.store.find_by_user_id("alice").failed_login_count == 0

    def test_unknown_user_is_plain_failure(self):
        result = self.engine.login("mallory", "2580")

        assert result.ok
        assert result.value is False
        assert not self.engine.is_logged_in

    def test_lockout_sequence(self):
        first = self.engine.login("alice", "0000")
        second = self.engine.login("alice", "0000")
        third = self.engine.login("alice", "0000")
        fourth = self.engine.login("alice", "2580")

        assert first.ok and first.value is False
        assert second.ok and second.value is False
        assert third.kind == ErrorKind.ACCOUNT_LOCKED
        assert fourth.kind == ErrorKind.ACCOUNT_LOCKED
        assert not self.engine.is_logged_in

        account = self.store.find_by_user_id("alice")
        assert account.locked
        assert account.failed_login_count == 3

    def test_unlocked_account_can_login_again(self):
        for _ in range(3):
            self.engine.login("alice", "0000")

        self.store.unlock_account("SAV20001", reason="Verified at branch")

        assert self.engine.login("alice", "2580").value is True

    @pytest.mark.parametrize("status", [
        AccountStatus.INACTIVE, AccountStatus.SUSPENDED, AccountStatus.CLOSED, AccountStatus.FROZEN
    ])
    def test_inactive_account_cannot_login(self, status):
        self.store.update_status("SAV20001", status)

        result = self.engine.login("alice", "2580")

        assert result.kind == ErrorKind.ACCOUNT_UNAVAILABLE
        assert result.error.message == f"Account is {status.display_name}. Please contact bank."
        assert not self.engine.is_logged_in

    def test_logout_is_idempotent(self):
        self.login_alice()

        assert self.engine.logout().ok
        assert self.engine.logout().ok

        assert not self.engine.is_logged_in
        assert self.engine.current_account_id is None
        assert self.engine.state == SessionState.UNAUTHENTICATED

    def test_login_replaces_previous_session(self):
        self.login_alice()
        assert self.engine.login("bob", "1357").value is True
        assert self.engine.current_account_id == "SAV20002"


class TestSessionRequired(EngineTestCase):
    """Every money or query operation needs a session"""

    @pytest.mark.parametrize("call", [
        lambda engine: engine.withdraw("100"),
        lambda engine: engine.deposit("100"),
        lambda engine: engine.transfer("SAV20002", "100"),
        lambda engine: engine.change_pin("2580", "1357", "1357"),
        lambda engine: engine.check_balance(),
        lambda engine: engine.transaction_history(),
        lambda engine: engine.account_summary(),
    ])
    def test_operations_fail_without_session(self, call):
        result = call(self.engine)
        assert result.kind == ErrorKind.NO_ACTIVE_SESSION
        assert result.error.message == "No active session. Please login first."

    def test_operations_fail_after_logout(self):
        self.login_alice()
        self.engine.logout()

        assert self.engine.withdraw("100").kind == ErrorKind.NO_ACTIVE_SESSION
        assert self.balance_of("SAV20001") == Decimal("50000.00")

    def test_unwrap_raises_ledger_error(self):
        with pytest.raises(LedgerError) as excinfo:
            self.engine.check_balance().unwrap()
        assert excinfo.value.kind == ErrorKind.NO_ACTIVE_SESSION


class TestStatusChangeDuringSession(EngineTestCase):
    """Only active accounts transact, even inside an open session"""

    @pytest.mark.parametrize("status", [
        AccountStatus.INACTIVE, AccountStatus.SUSPENDED, AccountStatus.CLOSED, AccountStatus.FROZEN
    ])
    def test_money_movement_rejected(self, status):
        self.login_alice()
        self.store.update_status("SAV20001", status, reason="Branch instruction")

        for result in (
            self.engine.withdraw("2000"),
            self.engine.deposit("500"),
            self.engine.transfer("SAV20002", "100"),
        ):
            assert result.kind == ErrorKind.ACCOUNT_UNAVAILABLE
            assert result.error.message == f"Account is {status.display_name}. Please contact bank."

        assert self.balance_of("SAV20001") == Decimal("50000.00")
        assert self.balance_of("SAV20002") == Decimal("10000.00")
        assert self.history_of("SAV20001") == []
        assert self.history_of("SAV20002") == []
        assert self.store.find_by_account_id("SAV20001").daily_withdrawn == Decimal("0.00")

    def test_queries_still_answer(self):
        self.login_alice()
        self.store.update_status("SAV20001", AccountStatus.FROZEN)

        assert self.engine.check_balance().value == Decimal("50000.00")
        assert self.engine.transaction_history().value == []

    def test_reactivated_account_transacts_again(self):
        self.login_alice()
        self.store.update_status("SAV20001", AccountStatus.SUSPENDED)
        assert self.engine.withdraw("2000").kind == ErrorKind.ACCOUNT_UNAVAILABLE

        self.store.update_status("SAV20001", AccountStatus.ACTIVE)

        assert self.engine.withdraw("2000").ok
        assert self.balance_of("SAV20001") == Decimal("48000.00")


class TestSubCentAmounts(EngineTestCase):
    """Amounts finer than one cent are rejected as given, never rounded"""

    def test_withdrawal(self):
        self.login_alice()

        result = self.engine.withdraw(Decimal("100.004"))

        assert result.kind == ErrorKind.INVALID_AMOUNT
        assert result.error.message == "Withdrawal amount cannot have more than 2 decimal places"
        assert self.balance_of("SAV20001") == Decimal("50000.00")
        assert self.store.find_by_account_id("SAV20001").daily_withdrawn == Decimal("0.00")

    def test_transfer_just_under_minimum(self):
        self.login_alice()

        result = self.engine.transfer("SAV20002", Decimal("0.995"))

        assert result.kind == ErrorKind.INVALID_AMOUNT
        assert result.error.message == "Transfer amount cannot have more than 2 decimal places"
        assert self.balance_of("SAV20001") == Decimal("50000.00")
        assert self.balance_of("SAV20002") == Decimal("10000.00")

    def test_deposit(self):
        self.login_alice()

        result = self.engine.deposit("0.004")

        assert result.kind == ErrorKind.INVALID_AMOUNT
        assert result.error.message == "Deposit amount cannot have more than 2 decimal places"
        assert self.history_of("SAV20001") == []

    def test_trailing_zeros_are_exact(self):
        self.login_alice()

        assert self.engine.withdraw(Decimal("100.000")).unwrap().amount == Decimal("100.00")
        assert self.engine.deposit("12.500").unwrap().amount == Decimal("12.50")
        assert self.balance_of("SAV20001") == Decimal("49912.50")

    def test_float_noise_is_rejected(self):
        self.login_alice()

        assert self.engine.deposit(0.1 + 0.2).kind == ErrorKind.INVALID_AMOUNT
        assert self.engine.deposit(12.5).unwrap().amount == Decimal("12.50")


class TestWithdraw(EngineTestCase):
    """Test cash withdrawal rules"""

    def test_repeated_withdrawals(self):
        self.login_alice()

        transactions = [self.engine.withdraw("2000").unwrap() for _ in range(5)]

        assert [t.balance_after for t in transactions] == [
            Decimal("48000.00"), Decimal("46000.00"), Decimal("44000.00"),
            Decimal("42000.00"), Decimal("40000.00")
        ]
        account = self.store.find_by_account_id("SAV20001")
        assert account.balance == Decimal("40000.00")
        assert account.daily_withdrawn == Decimal("10000.00")
        assert len(account.transactions) == 5
        assert all(t.transaction_type == TransactionType.WITHDRAWAL for t in account.transactions)
        assert all(t.description == "ATM Withdrawal" for t in account.transactions)
        assert all(t.timestamp == START for t in account.transactions)

    @pytest.mark.parametrize("amount,kind,message", [
        ("0", ErrorKind.INVALID_AMOUNT, "Withdrawal amount must be positive"),
        ("-100", ErrorKind.INVALID_AMOUNT, "Withdrawal amount must be positive"),
        ("abc", ErrorKind.INVALID_AMOUNT, "Withdrawal amount must be a valid number"),
        ("50", ErrorKind.BELOW_MINIMUM, "Minimum withdrawal amount is 100.00"),
        ("40100", ErrorKind.ABOVE_MAXIMUM, "Maximum withdrawal per transaction is 40,000.00"),
        ("150", ErrorKind.INVALID_DENOMINATION, "Amount must be in multiples of 100"),
        ("100.50", ErrorKind.INVALID_DENOMINATION, "Amount must be in multiples of 100"),
        (Decimal("100.004"), ErrorKind.INVALID_AMOUNT,
         "Withdrawal amount cannot have more than 2 decimal places"),
        ("200.001", ErrorKind.INVALID_AMOUNT, "Withdrawal amount cannot have more than 2 decimal places"),
    ])
    def test_rejected_amounts(self, amount, kind, message):
        self.login_alice()

        result = self.engine.withdraw(amount)

        assert result.kind == kind
        assert result.error.message == message
        assert self.balance_of("SAV20001") == Decimal("50000.00")
        assert self.history_of("SAV20001") == []

    def test_boundary_amounts_accepted(self):
        self.login_alice()
        assert self.engine.withdraw("100").ok
        assert self.engine.withdraw("40000").ok
        assert self.balance_of("SAV20001") == Decimal("9900.00")

    def test_minimum_balance_floor(self):
        assert self.engine.login("carol", "8642").value is True

        result = self.engine.withdraw("100")

        assert result.kind == ErrorKind.INSUFFICIENT_FUNDS
        assert result.error.message == (
            "Insufficient funds. Available balance: 500.00 (Minimum balance: 500.00 required)"
        )
        assert self.balance_of("SAV20003") == Decimal("500.00")
        assert self.history_of("SAV20003") == []

    def test_withdrawal_down_to_minimum_balance(self):
        assert self.engine.login("bob", "1357").value is True

        assert self.engine.withdraw("9500").ok
        assert self.balance_of("SAV20002") == Decimal("500.00")
        assert self.engine.withdraw("100").kind == ErrorKind.INSUFFICIENT_FUNDS

    def test_daily_limit(self):
        self.store.create_account("SAV20004", "dave", "9012", "Dave", Decimal("200000.00"))
        assert self.engine.login("dave", "9012").value is True

        assert self.engine.withdraw("40000").ok
        assert self.engine.withdraw("10000").ok
        result = self.engine.withdraw("100")

        assert result.kind == ErrorKind.DAILY_LIMIT_EXCEEDED
        assert result.error.message == (
            "Daily withdrawal limit exceeded. Limit: 50,000.00, Already withdrawn: 50,000.00"
        )
        assert self.balance_of("SAV20004") == Decimal("150000.00")

    def test_daily_limit_checked_before_balance(self):
        self.store.create_account(
            "SAV20004", "dave", "9012", "Dave", Decimal("1000.00"), daily_withdrawal_limit="200"
        )
        assert self.engine.login("dave", "9012").value is True

        assert self.engine.withdraw("900").kind == ErrorKind.DAILY_LIMIT_EXCEEDED

    def test_daily_limit_resets_once_on_new_day(self):
        self.store.create_account("SAV20004", "dave", "9012", "Dave", Decimal("200000.00"))
        assert self.engine.login("dave", "9012").value is True
        self.engine.withdraw("40000")
        self.engine.withdraw("10000")

        self.clock.advance(days=1)

        assert self.engine.withdraw("100").ok
        account = self.store.find_by_account_id("SAV20004")
        assert account.daily_withdrawn == Decimal("100.00")
        assert account.last_withdrawal_reset == date(2024, 3, 16)

        self.clock.advance(hours=5)
        assert self.engine.withdraw("200").ok
        assert self.store.find_by_account_id("SAV20004").daily_withdrawn == Decimal("300.00")

    def test_daily_limit_not_reset_within_day(self):
        self.login_alice()
        self.engine.withdraw("2000")

        self.clock.advance(hours=13)
        self.engine.withdraw("1000")

        assert self.store.find_by_account_id("SAV20001").daily_withdrawn == Decimal("3000.00")

    def test_login_resets_daily_total(self):
        self.login_alice()
        self.engine.withdraw("2000")
        self.engine.logout()

        self.clock.advance(days=2)
        self.login_alice()

        account = self.store.find_by_account_id("SAV20001")
        assert account.daily_withdrawn == Decimal("0.00")
        assert account.last_withdrawal_reset == date(2024, 3, 17)
        assert account.last_access == datetime(2024, 3, 17, 10, 0, 0)


class TestDeposit(EngineTestCase):
    """Test deposit rules"""

    def test_deposit(self):
        self.login_alice()

        transaction = self.engine.deposit("1234.56").unwrap()

        assert transaction.transaction_type == TransactionType.DEPOSIT
        assert transaction.description == "ATM Deposit"
        assert transaction.amount == Decimal("1234.56")
        assert transaction.balance_after == Decimal("51234.56")
        assert self.balance_of("SAV20001") == Decimal("51234.56")

    def test_deposit_does_not_touch_daily_total(self):
        self.login_alice()
        self.engine.deposit("5000")
        assert self.store.find_by_account_id("SAV20001").daily_withdrawn == Decimal("0.00")

    def test_maximum_deposit(self):
        self.login_alice()

        assert self.engine.deposit("200000").ok
        result = self.engine.deposit("200000.01")

        assert result.kind == ErrorKind.ABOVE_MAXIMUM
        assert result.error.message.startswith("Single deposit cannot exceed 200,000.00")
        assert self.balance_of("SAV20001") == Decimal("250000.00")

    @pytest.mark.parametrize("amount", ["0", "-5", "0.001", "0.004", Decimal("250.125"), "ten", None])
    def test_invalid_amounts(self, amount):
        self.login_alice()

        assert self.engine.deposit(amount).kind == ErrorKind.INVALID_AMOUNT
        assert self.history_of("SAV20001") == []


class TestTransfer(EngineTestCase):
    """Test transfers between accounts"""

    def test_successful_transfer(self):
        self.login_alice()

        sent = self.engine.transfer("SAV20002", "1000").unwrap()

        assert sent.transaction_type == TransactionType.TRANSFER_OUT
        assert sent.account_id == "SAV20001"
        assert sent.counterparty_account_id == "SAV20002"
        assert sent.description == "Transfer to SAV20002"
        assert sent.balance_after == Decimal("49000.00")

        received = self.history_of("SAV20002")[-1]
        assert received.transaction_type == TransactionType.TRANSFER_IN
        assert received.counterparty_account_id == "SAV20001"
        assert received.description == "Transfer from SAV20001"
        assert received.amount == Decimal("1000.00")
        assert received.balance_after == Decimal("11000.00")
        assert received.timestamp == sent.timestamp

        assert self.balance_of("SAV20001") == Decimal("49000.00")
        assert self.balance_of("SAV20002") == Decimal("11000.00")

    def test_transfer_not_counted_as_withdrawal(self):
        self.login_alice()
        self.engine.transfer("SAV20002", "45000")
        assert self.store.find_by_account_id("SAV20001").daily_withdrawn == Decimal("0.00")

    def test_recipient_session_sees_transfer(self):
        bob_engine = LedgerEngine(self.store)
        assert bob_engine.login("bob", "1357").value is True
        self.login_alice()

        self.engine.transfer("SAV20002", "2500")

        assert bob_engine.check_balance().value == Decimal("12500.00")

    @pytest.mark.parametrize("recipient,kind,message", [
        ("sav-2", ErrorKind.INVALID_ACCOUNT_FORMAT, "Invalid recipient account number format"),
        ("", ErrorKind.INVALID_ACCOUNT_FORMAT, "Invalid recipient account number format"),
        ("SAV20001", ErrorKind.SELF_TRANSFER, "Cannot transfer to same account"),
        ("ZZZZZ", ErrorKind.ACCOUNT_NOT_FOUND, "Recipient account not found: ZZZZZ"),
    ])
    def test_rejected_recipients(self, recipient, kind, message):
        self.login_alice()

        result = self.engine.transfer(recipient, "100")

        assert result.kind == kind
        assert result.error.message == message
        assert self.balance_of("SAV20001") == Decimal("50000.00")

    def test_inactive_recipient(self):
        self.store.update_status("SAV20002", AccountStatus.CLOSED)
        self.login_alice()

        result = self.engine.transfer("SAV20002", "100")

        assert result.kind == ErrorKind.RECIPIENT_UNAVAILABLE
        assert result.error.message == "Recipient account is not active"
        assert self.history_of("SAV20002") == []

    @pytest.mark.parametrize("amount,kind", [
        ("0", ErrorKind.INVALID_AMOUNT),
        ("x", ErrorKind.INVALID_AMOUNT),
        ("0.50", ErrorKind.BELOW_MINIMUM),
        ("100000.01", ErrorKind.ABOVE_MAXIMUM),
        (Decimal("0.995"), ErrorKind.INVALID_AMOUNT),
        ("0.999", ErrorKind.INVALID_AMOUNT),
        ("150.005", ErrorKind.INVALID_AMOUNT),
    ])
    def test_rejected_amounts(self, amount, kind):
        self.store.create_account("SAV20004", "dave", "9012", "Dave", Decimal("500000.00"))
        assert self.engine.login("dave", "9012").value is True

        assert self.engine.transfer("SAV20002", amount).kind == kind
        assert self.balance_of("SAV20004") == Decimal("500000.00")
        assert self.balance_of("SAV20002") == Decimal("10000.00")

    def test_boundary_amounts_accepted(self):
        self.store.create_account("SAV20004", "dave", "9012", "Dave", Decimal("500000.00"))
        assert self.engine.login("dave", "9012").value is True

        assert self.engine.transfer("SAV20002", "1.00").ok
        assert self.engine.transfer("SAV20002", "100000").ok
        assert self.balance_of("SAV20002") == Decimal("110001.00")

    def test_sender_minimum_balance(self):
        assert self.engine.login("bob", "1357").value is True

        result = self.engine.transfer("SAV20001", "9600")

        assert result.kind == ErrorKind.INSUFFICIENT_FUNDS
        assert self.balance_of("SAV20002") == Decimal("10000.00")
        assert self.balance_of("SAV20001") == Decimal("50000.00")

    def test_failed_commit_changes_nothing(self, monkeypatch):
        self.login_alice()

        def failing_save_all(accounts):
            raise RuntimeError("storage offline")

        monkeypatch.setattr(self.store, "save_all", failing_save_all)

        result = self.engine.transfer("SAV20002", "1000")

        assert result.kind == ErrorKind.TRANSFER_FAILED
        assert result.error.message == "Transfer failed: storage offline"
        assert isinstance(result.error.__cause__, RuntimeError)

        monkeypatch.undo()
        assert self.balance_of("SAV20001") == Decimal("50000.00")
        assert self.balance_of("SAV20002") == Decimal("10000.00")
        assert self.history_of("SAV20001") == []
        assert self.history_of("SAV20002") == []


class TestChangePin(EngineTestCase):
    """Test PIN change rules"""

    @pytest.mark.parametrize("old,new,confirm,kind", [
        ("0000", "1357", "1357", ErrorKind.INCORRECT_PIN),
        ("0000", "1111", "2222", ErrorKind.INCORRECT_PIN),
        ("2580", "12a4", "12a4", ErrorKind.INVALID_PIN),
        ("2580", "135", "135", ErrorKind.INVALID_PIN),
        ("2580", "2580", "2580", ErrorKind.PIN_UNCHANGED),
        ("2580", "1357", "1358", ErrorKind.PIN_MISMATCH),
        ("2580", "1234", "1234", ErrorKind.WEAK_PIN),
        ("2580", "4321", "4321", ErrorKind.WEAK_PIN),
        ("2580", "1111", "1111", ErrorKind.WEAK_PIN),
    ])
    def test_rejected_changes(self, old, new, confirm, kind):
        self.login_alice()

        assert self.engine.change_pin(old, new, confirm).kind == kind

        assert self.store.find_by_account_id("SAV20001").pin == "2580"
        assert self.history_of("SAV20001") == []

    def test_successful_change(self):
        self.login_alice()

        result = self.engine.change_pin("2580", "1357", "1357")

        assert result.ok
        assert self.engine.is_logged_in

        record = self.history_of("SAV20001")[-1]
        assert record.transaction_type == TransactionType.PIN_CHANGE
        assert record.amount == Decimal("0.00")
        assert record.balance_after == Decimal("50000.00")
        assert record.description == "PIN Changed Successfully"
        assert self.balance_of("SAV20001") == Decimal("50000.00")

        self.engine.logout()
        assert self.engine.login("alice", "2580").value is False
        assert self.engine.login("alice", "1357").value is True


class TestQueries(EngineTestCase):
    """Test balance, history and summary queries"""

    def test_check_balance(self):
        self.login_alice()
        assert self.engine.check_balance().value == Decimal("50000.00")

    def test_history_order_and_limit(self):
        self.login_alice()
        self.engine.deposit("100")
        self.engine.withdraw("200")
        self.engine.transfer("SAV20002", "300")

        history = self.engine.transaction_history().value
        assert [t.transaction_type for t in history] == [
            TransactionType.DEPOSIT, TransactionType.WITHDRAWAL, TransactionType.TRANSFER_OUT
        ]

        latest = self.engine.transaction_history(limit=2).value
        assert [t.transaction_type for t in latest] == [
            TransactionType.WITHDRAWAL, TransactionType.TRANSFER_OUT
        ]

        assert len(self.engine.transaction_history(limit=10).value) == 3
        assert self.engine.transaction_history(limit=0).value == []
        assert self.engine.transaction_history(limit=-1).value == []

    def test_history_is_a_copy(self):
        self.login_alice()
        self.engine.deposit("100")

        self.engine.transaction_history().value.clear()

        assert len(self.engine.transaction_history().value) == 1

    def test_account_summary(self):
        self.login_alice()
        self.engine.withdraw("2000")

        summary = self.engine.account_summary().value

        assert summary.account_id == "SAV20001"
        assert summary.holder_name == "Alice Rao"
        assert summary.account_type == "Savings Account"
        assert summary.balance == Decimal("48000.00")
        assert summary.available_balance == Decimal("47500.00")
        assert summary.daily_withdrawal_limit == Decimal("50000.00")
        assert summary.withdrawn_today == Decimal("2000.00")
        assert summary.remaining_daily_limit == Decimal("48000.00")

        self.clock.advance(days=1)
        summary = self.engine.account_summary().value
        assert summary.withdrawn_today == Decimal("0.00")
        assert summary.remaining_daily_limit == Decimal("50000.00")


class TestLedgerInvariants(EngineTestCase):
    """Balances always agree with the recorded history"""

    def test_history_replays_to_balance(self):
        opening = {a.account_id: a.balance for a in self.store.all_accounts()}

        self.login_alice()
        self.engine.deposit("2500.25")
        self.engine.withdraw("7000")
        self.engine.transfer("SAV20002", "1200.75")
        self.engine.withdraw("150")  # rejected
        self.engine.transfer("SAV20003", "99.99")
        self.engine.change_pin("2580", "1357", "1357")
        self.engine.logout()

        self.engine.login("bob", "1357")
        self.engine.transfer("SAV20001", "600")
        self.engine.deposit("40")

        for account in self.store.all_accounts():
            running = opening[account.account_id]
            for transaction in account.transactions:
                running += transaction.signed_amount
                assert transaction.balance_after == running
            assert account.balance == running
            assert account.balance >= Decimal("500.00")

    def test_total_money_conserved(self):
        total_before = sum(a.balance for a in self.store.all_accounts())

        self.login_alice()
        self.engine.deposit("1000")
        self.engine.withdraw("3000")
        self.engine.transfer("SAV20002", "4000")
        self.engine.transfer("SAV20003", "250.50")

        total_after = sum(a.balance for a in self.store.all_accounts())
        assert total_after == total_before + Decimal("1000") - Decimal("3000")
