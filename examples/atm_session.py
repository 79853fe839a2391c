#!/usr/bin/env python3
"""
Example: One ATM session against the seeded sample accounts

Logs in as user1, withdraws, deposits, transfers to ACC1002 and prints the
mini statement, then shows a rejected withdrawal and the audit chain check.
"""

import os
import sys

# Add the ledger package to the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from atm_ledger.account_store import AccountStore
from atm_ledger.config import get_config
from atm_ledger.engine import LedgerEngine
from atm_ledger.logging_config import configure_logging
from atm_ledger.money import format_amount


def main():
    config = get_config()
    configure_logging(config)

    print("ATM Ledger - Sample Session")
    print("=" * 60)

    store = AccountStore(config=config, seed=True)
    engine = LedgerEngine(store)

    result = engine.login("user1", "1234")
    if not result.ok or not result.value:
        print("   Login failed")
        return
    print(f"\n1. Logged in to {engine.current_account_id}")

    summary = engine.account_summary().unwrap()
    print(f"   {summary.holder_name} ({summary.account_type})")
    print(f"   Balance: {format_amount(summary.balance)}")

    print("\n2. Transactions")
    for label, result in [
        ("Withdraw 2,000", engine.withdraw("2000")),
        ("Deposit 5,000.50", engine.deposit("5000.50")),
        ("Transfer 1,000 to ACC1002", engine.transfer("ACC1002", "1000")),
        ("Withdraw 150", engine.withdraw("150")),
    ]:
        if result.ok:
            print(f"   {label}: OK, balance {format_amount(result.value.balance_after)}")
        else:
            print(f"   {label}: {result.kind.name} - {result.error.message}")

    print("\n3. Mini statement")
    for transaction in engine.transaction_history(limit=5).unwrap():
        print(f"   {transaction}")

    engine.logout()

    if store.audit_trail:
        integrity = store.audit_trail.verify_integrity()
        print(f"\n4. Audit chain: {integrity['total_events']} events, valid={integrity['valid']}")


if __name__ == "__main__":
    main()
