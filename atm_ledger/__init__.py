"""
ATM Ledger Engine

A session-scoped account ledger with PIN security, withdrawal limits,
atomic transfers and an immutable transaction history. Monetary values
are always Decimal.
"""

__version__ = "1.0.0"
