"""
Ledger Kernel - multi-tenant financial ledger for small service companies.

Tracks providers, missions, payments, expenses, transactions and client
revenues partitioned per company, with:
- A single tenant isolation guard in front of every read and write
- Derived (never drifting) provider balances
- Atomic settlement of pending provider payments
- A one-way revenue confirmation lifecycle
- Best-effort orphan payment repair
"""

__version__ = "0.1.0"
