"""
Household Ledger - Source Package

A personal/shared household finance tracker: expenses, receivables,
equal splits between the people of a household and a per-month
projected balance.

DESIGN PRINCIPLES:
1. Validate before anything touches storage
2. Confirm the write, then update in-memory state
3. Orphaned references are tolerated, never fatal
4. Every user action is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Household Ledger Team"
