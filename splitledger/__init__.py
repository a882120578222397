"""
Shared Expense Ledger

This package provides:
- Exact integer splits of an expense across members
- Expense approval voting: pending → approved / rejected
- Net balances folded from approved expenses and payments (zero-sum)
- Raw debt graph and minimum cash flow settlements
- Threshold alerts for members in debt
- Overdue governance by supermajority vote, with automatic clearing
"""

from .errors import (
    IntegrityViolation,
    LedgerIntegrityError,
    SimplificationIntegrityError,
    SplitLedgerError,
)
from .models import (
    Alert,
    Balance,
    DebtEdge,
    Expense,
    ExpenseStatus,
    MemberState,
    Payment,
    Settlement,
    Split,
)
from .service import SplitLedgerService

__all__ = [
    "Alert",
    "Balance",
    "DebtEdge",
    "Expense",
    "ExpenseStatus",
    "MemberState",
    "Payment",
    "Settlement",
    "Split",
    "SplitLedgerService",
    "SplitLedgerError",
    "IntegrityViolation",
    "LedgerIntegrityError",
    "SimplificationIntegrityError",
]
