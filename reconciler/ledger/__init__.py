"""
Ledger Module.

General ledger (kebir) analysis, current-account parsing, SMMM/FIRMA
current-account comparison and transaction edits.

Author: ML Engineering Team
"""

from .models import (
    AccountActivity,
    AccountDetail,
    CurrentAccountResult,
    CurrentAccountSummary,
    LedgerAnalysis,
    MonthlyDensity,
    Transaction,
)
from .analyzer import LedgerAnalyzer
from .current_account import CurrentAccountParser, resolve_single_fx_column
from .comparison import (
    AccountComparator,
    ComparableTransaction,
    ComparisonResult,
    MatchStatus,
    TransactionDiffRow,
    compare_accounts,
    compare_transactions,
    comparison_summary,
    name_similarity,
    normalize_account_name,
)
from .edits import (
    EditLocator,
    EditLogEntry,
    EditResult,
    EditSource,
    apply_edit,
    is_tl_currency_code,
    recalculate_account,
    undo_edit,
)

__all__ = [
    'AccountActivity',
    'AccountDetail',
    'CurrentAccountResult',
    'CurrentAccountSummary',
    'LedgerAnalysis',
    'MonthlyDensity',
    'Transaction',
    'LedgerAnalyzer',
    'CurrentAccountParser',
    'resolve_single_fx_column',
    'AccountComparator',
    'ComparableTransaction',
    'ComparisonResult',
    'MatchStatus',
    'TransactionDiffRow',
    'compare_accounts',
    'compare_transactions',
    'comparison_summary',
    'name_similarity',
    'normalize_account_name',
    'EditLocator',
    'EditLogEntry',
    'EditResult',
    'EditSource',
    'apply_edit',
    'is_tl_currency_code',
    'recalculate_account',
    'undo_edit',
]
