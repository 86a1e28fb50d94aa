"""
Ledger Data Models.

Accounts, transactions and the analysis result of a general ledger
(kebir) or current-account (cari hesap) file.

Author: ML Engineering Team
"""

import datetime
import json
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from reconciler.utils.helpers import round2, round4, turkish_upper


# Smallest fx movement treated as non-zero
FX_EPSILON = 0.0001


def new_transaction_id() -> str:
    return uuid.uuid4().hex


def normalize_currency_code(value: Optional[str]) -> str:
    return turkish_upper((value or '').strip())


@dataclass
class Transaction:
    """
    One ledger line of an account.

    Attributes:
        id: Stable identifier used by edits
        date: Transaction date (None when unreadable)
        description: Line description
        debit: Debit amount
        credit: Credit amount
        voucher_no: Voucher (fiş) number
        document_no: Document (evrak) number
        balance: Running balance after this line
        currency_code: Foreign currency code
        exchange_rate: Exchange rate
        fx_debit: Foreign currency debit
        fx_credit: Foreign currency credit
        fx_balance: Foreign currency running balance
        fx_balance_manual: fx_balance was read from the file or typed in,
            not computed
    """
    date: Optional[datetime.date] = None
    description: str = ''
    debit: float = 0.0
    credit: float = 0.0
    voucher_no: Optional[str] = None
    document_no: Optional[str] = None
    balance: float = 0.0
    currency_code: Optional[str] = None
    exchange_rate: Optional[float] = None
    fx_debit: Optional[float] = None
    fx_credit: Optional[float] = None
    fx_balance: Optional[float] = None
    fx_balance_manual: bool = False
    id: str = field(default_factory=new_transaction_id)

    @property
    def fx_movement(self) -> float:
        return (self.fx_debit or 0.0) - (self.fx_credit or 0.0)

    @property
    def has_fx_movement(self) -> bool:
        return abs(self.fx_debit or 0.0) >= FX_EPSILON or abs(self.fx_credit or 0.0) >= FX_EPSILON

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'date': self.date.isoformat() if self.date else None,
            'description': self.description,
            'debit': self.debit,
            'credit': self.credit,
            'balance': self.balance,
            'voucher_no': self.voucher_no,
            'document_no': self.document_no,
            'currency_code': self.currency_code,
            'exchange_rate': self.exchange_rate,
            'fx_debit': self.fx_debit,
            'fx_credit': self.fx_credit,
            'fx_balance': self.fx_balance,
        }


@dataclass
class AccountDetail:
    """
    Per-account totals and transactions.

    ``balance`` always equals ``total_debit - total_credit``.

    Example:
        >>> account = AccountDetail(code='120.01', name='ABC LTD')
        >>> account.append(Transaction(debit=100.0))
        >>> account.append(Transaction(credit=40.0))
        >>> account.balance
        60.0
    """
    code: str
    name: str = ''
    total_debit: float = 0.0
    total_credit: float = 0.0
    balance: float = 0.0
    transactions: List[Transaction] = field(default_factory=list)

    @property
    def transaction_count(self) -> int:
        return len(self.transactions)

    @property
    def prefix(self) -> str:
        """First three digits of the account code (the main account)."""
        return ''.join(ch for ch in self.code if ch.isdigit())[:3]

    def append(self, transaction: Transaction) -> None:
        self.transactions.append(transaction)
        self.total_debit += transaction.debit
        self.total_credit += transaction.credit
        self.balance = self.total_debit - self.total_credit

    def recalculate(self) -> 'AccountDetail':
        """
        Sort transactions by date and recompute totals and running balances.

        Undated transactions go last; equal dates keep their current order.
        Foreign currency balances run separately per currency code. A
        balance read from the file or typed in seeds its currency; a line
        with fx movement continues from the previous balance of its currency.

        Returns:
            The account itself.
        """
        self.transactions.sort(key=lambda t: (t.date is None, t.date or datetime.date.min))

        total_debit = 0.0
        total_credit = 0.0
        running = 0.0
        fx_running: Dict[str, float] = {}

        for transaction in self.transactions:
            transaction.debit = round2(transaction.debit or 0.0)
            transaction.credit = round2(transaction.credit or 0.0)
            total_debit = round2(total_debit + transaction.debit)
            total_credit = round2(total_credit + transaction.credit)
            running = round2(running + transaction.debit - transaction.credit)
            transaction.balance = running

            if transaction.exchange_rate is not None:
                transaction.exchange_rate = round4(transaction.exchange_rate)

            currency = normalize_currency_code(transaction.currency_code)
            if transaction.fx_balance_manual and transaction.fx_balance is not None:
                transaction.fx_balance = round4(transaction.fx_balance)
                fx_running[currency] = transaction.fx_balance
            elif transaction.has_fx_movement:
                fx_running[currency] = round4(fx_running.get(currency, 0.0) + transaction.fx_movement)
                transaction.fx_balance = fx_running[currency]
            else:
                transaction.fx_balance = None

        self.total_debit = total_debit
        self.total_credit = total_credit
        self.balance = round2(total_debit - total_credit)
        return self

    def copy(self) -> 'AccountDetail':
        """Copy with independent transaction objects."""
        return AccountDetail(
            code=self.code,
            name=self.name,
            total_debit=self.total_debit,
            total_credit=self.total_credit,
            balance=self.balance,
            transactions=[Transaction(**vars(t)) for t in self.transactions],
        )

    def to_dict(self, include_transactions: bool = True) -> Dict[str, Any]:
        data = {
            'code': self.code,
            'name': self.name,
            'total_debit': self.total_debit,
            'total_credit': self.total_credit,
            'balance': self.balance,
            'transaction_count': self.transaction_count,
        }
        if include_transactions:
            data['transactions'] = [t.to_dict() for t in self.transactions]
        return data


@dataclass
class MonthlyDensity:
    """Ledger activity of one calendar month."""
    month: int
    count: int = 0
    volume: float = 0.0
    accounts: Set[str] = field(default_factory=set)
    vouchers: Set[str] = field(default_factory=set)

    @property
    def distinct_accounts(self) -> int:
        return len(self.accounts)

    @property
    def distinct_vouchers(self) -> int:
        return len(self.vouchers)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'month': self.month,
            'count': self.count,
            'volume': round2(self.volume),
            'distinct_accounts': self.distinct_accounts,
            'distinct_vouchers': self.distinct_vouchers,
        }


@dataclass
class AccountActivity:
    """Line count and volume of a main account (3-digit prefix)."""
    code: str
    name: str = ''
    count: int = 0
    volume: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'code': self.code,
            'name': self.name,
            'count': self.count,
            'volume': round2(self.volume),
        }


@dataclass
class LedgerAnalysis:
    """
    Result of a general ledger analysis.

    Attributes:
        total_lines: Ledger lines counted
        unique_account_count: Distinct account codes
        unique_voucher_count: Distinct voucher numbers
        monthly_density: Twelve entries, January first
        top_accounts: Busiest main accounts
        mizan: Trial balance, accounts sorted by code
        total_debit: Sum of debits
        total_credit: Sum of credits
        complexity_score: Workload heuristic between 0 and the configured maximum
        key_accounts: Watch-list prefix → activity
        avg_unique_accounts: Mean distinct accounts over active months
        avg_unique_vouchers: Mean distinct vouchers over active months
        debug_meta: Detection details
    """
    total_lines: int = 0
    unique_account_count: int = 0
    unique_voucher_count: int = 0
    monthly_density: List[MonthlyDensity] = field(default_factory=list)
    top_accounts: List[AccountActivity] = field(default_factory=list)
    mizan: List[AccountDetail] = field(default_factory=list)
    total_debit: float = 0.0
    total_credit: float = 0.0
    complexity_score: float = 0.0
    key_accounts: Dict[str, AccountActivity] = field(default_factory=dict)
    avg_unique_accounts: int = 0
    avg_unique_vouchers: int = 0
    debug_meta: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self, include_transactions: bool = True) -> Dict[str, Any]:
        return {
            'total_lines': self.total_lines,
            'unique_account_count': self.unique_account_count,
            'unique_voucher_count': self.unique_voucher_count,
            'monthly_density': [m.to_dict() for m in self.monthly_density],
            'top_accounts': [a.to_dict() for a in self.top_accounts],
            'mizan': [a.to_dict(include_transactions) for a in self.mizan],
            'total_debit': round2(self.total_debit),
            'total_credit': round2(self.total_credit),
            'complexity_score': self.complexity_score,
            'key_accounts': {k: v.to_dict() for k, v in self.key_accounts.items()},
            'avg_unique_accounts': self.avg_unique_accounts,
            'avg_unique_vouchers': self.avg_unique_vouchers,
            'debug_meta': self.debug_meta,
        }

    def to_json(self, indent: int = 2, include_transactions: bool = True) -> str:
        return json.dumps(self.to_dict(include_transactions), indent=indent, ensure_ascii=False)


@dataclass
class CurrentAccountSummary:
    """Row counters of a current-account parse."""
    total_rows: int = 0
    transaction_rows: int = 0
    account_count: int = 0
    filtered_by_prefix_rows: int = 0
    skipped_no_code_rows: int = 0
    skipped_no_name_rows: int = 0
    skipped_summary_rows: int = 0
    zero_movement_rows: int = 0
    invalid_date_rows: int = 0
    voucher_no_rows: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {name: getattr(self, name) for name in self.__dataclass_fields__}


@dataclass
class CurrentAccountResult:
    """Accounts and counters parsed from one current-account file."""
    source_file: str
    header_row_index: int
    accounts: List[AccountDetail] = field(default_factory=list)
    summary: CurrentAccountSummary = field(default_factory=CurrentAccountSummary)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'source_file': self.source_file,
            'header_row_index': self.header_row_index,
            'accounts': [a.to_dict() for a in self.accounts],
            'summary': self.summary.to_dict(),
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)
