"""
Current Account Comparison Module.

Compares the current-account ledger kept by the accountant (SMMM) with the
one kept by the company (FIRMA):
    - accounts are paired by name similarity or by manual overrides
    - paired accounts are compared on balance, debit and credit totals
    - transactions are paired by (date, debit, credit)

Author: ML Engineering Team
"""

import json
import re
import unicodedata
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from config import get_config
from reconciler.utils.logger import get_logger
from reconciler.utils.helpers import round2, turkish_lower
from .models import AccountDetail, Transaction

# Initialize module logger
logger = get_logger(__name__)


DEFAULT_TARGET_PREFIXES = ['120', '320', '159', '340', '336']
DEFAULT_COMPANY_SUFFIXES = ['LTD', 'LIMITED', 'AS', 'A S', 'ANONIM', 'SIRKETI', 'SANAYI', 'TICARET', 'VE']
UNDATED_KEY = 'TARIHSIZ'

_PUNCTUATION = re.compile(r'[\'".,;:_\-()/\\]')
_WHITESPACE = re.compile(r'\s+')


class MatchStatus(str, Enum):
    """Outcome of comparing one account."""
    DIFFERENCE = "DIFFERENCE"
    UNMATCHED_SMMM = "UNMATCHED_SMMM"
    UNMATCHED_FIRMA = "UNMATCHED_FIRMA"
    MATCHED = "MATCHED"


# Report order: problems first
STATUS_ORDER = {
    MatchStatus.DIFFERENCE: 0,
    MatchStatus.UNMATCHED_SMMM: 1,
    MatchStatus.UNMATCHED_FIRMA: 2,
    MatchStatus.MATCHED: 3,
}


# ============================================
# Name similarity
# ============================================

def normalize_account_name(name: str, company_suffixes: Sequence[str] = DEFAULT_COMPANY_SUFFIXES) -> str:
    """
    Comparison form of an account name.

    Turkish characters are folded to ASCII, punctuation becomes spaces and
    legal-form words (LTD, A.Ş., SANAYİ, ...) are dropped.

    Example:
        >>> normalize_account_name("Öz Çelik San. ve Tic. A.Ş.")
        'OZ CELIK SAN TIC'
    """
    text = turkish_lower(name or '').replace('ı', 'i')
    text = unicodedata.normalize('NFD', text)
    text = ''.join(ch for ch in text if not unicodedata.combining(ch)).upper()
    text = _PUNCTUATION.sub(' ', text)
    if company_suffixes:
        words = '|'.join(re.escape(w) for w in sorted(company_suffixes, key=len, reverse=True))
        text = re.sub(rf'\b(?:{words})\b', ' ', text)
    return _WHITESPACE.sub(' ', text).strip()


def levenshtein_distance(s1: str, s2: str) -> int:
    if s1 == s2:
        return 0
    if not s1:
        return len(s2)
    if not s2:
        return len(s1)

    previous = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1, start=1):
        current = [i]
        for j, c2 in enumerate(s2, start=1):
            cost = 0 if c1 == c2 else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def jaccard_similarity(left: Sequence[str], right: Sequence[str]) -> float:
    if not left and not right:
        return 1.0
    left_set, right_set = set(left), set(right)
    union = left_set | right_set
    return len(left_set & right_set) / len(union) if union else 0.0


def name_similarity(
    left: str,
    right: str,
    company_suffixes: Sequence[str] = DEFAULT_COMPANY_SUFFIXES
) -> float:
    """
    Similarity of two account names between 0 and 1.

    Weighted mix of token Jaccard (0.65) and normalized Levenshtein
    similarity (0.35) of the normalized names, rounded to 2 decimals.
    """
    left_normalized = normalize_account_name(left, company_suffixes)
    right_normalized = normalize_account_name(right, company_suffixes)

    if not left_normalized or not right_normalized:
        return 0.0
    if left_normalized == right_normalized:
        return 1.0

    left_tokens = [t for t in left_normalized.split(' ') if len(t) > 1]
    right_tokens = [t for t in right_normalized.split(' ') if len(t) > 1]

    jaccard = jaccard_similarity(left_tokens, right_tokens)
    max_len = max(len(left_normalized), len(right_normalized))
    levenshtein = 1.0 - levenshtein_distance(left_normalized, right_normalized) / max_len

    return round2(jaccard * 0.65 + levenshtein * 0.35)


# ============================================
# Result types
# ============================================

@dataclass
class ComparableTransaction:
    """Transaction reduced to the fields compared across ledgers."""
    date: str
    debit: float
    credit: float
    balance: Optional[float] = None
    description: str = ''
    voucher_no: Optional[str] = None

    @classmethod
    def from_transaction(cls, transaction: Transaction) -> 'ComparableTransaction':
        return cls(
            date=transaction.date.isoformat() if transaction.date else UNDATED_KEY,
            debit=round2(transaction.debit or 0.0),
            credit=round2(transaction.credit or 0.0),
            balance=round2(transaction.balance) if transaction.balance is not None else None,
            description=(transaction.description or '').strip(),
            voucher_no=(transaction.voucher_no or '').strip() or None,
        )

    @property
    def key(self) -> str:
        return f"{self.date}|{to_cents(self.debit)}|{to_cents(self.credit)}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': self.date,
            'debit': self.debit,
            'credit': self.credit,
            'balance': self.balance,
            'description': self.description,
            'voucher_no': self.voucher_no,
        }


@dataclass
class TransactionDiffRow:
    """A (date, debit, credit) key whose occurrences differ between ledgers."""
    key: str
    date: str
    debit: float
    credit: float
    smmm_count: int
    firma_count: int
    matched_count: int
    only_in_smmm: int
    only_in_firma: int

    def to_dict(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in self.__dataclass_fields__}


@dataclass
class TransactionComparisonSummary:
    smmm_total: int = 0
    firma_total: int = 0
    matched: int = 0
    only_in_smmm: int = 0
    only_in_firma: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {name: getattr(self, name) for name in self.__dataclass_fields__}


@dataclass
class TransactionComparison:
    """Transaction-level detail of a paired account."""
    summary: TransactionComparisonSummary = field(default_factory=TransactionComparisonSummary)
    diff_rows: List[TransactionDiffRow] = field(default_factory=list)
    unmatched_smmm: List[ComparableTransaction] = field(default_factory=list)
    unmatched_firma: List[ComparableTransaction] = field(default_factory=list)


@dataclass
class ComparisonResult:
    """
    Comparison of one account across the two ledgers.

    Differences are SMMM minus FIRMA. For an account present on one side
    only they are that side's totals (negated for FIRMA).

    Attributes:
        status: MatchStatus of the account
        smmm_account: Accountant's account (None when unmatched on FIRMA side)
        firma_account: Company's account (None when unmatched on SMMM side)
        match_score: Name similarity in percent (100 for manual pairs)
        is_manual: Pair was forced by a manual override
        difference: Balance difference
        debit_difference: Debit total difference
        credit_difference: Credit total difference
        transactions: Transaction-level detail
        notes: Free-text remark
    """
    status: MatchStatus
    smmm_account: Optional[AccountDetail] = None
    firma_account: Optional[AccountDetail] = None
    match_score: int = 0
    is_manual: bool = False
    difference: float = 0.0
    debit_difference: float = 0.0
    credit_difference: float = 0.0
    transactions: TransactionComparison = field(default_factory=TransactionComparison)
    notes: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def name(self) -> str:
        account = self.smmm_account or self.firma_account
        return account.name if account else ''

    @property
    def scope_key(self) -> str:
        smmm_code = self.smmm_account.code if self.smmm_account else 'NONE'
        firma_code = self.firma_account.code if self.firma_account else 'NONE'
        return f"{smmm_code}::{firma_code}"

    def to_dict(self, include_transactions: bool = False) -> Dict[str, Any]:
        return {
            'id': self.id,
            'status': self.status.value,
            'smmm_account': self.smmm_account.to_dict(include_transactions) if self.smmm_account else None,
            'firma_account': self.firma_account.to_dict(include_transactions) if self.firma_account else None,
            'match_score': self.match_score,
            'is_manual': self.is_manual,
            'difference': self.difference,
            'debit_difference': self.debit_difference,
            'credit_difference': self.credit_difference,
            'transaction_summary': self.transactions.summary.to_dict(),
            'transaction_diff_rows': [r.to_dict() for r in self.transactions.diff_rows],
            'unmatched_smmm_transactions': [t.to_dict() for t in self.transactions.unmatched_smmm],
            'unmatched_firma_transactions': [t.to_dict() for t in self.transactions.unmatched_firma],
            'notes': self.notes,
        }


def to_cents(value: float) -> int:
    return int(round(round2(value) * 100))


def comparison_summary(results: Sequence[ComparisonResult]) -> Dict[str, int]:
    """Result count per status."""
    return {status.value: sum(1 for r in results if r.status == status) for status in MatchStatus}


def comparison_to_json(results: Sequence[ComparisonResult], indent: int = 2) -> str:
    return json.dumps(
        {'summary': comparison_summary(results), 'results': [r.to_dict() for r in results]},
        indent=indent,
        ensure_ascii=False
    )


# ============================================
# Transaction comparison
# ============================================

def compare_transactions(
    smmm_transactions: Sequence[Transaction],
    firma_transactions: Sequence[Transaction]
) -> TransactionComparison:
    """
    Pair transactions by (date, debit, credit) occurrence counts.

    Within one key the first ``min(smmm, firma)`` occurrences pair up; the
    surplus of either side is reported as unmatched.

    Returns:
        TransactionComparison with diff rows sorted by date, debit, credit.
    """
    smmm = [ComparableTransaction.from_transaction(t) for t in smmm_transactions]
    firma = [ComparableTransaction.from_transaction(t) for t in firma_transactions]

    smmm_buckets: Dict[str, List[ComparableTransaction]] = {}
    firma_buckets: Dict[str, List[ComparableTransaction]] = {}
    for transaction in smmm:
        smmm_buckets.setdefault(transaction.key, []).append(transaction)
    for transaction in firma:
        firma_buckets.setdefault(transaction.key, []).append(transaction)

    result = TransactionComparison()
    result.summary.smmm_total = len(smmm)
    result.summary.firma_total = len(firma)

    for key in list(dict.fromkeys([*smmm_buckets, *firma_buckets])):
        smmm_items = smmm_buckets.get(key, [])
        firma_items = firma_buckets.get(key, [])
        matched = min(len(smmm_items), len(firma_items))
        only_smmm = len(smmm_items) - matched
        only_firma = len(firma_items) - matched

        result.summary.matched += matched
        result.summary.only_in_smmm += only_smmm
        result.summary.only_in_firma += only_firma
        result.unmatched_smmm.extend(smmm_items[:only_smmm])
        result.unmatched_firma.extend(firma_items[:only_firma])

        if only_smmm or only_firma:
            sample = (smmm_items or firma_items)[0]
            result.diff_rows.append(TransactionDiffRow(
                key=key,
                date=sample.date,
                debit=sample.debit,
                credit=sample.credit,
                smmm_count=len(smmm_items),
                firma_count=len(firma_items),
                matched_count=matched,
                only_in_smmm=only_smmm,
                only_in_firma=only_firma,
            ))

    result.diff_rows.sort(key=lambda r: (r.date, r.debit, r.credit))
    result.unmatched_smmm.sort(key=lambda t: t.date)
    result.unmatched_firma.sort(key=lambda t: t.date)
    return result


# ============================================
# Account comparison
# ============================================

class AccountComparator:
    """
    Compares the SMMM and FIRMA current-account ledgers.

    Attributes:
        target_prefixes: Main accounts taking part in the comparison
        name_threshold: Smallest name similarity that pairs two accounts
        tolerance: Largest balance difference still reported as MATCHED
        company_suffixes: Legal-form words ignored in names

    Example:
        >>> comparator = AccountComparator()
        >>> results = comparator.compare(smmm_accounts, firma_accounts)
        >>> comparison_summary(results)['DIFFERENCE']
        1
    """

    def __init__(
        self,
        target_prefixes: Optional[Sequence[str]] = None,
        name_threshold: Optional[float] = None,
        tolerance: Optional[float] = None,
        company_suffixes: Optional[Sequence[str]] = None
    ) -> None:
        self.target_prefixes = set(
            target_prefixes if target_prefixes is not None
            else get_config("current_account.comparison.target_prefixes", DEFAULT_TARGET_PREFIXES)
        )
        self.name_threshold = (
            name_threshold if name_threshold is not None
            else get_config("current_account.comparison.name_threshold", 0.62)
        )
        self.tolerance = (
            tolerance if tolerance is not None
            else get_config("current_account.comparison.tolerance", 0.01)
        )
        self.company_suffixes = list(
            company_suffixes if company_suffixes is not None
            else get_config("current_account.comparison.company_suffixes", DEFAULT_COMPANY_SUFFIXES)
        )

        logger.debug(
            f"AccountComparator initialized: prefixes={sorted(self.target_prefixes)}, "
            f"threshold={self.name_threshold}, tolerance={self.tolerance}"
        )

    def is_target(self, account: AccountDetail) -> bool:
        return account.prefix in self.target_prefixes

    def similarity(self, left: str, right: str) -> float:
        return name_similarity(left, right, self.company_suffixes)

    def compare(
        self,
        smmm_accounts: Sequence[AccountDetail],
        firma_accounts: Sequence[AccountDetail],
        manual_matches: Optional[Dict[str, str]] = None
    ) -> List[ComparisonResult]:
        """
        Pair accounts and compare them.

        Each SMMM account takes, in order, its manual FIRMA code when that
        account is still free, else the most similar free FIRMA account. A
        pair below the name threshold leaves the SMMM account unmatched.
        Paired accounts are MATCHED when their balances agree within the
        tolerance, regardless of debit/credit or row level differences.

        Args:
            smmm_accounts: Accounts of the accountant's ledger.
            firma_accounts: Accounts of the company's ledger.
            manual_matches: SMMM account code → FIRMA account code.

        Returns:
            Results sorted by status (problems first), then by account name.
        """
        manual_matches = manual_matches or {}
        smmm = [a for a in smmm_accounts if self.is_target(a)]
        firma = [a for a in firma_accounts if self.is_target(a)]

        used = set()
        results: List[ComparisonResult] = []

        for smmm_account in smmm:
            best_index = -1
            best_score = 0.0
            is_manual = False

            manual_code = manual_matches.get(smmm_account.code)
            if manual_code:
                for index, firma_account in enumerate(firma):
                    if index not in used and firma_account.code == manual_code:
                        best_index, best_score, is_manual = index, 1.0, True
                        break

            if not is_manual:
                for index, firma_account in enumerate(firma):
                    if index in used:
                        continue
                    score = self.similarity(smmm_account.name, firma_account.name)
                    if score > best_score:
                        best_index, best_score = index, score

            if best_index == -1 or best_score < self.name_threshold:
                notes = None
                if manual_code:
                    notes = f"Manual match target not found: {manual_code}"
                    logger.warning(f"{smmm_account.code}: {notes}")
                results.append(self._unmatched_smmm(smmm_account, notes))
                continue

            used.add(best_index)
            results.append(self._paired(smmm_account, firma[best_index], best_score, is_manual))

        for index, firma_account in enumerate(firma):
            if index not in used:
                results.append(self._unmatched_firma(firma_account))

        results.sort(key=lambda r: (STATUS_ORDER[r.status], turkish_lower(r.name)))

        logger.info(f"Compared {len(smmm)} SMMM and {len(firma)} FIRMA accounts: {comparison_summary(results)}")
        return results

    def _paired(
        self,
        smmm_account: AccountDetail,
        firma_account: AccountDetail,
        score: float,
        is_manual: bool
    ) -> ComparisonResult:
        difference = round2(smmm_account.balance - firma_account.balance)
        status = MatchStatus.MATCHED if abs(difference) <= self.tolerance + 1e-9 else MatchStatus.DIFFERENCE

        return ComparisonResult(
            status=status,
            smmm_account=smmm_account,
            firma_account=firma_account,
            match_score=int(round(score * 100)),
            is_manual=is_manual,
            difference=difference,
            debit_difference=round2(smmm_account.total_debit - firma_account.total_debit),
            credit_difference=round2(smmm_account.total_credit - firma_account.total_credit),
            transactions=compare_transactions(smmm_account.transactions, firma_account.transactions),
        )

    @staticmethod
    def _unmatched_smmm(account: AccountDetail, notes: Optional[str] = None) -> ComparisonResult:
        comparable = [ComparableTransaction.from_transaction(t) for t in account.transactions]
        return ComparisonResult(
            status=MatchStatus.UNMATCHED_SMMM,
            smmm_account=account,
            difference=round2(account.balance),
            debit_difference=round2(account.total_debit),
            credit_difference=round2(account.total_credit),
            transactions=TransactionComparison(
                summary=TransactionComparisonSummary(smmm_total=len(comparable), only_in_smmm=len(comparable)),
                unmatched_smmm=comparable,
            ),
            notes=notes,
        )

    @staticmethod
    def _unmatched_firma(account: AccountDetail) -> ComparisonResult:
        comparable = [ComparableTransaction.from_transaction(t) for t in account.transactions]
        return ComparisonResult(
            status=MatchStatus.UNMATCHED_FIRMA,
            firma_account=account,
            difference=round2(-account.balance),
            debit_difference=round2(-account.total_debit),
            credit_difference=round2(-account.total_credit),
            transactions=TransactionComparison(
                summary=TransactionComparisonSummary(firma_total=len(comparable), only_in_firma=len(comparable)),
                unmatched_firma=comparable,
            ),
        )


def compare_accounts(
    smmm_accounts: Sequence[AccountDetail],
    firma_accounts: Sequence[AccountDetail],
    manual_matches: Optional[Dict[str, str]] = None
) -> List[ComparisonResult]:
    """Compare two current-account ledgers with configured settings."""
    return AccountComparator().compare(smmm_accounts, firma_accounts, manual_matches)
