"""
Current Account (Cari Hesap) Parser Module.

Builds account details from a mapped current-account ledger. By default
only receivable/payable accounts (120, 320, 159, 329, 340, 336) are kept.

Author: ML Engineering Team
"""

from typing import Any, Dict, List, Optional, Tuple

from config import get_config
from reconciler.utils.logger import get_logger
from reconciler.utils.helpers import cell_text, round2, round4, turkish_upper
from reconciler.input_handler import HeaderMap, RawGrid
from reconciler.mapping.schemas import CURRENT_ACCOUNT_FIELDS, FieldMapping
from reconciler.mapping.column_mapper import ensure_mapping_complete
from reconciler.parsing.normalizers import DateParser, NumberParser
from .models import (
    AccountDetail,
    CurrentAccountResult,
    CurrentAccountSummary,
    Transaction,
)

# Initialize module logger
logger = get_logger(__name__)


DEFAULT_TARGET_PREFIXES = ['120', '320', '159', '329', '340', '336']
DEFAULT_SUMMARY_NAME_KEYWORDS = ['TOPLAM', 'YEKUN', 'NAKLI', 'DEVIR']


def normalize_account_code(value: Any) -> str:
    return ''.join(cell_text(value).split())


def account_prefix(code: str) -> str:
    return ''.join(ch for ch in code if ch.isdigit())[:3]


def resolve_single_fx_column(
    raw_value: Optional[float],
    debit: float,
    credit: float
) -> Tuple[Optional[float], Optional[float]]:
    """
    Split the value of a single fx amount column into debit/credit.

    The side follows the local currency movement of the row; when that is
    balanced the sign of the fx value decides.

    Returns:
        Tuple of (fx debit, fx credit), one of them None.
    """
    if not raw_value:
        return None, None

    magnitude = abs(raw_value)
    if debit > 0 and not credit > 0:
        return magnitude, None
    if credit > 0 and not debit > 0:
        return None, magnitude

    net = debit - credit
    if net > 0:
        return magnitude, None
    if net < 0:
        return None, magnitude
    return (magnitude, None) if raw_value > 0 else (None, magnitude)


class CurrentAccountParser:
    """
    Parses current-account ledgers into AccountDetail lists.

    Attributes:
        target_prefixes: Main accounts kept unless include_all_accounts
        summary_name_keywords: Account names marking subtotal rows
        include_all_accounts: Disable the prefix filter
        include_forex_only_movement: Keep rows that move only the fx amounts

    Example:
        >>> parser = CurrentAccountParser()
        >>> result = parser.parse(grid, header, mapping)
        >>> result.summary.filtered_by_prefix_rows
        12
    """

    def __init__(
        self,
        target_prefixes: Optional[List[str]] = None,
        summary_name_keywords: Optional[List[str]] = None,
        include_all_accounts: bool = False,
        include_forex_only_movement: bool = False,
        number_parser: Optional[NumberParser] = None,
        date_parser: Optional[DateParser] = None
    ) -> None:
        prefixes = target_prefixes or get_config("current_account.target_prefixes", DEFAULT_TARGET_PREFIXES)
        self.target_prefixes = {str(p) for p in prefixes}
        keywords = summary_name_keywords or get_config(
            "current_account.summary_name_keywords", DEFAULT_SUMMARY_NAME_KEYWORDS
        )
        self.summary_name_keywords = [turkish_upper(k) for k in keywords]
        self.include_all_accounts = include_all_accounts
        self.include_forex_only_movement = include_forex_only_movement
        self.number_parser = number_parser or NumberParser()
        self.date_parser = date_parser or DateParser()

    def is_target_account(self, code: str) -> bool:
        return account_prefix(code) in self.target_prefixes

    def is_summary_name(self, name: str) -> bool:
        upper = turkish_upper(name)
        return any(keyword in upper for keyword in self.summary_name_keywords)

    def parse(
        self,
        grid: RawGrid,
        header: HeaderMap,
        mapping: FieldMapping,
        source_file: Optional[str] = None
    ) -> CurrentAccountResult:
        """
        Parse the rows below the header.

        Args:
            grid: Raw rows of the file.
            header: Header row of the file.
            mapping: Confirmed column mapping (current-account schema).
            source_file: Name reported in the result.

        Returns:
            CurrentAccountResult with accounts sorted by code and name.

        Raises:
            UnmappedFieldError: If required fields are not mapped.
        """
        ensure_mapping_complete(CURRENT_ACCOUNT_FIELDS, mapping, header)
        source_file = source_file if source_file is not None else grid.source_name

        columns = header.columns

        def index_of(key: str) -> Optional[int]:
            label = mapping.get(key)
            if not label or mapping.is_absent(key):
                return None
            return columns.get(label)

        index = {spec.key: index_of(spec.key) for spec in CURRENT_ACCOUNT_FIELDS}
        single_fx_column = index['fx_debit'] is not None and index['fx_debit'] == index['fx_credit']

        def cell(row, key: str) -> Any:
            column = index[key]
            if column is None or column >= len(row):
                return None
            return row[column]

        summary = CurrentAccountSummary(total_rows=max(len(grid) - header.header_row_index - 1, 0))
        accounts: Dict[str, AccountDetail] = {}

        for row_index in range(header.header_row_index + 1, len(grid)):
            row = grid.row(row_index)

            code = normalize_account_code(cell(row, 'account_code'))
            if not code:
                summary.skipped_no_code_rows += 1
                continue
            if not self.include_all_accounts and not self.is_target_account(code):
                summary.filtered_by_prefix_rows += 1
                continue

            name = cell_text(cell(row, 'account_name'))
            if not name:
                summary.skipped_no_name_rows += 1
                continue
            if self.is_summary_name(name):
                summary.skipped_summary_rows += 1
                continue

            debit = round2(self.number_parser.parse(cell(row, 'debit')))
            credit = round2(self.number_parser.parse(cell(row, 'credit')))

            fx_debit = self.number_parser.parse_optional(cell(row, 'fx_debit'))
            fx_credit = self.number_parser.parse_optional(cell(row, 'fx_credit'))
            if single_fx_column:
                fx_debit, fx_credit = resolve_single_fx_column(fx_debit, debit, credit)
            fx_balance = self.number_parser.parse_optional(cell(row, 'fx_balance'))
            exchange_rate = self.number_parser.parse_optional(cell(row, 'exchange_rate'))

            fx_debit = round4(fx_debit) if fx_debit is not None else None
            fx_credit = round4(fx_credit) if fx_credit is not None else None
            fx_balance = round4(fx_balance) if fx_balance is not None else None
            exchange_rate = round4(exchange_rate) if exchange_rate is not None else None

            has_fx_movement = fx_balance is not None or bool(fx_debit) or bool(fx_credit)
            has_movement = (
                debit != 0 or credit != 0
                or (self.include_forex_only_movement and has_fx_movement)
            )

            account = accounts.get(code)
            if account is None:
                account = AccountDetail(code=code, name=name)
                accounts[code] = account

            if not has_movement:
                summary.zero_movement_rows += 1
                continue

            raw_date = cell(row, 'date')
            entry_date = self.date_parser.parse(raw_date)
            if entry_date is None and cell_text(raw_date):
                summary.invalid_date_rows += 1

            voucher_no = cell_text(cell(row, 'voucher_no')) or None
            document_no = cell_text(cell(row, 'document_no')) or None
            if voucher_no:
                summary.voucher_no_rows += 1

            account.append(Transaction(
                date=entry_date,
                description=cell_text(cell(row, 'description')),
                debit=debit,
                credit=credit,
                voucher_no=voucher_no,
                document_no=document_no or voucher_no,
                currency_code=cell_text(cell(row, 'currency_code')) or None,
                exchange_rate=exchange_rate,
                fx_debit=fx_debit,
                fx_credit=fx_credit,
                fx_balance=fx_balance,
                fx_balance_manual=fx_balance is not None,
            ))
            summary.transaction_rows += 1

        result_accounts = sorted(
            (account.recalculate() for account in accounts.values()),
            key=lambda a: (a.code, a.name)
        )
        summary.account_count = len(result_accounts)

        logger.info(
            f"Current account {source_file or ''}: {summary.transaction_rows} transactions in "
            f"{summary.account_count} accounts (prefix filtered={summary.filtered_by_prefix_rows}, "
            f"summary={summary.skipped_summary_rows}, zero={summary.zero_movement_rows}, "
            f"invalid dates={summary.invalid_date_rows})"
        )

        return CurrentAccountResult(
            source_file=source_file or '',
            header_row_index=header.header_row_index,
            accounts=result_accounts,
            summary=summary,
        )
