"""
General Ledger (Kebir) Analyzer Module.

Reads a general ledger export and builds:
    - per-account details with sorted transactions and running balances
    - a trial balance (mizan) sorted by account code
    - monthly activity (line count, volume, distinct accounts/vouchers)
    - activity of a fixed watch-list of main accounts
    - the busiest main accounts
    - a workload (complexity) score

Author: ML Engineering Team
"""

import math
from typing import Dict, List, Optional

from config import get_config
from reconciler.utils.logger import get_logger
from reconciler.utils.helpers import cell_text, turkish_lower
from reconciler.input_handler import HeaderDetector, RawGrid
from reconciler.parsing.normalizers import DateParser, NumberParser
from .models import (
    AccountActivity,
    AccountDetail,
    LedgerAnalysis,
    MonthlyDensity,
    Transaction,
)

# Initialize module logger
logger = get_logger(__name__)


DEFAULT_WATCH_ACCOUNTS = ['102', '191', '391', '601']


def _round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


class LedgerAnalyzer:
    """
    Analyzes general ledger (kebir) grids.

    Attributes:
        watch_accounts: Main account prefixes tracked separately
        top_accounts: Number of main accounts kept in the ranking
        rows_divisor: Lines per complexity point
        vouchers_divisor: Vouchers per complexity point
        max_score: Upper bound of the complexity score

    Example:
        >>> analyzer = LedgerAnalyzer()
        >>> analysis = analyzer.analyze(grid, 'kebir_2024.xlsx')
        >>> analysis.monthly_density[0].count
        10
    """

    def __init__(
        self,
        header_detector: Optional[HeaderDetector] = None,
        number_parser: Optional[NumberParser] = None,
        date_parser: Optional[DateParser] = None,
        watch_accounts: Optional[List[str]] = None,
        top_accounts: Optional[int] = None
    ) -> None:
        self.header_detector = header_detector or HeaderDetector()
        self.number_parser = number_parser or NumberParser()
        self.date_parser = date_parser or DateParser()

        accounts = watch_accounts or get_config("ledger.watch_accounts", DEFAULT_WATCH_ACCOUNTS)
        self.watch_accounts = [str(a) for a in accounts]
        self.top_accounts = top_accounts or get_config("ledger.top_accounts", 50)

        self.rows_divisor = get_config("ledger.complexity.rows_divisor", 500)
        self.vouchers_divisor = get_config("ledger.complexity.vouchers_divisor", 20)
        self.max_score = get_config("ledger.complexity.max_score", 10)
        self.sample_dates = get_config("ledger.sample_dates", 5)

    def complexity_score(self, total_lines: int, voucher_count: int) -> float:
        """``min(lines / 500 + vouchers / 20, 10)`` rounded to one decimal."""
        score = total_lines / self.rows_divisor + voucher_count / self.vouchers_divisor
        return _round_half_up(min(score, self.max_score), 1)

    def analyze(self, grid: RawGrid, file_name: Optional[str] = None) -> LedgerAnalysis:
        """
        Analyze one ledger file.

        Args:
            grid: Raw rows of the ledger.
            file_name: Name reported in the debug metadata.

        Returns:
            LedgerAnalysis.

        Raises:
            HeaderNotDetectedError: If the account code and debit columns
                cannot be found.
        """
        file_name = file_name or grid.source_name
        columns = self.header_detector.detect_ledger_columns(grid)

        monthly = [MonthlyDensity(month=m) for m in range(1, 13)]
        key_accounts = {prefix: AccountActivity(code=prefix) for prefix in self.watch_accounts}
        accounts: Dict[str, AccountDetail] = {}
        vouchers = set()
        sample_dates: List[str] = []

        total_lines = 0
        total_debit = 0.0
        total_credit = 0.0
        parsed_dates = 0

        def cell(row, column):
            if column is None or column >= len(row):
                return None
            return row[column]

        for row_index in range(columns.header_row_index + 1, len(grid)):
            row = grid.row(row_index)
            code = cell_text(cell(row, columns.code))
            if len(code) < 3 or 'toplam' in turkish_lower(code):
                continue

            voucher_no = cell_text(cell(row, columns.voucher))
            if len(voucher_no) > 1:
                vouchers.add(voucher_no)

            debit = self.number_parser.parse(cell(row, columns.debit))
            credit = self.number_parser.parse(cell(row, columns.credit))
            volume = debit + credit

            total_lines += 1
            total_debit += debit
            total_credit += credit

            entry_date = None
            if columns.date is not None:
                raw_date = cell(row, columns.date)
                if raw_date is not None and len(sample_dates) < self.sample_dates:
                    sample_dates.append(str(raw_date))

                entry_date = self.date_parser.parse(raw_date)
                if entry_date is not None:
                    month = monthly[entry_date.month - 1]
                    month.count += 1
                    month.volume += volume
                    month.accounts.add(code)
                    if len(voucher_no) > 1:
                        month.vouchers.add(voucher_no)
                    parsed_dates += 1

            name = cell_text(cell(row, columns.name))
            description = cell_text(cell(row, columns.description)) or name

            account = accounts.get(code)
            if account is None:
                account = AccountDetail(code=code, name=name)
                accounts[code] = account
            elif len(name) > len(account.name):
                account.name = name

            account.append(Transaction(
                date=entry_date,
                description=description,
                debit=debit,
                credit=credit,
                voucher_no=voucher_no or None,
            ))

            watched = key_accounts.get(code[:3])
            if watched is not None:
                watched.count += 1
                watched.volume += volume

        mizan = sorted(
            (account.recalculate() for account in accounts.values()),
            key=lambda a: a.code
        )

        active_months = [m for m in monthly if m.count > 0]
        avg_accounts = avg_vouchers = 0
        if active_months:
            avg_accounts = int(_round_half_up(
                sum(m.distinct_accounts for m in active_months) / len(active_months)
            ))
            avg_vouchers = int(_round_half_up(
                sum(m.distinct_vouchers for m in active_months) / len(active_months)
            ))

        analysis = LedgerAnalysis(
            total_lines=total_lines,
            unique_account_count=len(accounts),
            unique_voucher_count=len(vouchers),
            monthly_density=monthly,
            top_accounts=self.rank_main_accounts(mizan),
            mizan=mizan,
            total_debit=total_debit,
            total_credit=total_credit,
            complexity_score=self.complexity_score(total_lines, len(vouchers)),
            key_accounts=key_accounts,
            avg_unique_accounts=avg_accounts,
            avg_unique_vouchers=avg_vouchers,
            debug_meta={
                'header_row_index': columns.header_row_index,
                'detected_columns': columns.to_dict(),
                'success_rate': f"{total_lines} satır",
                'file_name': file_name,
                'date_method': columns.date_method,
                'sample_dates': sample_dates,
                'parsed_date_count': parsed_dates,
            },
        )

        logger.info(
            f"Ledger {file_name}: {total_lines} lines, {len(accounts)} accounts, "
            f"{len(vouchers)} vouchers, complexity {analysis.complexity_score}"
        )
        return analysis

    def rank_main_accounts(self, mizan: List[AccountDetail]) -> List[AccountActivity]:
        """
        Roll accounts up by 3-digit prefix and rank by line count.

        The shortest sub-account name is used as the main account label;
        exports usually name the main account plainly ("BANKALAR") and the
        sub-accounts with a suffix.
        """
        rollup: Dict[str, AccountActivity] = {}

        for account in mizan:
            main = account.code[:3]
            activity = rollup.get(main)
            if activity is None:
                activity = AccountActivity(code=main, name=account.name)
                rollup[main] = activity
            activity.count += account.transaction_count
            activity.volume += account.total_debit + account.total_credit
            if not activity.name or (account.name and len(account.name) < len(activity.name)):
                activity.name = account.name

        ranked = sorted(rollup.values(), key=lambda a: -a.count)
        return ranked[:self.top_accounts]
