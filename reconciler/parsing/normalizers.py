"""
Locale Value Parsers Module.

This module interprets the numeric and date cells found in Turkish
accounting exports:
    - Amounts written as ``1.234,56``, ``1234.56``, ``180,00 TL``
    - Dates typed by the spreadsheet, serial day numbers, ``05.03.2024``,
      ``2024-03-05`` or ``20240305``

Parsers never raise. Unreadable amounts become 0 (or ``None`` for optional
fields) and unreadable dates become ``None``; callers count such rows in
their summaries instead of failing the file.

Author: ML Engineering Team
"""

import math
import re
from datetime import date, datetime, timedelta
from decimal import Decimal
from functools import lru_cache
from typing import Any, List, Optional

from dateutil import parser as date_parser

from config import get_config
from reconciler.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


DEFAULT_CURRENCY_TOKENS = ['₺', 'TRY', 'TL', 'USD', 'EUR', 'GBP', '$', '€', '£']

# Largest serial that still maps into year 9999
MAX_SERIAL_DAY = 2958465


class NumberParser:
    """
    Parses locale-formatted amounts.

    Separator resolution:
        - comma and dot both present: the later one is the decimal point,
          the other one is a thousands separator
        - only a comma: decimal point
        - otherwise: every character except digits, sign and dot is dropped

    The leading numeric part is read: a dot-only value such as ``"1.234"``
    is 1.234 and ``"1.234.567"`` is 1.234 as well. Accounting credits
    written as ``"1.234,56-"`` or ``"(1.234,56)"`` are negative.

    Example:
        >>> parser = NumberParser()
        >>> parser.parse("1.234,56")
        1234.56
        >>> parser.parse("180,00 TL")
        180.0
        >>> parser.parse("n/a")
        0.0
        >>> parser.parse_optional("n/a") is None
        True
    """

    NUMERIC_PREFIX = re.compile(r'^-?(?:\d+(?:\.\d*)?|\.\d+)')

    def __init__(self, currency_tokens: Optional[List[str]] = None) -> None:
        tokens = currency_tokens or get_config(
            "parsing.currency_tokens", DEFAULT_CURRENCY_TOKENS
        )
        # longest first so "TRY" is removed before "TL" could split it
        ordered = sorted(tokens, key=len, reverse=True)
        self._currency_pattern = re.compile(
            '|'.join(re.escape(token) for token in ordered), re.IGNORECASE
        )

    def parse_optional(self, value: Any) -> Optional[float]:
        """
        Parse a value, returning ``None`` when it is empty or unreadable.

        Args:
            value: Raw cell value (number, text or empty).

        Returns:
            Parsed float or None.
        """
        if value is None or isinstance(value, bool):
            return None

        if isinstance(value, (int, float, Decimal)):
            number = float(value)
            return number if math.isfinite(number) else None

        text = self._currency_pattern.sub('', str(value))
        text = re.sub(r'\s+', '', text)
        if not text:
            return None

        negative = False
        if len(text) > 2 and text[0] == '(' and text[-1] == ')':
            negative, text = True, text[1:-1]
        elif len(text) > 1 and text[-1] == '-' and text[0] != '-':
            negative, text = True, text[:-1]

        has_comma = ',' in text
        has_dot = '.' in text

        if has_comma and has_dot:
            if text.rfind(',') > text.rfind('.'):
                text = text.replace('.', '').replace(',', '.')
            else:
                text = text.replace(',', '')
        elif has_comma:
            text = text.replace(',', '.')

        text = re.sub(r'[^0-9.\-]', '', text)

        # leading numeric prefix only: "1.234.567" reads as 1.234
        match = self.NUMERIC_PREFIX.match(text)
        if not match:
            return None

        number = float(match.group(0))
        if negative:
            number = -abs(number)
        return number if math.isfinite(number) else None

    def parse(self, value: Any) -> float:
        """
        Parse a monetary value; anything unreadable counts as 0.

        Args:
            value: Raw cell value.

        Returns:
            Parsed float, 0.0 when unreadable.
        """
        number = self.parse_optional(value)
        return 0.0 if number is None else number


class DateParser:
    """
    Parses dates from typed cells, serial numbers and text.

    Accepted shapes:
        - ``date`` / ``datetime`` values
        - spreadsheet serial day numbers (epoch 1899-12-30)
        - ``DD.MM.YYYY``, ``DD/MM/YYYY``, ``DD-MM-YYYY`` (two digit years
          expand to 20YY, a trailing time part is ignored)
        - ``YYYY-MM-DD`` and compact ``YYYYMMDD``
        - serial numbers stored as text (within a plausible range)

    Every candidate is rebuilt as a calendar date, so ``31.02.2024`` is
    rejected instead of rolling over into March.

    Example:
        >>> parser = DateParser()
        >>> parser.parse("05.03.2024")
        datetime.date(2024, 3, 5)
        >>> parser.parse("31.02.2024") is None
        True
        >>> parser.parse(45356)
        datetime.date(2024, 3, 5)
    """

    DMY_PATTERN = re.compile(r'^(\d{1,2})[./-](\d{1,2})[./-](\d{2,4})(?!\d)')
    ISO_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}(?!\d)')
    COMPACT_PATTERN = re.compile(r'^\d{8}$')
    SERIAL_TEXT_PATTERN = re.compile(r'^\d{5}(?:\.\d+)?$')

    def __init__(self) -> None:
        epoch = get_config("parsing.date.serial_epoch", "1899-12-30")
        self.serial_epoch = datetime.strptime(str(epoch), "%Y-%m-%d")
        self.serial_text_min = get_config("parsing.date.serial_string_min", 20000)
        self.serial_text_max = get_config("parsing.date.serial_string_max", 80000)
        self.two_digit_year_base = get_config("parsing.date.two_digit_year_base", 2000)

    def parse(self, value: Any) -> Optional[date]:
        """
        Parse a raw cell into a date.

        Args:
            value: Raw cell value.

        Returns:
            The calendar date, or None when the value is not a valid date.
        """
        if value is None or isinstance(value, bool):
            return None

        if isinstance(value, datetime):
            return value.date()

        if isinstance(value, date):
            return value

        if isinstance(value, (int, float)):
            return self.from_serial(value)

        text = str(value).strip()
        if not text:
            return None

        match = self.DMY_PATTERN.match(text)
        if match:
            day, month, year_text = match.groups()
            if len(year_text) == 2:
                year = self.two_digit_year_base + int(year_text)
            elif len(year_text) == 4:
                year = int(year_text)
            else:
                return None
            return self._build(year, int(month), int(day))

        match = self.ISO_PATTERN.match(text)
        if match:
            return self._isoparse(match.group(0))

        if self.COMPACT_PATTERN.match(text):
            return self._isoparse(text)

        if self.SERIAL_TEXT_PATTERN.match(text):
            serial = float(text)
            if self.serial_text_min <= serial <= self.serial_text_max:
                return self.from_serial(serial)

        logger.debug(f"Unrecognized date value: {text!r}")
        return None

    def from_serial(self, serial: float) -> Optional[date]:
        """
        Convert a spreadsheet serial day number into a date.

        Fractions of a day (time of day) are dropped.
        """
        if not math.isfinite(serial) or serial <= 0 or serial > MAX_SERIAL_DAY:
            return None
        moment = self.serial_epoch + timedelta(seconds=round(serial * 86400))
        return moment.date()

    @staticmethod
    def _build(year: int, month: int, day: int) -> Optional[date]:
        try:
            return date(year, month, day)
        except ValueError:
            return None

    @staticmethod
    def _isoparse(text: str) -> Optional[date]:
        try:
            return date_parser.isoparse(text).date()
        except (ValueError, OverflowError):
            return None


def format_date(value: Optional[date]) -> str:
    """Render a date the way Turkish ledgers print it (``DD.MM.YYYY``)."""
    if value is None:
        return ''
    return value.strftime('%d.%m.%Y')


@lru_cache(maxsize=1)
def _number_parser() -> NumberParser:
    return NumberParser()


@lru_cache(maxsize=1)
def _date_parser() -> DateParser:
    return DateParser()


def parse_number(value: Any) -> float:
    """Parse a monetary value with the default parser (0.0 when unreadable)."""
    return _number_parser().parse(value)


def parse_optional_number(value: Any) -> Optional[float]:
    """Parse an optional numeric value with the default parser."""
    return _number_parser().parse_optional(value)


def parse_date(value: Any) -> Optional[date]:
    """Parse a date with the default parser."""
    return _date_parser().parse(value)
