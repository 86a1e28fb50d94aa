"""
Invoice Number Extraction Module.

GIB e-invoice numbers have a fixed 16 character shape: a 3 character
alphanumeric prefix, a 4 digit year and a 9 digit sequence
(``ABC2023000000001``). Accounting ledgers rarely keep them in a dedicated
column, so they are searched for in the reference and description texts.

Author: ML Engineering Team
"""

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from config import get_config
from reconciler.utils.helpers import turkish_upper, collapse_whitespace
from reconciler.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


DEFAULT_PATTERN = r'[A-Z0-9]{3}\d{4}\d{9}'

DEFAULT_CARRY_FORWARD_KEYWORDS = [
    'NAKLİ YEKÜN', 'NAKLI YEKUN', 'DEVİR', 'DEVIR',
    'YEKÜN', 'TOPLAM', 'TOTAL', 'CARRIED FORWARD',
]


@dataclass(frozen=True)
class InvoiceNumberCheck:
    """
    Outcome of scanning one row for invoice numbers.

    Attributes:
        matches: Distinct invoice numbers in order of appearance
        primary: First match, or empty string
        ambiguous: More than one distinct invoice number was found
        carry_forward: The text is a carry-forward / summary line
        validation_error: A monetary row without any invoice number
    """
    matches: Tuple[str, ...] = field(default_factory=tuple)
    primary: str = ''
    ambiguous: bool = False
    carry_forward: bool = False
    validation_error: bool = False


def normalize_invoice_text(text: str) -> str:
    """
    Prepare text for pattern matching: uppercase, dots and whitespace removed.

    Example:
        >>> normalize_invoice_text("abc 2023.000 000 001")
        'ABC2023000000001'
    """
    return re.sub(r'[.\s]', '', text.upper())


def normalize_invoice_key(value: Optional[str]) -> str:
    """
    Canonical form of an invoice number used as a matching key.

    Example:
        >>> normalize_invoice_key("  abc2023000000001 ")
        'ABC2023000000001'
    """
    if not value:
        return ''
    return collapse_whitespace(str(value)).upper()


def normalize_tax_id(value: Optional[str]) -> str:
    """
    Keep only the digits of a VKN (10 digits) or TCKN (11 digits).

    Returns an empty string when the result has any other length.

    Example:
        >>> normalize_tax_id("123 456 7890")
        '1234567890'
        >>> normalize_tax_id("12345")
        ''
    """
    if value is None:
        return ''
    digits = re.sub(r'\D', '', str(value))
    return digits if len(digits) in (10, 11) else ''


class InvoiceNumberExtractor:
    """
    Finds invoice numbers in free text and flags suspicious rows.

    Attributes:
        pattern: Compiled invoice number pattern
        carry_forward_keywords: Keywords marking carry-forward/summary lines

    Example:
        >>> extractor = InvoiceNumberExtractor()
        >>> extractor.extract("ABC2023000000001 ek bilgi")
        ['ABC2023000000001']
        >>> check = extractor.check(["no fatura metni"], amount=150.0)
        >>> check.validation_error
        True
    """

    def __init__(
        self,
        pattern: Optional[str] = None,
        carry_forward_keywords: Optional[List[str]] = None
    ) -> None:
        self.pattern = re.compile(
            pattern or get_config("invoice_number.pattern", DEFAULT_PATTERN)
        )
        keywords = carry_forward_keywords or get_config(
            "invoice_number.carry_forward_keywords", DEFAULT_CARRY_FORWARD_KEYWORDS
        )
        self.carry_forward_keywords = [turkish_upper(k) for k in keywords]

    def extract(self, *texts: Optional[str]) -> List[str]:
        """
        Return the distinct invoice numbers found in the given texts.

        Texts are joined before normalization; dots and spaces inside a
        number (``ABC 2023.000 000 001``) do not prevent a match.

        Args:
            *texts: Candidate fields (reference column, description, ...).

        Returns:
            Distinct matches in order of first appearance.
        """
        combined = ' '.join(str(t) for t in texts if t)
        normalized = normalize_invoice_text(combined)

        seen = []
        for match in self.pattern.findall(normalized):
            if match not in seen:
                seen.append(match)
        return seen

    def is_carry_forward(self, *texts: Optional[str]) -> bool:
        """Check whether the texts contain a carry-forward/summary keyword."""
        combined = turkish_upper(' '.join(str(t) for t in texts if t))
        return any(keyword in combined for keyword in self.carry_forward_keywords)

    def check(self, texts: Iterable[Optional[str]], amount: float = 0.0) -> InvoiceNumberCheck:
        """
        Extract invoice numbers and derive the validation flags of a row.

        Args:
            texts: Candidate fields of the row.
            amount: Monetary amount of the row.

        Returns:
            InvoiceNumberCheck with matches and flags.
        """
        texts = list(texts)
        matches = self.extract(*texts)
        carry_forward = self.is_carry_forward(*texts)

        validation_error = bool(amount) and not matches and not carry_forward

        if len(matches) > 1:
            logger.debug(f"Multiple invoice numbers in one row: {matches}")

        return InvoiceNumberCheck(
            matches=tuple(matches),
            primary=matches[0] if matches else '',
            ambiguous=len(matches) > 1,
            carry_forward=carry_forward,
            validation_error=validation_error,
        )
