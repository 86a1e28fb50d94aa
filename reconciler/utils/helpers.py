"""
Helper Utilities Module.

Small, generic helpers shared across the pipeline.

Functions:
    - ensure_directory: Create directory if it doesn't exist
    - get_file_extension: Extract file extension safely
    - generate_timestamp: Generate formatted timestamps
    - turkish_upper / turkish_lower: Locale-aware case mapping
    - collapse_whitespace / cell_text: Cell text cleanup
    - round2 / round4: Monetary rounding
"""

import math
import re
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from pathlib import Path
from typing import Any, Union


_WHITESPACE = re.compile(r'\s+')


def ensure_directory(path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists, creating it and its parents if necessary.

    Args:
        path: Directory path to ensure exists.

    Returns:
        Path object pointing to the directory.
    """
    dir_path = Path(path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path


def get_file_extension(filepath: Union[str, Path]) -> str:
    """
    Extract the lowercase file extension, including the dot.

    Example:
        >>> get_file_extension("Muavin_2024.XLSX")
        '.xlsx'
        >>> get_file_extension("noextension")
        ''
    """
    return Path(filepath).suffix.lower()


def generate_timestamp(format_str: str = "%Y%m%d_%H%M%S") -> str:
    """Generate a formatted timestamp string for the current time."""
    return datetime.now().strftime(format_str)


def turkish_upper(text: str) -> str:
    """
    Uppercase text using Turkish casing rules.

    Python's ``str.upper`` maps ``i`` to ``I``; Turkish maps it to ``İ`` and
    ``ı`` to ``I``.

    Example:
        >>> turkish_upper("iptal edildi")
        'İPTAL EDİLDİ'
    """
    return text.replace('i', 'İ').replace('ı', 'I').upper()


def turkish_lower(text: str) -> str:
    """
    Lowercase text using Turkish casing rules.

    Example:
        >>> turkish_lower("HESAP ADI")
        'hesap adı'
        >>> turkish_lower("TARİH")
        'tarih'
    """
    return text.replace('İ', 'i').replace('I', 'ı').lower()


def collapse_whitespace(text: str) -> str:
    """Trim and collapse internal whitespace runs to one space."""
    return _WHITESPACE.sub(' ', text).strip()


def cell_text(value: Any) -> str:
    """
    Render a raw cell as trimmed text; empty cells become ``''``.

    Whole floats are rendered without the trailing ``.0`` that spreadsheets
    attach to numeric codes (account codes, tax ids).
    """
    if value is None:
        return ''
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _round(value: float, digits: int) -> float:
    if value is None or not math.isfinite(value):
        return 0.0
    quantum = Decimal(1).scaleb(-digits)
    try:
        rounded = float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))
    except InvalidOperation:
        return 0.0
    # normalize -0.0
    return rounded if rounded != 0 else 0.0


def round2(value: float) -> float:
    """
    Round half away from zero to 2 decimals.

    The shortest decimal representation of the float is rounded, so values
    such as ``1.005`` round up the way an accountant expects.

    Example:
        >>> round2(1.005)
        1.01
    """
    return _round(value, 2)


def round4(value: float) -> float:
    """Round half away from zero to 4 decimals (exchange rates, fx amounts)."""
    return _round(value, 4)
