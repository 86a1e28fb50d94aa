"""
Utility Module for the Ledger Reconciliation System.

Common utilities used across all other modules:
    - Logging configuration
    - Exception hierarchy
    - Text, file and rounding helpers
"""

from .logger import setup_logger, get_logger
from .helpers import (
    ensure_directory,
    get_file_extension,
    generate_timestamp,
    turkish_upper,
    turkish_lower,
    collapse_whitespace,
    cell_text,
    round2,
    round4,
)

__all__ = [
    'setup_logger',
    'get_logger',
    'ensure_directory',
    'get_file_extension',
    'generate_timestamp',
    'turkish_upper',
    'turkish_lower',
    'collapse_whitespace',
    'cell_text',
    'round2',
    'round4',
]
