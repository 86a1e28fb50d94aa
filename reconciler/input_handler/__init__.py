"""
Input Handler Module for the Ledger Reconciliation System.

This module provides functionality for:
    - Reading Excel/CSV exports into RawGrids (first sheet only)
    - Header row detection for reconciliation files
    - Structural column detection for general ledgers

Usage:
    from reconciler.input_handler import InputHandler, HeaderDetector

    grid = InputHandler().read_bytes(data, "e_fatura.xlsx")
    header = HeaderDetector().detect(grid)
"""

from .handler import InputHandler, InputResult, RawGrid
from .header_detector import (
    HeaderDetector,
    HeaderMap,
    LedgerColumns,
    normalize_header_text,
)

__all__ = [
    'InputHandler',
    'InputResult',
    'RawGrid',
    'HeaderDetector',
    'HeaderMap',
    'LedgerColumns',
    'normalize_header_text',
]
