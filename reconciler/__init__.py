"""
Ledger Reconciliation System - Source Package.

This package contains all core modules for reconciling Turkish e-invoice
lists against accounting VAT records and for analyzing general ledgers.
Each module has a single responsibility following SOLID principles.

Modules:
    - input_handler: Excel/CSV reading and header detection
    - parsing: Number, date and invoice number parsing
    - mapping: Canonical fields, column suggestions and templates
    - records: Row normalization into canonical records
    - matching: Aggregation, exclusions and VAT reconciliation
    - ledger: General ledger analysis, current accounts and edits
    - execution: Request handling, worker pool and batches

Architecture:
    Input → Header Detection → Mapping → Records → Matching → Report
                                                 ↓
                                          Ledger Analysis
"""

__version__ = "1.0.0"
__author__ = "ML Engineering Team"

__all__ = [
    'input_handler',
    'parsing',
    'mapping',
    'records',
    'matching',
    'ledger',
    'execution',
    'utils'
]
