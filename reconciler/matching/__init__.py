"""
Matching Module.

Exclusion of cancelled e-invoices, aggregation of accounting lines and
classification into report buckets.

Author: ML Engineering Team
"""

from .exclusions import ExclusionFilter, ExclusionSelection
from .aggregator import AccountingAggregate, AggregationResult, Aggregator
from .report import AmountMismatch, ReconciliationReport
from .matcher import KeyDiff, Matcher, classify, diff_keys, reconcile

__all__ = [
    'ExclusionFilter',
    'ExclusionSelection',
    'AccountingAggregate',
    'AggregationResult',
    'Aggregator',
    'AmountMismatch',
    'ReconciliationReport',
    'KeyDiff',
    'Matcher',
    'classify',
    'diff_keys',
    'reconcile',
]
