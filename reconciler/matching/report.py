"""
Reconciliation Report Module.

The four buckets produced by the matcher:
    1. e-invoices missing in accounting
    2. accounting lines missing in the e-invoice list
    3. amount mismatches beyond the tolerance
    4. erroneous (quarantined) accounting lines

Author: ML Engineering Team
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List

from reconciler.records.models import AccountingSideRecord, EInvoiceRecord


@dataclass(frozen=True)
class AmountMismatch:
    """
    An invoice present on both sides with different amounts.

    Deltas are ``e-invoice - accounting``, rounded to 2 decimals.

    Attributes:
        key: Matching key
        einvoice: The e-invoice record
        einvoice_vat: E-invoice VAT in local currency
        accounting_vat: Sum of the accounting VAT lines
        vat_delta: Signed VAT difference
        einvoice_taxable: E-invoice matrah in local currency
        accounting_taxable: Sum of the accounting matrah lines
        taxable_delta: Signed matrah difference
        accounting_rows: Contributing accounting lines
    """
    key: str
    einvoice: EInvoiceRecord
    einvoice_vat: float
    accounting_vat: float
    vat_delta: float
    einvoice_taxable: float = 0.0
    accounting_taxable: float = 0.0
    taxable_delta: float = 0.0
    accounting_rows: tuple = ()

    @property
    def delta(self) -> float:
        return self.vat_delta

    def to_dict(self) -> Dict[str, Any]:
        return {
            'key': self.key,
            'invoice_number': self.einvoice.invoice_number,
            'invoice_date': self.einvoice.invoice_date.isoformat() if self.einvoice.invoice_date else None,
            'customer': self.einvoice.customer,
            'currency': self.einvoice.currency,
            'exchange_rate': self.einvoice.exchange_rate,
            'einvoice_vat': self.einvoice_vat,
            'accounting_vat': self.accounting_vat,
            'vat_delta': self.vat_delta,
            'einvoice_taxable': self.einvoice_taxable,
            'accounting_taxable': self.accounting_taxable,
            'taxable_delta': self.taxable_delta,
            'accounting_row_ids': [r.record_id for r in self.accounting_rows],
        }


@dataclass
class ReconciliationReport:
    """
    Output of one reconciliation run. Buckets keep a deterministic order.

    Example:
        >>> report = matcher.classify(aggregation.einvoices, aggregation.accounting)
        >>> report.summary()
        {'missing_in_accounting': 1, 'missing_in_einvoice': 0, ...}
    """
    missing_in_accounting: List[EInvoiceRecord] = field(default_factory=list)
    missing_in_einvoice: List[AccountingSideRecord] = field(default_factory=list)
    amount_mismatches: List[AmountMismatch] = field(default_factory=list)
    erroneous_records: List[AccountingSideRecord] = field(default_factory=list)
    tolerance: float = 0.25

    @property
    def total_rows(self) -> int:
        return (
            len(self.missing_in_accounting)
            + len(self.missing_in_einvoice)
            + len(self.amount_mismatches)
            + len(self.erroneous_records)
        )

    @property
    def is_clean(self) -> bool:
        return self.total_rows == 0

    def summary(self) -> Dict[str, int]:
        return {
            'missing_in_accounting': len(self.missing_in_accounting),
            'missing_in_einvoice': len(self.missing_in_einvoice),
            'amount_mismatches': len(self.amount_mismatches),
            'erroneous_records': len(self.erroneous_records),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'tolerance': self.tolerance,
            'summary': self.summary(),
            'missing_in_accounting': [r.to_dict() for r in self.missing_in_accounting],
            'missing_in_einvoice': [r.to_dict() for r in self.missing_in_einvoice],
            'amount_mismatches': [m.to_dict() for m in self.amount_mismatches],
            'erroneous_records': [r.to_dict() for r in self.erroneous_records],
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    def __repr__(self) -> str:
        counts = ', '.join(f"{k}={v}" for k, v in self.summary().items())
        return f"ReconciliationReport({counts})"
