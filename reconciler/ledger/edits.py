"""
Ledger Edit Module.

Single-field corrections of current-account transactions with an audit
log and undo. Edits never mutate the given account list: the edited
account is copied, changed and recalculated.

Author: ML Engineering Team
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from reconciler.utils.logger import get_logger
from reconciler.utils.helpers import collapse_whitespace, round2, round4, turkish_upper
from reconciler.parsing.normalizers import format_date, parse_date, parse_optional_number
from .models import AccountDetail, Transaction, normalize_currency_code

# Initialize module logger
logger = get_logger(__name__)


class EditSource(str, Enum):
    """Party whose ledger is being corrected."""
    FIRMA = 'FIRMA'
    SMMM = 'SMMM'


FIELD_LABELS: Dict[str, str] = {
    'date': 'Tarih',
    'description': 'Açıklama',
    'document_no': 'Evrak No',
    'debit': 'Borç',
    'credit': 'Alacak',
    'currency_code': 'Döviz Cinsi',
    'exchange_rate': 'Kur',
    'fx_movement': 'Döviz Hareket',
    'fx_balance': 'Döviz Bakiye',
}

EDITABLE_FIELDS = tuple(FIELD_LABELS)


def is_tl_currency_code(value: Optional[str]) -> bool:
    """``TL`` and codes containing ``TRY`` are local currency; empty is not."""
    code = normalize_currency_code(value)
    return bool(code) and (code == 'TL' or 'TRY' in code)


def normalize_voucher_no(value: Optional[str]) -> str:
    return turkish_upper(''.join((value or '').split()))


@dataclass
class EditLocator:
    """
    Identifies one transaction.

    Lookup order: transaction id, then account code + index, then the
    first transaction carrying the voucher number.
    """
    account_code: str = ''
    transaction_index: Optional[int] = None
    transaction_id: Optional[str] = None
    voucher_no: Optional[str] = None


@dataclass
class EditLogEntry:
    """Audit record of one edit or undo."""
    source: EditSource
    transaction_id: str
    account_code: str
    account_name: str
    voucher_no: str
    field: str
    field_label: str
    old_value: str
    new_value: str
    document_no: Optional[str] = None
    description: Optional[str] = None
    reference_log_id: Optional[str] = None
    undone_at: Optional[str] = None
    undo_log_id: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        data = dict(vars(self))
        data['source'] = EditSource(self.source).value
        return data


@dataclass
class EditResult:
    """
    Outcome of an edit.

    Attributes:
        changed: Whether anything changed
        accounts: Resulting account list (the input list when unchanged)
        log_entry: Audit record of the change
        error: Reason the edit was refused
    """
    changed: bool
    accounts: List[AccountDetail]
    log_entry: Optional[EditLogEntry] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


# =============================================================================
# Value parsing and formatting
# =============================================================================

def _format_number(value: Optional[float], digits: int = 2) -> str:
    if value is None:
        return ''
    return f"{value:.{digits}f}"


def _parse_number(text: str, label: str, required: bool, digits: int) -> Tuple[Optional[float], Optional[str]]:
    text = (text or '').strip()
    if not text:
        return (0.0 if required else None), None
    parsed = parse_optional_number(text)
    if parsed is None:
        return None, f"{label} must be a number"
    return (round2(parsed) if digits == 2 else round4(parsed)), None


def field_value(transaction: Transaction, field_name: str) -> str:
    """Text form of a transaction field, as written to the log."""
    if field_name == 'date':
        return format_date(transaction.date)
    if field_name in ('debit', 'credit'):
        return _format_number(getattr(transaction, field_name))
    if field_name == 'exchange_rate':
        return _format_number(transaction.exchange_rate, 4)
    if field_name == 'fx_balance':
        return _format_number(transaction.fx_balance, 4)
    if field_name == 'fx_movement':
        movement = transaction.fx_movement
        return '' if abs(movement) < 0.0001 else _format_number(movement, 4)
    return getattr(transaction, field_name) or ''


def _set_date(transaction: Transaction, text: str) -> Optional[str]:
    text = (text or '').strip()
    if not text:
        transaction.date = None
        return None
    parsed = parse_date(text)
    if parsed is None:
        return f"Invalid date: {text}"
    transaction.date = parsed
    return None


def _set_amount(field_name: str) -> Callable[[Transaction, str], Optional[str]]:
    def setter(transaction: Transaction, text: str) -> Optional[str]:
        value, error = _parse_number(text, FIELD_LABELS[field_name], True, 2)
        if error is None:
            setattr(transaction, field_name, value)
        return error
    return setter


def _set_text(field_name: str) -> Callable[[Transaction, str], Optional[str]]:
    def setter(transaction: Transaction, text: str) -> Optional[str]:
        setattr(transaction, field_name, collapse_whitespace(text or '') or None)
        return None
    return setter


def _set_description(transaction: Transaction, text: str) -> Optional[str]:
    transaction.description = collapse_whitespace(text or '')
    return None


def _set_currency(transaction: Transaction, text: str) -> Optional[str]:
    transaction.currency_code = normalize_currency_code(text) or None
    return None


def _set_exchange_rate(transaction: Transaction, text: str) -> Optional[str]:
    value, error = _parse_number(text, FIELD_LABELS['exchange_rate'], False, 4)
    if error is None:
        transaction.exchange_rate = value
    return error


def _set_fx_movement(transaction: Transaction, text: str) -> Optional[str]:
    value, error = _parse_number(text, FIELD_LABELS['fx_movement'], False, 4)
    if error is not None:
        return error
    if value is None or abs(value) < 0.0001:
        transaction.fx_debit = transaction.fx_credit = None
    elif value > 0:
        transaction.fx_debit, transaction.fx_credit = value, None
    else:
        transaction.fx_debit, transaction.fx_credit = None, abs(value)
    return None


def _set_fx_balance(transaction: Transaction, text: str) -> Optional[str]:
    value, error = _parse_number(text, FIELD_LABELS['fx_balance'], False, 4)
    if error is None:
        transaction.fx_balance = value
        transaction.fx_balance_manual = value is not None
    return error


_SETTERS: Dict[str, Callable[[Transaction, str], Optional[str]]] = {
    'date': _set_date,
    'description': _set_description,
    'document_no': _set_text('document_no'),
    'debit': _set_amount('debit'),
    'credit': _set_amount('credit'),
    'currency_code': _set_currency,
    'exchange_rate': _set_exchange_rate,
    'fx_movement': _set_fx_movement,
    'fx_balance': _set_fx_balance,
}


# =============================================================================
# Edit operations
# =============================================================================

def recalculate_account(account: AccountDetail) -> AccountDetail:
    """Re-sort an account and recompute its totals and running balances."""
    return account.recalculate()


def find_transaction(
    accounts: List[AccountDetail],
    locator: EditLocator
) -> Optional[Tuple[int, int]]:
    """
    Locate a transaction.

    Returns:
        Tuple of (account index, transaction index), or None.
    """
    if locator.transaction_id:
        for account_index, account in enumerate(accounts):
            for tx_index, transaction in enumerate(account.transactions):
                if transaction.id == locator.transaction_id:
                    return account_index, tx_index

    code = ''.join((locator.account_code or '').split())
    if code and locator.transaction_index is not None:
        for account_index, account in enumerate(accounts):
            if account.code == code:
                if 0 <= locator.transaction_index < len(account.transactions):
                    return account_index, locator.transaction_index
                break

    voucher = normalize_voucher_no(locator.voucher_no)
    if voucher:
        for account_index, account in enumerate(accounts):
            for tx_index, transaction in enumerate(account.transactions):
                if normalize_voucher_no(transaction.voucher_no) == voucher:
                    return account_index, tx_index

    return None


def apply_edit(
    accounts: List[AccountDetail],
    locator: EditLocator,
    field_name: str,
    value: str,
    source: EditSource = EditSource.FIRMA,
    reference_log_id: Optional[str] = None
) -> EditResult:
    """
    Change one field of one transaction.

    Args:
        accounts: Current account list (left untouched).
        locator: Transaction to edit.
        field_name: One of EDITABLE_FIELDS.
        value: New value as typed by the user.
        source: Ledger being corrected.
        reference_log_id: Log entry this edit reverts (undo).

    Returns:
        EditResult; ``error`` is set when the edit was refused.

    Example:
        >>> result = apply_edit(accounts, EditLocator('120.01', 0), 'debit', '1.250,00')
        >>> result.accounts[0].balance
        1250.0
    """
    if field_name not in _SETTERS:
        return EditResult(False, accounts, error=f"Field cannot be edited: {field_name}")

    location = find_transaction(accounts, locator)
    if location is None:
        return EditResult(False, accounts, error="Transaction not found")

    account_index, tx_index = location
    account = accounts[account_index].copy()
    transaction = account.transactions[tx_index]
    old_value = field_value(transaction, field_name)

    error = _SETTERS[field_name](transaction, value)
    if error is not None:
        logger.debug(f"Edit refused: {error}")
        return EditResult(False, accounts, error=error)

    new_value = field_value(transaction, field_name)
    if new_value == old_value:
        return EditResult(False, accounts)

    recalculate_account(account)
    next_accounts = list(accounts)
    next_accounts[account_index] = account

    entry = EditLogEntry(
        source=EditSource(source),
        transaction_id=transaction.id,
        account_code=account.code,
        account_name=account.name,
        voucher_no=transaction.voucher_no or '',
        field=field_name,
        field_label=FIELD_LABELS[field_name],
        old_value=old_value,
        new_value=new_value,
        document_no=transaction.document_no,
        description=transaction.description,
        reference_log_id=reference_log_id,
    )
    logger.info(
        f"Edited {field_name} of {account.code} / {entry.voucher_no or transaction.id}: "
        f"{old_value!r} -> {new_value!r}"
    )
    return EditResult(True, next_accounts, log_entry=entry)


def undo_edit(accounts: List[AccountDetail], entry: EditLogEntry) -> EditResult:
    """
    Revert a logged edit by re-applying its old value.

    The original entry is marked as undone.
    """
    if entry.undone_at:
        return EditResult(False, accounts, error="Edit was already undone")

    result = apply_edit(
        accounts,
        EditLocator(
            account_code=entry.account_code,
            transaction_id=entry.transaction_id,
            voucher_no=entry.voucher_no,
        ),
        entry.field,
        entry.old_value,
        source=entry.source,
        reference_log_id=entry.id,
    )

    if result.changed and result.log_entry is not None:
        entry.undone_at = result.log_entry.created_at
        entry.undo_log_id = result.log_entry.id
    return result
