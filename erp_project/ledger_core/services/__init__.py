"""
Public API of the ledger core.

    post_document_transition(document_id, from_status, to_status)
    get_ledger_balance(account_id)
    get_item_valuation(item_id, warehouse_id)

Views, tasks and other apps call these; the submodules are
implementation detail.
"""
from .lifecycle import (PostingReceipt, convert_quotation,
                        post_document_transition, run_with_conflict_retry)
from .payment import record_payment
from .registry import get_balance, recompute_balance, verify_balances
from .reports import (balance_sheet, ledger_report, profit_and_loss,
                      stock_summary, trial_balance)
from .stock import adjust_stock, transfer_stock
from .tax import compute_document_totals, split_tax
from .valuation import get_item_valuation as _item_valuation
from .vouchers import create_voucher


def get_ledger_balance(account_id):
    """Balance(amount, side) of a ledger account."""
    return get_balance(account_id)


def get_item_valuation(item_id, warehouse_id):
    """{quantity, total_value, method} for an item in a warehouse."""
    return _item_valuation(item_id, warehouse_id)


__all__ = [
    "PostingReceipt",
    "adjust_stock",
    "balance_sheet",
    "compute_document_totals",
    "convert_quotation",
    "create_voucher",
    "get_item_valuation",
    "get_ledger_balance",
    "ledger_report",
    "post_document_transition",
    "profit_and_loss",
    "recompute_balance",
    "record_payment",
    "run_with_conflict_retry",
    "split_tax",
    "stock_summary",
    "transfer_stock",
    "trial_balance",
    "verify_balances",
]
