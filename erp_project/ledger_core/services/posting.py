"""
Journal engine: posting templates.

Each (document type, target status) pair maps to one template that turns
the document's computed totals into a balanced JournalDraft. Templates
read nothing but their arguments; the registry does the writing.
"""
import logging

from django.utils import timezone

from ..exceptions import UnknownAccountError
from ..models import (ControlAccount, ControlRole, DocumentType, EntryKind,
                      JournalEntry, Side)
from .registry import DraftLine, JournalDraft, apply_entry

logger = logging.getLogger(__name__)

OUTPUT_TAX = (ControlRole.OUTPUT_CGST, ControlRole.OUTPUT_SGST, ControlRole.OUTPUT_IGST)
INPUT_TAX = (ControlRole.INPUT_CGST, ControlRole.INPUT_SGST, ControlRole.INPUT_IGST)


class AccountResolver:
    """Picks ledgers for a company: explicit override first,
    then the control account for the role."""

    def __init__(self, company):
        self.company = company
        self._controls = None

    def control(self, role):
        if self._controls is None:
            self._controls = dict(
                ControlAccount.objects.filter(company=self.company)
                .values_list("role", "account_id")
            )
        try:
            return self._controls[role]
        except KeyError:
            raise UnknownAccountError(
                f"No {role} control account configured for {self.company}")

    def party(self, document, role):
        party = document.party
        if party is not None and party.ledger_account_id:
            return party.ledger_account_id
        return self.control(role)

    def sales(self, line):
        if line.account_id:
            return line.account_id
        if line.item is not None and line.item.sales_account_id:
            return line.item.sales_account_id
        return self.control(ControlRole.SALES)

    def purchase(self, line):
        if line.account_id:
            return line.account_id
        item = line.item
        if item is not None and item.is_stock_item:
            return self.inventory(item)
        if item is not None and item.purchase_account_id:
            return item.purchase_account_id
        return self.control(ControlRole.PURCHASE)

    def inventory(self, item):
        if item.inventory_account_id:
            return item.inventory_account_id
        return self.control(ControlRole.INVENTORY)

    def cogs(self, item):
        if item.cogs_account_id:
            return item.cogs_account_id
        return self.control(ControlRole.COGS)

    def cash(self, account_id=None):
        return account_id or self.control(ControlRole.CASH)


def _merge_lines(draft):
    """Combine lines on the same (account, side) and drop zero lines.
    Keeps first-seen order so the output is deterministic."""
    merged = {}
    for line in draft.lines:
        key = (line.account_id, line.side)
        if key in merged:
            prev = merged[key]
            merged[key] = DraftLine(
                prev.account_id, prev.side, prev.amount + line.amount,
                prev.description)
        else:
            merged[key] = line
    draft.lines = [line for line in merged.values() if line.amount > 0]
    return draft


def _tax_lines(draft, totals, resolver, roles, side):
    tax = totals.tax_breakdown
    cgst_role, sgst_role, igst_role = roles
    for role, amount, label in (
        (cgst_role, tax.cgst, "CGST"),
        (sgst_role, tax.sgst, "SGST"),
        (igst_role, tax.igst, "IGST"),
    ):
        if amount > 0:
            draft.add(resolver.control(role), side, amount, label)


def _new_draft(document, transition, description, user=None):
    return JournalDraft(
        company=document.company,
        document_type=document.doc_type,
        document_id=document.pk,
        transition=transition,
        date=document.date,
        description=description,
        created_by=user,
    )


# ---------- Templates ----------
def invoice_approved(document, totals, resolver, user=None):
    """
    Dr Sundry Debtors            total
        Cr Sales (per line)      taxable
        Cr Output CGST/SGST/IGST tax
    """
    draft = _new_draft(
        document, "APPROVED", f"Invoice {document.number}", user)
    draft.add(resolver.party(document, ControlRole.RECEIVABLE), Side.DEBIT,
              totals.total, f"Receivable {document.number}")
    for lt in totals.lines:
        draft.add(resolver.sales(lt.line), Side.CREDIT, lt.taxable,
                  lt.line.description)
    _tax_lines(draft, totals, resolver, OUTPUT_TAX, Side.CREDIT)
    return _merge_lines(draft)


def bill_approved(document, totals, resolver, user=None):
    """
    Dr Purchases / Stock-in-Hand (per line) taxable
    Dr Input CGST/SGST/IGST                 tax
        Cr Sundry Creditors                 total
    """
    draft = _new_draft(
        document, "APPROVED", f"Bill {document.number}", user)
    for lt in totals.lines:
        draft.add(resolver.purchase(lt.line), Side.DEBIT, lt.taxable,
                  lt.line.description)
    _tax_lines(draft, totals, resolver, INPUT_TAX, Side.DEBIT)
    draft.add(resolver.party(document, ControlRole.PAYABLE), Side.CREDIT,
              totals.total, f"Payable {document.number}")
    return _merge_lines(draft)


def credit_note_approved(document, totals, resolver, user=None):
    # sales return: mirror of the invoice on a returns ledger
    draft = _new_draft(
        document, "APPROVED", f"Credit note {document.number}", user)
    for lt in totals.lines:
        account = lt.line.account_id or resolver.control(ControlRole.SALES_RETURN)
        draft.add(account, Side.DEBIT, lt.taxable, lt.line.description)
    _tax_lines(draft, totals, resolver, OUTPUT_TAX, Side.DEBIT)
    draft.add(resolver.party(document, ControlRole.RECEIVABLE), Side.CREDIT,
              totals.total, f"Credit note {document.number}")
    return _merge_lines(draft)


def debit_note_approved(document, totals, resolver, user=None):
    # purchase return: mirror of the bill on a returns ledger
    draft = _new_draft(
        document, "APPROVED", f"Debit note {document.number}", user)
    draft.add(resolver.party(document, ControlRole.PAYABLE), Side.DEBIT,
              totals.total, f"Debit note {document.number}")
    for lt in totals.lines:
        account = (lt.line.account_id
                   or resolver.control(ControlRole.PURCHASE_RETURN))
        draft.add(account, Side.CREDIT, lt.taxable, lt.line.description)
    _tax_lines(draft, totals, resolver, INPUT_TAX, Side.CREDIT)
    return _merge_lines(draft)


def voucher_approved(document, totals, resolver, user=None):
    # manual journal: the entries are posted exactly as written
    draft = _new_draft(
        document, "APPROVED",
        document.notes or f"Journal voucher {document.number}", user)
    for entry in document.voucher_entries.order_by("line_no", "pk"):
        draft.add(entry.account_id, entry.side, entry.amount, entry.narration)
    return draft


TEMPLATES = {
    (DocumentType.INVOICE, "APPROVED"): invoice_approved,
    (DocumentType.BILL, "APPROVED"): bill_approved,
    (DocumentType.CREDIT_NOTE, "APPROVED"): credit_note_approved,
    (DocumentType.DEBIT_NOTE, "APPROVED"): debit_note_approved,
    (DocumentType.VOUCHER, "APPROVED"): voucher_approved,
}


def cogs_draft(document, item_costs, resolver, transition="APPROVED", user=None):
    """
    Dr Cost of Goods Sold  cost
        Cr Stock-in-Hand   cost
    item_costs: [(item, amount)], one pair per item
    """
    draft = _new_draft(
        document, transition, f"COGS {document.number}", user)
    draft.kind = EntryKind.COGS
    for item, amount in item_costs:
        draft.add(resolver.cogs(item), Side.DEBIT, amount, f"COGS {item.sku}")
        draft.add(resolver.inventory(item), Side.CREDIT, amount, item.sku)
    return _merge_lines(draft)


def sales_return_cost_draft(document, item_costs, resolver, user=None):
    """
    Dr Stock-in-Hand              cost
        Cr Cost of Goods Sold     cost
    """
    draft = _new_draft(
        document, "APPROVED", f"Returned goods {document.number}", user)
    draft.kind = EntryKind.COGS
    for item, amount in item_costs:
        draft.add(resolver.inventory(item), Side.DEBIT, amount, item.sku)
        draft.add(resolver.cogs(item), Side.CREDIT, amount, f"COGS {item.sku}")
    return _merge_lines(draft)


def purchase_return_cost_draft(document, item_costs, resolver, user=None):
    """
    Dr Purchase Returns    cost
        Cr Stock-in-Hand   cost
    Leaves the difference between the credited price and the carried
    cost on the returns ledger.
    """
    draft = _new_draft(
        document, "APPROVED", f"Returned to vendor {document.number}", user)
    draft.kind = EntryKind.COGS
    returns = resolver.control(ControlRole.PURCHASE_RETURN)
    for item, amount in item_costs:
        draft.add(returns, Side.DEBIT, amount, f"Return {item.sku}")
        draft.add(resolver.inventory(item), Side.CREDIT, amount, item.sku)
    return _merge_lines(draft)


def payment_draft(payment, resolver, user=None):
    """RECEIPT: Dr cash/bank, Cr debtor.  PAYMENT: Dr creditor, Cr cash/bank."""
    document = payment.document
    draft = JournalDraft(
        company=payment.company,
        document_type="PAYMENT",
        document_id=payment.pk,
        transition=payment.kind,
        date=payment.date,
        description=f"{payment.kind.title()} for {document.number}",
        created_by=user,
    )
    cash = resolver.cash(payment.account_id)
    if payment.kind == "RECEIPT":
        draft.add(cash, Side.DEBIT, payment.amount)
        draft.add(resolver.party(document, ControlRole.RECEIVABLE),
                  Side.CREDIT, payment.amount)
    else:
        draft.add(resolver.party(document, ControlRole.PAYABLE),
                  Side.DEBIT, payment.amount)
        draft.add(cash, Side.CREDIT, payment.amount)
    return draft


def adjustment_draft(movement, amount, resolver, user=None):
    """Stock found: Dr stock, Cr adjustment. Stock lost: the other way."""
    item = movement.item
    draft = JournalDraft(
        company=movement.company,
        document_type="STOCK_MOVEMENT",
        document_id=movement.pk,
        transition="ADJUSTED",
        date=movement.date,
        description=f"Stock adjustment {item.sku} {movement.direction}",
        created_by=user,
    )
    stock = resolver.inventory(item)
    offset = resolver.control(ControlRole.STOCK_ADJUSTMENT)
    if movement.direction == "IN":
        draft.add(stock, Side.DEBIT, amount)
        draft.add(offset, Side.CREDIT, amount)
    else:
        draft.add(offset, Side.DEBIT, amount)
        draft.add(stock, Side.CREDIT, amount)
    return _merge_lines(draft)


# ---------- Idempotent posting ----------
def find_entry(company, document_type, document_id, transition, kind):
    return JournalEntry.objects.filter(
        company=company,
        document_type=document_type,
        document_id=document_id,
        transition=transition,
        kind=kind,
        reverses__isnull=True,
    ).first()


def post_once(draft):
    """Apply `draft` unless its (document, transition, kind) is already
    posted. Returns (entry, created)."""
    existing = find_entry(
        draft.company, draft.document_type, draft.document_id,
        draft.transition, draft.kind)
    if existing is not None:
        logger.info(
            "Skip posting %s#%s %s/%s: already posted as JE %s",
            draft.document_type, draft.document_id, draft.transition,
            draft.kind, existing.pk,
        )
        return existing, False
    if not draft.lines:
        # zero-value event (e.g. free sample), nothing to post
        return None, False
    return apply_entry(draft), True


def post_document(document, totals, user=None):
    """Post the APPROVED template of `document`."""
    template = TEMPLATES.get((document.doc_type, "APPROVED"))
    if template is None:
        return None, False
    resolver = AccountResolver(document.company)
    return post_once(template(document, totals, resolver, user))


def mirror_draft(entry, transition, date=None, user=None):
    """Same lines as `entry` with debit and credit swapped."""
    draft = JournalDraft(
        company=entry.company,
        document_type=entry.document_type,
        document_id=entry.document_id,
        transition=transition,
        date=date or timezone.localdate(),
        kind=EntryKind.REVERSAL,
        description=f"Reversal of JE {entry.pk}",
        reverses=entry,
        created_by=user,
    )
    for line in entry.lines.order_by("line_no"):
        side = Side.CREDIT if line.side == Side.DEBIT else Side.DEBIT
        draft.add(line.account_id, side, line.amount, line.description)
    return draft


def reverse_document_entries(company, document_type, document_id,
                             transition="CANCELLED", date=None, user=None):
    """Post a mirror entry for every live entry of a document.
    Entries already reversed are skipped, so calling twice is harmless."""
    reversals = []
    live = JournalEntry.objects.filter(
        company=company,
        document_type=document_type,
        document_id=document_id,
        reverses__isnull=True,
        reversed_by__isnull=True,
    ).exclude(kind=EntryKind.REVERSAL).order_by("pk")
    for entry in live:
        reversals.append(
            apply_entry(mirror_draft(entry, transition, date, user)))
    if reversals:
        logger.info(
            "Reversed %s entries of %s#%s", len(reversals),
            document_type, document_id,
        )
    return reversals

