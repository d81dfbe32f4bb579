"""
Document lifecycle.

post_document_transition() is the only way a document changes status.
Everything a transition causes happens in one database transaction:

    lock document -> check status/version -> guards -> totals
    -> stock valuation -> journal posting -> status + version commit

Any exception rolls all of it back, so a failed transition leaves the
status, ledger balances and cost layers exactly as they were.
"""
import logging
import time
from dataclasses import dataclass, field

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from ..exceptions import ConcurrencyConflictError, InvalidTransitionError
from ..models import (Document, DocumentLine, DocumentType, JournalEntry,
                      Side, StockMovement, Transition)
from ..models.document import EXPIRED, PostingAction
from ..money import ZERO
from .audit_helper import log_action
from .posting import post_document, reverse_document_entries
from .stock import (issue_document_stock, receive_document_stock,
                    return_purchased_stock, return_sold_stock,
                    undo_document_stock)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PostingReceipt:
    document_id: int
    doc_type: str
    from_status: str
    to_status: str
    version: int
    journal_entry_ids: tuple = field(default_factory=tuple)
    movement_ids: tuple = field(default_factory=tuple)
    replayed: bool = False

    def as_dict(self):
        return {
            "document_id": self.document_id,
            "doc_type": self.doc_type,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "version": self.version,
            "journal_entry_ids": list(self.journal_entry_ids),
            "movement_ids": list(self.movement_ids),
            "replayed": self.replayed,
        }


def _has_lines(doc):
    if doc.doc_type == DocumentType.VOUCHER:
        return doc.voucher_entries.exists()
    return doc.lines.exists()


def _check_voucher(doc):
    """A voucher leaves DRAFT only as a complete double entry."""
    entries = list(doc.voucher_entries.all())
    if len(entries) < 2:
        raise ValidationError(
            f"Voucher {doc.number} needs at least one debit and one credit.")
    debit = sum((e.amount for e in entries if e.side == Side.DEBIT), ZERO)
    credit = sum((e.amount for e in entries if e.side == Side.CREDIT), ZERO)
    if debit != credit:
        raise ValidationError(
            f"Voucher {doc.number} is not balanced: "
            f"debit {debit} != credit {credit}")


def _check_guards(doc, transition, today):
    target = transition.target

    if (doc.effective_status(today) == EXPIRED
            and target != "CANCELLED"):
        raise InvalidTransitionError(
            f"Quotation {doc.number} expired on {doc.valid_until}")

    if transition.source == "DRAFT" and target != "CANCELLED":
        if not _has_lines(doc):
            raise ValidationError(
                f"{doc.doc_type} must have at least one line before {target}.")
        if doc.doc_type == DocumentType.VOUCHER:
            _check_voucher(doc)

    if target == "PAID" and doc.balance_due != 0:
        raise ValidationError(
            f"Cannot mark {doc.number} paid: balance due is {doc.balance_due}")

    if (doc.doc_type in (DocumentType.INVOICE, DocumentType.BILL)
            and target == "PARTIAL"
            and not (0 < doc.amount_paid < doc.total_amount)):
        raise ValidationError(
            f"{doc.number} is not partially paid "
            f"({doc.amount_paid} of {doc.total_amount})")

    if target == "CANCELLED" and doc.amount_paid > 0:
        raise ValidationError(
            f"Cannot cancel {doc.number}: payments of {doc.amount_paid} applied")

    if target == "CONVERTED" and not doc.conversions.exists():
        raise ValidationError(
            "Use convert_quotation() to convert a quotation into an order.")


def _apply_postings(doc, totals, user):
    entries = []
    if doc.doc_type == DocumentType.INVOICE:
        cogs = issue_document_stock(doc, totals, user)
        if cogs is not None:
            entries.append(cogs)
    elif doc.doc_type == DocumentType.BILL:
        receive_document_stock(doc, totals)
    elif doc.doc_type == DocumentType.CREDIT_NOTE:
        returned = return_sold_stock(doc, totals, user)
        if returned is not None:
            entries.append(returned)
    elif doc.doc_type == DocumentType.DEBIT_NOTE:
        returned = return_purchased_stock(doc, totals, user)
        if returned is not None:
            entries.append(returned)
    entry, _ = post_document(doc, totals, user)
    if entry is not None:
        entries.insert(0, entry)
    return entries


def _apply_reversal(doc, user, today):
    undo_document_stock(doc, date=today)
    return reverse_document_entries(
        doc.company, doc.doc_type, doc.pk, "CANCELLED", date=today, user=user)


def _receipt(doc, from_status, to_status, replayed=False):
    entry_ids = JournalEntry.objects.filter(
        company=doc.company,
        document_type=doc.doc_type,
        document_id=doc.pk,
        transition=to_status,
    ).order_by("pk").values_list("pk", flat=True)
    movement_ids = StockMovement.objects.filter(
        company=doc.company,
        document_type=doc.doc_type,
        document_id=doc.pk,
    ).order_by("pk").values_list("pk", flat=True)
    return PostingReceipt(
        document_id=doc.pk,
        doc_type=doc.doc_type,
        from_status=from_status,
        to_status=to_status,
        version=doc.version,
        journal_entry_ids=tuple(entry_ids),
        movement_ids=tuple(movement_ids),
        replayed=replayed,
    )


def post_document_transition(document_id, from_status, to_status,
                             expected_version=None, user=None, today=None):
    """Move a document from `from_status` to `to_status` and run the
    postings the edge requires. Returns a PostingReceipt.

    Re-sending a transition that already committed returns the original
    receipt with replayed=True and changes nothing.
    """
    today = today or timezone.localdate()

    with transaction.atomic():
        try:
            doc = (Document.objects.select_for_update()
                   .select_related("company", "party", "warehouse")
                   .get(pk=document_id))
        except Document.DoesNotExist:
            raise ValidationError(f"Unknown document {document_id}")

        if doc.status == to_status and from_status != to_status:
            logger.info(
                "Replay of %s %s -> %s ignored", doc, from_status, to_status)
            return _receipt(doc, from_status, to_status, replayed=True)

        if doc.status != from_status:
            raise ConcurrencyConflictError(
                f"{doc.doc_type} {doc.number} is {doc.status}, "
                f"expected {from_status}")
        if expected_version is not None and doc.version != expected_version:
            raise ConcurrencyConflictError(
                f"{doc.doc_type} {doc.number} is at version {doc.version}, "
                f"expected {expected_version}")

        transition = Transition(doc.doc_type, from_status, to_status)
        totals = doc.recalc_totals()
        _check_guards(doc, transition, today)

        if transition.action == PostingAction.POST:
            entries = _apply_postings(doc, totals, user)
        elif transition.action == PostingAction.REVERSE:
            entries = _apply_reversal(doc, user, today)
        else:
            entries = []

        doc.status = to_status
        doc.version += 1
        doc.save(update_fields=Document.TOTAL_FIELDS + ["status", "version"])
        log_action(
            action="transition",
            instance=doc,
            user=user,
            changes={
                "from": from_status,
                "to": to_status,
                "version": doc.version,
                "journal_entries": [e.pk for e in entries],
            },
        )

    logger.info(
        "%s %s: %s -> %s (%s journal entries)",
        doc.doc_type, doc.number, from_status, to_status, len(entries),
    )
    return _receipt(doc, from_status, to_status)


def run_with_conflict_retry(fn, *args, attempts=None, backoff=None, **kwargs):
    """Call fn, retrying ConcurrencyConflictError with exponential backoff.
    Must be called outside any open transaction."""
    attempts = attempts or settings.LEDGER_CONFLICT_RETRIES
    backoff = settings.LEDGER_CONFLICT_BACKOFF_SECONDS if backoff is None else backoff
    for attempt in range(1, attempts + 1):
        try:
            return fn(*args, **kwargs)
        except ConcurrencyConflictError as exc:
            if attempt == attempts:
                logger.error(
                    "Giving up after %s attempts: %s", attempts, exc)
                raise
            delay = backoff * (2 ** (attempt - 1))
            logger.warning(
                "Conflict on attempt %s/%s (%s), retrying in %.2fs",
                attempt, attempts, exc, delay,
            )
            time.sleep(delay)


def convert_quotation(quotation_id, user=None, today=None):
    """ACCEPTED quotation -> new DRAFT sales order with the same lines.
    The quotation moves to CONVERTED in the same transaction."""
    today = today or timezone.localdate()
    with transaction.atomic():
        quote = Document.objects.select_for_update().get(pk=quotation_id)
        if quote.doc_type != DocumentType.QUOTATION:
            raise ValidationError(f"{quote} is not a quotation")
        existing = quote.conversions.first()
        if quote.status == "CONVERTED" and existing is not None:
            return existing
        Transition(quote.doc_type, quote.status, "CONVERTED")

        order = Document.objects.create(
            company=quote.company,
            doc_type=DocumentType.SALES_ORDER,
            party=quote.party,
            date=today,
            warehouse=quote.warehouse,
            converted_from=quote,
            notes=quote.notes,
        )
        for line in quote.lines.order_by("line_no", "pk"):
            DocumentLine.objects.create(
                document=order,
                line_no=line.line_no,
                item=line.item,
                description=line.description,
                quantity=line.quantity,
                unit_price=line.unit_price,
                discount_percent=line.discount_percent,
                tax_rate=line.tax_rate,
                account=line.account,
            )
        order.recalc_totals()
        order.save(update_fields=Document.TOTAL_FIELDS)

        post_document_transition(
            quote.pk, quote.status, "CONVERTED", user=user, today=today)
    logger.info("Quotation %s converted to order %s", quote.number, order.number)
    return order
