import logging

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from ..models import Document, DocumentType, Payment, PaymentKind
from ..money import money
from .audit_helper import log_action
from .posting import AccountResolver, payment_draft, post_once

logger = logging.getLogger(__name__)

# ----------------------------
# Receipts and vendor payments
# ----------------------------
KIND_FOR = {
    DocumentType.INVOICE: PaymentKind.RECEIPT,
    DocumentType.BILL: PaymentKind.PAYMENT,
}


def record_payment(document_id, amount, *, account=None, date=None,
                   reference="", user=None):
    """
    Apply money to an approved invoice (receipt) or bill (payment).
    Posts the cash / party entry and moves the document to PARTIAL or
    PAID, all in one transaction.
    """
    amount = money(amount)
    if amount <= 0:
        raise ValidationError("Applied amount must be positive")

    with transaction.atomic():
        # Lock the document so two receipts can't both see the old balance
        doc = (Document.objects.select_for_update()
               .select_related("company", "party").get(pk=document_id))
        kind = KIND_FOR.get(doc.doc_type)
        if kind is None:
            raise ValidationError(f"Cannot record a payment against a {doc.doc_type}")
        if doc.status not in ("APPROVED", "PARTIAL"):
            raise ValidationError(
                f"{doc.number} is {doc.status}, only approved documents take payments")
        if amount > doc.balance_due:
            raise ValidationError(
                f"Payment {amount} exceeds balance due {doc.balance_due}")

        payment = Payment.objects.create(
            company=doc.company,
            document=doc,
            kind=kind,
            date=date or timezone.localdate(),
            amount=amount,
            account=account,
            reference=reference,
        )
        entry, _ = post_once(
            payment_draft(payment, AccountResolver(doc.company), user))

        doc.amount_paid = doc.amount_paid + amount
        doc.balance_due = doc.total_amount - doc.amount_paid
        new_status = "PAID" if doc.balance_due == 0 else "PARTIAL"
        old_status = doc.status
        if new_status != old_status:
            doc.transition(new_status)  # raises if not an edge
            doc.status = new_status
        doc.version += 1
        doc.save(update_fields=[
            "amount_paid", "balance_due", "status", "version", "updated_at"])

        log_action(
            action="payment",
            instance=payment,
            user=user,
            changes={
                "document": doc.pk,
                "amount": str(amount),
                "journal_entry": entry.pk if entry else None,
                "status": [old_status, doc.status],
            },
        )

    logger.info(
        "%s of %s recorded on %s, balance due %s",
        kind, amount, doc.number, doc.balance_due,
    )
    return payment
