from django.core.exceptions import ValidationError
from django.db.models.signals import post_delete, post_save, pre_delete
from django.dispatch import receiver

from .models import (Document, DocumentLine, JournalEntry, JournalLine,
                     LedgerAccount, Period, VoucherEntry)

"""Block document deletion once it has payments or postings."""


# pre_delete signal auto-fires just before Django deletes a model instance
@receiver(pre_delete, sender=Document)
def prevent_delete_posted_document(sender, instance, **kwargs):
    if instance.payments.exists():
        raise ValidationError("Cannot delete a document with applied payments.")
    if JournalEntry.objects.filter(
        company_id=instance.company_id,
        document_type=instance.doc_type,
        document_id=instance.pk,
    ).exists():
        raise ValidationError(
            "Cannot delete a document that has journal entries, cancel it instead.")


"""
    Recalculate document totals when a line or voucher entry is
    added/updated/removed.
    Lines can only change in DRAFT, so nothing posted is affected.
"""


@receiver((post_save, post_delete), sender=DocumentLine)
@receiver((post_save, post_delete), sender=VoucherEntry)
def document_line_changed(sender, instance, **kwargs):
    try:
        doc = Document.objects.get(pk=instance.document_id)
    except Document.DoesNotExist:
        # cascade delete of the whole document
        return
    doc.recalc_totals()
    # save totals, no need to revalidate the header here
    doc.save(update_fields=Document.TOTAL_FIELDS)


"""Block deletion if account has ever been used in a journal line."""


@receiver(pre_delete, sender=LedgerAccount)
def prevent_delete_account_with_journal_lines(sender, instance, **kwargs):
    if JournalLine.objects.filter(account=instance).exists():
        raise ValidationError(
            "Cannot delete account used in journal lines, deactivate it instead.")


"""Block deletion if period has posted journals."""


@receiver(pre_delete, sender=Period)
def prevent_delete_period_with_posted_journals(sender, instance, **kwargs):
    if JournalEntry.objects.filter(period=instance).exists():
        raise ValidationError(
            "Cannot delete a period with posted journal entries.")
