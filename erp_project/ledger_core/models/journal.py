from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from .account import LedgerAccount, Side
from .company import Company
from .period import Period


class EntryKind(models.TextChoices):
    POSTING = "POSTING", "Posting"  # document / payment / adjustment template
    COGS = "COGS", "Cost of goods sold"  # emitted by stock valuation
    REVERSAL = "REVERSAL", "Reversal"  # mirror of an earlier entry


# ---------- Journal (Header) & JournalLine ----------
class JournalEntry(models.Model):
    """
    One balanced posting produced by a document transition.

    Entries are immutable once written: a cancelled document gets a
    REVERSAL entry pointing at the original (`reverses`), the original
    is never edited or deleted.

    (company, document_type, document_id, transition, kind) is the
    idempotency key, a retried transition finds the existing entry
    instead of posting again.
    """

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    period = models.ForeignKey(
        Period,
        null=True,
        blank=True,
        on_delete=models.PROTECT,  # Prevent breaking historical ledger
    )

    # Source of the posting
    document_type = models.CharField(max_length=20)
    document_id = models.PositiveBigIntegerField()
    transition = models.CharField(max_length=30)
    kind = models.CharField(
        max_length=10, choices=EntryKind.choices, default=EntryKind.POSTING)
    reverses = models.OneToOneField(
        "self",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="reversed_by",
    )

    date = models.DateField()
    description = models.CharField(max_length=300, blank=True)
    posted_at = models.DateTimeField(auto_now_add=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL
    )

    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "date"], name="je_company_date_idx"),
            models.Index(
                fields=["company", "document_type", "document_id"],
                name="je_company_document_idx",
            ),
        ]
        constraints = [
            # exactly one entry per document transition and kind
            models.UniqueConstraint(
                fields=[
                    "company", "document_type", "document_id",
                    "transition", "kind",
                ],
                condition=models.Q(reverses__isnull=True),
                name="uq_je_document_transition",
            ),
        ]
        ordering = ("date", "id")

    def __str__(self):
        return (f"JE {self.pk} {self.date} "
                f"{self.document_type}#{self.document_id} "
                f"{self.transition}/{self.kind}")

    def compute_totals(self):
        """Return (debits, credits) sums for lines"""
        aggs = self.lines.aggregate(
            total_debit=models.Sum(
                "amount", filter=models.Q(side=Side.DEBIT)),
            total_credit=models.Sum(
                "amount", filter=models.Q(side=Side.CREDIT)),
        )
        return (
            aggs["total_debit"] or Decimal("0.00"),
            aggs["total_credit"] or Decimal("0.00"),
        )

    def is_balanced(self):
        debit, credit = self.compute_totals()
        return debit == credit

    def save(self, *args, **kwargs):
        if self.pk and JournalEntry.objects.filter(pk=self.pk).exists():
            raise ValidationError(
                "Cannot modify a posted JournalEntry. It is immutable.")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError(
            "Journal entries cannot be deleted, post a reversal instead.")


class JournalLine(models.Model):
    """One debit or credit against one ledger account."""

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    journal = models.ForeignKey(
        JournalEntry,
        on_delete=models.CASCADE,
        related_name="lines",
    )
    line_no = models.PositiveIntegerField(default=1)

    # can't delete an account if lines exist
    account = models.ForeignKey(
        LedgerAccount, on_delete=models.PROTECT, related_name="journal_lines")
    side = models.CharField(max_length=6, choices=Side.choices)
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    description = models.CharField(max_length=300, blank=True)

    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "account"], name="jl_company_account_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="jl_amount_positive",
            ),
        ]
        ordering = ("journal_id", "line_no")

    def __str__(self):
        return f"{self.journal_id} | {self.account_id} | {self.side} {self.amount}"

    def clean(self):
        if self.amount is not None and self.amount <= 0:
            raise ValidationError("JournalLine amount must be > 0")
        if self.account_id and self.account.company_id != self.company_id:
            raise ValidationError(
                "JournalLine.account must belong to the same company.")
        if self.journal_id and self.journal.company_id != self.company_id:
            raise ValidationError(
                "JournalLine.company must equal JournalEntry.company")

    def save(self, *args, **kwargs):
        if self.pk and JournalLine.objects.filter(pk=self.pk).exists():
            raise ValidationError(
                "Cannot modify JournalLine: journal entries are immutable.")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError(
            "Cannot delete JournalLine: journal entries are immutable.")
