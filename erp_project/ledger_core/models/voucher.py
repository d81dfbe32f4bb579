from django.core.exceptions import ValidationError
from django.db import models

from .account import LedgerAccount, Side
from .document import Document


class VoucherEntry(models.Model):
    """
    One debit or credit of a manual journal voucher.
    Entries are posted as written when the voucher is approved.
    """

    document = models.ForeignKey(
        Document, on_delete=models.CASCADE, related_name="voucher_entries")
    line_no = models.PositiveIntegerField(default=1)
    account = models.ForeignKey(
        LedgerAccount, on_delete=models.PROTECT, related_name="voucher_entries")
    side = models.CharField(max_length=6, choices=Side.choices)
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    narration = models.CharField(max_length=300, blank=True)

    class Meta:
        ordering = ("document_id", "line_no", "id")
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="ve_amount_positive",
            ),
        ]

    def __str__(self):
        return f"{self.document_id}:{self.line_no} {self.side} {self.amount}"

    def clean(self):
        if self.document.doc_type != "VOUCHER":
            raise ValidationError("Entries belong to journal vouchers only.")
        if not self.document.is_editable:
            raise ValidationError(
                f"Voucher entries can only be edited in DRAFT "
                f"(voucher is {self.document.status}).")
        if self.amount is None or self.amount <= 0:
            raise ValidationError("Voucher entry amount must be > 0")
        if self.account_id and self.account.company_id != self.document.company_id:
            raise ValidationError("Account must belong to the voucher's company")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        if not self.document.is_editable:
            raise ValidationError("Voucher entries can only be removed in DRAFT.")
        return super().delete(*args, **kwargs)
