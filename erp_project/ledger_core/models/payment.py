import datetime

from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from .account import LedgerAccount
from .company import Company
from .document import Document, DocumentType


class PaymentKind(models.TextChoices):
    RECEIPT = "RECEIPT", "Receipt from customer"  # against invoices
    PAYMENT = "PAYMENT", "Payment to vendor"  # against bills


# ---------- Payments / Receipts ----------
class Payment(models.Model):
    """Money received or paid against an approved invoice or bill.
    Recorded through services.payment.record_payment()."""

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    document = models.ForeignKey(
        Document, on_delete=models.PROTECT, related_name="payments")
    kind = models.CharField(max_length=8, choices=PaymentKind.choices)
    date = models.DateField(default=datetime.date.today)
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    # cash / bank ledger, falls back to the CASH control account
    account = models.ForeignKey(
        LedgerAccount,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="payments",
    )
    reference = models.CharField(max_length=100, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="payment_amount_positive",
            ),
        ]

    def __str__(self):
        return f"{self.kind} {self.amount} -> {self.document_id}"

    def clean(self):
        if self.amount is not None and self.amount <= 0:
            raise ValidationError("Payment amount must be > 0")
        if self.document.company_id != self.company_id:
            raise ValidationError("Document must belong to the same company")
        expected = {
            DocumentType.INVOICE: PaymentKind.RECEIPT,
            DocumentType.BILL: PaymentKind.PAYMENT,
        }.get(self.document.doc_type)
        if expected is None:
            raise ValidationError(
                f"Payments cannot be applied to a {self.document.doc_type}")
        if self.kind != expected:
            raise ValidationError(
                f"A {self.document.doc_type} takes a {expected}, not a {self.kind}")
        if self.account_id and self.account.company_id != self.company_id:
            raise ValidationError("Payment account must belong to the same company")

    def save(self, *args, **kwargs):
        if self.pk:
            raise ValidationError("Payments are immutable once recorded.")
        self.full_clean()
        return super().save(*args, **kwargs)
