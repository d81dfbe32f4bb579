from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from .account import LedgerAccount
from .company import Company


class PartyType(models.TextChoices):
    CUSTOMER = "CUSTOMER", "Customer"
    VENDOR = "VENDOR", "Vendor"
    BOTH = "BOTH", "Customer & Vendor"


# ---------- Customers / Vendors ----------
class Party(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    name = models.CharField(max_length=200)
    party_type = models.CharField(
        max_length=10, choices=PartyType.choices, default=PartyType.CUSTOMER)
    email = models.EmailField(blank=True)

    # GST registration, drives intra- vs inter-state tax
    gstin = models.CharField(max_length=15, blank=True)
    state_code = models.CharField(max_length=2, blank=True)

    # Optional personal ledger; falls back to the RECEIVABLE / PAYABLE
    # control account of the company
    ledger_account = models.ForeignKey(
        LedgerAccount,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="parties",
    )
    is_active = models.BooleanField(default=True)

    objects = TenantManager()

    class Meta:
        verbose_name_plural = "parties"
        indexes = [
            models.Index(fields=["company", "name"], name="party_company_name_idx"),
        ]

    def __str__(self):
        return self.name

    @property
    def jurisdiction(self):
        return self.state_code or (self.gstin[:2] if self.gstin else "")

    def clean(self):
        if self.gstin and len(self.gstin) != 15:
            raise ValidationError("GSTIN must be 15 characters")
        if (self.ledger_account_id
                and self.ledger_account.company_id != self.company_id):
            raise ValidationError(
                "Party ledger must belong to the same company")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
