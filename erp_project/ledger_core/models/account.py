from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from ..money import CREDIT, DEBIT, balance_from_signed, signed_for
from .company import Company


class AccountNature(models.TextChoices):
    # Determines which side increases the balance
    ASSET = "ASSET", "Asset"
    LIABILITY = "LIABILITY", "Liability"
    INCOME = "INCOME", "Income"
    EXPENSE = "EXPENSE", "Expense"
    EQUITY = "EQUITY", "Equity"


class Side(models.TextChoices):
    DEBIT = DEBIT, "Debit"
    CREDIT = CREDIT, "Credit"


# Assets/Expenses increase on the debit side,
# Liabilities/Income/Equity on the credit side
NATURAL_SIDE = {
    AccountNature.ASSET: Side.DEBIT,
    AccountNature.EXPENSE: Side.DEBIT,
    AccountNature.LIABILITY: Side.CREDIT,
    AccountNature.INCOME: Side.CREDIT,
    AccountNature.EQUITY: Side.CREDIT,
}


# ---------- Ledger groups ----------
class LedgerGroup(models.Model):
    """
    Tree of groups in the chart of accounts
    (e.g. Current Assets > Sundry Debtors).
    A child group always carries its parent's nature.
    """

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    name = models.CharField(max_length=120)
    nature = models.CharField(max_length=10, choices=AccountNature.choices)
    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.PROTECT,  # can't delete a parent if children exist
        related_name="children",
    )

    objects = TenantManager()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["company", "name"], name="uq_company_ledger_group"
            )
        ]

    def __str__(self):
        return f"{self.name} ({self.nature})"

    def clean(self):
        if self.parent_id:
            if self.parent.company_id != self.company_id:
                raise ValidationError(
                    "Parent group must belong to the same company")
            if self.parent.nature != self.nature:
                raise ValidationError(
                    f"Group nature {self.nature} differs from "
                    f"parent nature {self.parent.nature}"
                )

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)


# ---------- Ledger accounts ----------
class LedgerAccount(models.Model):
    """
    A ledger in the chart of accounts.
    - code is unique per company
    - opening balance is stored with explicit polarity
    - current_balance is a cached figure, signed relative to the
      account's natural side, and is only written by the posting
      registry (services.registry). It can always be rebuilt from
      the journal lines.
    """

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    group = models.ForeignKey(
        LedgerGroup,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="accounts",
    )
    code = models.CharField(max_length=32)
    name = models.CharField(max_length=200)
    nature = models.CharField(max_length=10, choices=AccountNature.choices)

    opening_balance = models.DecimalField(
        max_digits=18, decimal_places=2, default=0)
    opening_balance_type = models.CharField(
        max_length=6, choices=Side.choices, default=Side.DEBIT)

    # Cached: signed(opening) + Σ signed(posted lines)
    current_balance = models.DecimalField(
        max_digits=18, decimal_places=2, default=0, editable=False)

    # soft deactivate: history stays, new postings are refused
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "nature"], name="la_company_nature_idx"),
            models.Index(fields=["company", "code"], name="la_company_code_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "code"], name="uq_company_ledger_code"
            ),
            models.CheckConstraint(
                condition=models.Q(opening_balance__gte=0),
                name="ledger_opening_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.code} {self.name}"

    @property
    def natural_side(self):
        return NATURAL_SIDE[self.nature]

    @property
    def signed_opening(self):
        return signed_for(
            self.natural_side, self.opening_balance_type, self.opening_balance)

    @property
    def balance(self):
        """Cached balance with explicit polarity."""
        return balance_from_signed(self.natural_side, self.current_balance)

    def clean(self):
        if self.group_id:
            if self.group.company_id != self.company_id:
                raise ValidationError(
                    "LedgerGroup must belong to the same company as the account")
            if self.group.nature != self.nature:
                raise ValidationError(
                    f"Account nature {self.nature} differs from "
                    f"group nature {self.group.nature}"
                )
        if self.opening_balance is not None and self.opening_balance < 0:
            raise ValidationError(
                "Opening balance must be >= 0, use opening_balance_type "
                "for polarity")

    def save(self, *args, **kwargs):
        self.full_clean()
        if not self.pk:
            # new account starts at its opening balance
            self.current_balance = self.signed_opening
            return super().save(*args, **kwargs)

        old = LedgerAccount.objects.filter(pk=self.pk).first()
        if old is None:
            return super().save(*args, **kwargs)

        from .journal import JournalLine

        used = JournalLine.objects.filter(account_id=self.pk).exists()
        if used and old.nature != self.nature:
            raise ValidationError(
                "Cannot change the nature of an account used in journal lines.")
        if (old.opening_balance, old.opening_balance_type) != (
            self.opening_balance, self.opening_balance_type
        ):
            if used:
                raise ValidationError(
                    "Cannot change the opening balance of an account "
                    "used in journal lines.")
            self.current_balance = self.signed_opening
        else:
            # never let a stale in-memory copy overwrite the cached balance
            self.current_balance = old.current_balance
        return super().save(*args, **kwargs)


# ---------- Control accounts ----------
class ControlRole(models.TextChoices):
    RECEIVABLE = "RECEIVABLE", "Sundry Debtors"
    PAYABLE = "PAYABLE", "Sundry Creditors"
    SALES = "SALES", "Sales"
    PURCHASE = "PURCHASE", "Purchases"
    SALES_RETURN = "SALES_RETURN", "Sales Returns"
    PURCHASE_RETURN = "PURCHASE_RETURN", "Purchase Returns"
    OUTPUT_CGST = "OUTPUT_CGST", "Output CGST"
    OUTPUT_SGST = "OUTPUT_SGST", "Output SGST"
    OUTPUT_IGST = "OUTPUT_IGST", "Output IGST"
    INPUT_CGST = "INPUT_CGST", "Input CGST"
    INPUT_SGST = "INPUT_SGST", "Input SGST"
    INPUT_IGST = "INPUT_IGST", "Input IGST"
    INVENTORY = "INVENTORY", "Stock-in-Hand"
    COGS = "COGS", "Cost of Goods Sold"
    STOCK_ADJUSTMENT = "STOCK_ADJUSTMENT", "Stock Adjustment"
    CASH = "CASH", "Cash in Hand"


class ControlAccount(models.Model):
    """Maps a posting role to the company's ledger for that role."""

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    role = models.CharField(max_length=20, choices=ControlRole.choices)
    account = models.ForeignKey(
        LedgerAccount, on_delete=models.PROTECT, related_name="roles")

    objects = TenantManager()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["company", "role"], name="uq_company_control_role"
            )
        ]

    def __str__(self):
        return f"{self.role} -> {self.account_id}"

    def clean(self):
        if self.account_id and self.account.company_id != self.company_id:
            raise ValidationError(
                "Control account must belong to the same company")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
