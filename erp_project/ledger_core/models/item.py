from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from .account import LedgerAccount
from .company import Company


class ItemType(models.TextChoices):
    GOODS = "GOODS", "Goods"  # stocked, valued through cost layers
    SERVICES = "SERVICES", "Services"


class ValuationMethod(models.TextChoices):
    FIFO = "FIFO", "First in, first out"
    LIFO = "LIFO", "Last in, first out"
    WEIGHTED_AVG = "WEIGHTED_AVG", "Weighted average"


# ---------- Warehouses ----------
class Warehouse(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    code = models.CharField(max_length=20)
    name = models.CharField(max_length=120)
    is_active = models.BooleanField(default=True)

    objects = TenantManager()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["company", "code"], name="uq_company_warehouse_code")
        ]

    def __str__(self):
        return f"{self.code} {self.name}"


# ---------- Items (products / services) ----------
class Item(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    sku = models.CharField(max_length=80)
    name = models.CharField(max_length=200)
    item_type = models.CharField(
        max_length=10, choices=ItemType.choices, default=ItemType.GOODS)
    valuation_method = models.CharField(
        max_length=12,
        choices=ValuationMethod.choices,
        default=ValuationMethod.FIFO,
    )
    unit = models.CharField(max_length=16, default="pcs")
    hsn_code = models.CharField(max_length=8, blank=True)

    default_unit_price = models.DecimalField(
        max_digits=18, decimal_places=2, null=True, blank=True)
    default_tax_rate = models.DecimalField(
        max_digits=5, decimal_places=2, default=0)

    # Per-item ledgers; each one falls back to the company control
    # account for the matching role when left empty
    sales_account = models.ForeignKey(
        LedgerAccount,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="items_sales",
    )
    purchase_account = models.ForeignKey(
        LedgerAccount,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="items_purchase",
    )
    inventory_account = models.ForeignKey(
        LedgerAccount,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="items_inventory",
    )
    cogs_account = models.ForeignKey(
        LedgerAccount,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="items_cogs",
    )
    is_active = models.BooleanField(default=True)

    objects = TenantManager()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["company", "sku"], name="uq_company_item_sku")
        ]

    def __str__(self):
        return f"{self.sku} {self.name}"

    @property
    def is_stock_item(self):
        return self.item_type == ItemType.GOODS

    def clean(self):
        for field in ("sales_account", "purchase_account",
                      "inventory_account", "cogs_account"):
            account = getattr(self, field)
            if account and account.company_id != self.company_id:
                raise ValidationError(
                    f"Item.{field} must belong to the same company.")
        if self.default_tax_rate is not None and not (
                0 <= self.default_tax_rate <= 100):
            raise ValidationError("Tax rate must be between 0 and 100")

    def save(self, *args, **kwargs):
        if self.pk:
            old = Item.objects.filter(pk=self.pk).only(
                "valuation_method").first()
            if old and old.valuation_method != self.valuation_method:
                from .inventory import CostLayer

                # switching method with stock on hand would revalue history
                if CostLayer.objects.filter(
                        item_id=self.pk, remaining_quantity__gt=0).exists():
                    raise ValidationError(
                        "Cannot change valuation method while stock is on hand.")
        self.full_clean()
        return super().save(*args, **kwargs)
