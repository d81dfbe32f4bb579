from django.core.exceptions import ValidationError
from django.db import models

from ..managers import CostLayerManager, TenantManager
from .company import Company
from .item import Item, ValuationMethod, Warehouse


class MovementType(models.TextChoices):
    IN = "IN", "Stock in"
    OUT = "OUT", "Stock out"
    TRANSFER = "TRANSFER", "Transfer"
    ADJUSTMENT = "ADJUSTMENT", "Adjustment"


class Direction(models.TextChoices):
    IN = "IN", "In"
    OUT = "OUT", "Out"


# ---------- Stock movements ----------
class StockMovement(models.Model):
    """
    Every change in stock of one item in one warehouse.
    IN legs own the layers they created (CostLayer.source_movement),
    OUT legs own their LayerAllocation rows.
    """

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    item = models.ForeignKey(
        Item, on_delete=models.PROTECT, related_name="movements")
    warehouse = models.ForeignKey(
        Warehouse, on_delete=models.PROTECT, related_name="movements")
    movement_type = models.CharField(
        max_length=10, choices=MovementType.choices)
    # TRANSFER and ADJUSTMENT can go either way, IN/OUT always match
    direction = models.CharField(max_length=3, choices=Direction.choices)
    quantity = models.DecimalField(max_digits=14, decimal_places=4)
    date = models.DateField()

    # What caused it (document, adjustment, transfer)
    document_type = models.CharField(max_length=20, blank=True)
    document_id = models.PositiveBigIntegerField(null=True, blank=True)

    valuation_method = models.CharField(
        max_length=12, choices=ValuationMethod.choices, blank=True)
    total_cost = models.DecimalField(max_digits=18, decimal_places=2, default=0)

    # Transfer legs point at each other, cancellations at what they undo
    counterpart = models.OneToOneField(
        "self",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="counterpart_of",
    )
    reverses = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="reversals",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(
                fields=["company", "item", "warehouse"], name="sm_company_item_wh_idx"),
            models.Index(
                fields=["document_type", "document_id"], name="sm_document_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gt=0),
                name="sm_quantity_positive",
            ),
        ]

    def __str__(self):
        return (f"{self.movement_type}/{self.direction} {self.item_id}@"
                f"{self.warehouse_id} qty={self.quantity}")

    def clean(self):
        if self.quantity is not None and self.quantity <= 0:
            raise ValidationError("Movement quantity must be > 0")
        if self.movement_type == MovementType.IN and self.direction != Direction.IN:
            raise ValidationError("IN movements must have direction IN")
        if self.movement_type == MovementType.OUT and self.direction != Direction.OUT:
            raise ValidationError("OUT movements must have direction OUT")


# ---------- Cost layers ----------
class CostLayer(models.Model):
    """
    A quantity received at one unit cost.
    remaining_quantity only ever goes down through consumption
    (services.valuation). Exhausted layers are kept for audit.
    """

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    item = models.ForeignKey(
        Item, on_delete=models.PROTECT, related_name="cost_layers")
    warehouse = models.ForeignKey(
        Warehouse, on_delete=models.PROTECT, related_name="cost_layers")
    acquisition_date = models.DateField()
    # insertion order inside one item+warehouse, FIFO/LIFO tie-breaker
    sequence = models.PositiveIntegerField()

    original_quantity = models.DecimalField(max_digits=14, decimal_places=4)
    remaining_quantity = models.DecimalField(max_digits=14, decimal_places=4)
    unit_cost = models.DecimalField(max_digits=18, decimal_places=6)
    # book value left in the layer; the last unit out takes all of it
    remaining_value = models.DecimalField(
        max_digits=18, decimal_places=2, default=0)

    source_movement = models.ForeignKey(
        StockMovement,
        null=True,  # null for weighted-average pool layers
        blank=True,
        on_delete=models.PROTECT,
        related_name="resulting_layers",
    )
    # Weighted average: open layers are folded into one pool layer
    merged_into = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="absorbed_layers",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    objects = CostLayerManager()

    class Meta:
        ordering = ("acquisition_date", "sequence")
        indexes = [
            models.Index(
                fields=["item", "warehouse", "remaining_quantity"],
                name="cl_item_wh_remaining_idx",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["item", "warehouse", "sequence"],
                name="uq_cost_layer_sequence",
            ),
            models.CheckConstraint(
                condition=models.Q(remaining_quantity__gte=0),
                name="cl_remaining_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(
                    remaining_quantity__lte=models.F("original_quantity")),
                name="cl_remaining_le_original",
            ),
            models.CheckConstraint(
                condition=models.Q(unit_cost__gte=0),
                name="cl_unit_cost_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(remaining_value__gte=0),
                name="cl_remaining_value_non_negative",
            ),
        ]

    def __str__(self):
        return (f"Layer {self.item_id}@{self.warehouse_id} #{self.sequence} "
                f"{self.remaining_quantity}/{self.original_quantity} "
                f"@ {self.unit_cost}")

    @property
    def is_exhausted(self):
        return self.remaining_quantity == 0

    def delete(self, *args, **kwargs):
        raise ValidationError("Cost layers are kept for audit.")


class LayerAllocation(models.Model):
    """Quantity an OUT movement took from one layer and the value it carried."""

    movement = models.ForeignKey(
        StockMovement, on_delete=models.PROTECT, related_name="allocations")
    layer = models.ForeignKey(
        CostLayer, on_delete=models.PROTECT, related_name="allocations")
    quantity_taken = models.DecimalField(max_digits=14, decimal_places=4)
    unit_cost = models.DecimalField(max_digits=18, decimal_places=6)
    value = models.DecimalField(max_digits=18, decimal_places=2, default=0)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity_taken__gt=0),
                name="la_quantity_positive",
            ),
        ]

    def __str__(self):
        return f"{self.quantity_taken} from layer {self.layer_id} @ {self.unit_cost}"
