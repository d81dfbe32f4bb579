"""
Inventory valuation engine.

produce() adds a cost layer, consume() takes stock out of the open layers
of one item in one warehouse using the item's valuation method:

- FIFO: oldest layer first (acquisition date, then insertion order)
- LIFO: newest layer first
- WEIGHTED_AVG: open layers are folded into a single pool layer at the
  average cost, the pool is then consumed

Every layer carries its remaining book value in money scale. A stock-out
charges its share of that value and the last unit out of a layer takes
whatever is left, so the layers always add up to the stock ledger.

Both run under a row lock on the Item and on the layers they touch, so two
concurrent stock-outs can never both see the same available quantity.
Callers post the matching COGS / inventory journal in the same transaction.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.utils import timezone

from ..exceptions import InsufficientStockError
from ..models import (CostLayer, Direction, Item, LayerAllocation,
                      MovementType, StockMovement, ValuationMethod, Warehouse)
from ..money import ZERO, money, multiply
from ..money import quantity as to_quantity
from ..money import unit_cost as to_unit_cost

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConsumeResult:
    movement: StockMovement
    allocations: list
    total_cost: Decimal


def _positive_quantity(value):
    qty = to_quantity(value)
    if qty <= 0:
        raise ValidationError(f"Quantity must be > 0, got {value}")
    return qty


def lock_item(item):
    pk = item.pk if isinstance(item, Item) else item
    return Item.objects.select_for_update().get(pk=pk)


def _next_sequence(item, warehouse):
    top = CostLayer.objects.filter(item=item, warehouse=warehouse).aggregate(
        top=models.Max("sequence"))["top"]
    return (top or 0) + 1


def _method_for(item, method=None):
    return (method or item.valuation_method
            or settings.LEDGER_DEFAULT_VALUATION_METHOD)


def _check_stock_item(item, warehouse):
    if not item.is_stock_item:
        raise ValidationError(f"{item} is not a stocked item")
    if warehouse.company_id != item.company_id:
        raise ValidationError("Warehouse must belong to the item's company")


def create_layer(item, warehouse, qty, cost, acquisition_date, movement=None,
                 value=None):
    """Append a layer. Caller holds the item lock.
    `value` defaults to qty x cost rounded to money."""
    if value is None:
        value = multiply(qty, cost)
    return CostLayer.objects.create(
        company_id=item.company_id,
        item=item,
        warehouse=warehouse,
        acquisition_date=acquisition_date,
        sequence=_next_sequence(item, warehouse),
        original_quantity=qty,
        remaining_quantity=qty,
        unit_cost=cost,
        remaining_value=money(value),
        source_movement=movement,
    )


def produce(item, warehouse, quantity, unit_cost, *, value=None, date=None,
            movement_type=MovementType.IN, document_type="", document_id=None):
    """Stock in: one IN movement and one new layer at `unit_cost`.

    Pass `value` when the stock ledger is debited with an exact amount
    (a bill line's taxable value); the layer then holds that amount
    instead of quantity x rounded unit cost.
    """
    qty = _positive_quantity(quantity)
    cost = to_unit_cost(unit_cost)
    if cost < 0:
        raise ValidationError(f"Unit cost cannot be negative: {unit_cost}")
    value = money(multiply(qty, cost) if value is None else value)
    if value < 0:
        raise ValidationError(f"Stock value cannot be negative: {value}")
    date = date or timezone.localdate()

    with transaction.atomic():
        item = lock_item(item)
        _check_stock_item(item, warehouse)
        movement = StockMovement.objects.create(
            company_id=item.company_id,
            item=item,
            warehouse=warehouse,
            movement_type=movement_type,
            direction=Direction.IN,
            quantity=qty,
            date=date,
            document_type=document_type,
            document_id=document_id,
            valuation_method=item.valuation_method,
            total_cost=value,
        )
        layer = create_layer(item, warehouse, qty, cost, date, movement, value)

    logger.info("Stock in %s %s@%s at %s", qty, item.sku, warehouse.code, cost)
    return layer


def _pool(item, warehouse, layers):
    """Fold open layers into one layer at their weighted average cost.
    The pool takes over their exact book value; its unit cost is
    informational."""
    if len(layers) == 1:
        return layers[0]
    total_qty = sum((layer.remaining_quantity for layer in layers), ZERO)
    total_value = sum((layer.remaining_value for layer in layers), ZERO)
    pool = create_layer(
        item,
        warehouse,
        total_qty,
        to_unit_cost(total_value / total_qty),
        min(layer.acquisition_date for layer in layers),
        value=total_value,
    )
    for layer in layers:
        layer.remaining_quantity = ZERO
        layer.remaining_value = ZERO
        layer.merged_into = pool
        layer.save(update_fields=[
            "remaining_quantity", "remaining_value", "merged_into"])
    return pool


def _charge(layer, take):
    """Book value leaving `layer` when `take` units are taken from it."""
    if take == layer.remaining_quantity:
        return layer.remaining_value
    return money(multiply(take, layer.remaining_value) / layer.remaining_quantity)


def consume(item, warehouse, quantity, method=None, *, date=None,
            movement_type=MovementType.OUT, document_type="", document_id=None):
    """Stock out. Returns the OUT movement, its layer allocations and
    their total cost. Raises InsufficientStockError without touching
    any layer when the open layers hold less than `quantity`."""
    qty = _positive_quantity(quantity)
    date = date or timezone.localdate()

    with transaction.atomic():
        item = lock_item(item)
        _check_stock_item(item, warehouse)
        method = _method_for(item, method)

        open_layers = CostLayer.objects.select_for_update().for_stock(
            item, warehouse).open()
        if method == ValuationMethod.LIFO:
            layers = list(open_layers.lifo())
        else:
            layers = list(open_layers.fifo())

        available = sum((layer.remaining_quantity for layer in layers), ZERO)
        if available < qty:
            logger.warning(
                "Insufficient stock for %s@%s: requested %s, available %s",
                item.sku, warehouse.code, qty, available,
            )
            raise InsufficientStockError(qty, available, item, warehouse)

        if method == ValuationMethod.WEIGHTED_AVG:
            layers = [_pool(item, warehouse, layers)]

        movement = StockMovement.objects.create(
            company_id=item.company_id,
            item=item,
            warehouse=warehouse,
            movement_type=movement_type,
            direction=Direction.OUT,
            quantity=qty,
            date=date,
            document_type=document_type,
            document_id=document_id,
            valuation_method=method,
        )

        allocations = []
        outstanding = qty
        for layer in layers:
            if outstanding == 0:
                break
            take = min(layer.remaining_quantity, outstanding)
            charge = _charge(layer, take)
            layer.remaining_quantity -= take
            layer.remaining_value -= charge
            layer.save(update_fields=["remaining_quantity", "remaining_value"])
            allocations.append(LayerAllocation(
                movement=movement,
                layer=layer,
                quantity_taken=take,
                unit_cost=layer.unit_cost,
                value=charge,
            ))
            outstanding -= take
        LayerAllocation.objects.bulk_create(allocations)

        total_cost = money(sum((a.value for a in allocations), ZERO))
        movement.total_cost = total_cost
        movement.save(update_fields=["total_cost"])

    logger.info(
        "Stock out %s %s@%s (%s) cost %s",
        qty, item.sku, warehouse.code, method, total_cost,
    )
    return ConsumeResult(movement, allocations, total_cost)


def restore_allocations(movement, *, date=None):
    """Undo an OUT movement: put every allocation back as a new layer
    holding the value it was taken at. Returns the reversing IN movement."""
    with transaction.atomic():
        item = lock_item(movement.item_id)
        existing = movement.reversals.first()
        if existing is not None:
            return existing
        reversal = StockMovement.objects.create(
            company_id=movement.company_id,
            item=item,
            warehouse=movement.warehouse,
            movement_type=movement.movement_type,
            direction=Direction.IN,
            quantity=movement.quantity,
            date=date or timezone.localdate(),
            document_type=movement.document_type,
            document_id=movement.document_id,
            valuation_method=movement.valuation_method,
            total_cost=movement.total_cost,
            reverses=movement,
        )
        for alloc in movement.allocations.select_related("layer").order_by("pk"):
            create_layer(
                item, movement.warehouse, alloc.quantity_taken,
                alloc.unit_cost, alloc.layer.acquisition_date, reversal,
                value=alloc.value,
            )
    logger.info("Restored stock of movement %s", movement.pk)
    return reversal


def remove_produced_layers(movement, *, date=None):
    """Undo an IN movement. Only possible while its layers are untouched;
    stock that has already been sold cannot be un-received."""
    with transaction.atomic():
        item = lock_item(movement.item_id)
        existing = movement.reversals.first()
        if existing is not None:
            return existing
        layers = list(
            CostLayer.objects.select_for_update()
            .filter(source_movement=movement).order_by("sequence")
        )
        for layer in layers:
            if (layer.merged_into_id is not None
                    or layer.remaining_quantity != layer.original_quantity):
                raise InsufficientStockError(
                    layer.original_quantity, layer.remaining_quantity,
                    item, movement.warehouse)

        reversal = StockMovement.objects.create(
            company_id=movement.company_id,
            item=item,
            warehouse=movement.warehouse,
            movement_type=movement.movement_type,
            direction=Direction.OUT,
            quantity=movement.quantity,
            date=date or timezone.localdate(),
            document_type=movement.document_type,
            document_id=movement.document_id,
            valuation_method=movement.valuation_method,
            total_cost=movement.total_cost,
            reverses=movement,
        )
        allocations = []
        for layer in layers:
            allocations.append(LayerAllocation(
                movement=reversal,
                layer=layer,
                quantity_taken=layer.remaining_quantity,
                unit_cost=layer.unit_cost,
                value=layer.remaining_value,
            ))
            layer.remaining_quantity = ZERO
            layer.remaining_value = ZERO
            layer.save(update_fields=["remaining_quantity", "remaining_value"])
        LayerAllocation.objects.bulk_create(allocations)
    logger.info("Removed stock of movement %s", movement.pk)
    return reversal


def get_item_valuation(item, warehouse):
    """On-hand quantity and value of one item in one warehouse."""
    if not isinstance(item, Item):
        item = Item.objects.get(pk=item)
    if not isinstance(warehouse, Warehouse):
        warehouse = Warehouse.objects.get(pk=warehouse)
    totals = CostLayer.objects.for_stock(item, warehouse).open().aggregate(
        qty=models.Sum("remaining_quantity"),
        value=models.Sum("remaining_value"),
    )
    return {
        "quantity": to_quantity(totals["qty"] or ZERO),
        "total_value": money(totals["value"] or ZERO),
        "method": _method_for(item),
    }


def average_unit_cost(item, warehouse):
    valuation = get_item_valuation(item, warehouse)
    if valuation["quantity"] == 0:
        return None
    return to_unit_cost(valuation["total_value"] / valuation["quantity"])


def last_issue_unit_cost(item, warehouse):
    """Unit cost of the latest stock-out of `item` from `warehouse`,
    unrounded. Sales returns come back in at this cost."""
    last = (StockMovement.objects
            .filter(item=item, warehouse=warehouse,
                    movement_type=MovementType.OUT, direction=Direction.OUT,
                    reverses__isnull=True)
            .order_by("-date", "-pk").first())
    if last is None:
        return None
    return last.total_cost / last.quantity
