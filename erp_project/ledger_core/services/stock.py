"""
Stock side of documents, plus warehouse transfers and stock adjustments.
"""
import logging
from collections import OrderedDict

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from ..models import Direction, MovementType, StockMovement
from ..money import ZERO, money, multiply, to_decimal
from ..money import unit_cost as to_unit_cost
from .audit_helper import log_action
from .posting import (AccountResolver, adjustment_draft, cogs_draft,
                      post_once, purchase_return_cost_draft,
                      sales_return_cost_draft)
from .valuation import (average_unit_cost, consume, create_layer,
                        last_issue_unit_cost, lock_item, produce,
                        remove_produced_layers, restore_allocations)

logger = logging.getLogger(__name__)


def _goods_lines(totals):
    return [lt for lt in totals.lines
            if lt.line.item is not None and lt.line.item.is_stock_item]


def _require_warehouse(document):
    if document.warehouse_id is None:
        raise ValidationError(
            f"{document.doc_type} {document.number} has goods lines "
            f"but no warehouse")
    return document.warehouse


def _add_cost(item_costs, item, amount):
    prev = item_costs.get(item.pk, (item, ZERO))[1]
    item_costs[item.pk] = (item, prev + amount)


def _issue_goods(document, goods, warehouse):
    """Consume every goods line; [(item, cost)] one pair per item."""
    item_costs = OrderedDict()
    for lt in goods:
        result = consume(
            lt.line.item, warehouse, lt.line.quantity,
            date=document.date,
            document_type=document.doc_type,
            document_id=document.pk,
        )
        _add_cost(item_costs, lt.line.item, result.total_cost)
    return list(item_costs.values())


def issue_document_stock(document, totals, user=None):
    """Invoice approved: take goods out of stock and post COGS.
    Returns the COGS entry (None when there are no goods)."""
    goods = _goods_lines(totals)
    if not goods:
        return None
    warehouse = _require_warehouse(document)
    item_costs = _issue_goods(document, goods, warehouse)
    draft = cogs_draft(
        document, item_costs, AccountResolver(document.company), user=user)
    entry, _ = post_once(draft)
    return entry


def _return_cost(item, warehouse):
    cost = last_issue_unit_cost(item, warehouse)
    if cost is None:
        cost = average_unit_cost(item, warehouse)
    if cost is None:
        raise ValidationError(
            f"No cost to take {item.sku} back at: it was never sold from "
            f"{warehouse.code} and none is in stock")
    return cost


def return_sold_stock(document, totals, user=None):
    """Credit note approved: returned goods go back into stock at the
    cost they last left at, and that cost comes off COGS.
    Returns the stock entry (None when there are no goods)."""
    goods = _goods_lines(totals)
    if not goods:
        return None
    warehouse = _require_warehouse(document)

    item_costs = OrderedDict()
    for lt in goods:
        item = lt.line.item
        cost = _return_cost(item, warehouse)
        layer = produce(
            item, warehouse, lt.line.quantity, to_unit_cost(cost),
            value=multiply(lt.line.quantity, cost),
            date=document.date,
            document_type=document.doc_type,
            document_id=document.pk,
        )
        _add_cost(item_costs, item, layer.remaining_value)

    draft = sales_return_cost_draft(
        document, list(item_costs.values()),
        AccountResolver(document.company), user=user)
    entry, _ = post_once(draft)
    return entry


def return_purchased_stock(document, totals, user=None):
    """Debit note approved: goods go back to the vendor, taken out of
    stock per the item's method at their carried cost.
    Returns the stock entry (None when there are no goods)."""
    goods = _goods_lines(totals)
    if not goods:
        return None
    warehouse = _require_warehouse(document)
    item_costs = _issue_goods(document, goods, warehouse)
    draft = purchase_return_cost_draft(
        document, item_costs, AccountResolver(document.company), user=user)
    entry, _ = post_once(draft)
    return entry


def receive_document_stock(document, totals):
    """Bill approved: one layer per goods line at its taxable unit cost.
    The inventory ledger was debited with the same taxable amount by
    the bill template."""
    goods = _goods_lines(totals)
    if not goods:
        return []
    warehouse = _require_warehouse(document)
    layers = []
    for lt in goods:
        layers.append(produce(
            lt.line.item, warehouse, lt.line.quantity,
            to_unit_cost(lt.taxable / lt.line.quantity),
            value=lt.taxable,
            date=document.date,
            document_type=document.doc_type,
            document_id=document.pk,
        ))
    return layers


def undo_document_stock(document, date=None):
    """Cancellation: give back what an invoice or debit note took, take
    back what a bill or credit note received. Raises
    InsufficientStockError when received goods have already been sold."""
    movements = StockMovement.objects.filter(
        company=document.company,
        document_type=document.doc_type,
        document_id=document.pk,
        reverses__isnull=True,
    ).order_by("pk")
    undone = []
    for movement in movements:
        if movement.direction == Direction.OUT:
            undone.append(restore_allocations(movement, date=date))
        else:
            undone.append(remove_produced_layers(movement, date=date))
    return undone


# ---------- Transfers ----------
def transfer_stock(item, source, destination, quantity, *, date=None, user=None):
    """Move stock between warehouses of the same company at its carried
    cost. No journal: both sides sit on the same stock ledger."""
    if source.pk == destination.pk:
        raise ValidationError("Source and destination warehouse are the same")
    if source.company_id != destination.company_id:
        raise ValidationError("Warehouses belong to different companies")
    date = date or timezone.localdate()

    with transaction.atomic():
        out = consume(
            item, source, quantity, date=date,
            movement_type=MovementType.TRANSFER,
            document_type="TRANSFER",
        )
        locked_item = lock_item(item)
        inbound = StockMovement.objects.create(
            company_id=locked_item.company_id,
            item=locked_item,
            warehouse=destination,
            movement_type=MovementType.TRANSFER,
            direction=Direction.IN,
            quantity=out.movement.quantity,
            date=date,
            document_type="TRANSFER",
            document_id=out.movement.pk,
            valuation_method=out.movement.valuation_method,
            total_cost=out.total_cost,
        )
        for alloc in out.allocations:
            create_layer(
                locked_item, destination, alloc.quantity_taken,
                alloc.unit_cost, alloc.layer.acquisition_date, inbound,
                value=alloc.value,
            )
        StockMovement.objects.filter(pk=out.movement.pk).update(
            counterpart=inbound)
        log_action(
            action="transfer", instance=inbound, user=user,
            changes={"from": source.code, "to": destination.code,
                     "quantity": str(out.movement.quantity)},
        )

    logger.info(
        "Transferred %s %s from %s to %s",
        out.movement.quantity, locked_item.sku, source.code, destination.code,
    )
    return out.movement, inbound


# ---------- Adjustments ----------
def adjust_stock(item, warehouse, quantity_change, *, unit_cost=None,
                 date=None, reason="", user=None):
    """
    Physical count correction.
    Positive change: new layer at `unit_cost` (default: current average
    cost). Negative change: consumed per the item's method.
    Either way the stock ledger is matched against Stock Adjustment.
    """
    quantity_change = to_decimal(quantity_change)
    if quantity_change == 0:
        raise ValidationError("Adjustment quantity cannot be zero")
    date = date or timezone.localdate()

    with transaction.atomic():
        if quantity_change > 0:
            cost = unit_cost
            if cost is None:
                cost = average_unit_cost(item, warehouse)
            if cost is None:
                raise ValidationError(
                    f"Unit cost required to add {item.sku}: no stock to average")
            layer = produce(
                item, warehouse, quantity_change, cost, date=date,
                movement_type=MovementType.ADJUSTMENT,
                document_type="ADJUSTMENT",
            )
            movement = layer.source_movement
            amount = movement.total_cost
        else:
            result = consume(
                item, warehouse, -quantity_change, date=date,
                movement_type=MovementType.ADJUSTMENT,
                document_type="ADJUSTMENT",
            )
            movement = result.movement
            amount = result.total_cost

        entry = None
        if money(amount) > 0:
            entry, _ = post_once(adjustment_draft(
                movement, amount, AccountResolver(movement.company), user))
        log_action(
            action="adjust", instance=movement, user=user,
            changes={"quantity": str(quantity_change), "reason": reason,
                     "value": str(amount)},
        )
    return movement, entry
