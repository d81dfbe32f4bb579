import datetime
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.test import TestCase

from ..exceptions import InsufficientStockError
from ..models import (AuditLog, ControlRole, CostLayer, Direction, Item,
                      StockMovement, Warehouse)
from ..services.audit_helper import log_action
from ..services.stock import adjust_stock, transfer_stock
from ..services.valuation import consume, get_item_valuation, produce
from .helpers import LedgerFixtureMixin

D1 = datetime.date(2025, 9, 1)
D2 = datetime.date(2025, 9, 2)
D3 = datetime.date(2025, 9, 3)


class ValuationMethodTests(LedgerFixtureMixin, TestCase):
    """Layers 10 @ 5 and 10 @ 6, then an OUT of 15."""

    def receive_two_layers(self, method):
        self.item.valuation_method = method
        self.item.save()
        produce(self.item, self.warehouse, Decimal("10"), Decimal("5"), date=D1)
        produce(self.item, self.warehouse, Decimal("10"), Decimal("6"), date=D2)

    def open_layers(self):
        return list(CostLayer.objects.for_stock(self.item, self.warehouse).open())

    def test_fifo(self):
        self.receive_two_layers("FIFO")
        result = consume(self.item, self.warehouse, Decimal("15"), date=D3)
        self.assertEqual(result.total_cost, Decimal("80.00"))
        layers = self.open_layers()
        self.assertEqual(len(layers), 1)
        self.assertEqual(layers[0].remaining_quantity, Decimal("5"))
        self.assertEqual(layers[0].unit_cost, Decimal("6"))

    def test_lifo(self):
        self.receive_two_layers("LIFO")
        result = consume(self.item, self.warehouse, Decimal("15"), date=D3)
        self.assertEqual(result.total_cost, Decimal("85.00"))
        layers = self.open_layers()
        self.assertEqual(len(layers), 1)
        self.assertEqual(layers[0].remaining_quantity, Decimal("5"))
        self.assertEqual(layers[0].unit_cost, Decimal("5"))

    def test_weighted_average(self):
        self.receive_two_layers("WEIGHTED_AVG")
        result = consume(self.item, self.warehouse, Decimal("15"), date=D3)
        self.assertEqual(result.total_cost, Decimal("82.50"))
        layers = self.open_layers()
        self.assertEqual(len(layers), 1)
        self.assertEqual(layers[0].unit_cost, Decimal("5.5"))
        # the source layers were folded into the pool, not deleted
        self.assertEqual(layers[0].absorbed_layers.count(), 2)
        self.assertEqual(
            get_item_valuation(self.item, self.warehouse)["total_value"],
            Decimal("27.50"),
        )

    def test_fifo_orders_by_acquisition_date_not_insertion(self):
        produce(self.item, self.warehouse, Decimal("10"), Decimal("6"), date=D2)
        produce(self.item, self.warehouse, Decimal("10"), Decimal("5"), date=D1)
        result = consume(self.item, self.warehouse, Decimal("10"), date=D3)
        self.assertEqual(result.total_cost, Decimal("50.00"))

    def test_insufficient_stock_leaves_layers_alone(self):
        self.receive_two_layers("FIFO")
        before = list(CostLayer.objects.values_list("pk", "remaining_quantity"))

        with self.assertRaises(InsufficientStockError) as ctx:
            consume(self.item, self.warehouse, Decimal("50"), date=D3)

        self.assertEqual(ctx.exception.requested, Decimal("50"))
        self.assertEqual(ctx.exception.available, Decimal("20"))
        self.assertIn("requested 50", str(ctx.exception))
        self.assertEqual(
            list(CostLayer.objects.values_list("pk", "remaining_quantity")),
            before,
        )
        self.assertFalse(
            StockMovement.objects.filter(direction=Direction.OUT).exists())

    def test_non_positive_quantity_rejected(self):
        with self.assertRaises(ValidationError):
            produce(self.item, self.warehouse, Decimal("0"), Decimal("5"))
        with self.assertRaises(ValidationError):
            consume(self.item, self.warehouse, Decimal("-1"))

    def test_services_are_not_stocked(self):
        service = Item.objects.create(
            company=self.company, sku="SVC", name="Support",
            item_type="SERVICES")
        with self.assertRaises(ValidationError):
            produce(service, self.warehouse, Decimal("1"), Decimal("1"))

    def test_method_change_blocked_with_stock_on_hand(self):
        produce(self.item, self.warehouse, Decimal("1"), Decimal("1"), date=D1)
        self.item.valuation_method = "LIFO"
        with self.assertRaises(ValidationError):
            self.item.save()


class QuantityInvariantTests(LedgerFixtureMixin, TestCase):

    def assert_quantities_agree(self):
        on_hand = CostLayer.objects.for_stock(
            self.item, self.warehouse).aggregate(
                q=models.Sum("remaining_quantity"))["q"] or Decimal("0")
        moves = StockMovement.objects.filter(
            item=self.item, warehouse=self.warehouse)
        ins = moves.filter(direction=Direction.IN).aggregate(
            q=models.Sum("quantity"))["q"] or Decimal("0")
        outs = moves.filter(direction=Direction.OUT).aggregate(
            q=models.Sum("quantity"))["q"] or Decimal("0")
        self.assertEqual(on_hand, ins - outs)
        self.assertGreaterEqual(on_hand, 0)

    def test_in_minus_out_equals_remaining(self):
        for method in ("FIFO", "WEIGHTED_AVG"):
            self.item.valuation_method = method
            self.item.save()
            produce(self.item, self.warehouse, Decimal("7"), Decimal("3"), date=D1)
            self.assert_quantities_agree()
            produce(self.item, self.warehouse, Decimal("4.5"), Decimal("3.2"), date=D2)
            self.assert_quantities_agree()
            consume(self.item, self.warehouse, Decimal("11.5"), date=D3)
            self.assert_quantities_agree()

    def test_transfer_and_adjustment_keep_the_invariant(self):
        other = Warehouse.objects.create(
            company=self.company, code="WH2", name="Branch")
        produce(self.item, self.warehouse, Decimal("10"), Decimal("5"), date=D1)
        transfer_stock(self.item, self.warehouse, other, Decimal("4"), date=D2)
        adjust_stock(self.item, self.warehouse, Decimal("-1"), date=D3)
        self.assert_quantities_agree()
        self.assertEqual(
            get_item_valuation(self.item, other)["quantity"], Decimal("4"))


class LayerValueTests(LedgerFixtureMixin, TestCase):
    """Three units worth 10.00 together, taken out one at a time."""

    def take_three(self):
        return [
            consume(self.item, self.warehouse, Decimal("1"), date=D3).total_cost
            for _ in range(3)
        ]

    def test_last_unit_takes_what_is_left(self):
        produce(self.item, self.warehouse, Decimal("3"), Decimal("3.333333"),
                value=Decimal("10.00"), date=D1)
        costs = self.take_three()
        self.assertEqual(costs, [Decimal("3.33"), Decimal("3.34"), Decimal("3.33")])
        self.assertEqual(sum(costs), Decimal("10.00"))
        layer = CostLayer.objects.get(item=self.item)
        self.assertEqual(layer.remaining_value, Decimal("0.00"))

    def test_weighted_average_is_not_rounded_before_use(self):
        self.item.valuation_method = "WEIGHTED_AVG"
        self.item.save()
        produce(self.item, self.warehouse, Decimal("2"), Decimal("3.335"), date=D1)
        produce(self.item, self.warehouse, Decimal("1"), Decimal("3.33"), date=D2)
        self.assertEqual(
            get_item_valuation(self.item, self.warehouse)["total_value"],
            Decimal("10.00"))

        self.assertEqual(sum(self.take_three()), Decimal("10.00"))
        self.assertEqual(
            get_item_valuation(self.item, self.warehouse)["total_value"],
            Decimal("0.00"))

    def test_partial_take_keeps_the_rest_of_the_value(self):
        produce(self.item, self.warehouse, Decimal("3"), Decimal("3.333333"),
                value=Decimal("10.00"), date=D1)
        result = consume(self.item, self.warehouse, Decimal("2"), date=D2)
        self.assertEqual(result.total_cost, Decimal("6.67"))
        self.assertEqual(result.allocations[0].value, Decimal("6.67"))
        self.assertEqual(
            get_item_valuation(self.item, self.warehouse)["total_value"],
            Decimal("3.33"))


class TransferTests(LedgerFixtureMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.branch = Warehouse.objects.create(
            company=self.company, code="WH2", name="Branch")
        produce(self.item, self.warehouse, Decimal("10"), Decimal("5"), date=D1)
        produce(self.item, self.warehouse, Decimal("10"), Decimal("6"), date=D2)

    def test_transfer_carries_cost(self):
        out, inbound = transfer_stock(
            self.item, self.warehouse, self.branch, Decimal("15"), date=D3)
        self.assertEqual(out.total_cost, Decimal("80.00"))
        self.assertEqual(inbound.total_cost, Decimal("80.00"))
        out.refresh_from_db()
        self.assertEqual(out.counterpart_id, inbound.pk)

        branch = get_item_valuation(self.item, self.branch)
        self.assertEqual(branch["quantity"], Decimal("15"))
        self.assertEqual(branch["total_value"], Decimal("80.00"))
        main = get_item_valuation(self.item, self.warehouse)
        self.assertEqual(main["total_value"], Decimal("30.00"))

    def test_transfer_moves_exact_value(self):
        item = Item.objects.create(company=self.company, sku="WID-3", name="Odd")
        produce(item, self.warehouse, Decimal("3"), Decimal("3.333333"),
                value=Decimal("10.00"), date=D1)
        for _ in range(3):
            transfer_stock(item, self.warehouse, self.branch, Decimal("1"), date=D3)
        self.assertEqual(
            get_item_valuation(item, self.branch)["total_value"], Decimal("10.00"))
        self.assertEqual(
            get_item_valuation(item, self.warehouse)["total_value"], Decimal("0.00"))

    def test_transfer_posts_no_journal(self):
        before = self.all_balances()
        transfer_stock(self.item, self.warehouse, self.branch, Decimal("1"), date=D3)
        self.assertEqual(self.all_balances(), before)

    def test_same_warehouse_rejected(self):
        with self.assertRaises(ValidationError):
            transfer_stock(self.item, self.warehouse, self.warehouse, Decimal("1"))


class AdjustmentTests(LedgerFixtureMixin, TestCase):

    def test_found_stock_is_valued_at_average_cost(self):
        produce(self.item, self.warehouse, Decimal("10"), Decimal("5"), date=D1)
        produce(self.item, self.warehouse, Decimal("10"), Decimal("6"), date=D2)
        movement, entry = adjust_stock(
            self.item, self.warehouse, Decimal("2"), date=D3, reason="count")
        self.assertEqual(movement.total_cost, Decimal("11.00"))
        self.assertTrue(entry.is_balanced())
        self.assertEqual(self.balance(ControlRole.INVENTORY), Decimal("11.00"))
        self.assertEqual(
            self.balance(ControlRole.STOCK_ADJUSTMENT), Decimal("-11.00"))

    def test_lost_stock_is_written_off(self):
        produce(self.item, self.warehouse, Decimal("10"), Decimal("5"), date=D1)
        movement, entry = adjust_stock(
            self.item, self.warehouse, Decimal("-3"), date=D2)
        self.assertEqual(movement.direction, Direction.OUT)
        self.assertEqual(self.balance(ControlRole.INVENTORY), Decimal("-15.00"))
        self.assertEqual(
            self.balance(ControlRole.STOCK_ADJUSTMENT), Decimal("15.00"))

    def test_unit_cost_required_with_no_stock(self):
        with self.assertRaises(ValidationError):
            adjust_stock(self.item, self.warehouse, Decimal("1"))

    def test_adjustment_is_audited(self):
        movement, _ = adjust_stock(
            self.item, self.warehouse, Decimal("4"), unit_cost=Decimal("2.5"),
            date=D1, reason="opening count")
        log = AuditLog.objects.get(action="adjust")
        self.assertEqual(log.object_id, str(movement.pk))
        self.assertEqual(log.changes["reason"], "opening count")
        self.assertEqual(log.changes["value"], "10.00")

    def test_audit_changes_are_json_safe(self):
        log = log_action(
            action="note", instance=self.item,
            changes={"cost": Decimal("1.50"), "on": D1})
        log.refresh_from_db()
        self.assertEqual(log.changes, {"cost": "1.50", "on": "2025-09-01"})
