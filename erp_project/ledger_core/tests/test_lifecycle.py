import datetime
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase

from ..exceptions import (ConcurrencyConflictError, InsufficientStockError,
                          InvalidTransitionError)
from ..models import (AuditLog, ControlRole, CostLayer, Document,
                      DocumentLine, EntryKind, JournalEntry, Transition)
from ..models.document import EXPIRED, OVERDUE, TRANSITIONS, PostingAction
from ..services import (convert_quotation, get_item_valuation,
                        post_document_transition, run_with_conflict_retry)
from ..services.posting import post_document
from ..services.valuation import consume, produce
from .helpers import TODAY, LedgerFixtureMixin

D1 = datetime.date(2025, 9, 1)
D2 = datetime.date(2025, 9, 2)


class TransitionTableTests(TestCase):

    def test_every_edge_builds(self):
        for doc_type, table in TRANSITIONS.items():
            for source, targets in table.items():
                for target in targets:
                    Transition(doc_type, source, target)

    def test_edges_outside_the_table_are_rejected(self):
        with self.assertRaises(InvalidTransitionError):
            Transition("INVOICE", "DRAFT", "PAID")
        with self.assertRaises(InvalidTransitionError):
            Transition("INVOICE", "CANCELLED", "DRAFT")
        with self.assertRaises(InvalidTransitionError):
            Transition("SALES_ORDER", "DRAFT", "APPROVED")
        with self.assertRaises(InvalidTransitionError):
            Transition("RECEIPT", "DRAFT", "APPROVED")

    def test_invalid_transition_is_a_validation_error(self):
        with self.assertRaises(ValidationError):
            Transition("QUOTATION", "REJECTED", "ACCEPTED")

    def test_posting_actions(self):
        self.assertEqual(
            Transition("INVOICE", "PENDING", "APPROVED").action, PostingAction.POST)
        self.assertEqual(
            Transition("BILL", "PARTIAL", "CANCELLED").action, PostingAction.REVERSE)
        self.assertEqual(
            Transition("INVOICE", "DRAFT", "CANCELLED").action, PostingAction.NONE)
        self.assertEqual(
            Transition("SALES_ORDER", "DRAFT", "CONFIRMED").action,
            PostingAction.NONE)
        self.assertEqual(
            Transition("VOUCHER", "PENDING", "REJECTED").action,
            PostingAction.NONE)
        self.assertEqual(
            Transition("VOUCHER", "APPROVED", "CANCELLED").action,
            PostingAction.REVERSE)


class InvoiceLifecycleTests(LedgerFixtureMixin, TestCase):
    """15 widgets at 10.00 + 18% GST to a same-state customer,
    stock 10 @ 5 and 10 @ 6 (FIFO)."""

    def setUp(self):
        super().setUp()
        produce(self.item, self.warehouse, Decimal("10"), Decimal("5"), date=D1)
        produce(self.item, self.warehouse, Decimal("10"), Decimal("6"), date=D2)
        self.invoice = self.make_document("INVOICE", self.customer, [
            (self.item, "15", "10.00", "18"),
        ])

    def approve(self, **kwargs):
        return post_document_transition(
            self.invoice.pk, "DRAFT", "APPROVED", today=TODAY, **kwargs)

    def test_number_and_totals(self):
        self.assertEqual(self.invoice.number, "INV/2025-26/00001")
        self.assertEqual(self.invoice.total_amount, Decimal("177.00"))

    def test_approve_posts_sale_tax_and_cogs(self):
        receipt = self.approve()

        self.assertEqual(receipt.to_status, "APPROVED")
        self.assertEqual(receipt.version, 2)
        self.assertFalse(receipt.replayed)
        self.assertEqual(len(receipt.journal_entry_ids), 2)
        self.assertEqual(len(receipt.movement_ids), 1)

        self.assertEqual(self.balance(ControlRole.RECEIVABLE), Decimal("177.00"))
        self.assertEqual(self.balance(ControlRole.SALES), Decimal("150.00"))
        self.assertEqual(self.balance(ControlRole.OUTPUT_CGST), Decimal("13.50"))
        self.assertEqual(self.balance(ControlRole.OUTPUT_SGST), Decimal("13.50"))
        self.assertEqual(self.balance(ControlRole.OUTPUT_IGST), Decimal("0.00"))
        self.assertEqual(self.balance(ControlRole.COGS), Decimal("80.00"))
        self.assertEqual(self.balance(ControlRole.INVENTORY), Decimal("-80.00"))

        for entry in JournalEntry.objects.all():
            self.assertTrue(entry.is_balanced())
        self.assertEqual(
            get_item_valuation(self.item.pk, self.warehouse.pk)["total_value"],
            Decimal("30.00"))
        self.assertTrue(AuditLog.objects.filter(
            action="transition", object_id=str(self.invoice.pk)).exists())

    def test_inter_state_invoice_posts_igst(self):
        far = self.make_document("INVOICE", self.far_customer, [
            (self.item, "1", "1000.00", "18"),
        ])
        post_document_transition(far.pk, "DRAFT", "APPROVED", today=TODAY)
        self.assertEqual(self.balance(ControlRole.OUTPUT_IGST), Decimal("180.00"))
        self.assertEqual(self.balance(ControlRole.OUTPUT_CGST), Decimal("0.00"))

    def test_retry_posts_once(self):
        self.approve()
        balances = self.all_balances()

        replay = self.approve()

        self.assertTrue(replay.replayed)
        self.assertEqual(JournalEntry.objects.filter(
            document_type="INVOICE", document_id=self.invoice.pk,
            kind=EntryKind.POSTING).count(), 1)
        self.assertEqual(self.all_balances(), balances)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.version, 2)

    def test_template_posting_is_idempotent(self):
        self.approve()
        self.invoice.refresh_from_db()
        entry, created = post_document(
            self.invoice, self.invoice.recalc_totals())
        self.assertFalse(created)
        self.assertEqual(JournalEntry.objects.count(), 2)

    def test_stale_status_is_a_conflict(self):
        self.approve()
        with self.assertRaises(ConcurrencyConflictError):
            post_document_transition(
                self.invoice.pk, "PENDING", "CANCELLED", today=TODAY)

    def test_stale_version_is_a_conflict(self):
        with self.assertRaises(ConcurrencyConflictError):
            self.approve(expected_version=7)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, "DRAFT")

    def test_invalid_edge_changes_nothing(self):
        with self.assertRaises(InvalidTransitionError):
            post_document_transition(
                self.invoice.pk, "DRAFT", "PAID", today=TODAY)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, "DRAFT")
        self.assertEqual(JournalEntry.objects.count(), 0)

    def test_insufficient_stock_rolls_everything_back(self):
        big = self.make_document("INVOICE", self.customer, [
            (self.item, "50", "10.00", "18"),
        ])
        layers = list(CostLayer.objects.values_list("pk", "remaining_quantity"))
        balances = self.all_balances()

        with self.assertRaises(InsufficientStockError):
            post_document_transition(big.pk, "DRAFT", "APPROVED", today=TODAY)

        big.refresh_from_db()
        self.assertEqual(big.status, "DRAFT")
        self.assertEqual(big.version, 1)
        self.assertEqual(
            list(CostLayer.objects.values_list("pk", "remaining_quantity")),
            layers)
        self.assertEqual(self.all_balances(), balances)
        self.assertEqual(JournalEntry.objects.count(), 0)

    def test_cancel_mirrors_and_restores(self):
        balances = self.all_balances()
        self.approve()

        receipt = post_document_transition(
            self.invoice.pk, "APPROVED", "CANCELLED", today=TODAY)

        self.assertEqual(len(receipt.journal_entry_ids), 2)
        for original in JournalEntry.objects.filter(reverses__isnull=True):
            reversal = original.reversed_by
            self.assertEqual(reversal.kind, EntryKind.REVERSAL)
            mirrored = [
                (ln.account_id, "CREDIT" if ln.side == "DEBIT" else "DEBIT",
                 ln.amount)
                for ln in original.lines.order_by("line_no")
            ]
            self.assertEqual(
                [(ln.account_id, ln.side, ln.amount)
                 for ln in reversal.lines.order_by("line_no")],
                mirrored,
            )
        self.assertEqual(self.all_balances(), balances)

        valuation = get_item_valuation(self.item.pk, self.warehouse.pk)
        self.assertEqual(valuation["quantity"], Decimal("20"))
        self.assertEqual(valuation["total_value"], Decimal("110.00"))

    def test_posted_tax_split_survives_a_party_move(self):
        local = self.make_document("INVOICE", self.customer, [
            (self.item, "1", "1000.00", "18"),
        ])
        post_document_transition(local.pk, "DRAFT", "APPROVED", today=TODAY)
        # the customer relocates to another state after the sale
        self.customer.state_code = "29"
        self.customer.save()

        post_document_transition(local.pk, "APPROVED", "CANCELLED", today=TODAY)

        line = local.lines.get()
        self.assertEqual(
            (line.cgst_amount, line.sgst_amount, line.igst_amount),
            (Decimal("90.00"), Decimal("90.00"), Decimal("0.00")))
        local.refresh_from_db()
        self.assertEqual(local.tax_amount, Decimal("180.00"))
        self.assertEqual(local.total_amount, Decimal("1180.00"))
        self.assertEqual(self.balance(ControlRole.OUTPUT_CGST), Decimal("0.00"))
        self.assertEqual(self.balance(ControlRole.OUTPUT_IGST), Decimal("0.00"))
        self.assertEqual(self.balance(ControlRole.RECEIVABLE), Decimal("0.00"))

    def test_lines_are_frozen_after_draft(self):
        self.approve()
        self.invoice.refresh_from_db()
        with self.assertRaises(ValidationError):
            DocumentLine.objects.create(
                document=self.invoice, item=self.item,
                quantity=Decimal("1"), unit_price=Decimal("1"))
        self.invoice.party = self.far_customer
        with self.assertRaises(ValidationError):
            self.invoice.save()

    def test_approval_needs_lines(self):
        empty = self.make_document("INVOICE", self.customer)
        with self.assertRaises(ValidationError):
            post_document_transition(empty.pk, "DRAFT", "APPROVED", today=TODAY)

    def test_paid_needs_zero_balance(self):
        self.approve()
        with self.assertRaises(ValidationError):
            post_document_transition(
                self.invoice.pk, "APPROVED", "PAID", today=TODAY)

    def test_overdue_is_derived(self):
        self.invoice.due_date = TODAY
        self.invoice.save()
        self.approve()
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, "APPROVED")
        self.assertEqual(
            self.invoice.effective_status(TODAY + datetime.timedelta(days=1)),
            OVERDUE)


class BillLifecycleTests(LedgerFixtureMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.bill = self.make_document("BILL", self.vendor, [
            (self.item, "10", "5.00", "18"),
        ])

    def test_approve_receives_stock(self):
        post_document_transition(self.bill.pk, "DRAFT", "APPROVED", today=TODAY)

        self.assertEqual(self.balance(ControlRole.INVENTORY), Decimal("50.00"))
        self.assertEqual(self.balance(ControlRole.INPUT_CGST), Decimal("4.50"))
        self.assertEqual(self.balance(ControlRole.INPUT_SGST), Decimal("4.50"))
        self.assertEqual(self.balance(ControlRole.PAYABLE), Decimal("59.00"))

        layer = CostLayer.objects.get(item=self.item)
        self.assertEqual(layer.remaining_quantity, Decimal("10"))
        self.assertEqual(layer.unit_cost, Decimal("5"))

    def test_cancel_before_sale_takes_stock_back(self):
        post_document_transition(self.bill.pk, "DRAFT", "APPROVED", today=TODAY)
        post_document_transition(self.bill.pk, "APPROVED", "CANCELLED", today=TODAY)

        self.assertEqual(self.balance(ControlRole.INVENTORY), Decimal("0.00"))
        self.assertEqual(self.balance(ControlRole.PAYABLE), Decimal("0.00"))
        self.assertEqual(
            get_item_valuation(self.item, self.warehouse)["quantity"], 0)

    def test_stock_ledger_empties_with_the_layers(self):
        # 3 x 3.35 less 0.5% is 10.00, not a whole number of cents per unit
        bill = self.make_document("BILL", self.vendor, [
            (self.item, "3", "3.35", "0"),
        ])
        line = bill.lines.get()
        line.discount_percent = Decimal("0.5")
        line.save()
        post_document_transition(bill.pk, "DRAFT", "APPROVED", today=TODAY)
        self.assertEqual(self.balance(ControlRole.INVENTORY), Decimal("10.00"))

        for _ in range(3):
            sale = self.make_document("INVOICE", self.customer, [
                (self.item, "1", "5.00", "0"),
            ])
            post_document_transition(sale.pk, "DRAFT", "APPROVED", today=TODAY)

        self.assertEqual(self.balance(ControlRole.INVENTORY), Decimal("0.00"))
        self.assertEqual(self.balance(ControlRole.COGS), Decimal("10.00"))
        valuation = get_item_valuation(self.item, self.warehouse)
        self.assertEqual(valuation["quantity"], 0)
        self.assertEqual(valuation["total_value"], Decimal("0.00"))

    def test_cancel_after_sale_is_refused(self):
        post_document_transition(self.bill.pk, "DRAFT", "APPROVED", today=TODAY)
        consume(self.item, self.warehouse, Decimal("3"))

        with self.assertRaises(InsufficientStockError):
            post_document_transition(
                self.bill.pk, "APPROVED", "CANCELLED", today=TODAY)
        self.bill.refresh_from_db()
        self.assertEqual(self.bill.status, "APPROVED")
        self.assertEqual(self.balance(ControlRole.PAYABLE), Decimal("59.00"))


class NoteAndOrderTests(LedgerFixtureMixin, TestCase):

    def sell_four(self):
        produce(self.item, self.warehouse, Decimal("10"), Decimal("5"), date=D1)
        sale = self.make_document("INVOICE", self.customer, [
            (self.item, "4", "10.00", "18"),
        ])
        post_document_transition(sale.pk, "DRAFT", "APPROVED", today=TODAY)

    def test_credit_note_reverses_a_sale(self):
        self.sell_four()
        note = self.make_document("CREDIT_NOTE", self.customer, [
            (self.item, "4", "10.00", "18"),
        ])
        receipt = post_document_transition(
            note.pk, "DRAFT", "APPROVED", today=TODAY)

        self.assertEqual(len(receipt.journal_entry_ids), 2)
        self.assertEqual(len(receipt.movement_ids), 1)
        self.assertEqual(self.balance(ControlRole.SALES_RETURN), Decimal("-40.00"))
        self.assertEqual(self.balance(ControlRole.OUTPUT_CGST), Decimal("0.00"))
        self.assertEqual(self.balance(ControlRole.RECEIVABLE), Decimal("0.00"))
        # the goods come back at the cost they left at
        self.assertEqual(self.balance(ControlRole.COGS), Decimal("0.00"))
        self.assertEqual(self.balance(ControlRole.INVENTORY), Decimal("0.00"))
        valuation = get_item_valuation(self.item, self.warehouse)
        self.assertEqual(valuation["quantity"], Decimal("10"))
        self.assertEqual(valuation["total_value"], Decimal("50.00"))

    def test_cancelled_credit_note_takes_the_goods_out_again(self):
        self.sell_four()
        note = self.make_document("CREDIT_NOTE", self.customer, [
            (self.item, "4", "10.00", "18"),
        ])
        post_document_transition(note.pk, "DRAFT", "APPROVED", today=TODAY)
        post_document_transition(note.pk, "APPROVED", "CANCELLED", today=TODAY)

        self.assertEqual(self.balance(ControlRole.COGS), Decimal("20.00"))
        self.assertEqual(
            get_item_valuation(self.item, self.warehouse)["quantity"],
            Decimal("6"))

    def test_credit_note_for_goods_never_sold_is_refused(self):
        note = self.make_document("CREDIT_NOTE", self.customer, [
            (self.item, "1", "10.00", "0"),
        ])
        with self.assertRaises(ValidationError):
            post_document_transition(note.pk, "DRAFT", "APPROVED", today=TODAY)
        note.refresh_from_db()
        self.assertEqual(note.status, "DRAFT")
        self.assertFalse(JournalEntry.objects.exists())

    def test_service_credit_note_is_financial_only(self):
        note = self.make_document("CREDIT_NOTE", self.customer, [
            (None, "1", "100.00", "18"),
        ])
        post_document_transition(note.pk, "DRAFT", "APPROVED", today=TODAY)

        self.assertEqual(self.balance(ControlRole.SALES_RETURN), Decimal("-100.00"))
        self.assertEqual(self.balance(ControlRole.OUTPUT_CGST), Decimal("-9.00"))
        self.assertEqual(self.balance(ControlRole.RECEIVABLE), Decimal("-118.00"))
        self.assertFalse(CostLayer.objects.exists())

    def test_debit_note_sends_goods_back(self):
        bill = self.make_document("BILL", self.vendor, [
            (self.item, "10", "5.00", "18"),
        ])
        post_document_transition(bill.pk, "DRAFT", "APPROVED", today=TODAY)
        note = self.make_document("DEBIT_NOTE", self.vendor, [
            (self.item, "2", "5.00", "18"),
        ])
        post_document_transition(note.pk, "DRAFT", "APPROVED", today=TODAY)

        self.assertEqual(self.balance(ControlRole.INVENTORY), Decimal("40.00"))
        self.assertEqual(self.balance(ControlRole.PAYABLE), Decimal("47.20"))
        self.assertEqual(self.balance(ControlRole.INPUT_CGST), Decimal("3.60"))
        # returned at cost, nothing left on the returns ledger
        self.assertEqual(
            self.balance(ControlRole.PURCHASE_RETURN), Decimal("0.00"))
        self.assertEqual(
            get_item_valuation(self.item, self.warehouse)["quantity"],
            Decimal("8"))

        post_document_transition(note.pk, "APPROVED", "CANCELLED", today=TODAY)
        self.assertEqual(self.balance(ControlRole.INVENTORY), Decimal("50.00"))
        self.assertEqual(self.balance(ControlRole.PAYABLE), Decimal("59.00"))
        self.assertEqual(
            get_item_valuation(self.item, self.warehouse)["quantity"],
            Decimal("10"))

    def test_debit_note_reduces_payable(self):
        note = self.make_document("DEBIT_NOTE", self.vendor, [
            (None, "1", "100.00", "0"),
        ])
        post_document_transition(note.pk, "DRAFT", "PENDING", today=TODAY)
        post_document_transition(note.pk, "PENDING", "APPROVED", today=TODAY)
        self.assertEqual(self.balance(ControlRole.PAYABLE), Decimal("-100.00"))
        self.assertEqual(
            self.balance(ControlRole.PURCHASE_RETURN), Decimal("-100.00"))

    def test_orders_never_post(self):
        order = self.make_document("SALES_ORDER", self.customer, [
            (self.item, "5", "10.00", "18"),
        ])
        for source, target in (("DRAFT", "CONFIRMED"), ("CONFIRMED", "FULFILLED")):
            receipt = post_document_transition(order.pk, source, target, today=TODAY)
            self.assertEqual(receipt.journal_entry_ids, ())
        self.assertFalse(JournalEntry.objects.exists())


class QuotationTests(LedgerFixtureMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.quote = self.make_document(
            "QUOTATION", self.customer,
            [(self.item, "2", "100.00", "18")],
            valid_until=TODAY,
        )

    def test_expired_is_derived(self):
        later = TODAY + datetime.timedelta(days=1)
        self.assertEqual(self.quote.effective_status(later), EXPIRED)
        self.assertEqual(self.quote.status, "DRAFT")

        with self.assertRaises(InvalidTransitionError):
            post_document_transition(self.quote.pk, "DRAFT", "SENT", today=later)
        # an expired quotation can still be cancelled
        post_document_transition(self.quote.pk, "DRAFT", "CANCELLED", today=later)

    def test_convert_to_sales_order(self):
        post_document_transition(self.quote.pk, "DRAFT", "SENT", today=TODAY)
        post_document_transition(self.quote.pk, "SENT", "ACCEPTED", today=TODAY)

        order = convert_quotation(self.quote.pk, today=TODAY)

        self.quote.refresh_from_db()
        self.assertEqual(self.quote.status, "CONVERTED")
        self.assertEqual(order.doc_type, "SALES_ORDER")
        self.assertEqual(order.status, "DRAFT")
        self.assertEqual(order.converted_from_id, self.quote.pk)
        self.assertEqual(order.lines.count(), 1)
        self.assertEqual(order.total_amount, self.quote.total_amount)
        # converting again hands back the same order
        self.assertEqual(convert_quotation(self.quote.pk, today=TODAY).pk, order.pk)

    def test_converted_needs_an_order(self):
        post_document_transition(self.quote.pk, "DRAFT", "SENT", today=TODAY)
        post_document_transition(self.quote.pk, "SENT", "ACCEPTED", today=TODAY)
        with self.assertRaises(ValidationError):
            post_document_transition(
                self.quote.pk, "ACCEPTED", "CONVERTED", today=TODAY)


class ConflictRetryTests(TestCase):

    def test_retries_then_succeeds(self):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise ConcurrencyConflictError("busy")
            return "done"

        self.assertEqual(
            run_with_conflict_retry(flaky, attempts=3, backoff=0), "done")
        self.assertEqual(len(calls), 3)

    def test_gives_up(self):
        def always():
            raise ConcurrencyConflictError("busy")

        with self.assertRaises(ConcurrencyConflictError):
            run_with_conflict_retry(always, attempts=2, backoff=0)

    def test_other_errors_are_not_retried(self):
        calls = []

        def broken():
            calls.append(1)
            raise ValidationError("bad")

        with self.assertRaises(ValidationError):
            run_with_conflict_retry(broken, attempts=3, backoff=0)
        self.assertEqual(len(calls), 1)


class DocumentDeleteGuardTests(LedgerFixtureMixin, TestCase):

    def test_posted_document_cannot_be_deleted(self):
        bill = self.make_document("BILL", self.vendor, [
            (self.item, "1", "5.00", "0"),
        ])
        post_document_transition(bill.pk, "DRAFT", "APPROVED", today=TODAY)
        with self.assertRaises(ValidationError):
            Document.objects.get(pk=bill.pk).delete()

    def test_draft_document_can_be_deleted(self):
        draft = self.make_document("INVOICE", self.customer, [
            (self.item, "1", "5.00", "0"),
        ])
        draft.delete()
        self.assertFalse(Document.objects.filter(pk=draft.pk).exists())
