from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase

from ..models import Item
from ..services.tax import split_tax
from .helpers import LedgerFixtureMixin


class SplitTaxTests(TestCase):

    def test_intra_state_splits_evenly(self):
        tax = split_tax(Decimal("1000.00"), Decimal("18"), "27", "27")
        self.assertEqual(tax.cgst, Decimal("90.00"))
        self.assertEqual(tax.sgst, Decimal("90.00"))
        self.assertEqual(tax.igst, Decimal("0.00"))
        self.assertEqual(tax.total, Decimal("180.00"))

    def test_inter_state_is_igst(self):
        tax = split_tax(Decimal("1000.00"), Decimal("18"), "27", "29")
        self.assertEqual(tax.igst, Decimal("180.00"))
        self.assertEqual(tax.cgst + tax.sgst, Decimal("0.00"))
        self.assertTrue(tax.is_inter_state)

    def test_odd_cent_goes_to_sgst(self):
        # 10.05 * 18% = 1.809 -> 1.81, half is 0.905
        tax = split_tax(Decimal("10.05"), Decimal("18"), "27", "27")
        self.assertEqual(tax.cgst + tax.sgst, Decimal("1.81"))
        self.assertEqual(tax.cgst, Decimal("0.90"))
        self.assertEqual(tax.sgst, Decimal("0.91"))

    def test_unknown_jurisdiction_is_inter_state(self):
        tax = split_tax(Decimal("100"), Decimal("5"), "", "")
        self.assertEqual(tax.igst, Decimal("5.00"))

    def test_zero_rate(self):
        self.assertEqual(split_tax(Decimal("100"), 0, "27", "27").total, 0)

    def test_negative_rate_rejected(self):
        with self.assertRaises(ValidationError):
            split_tax(Decimal("100"), Decimal("-1"), "27", "27")


class DocumentTotalsTests(LedgerFixtureMixin, TestCase):

    def test_totals_follow_lines(self):
        service = Item.objects.create(
            company=self.company, sku="SVC", name="Consulting",
            item_type="SERVICES")
        doc = self.make_document("INVOICE", self.customer, [
            (self.item, "10", "100.00", "18"),
            (service, "2", "250.00", "5"),
        ])
        self.assertEqual(doc.subtotal, Decimal("1500.00"))
        # 180 on the goods, 25 on the service
        self.assertEqual(doc.tax_amount, Decimal("205.00"))
        self.assertEqual(doc.total_amount, Decimal("1705.00"))
        self.assertEqual(doc.balance_due, Decimal("1705.00"))

        line = doc.lines.get(line_no=1)
        self.assertEqual(line.cgst_amount, Decimal("90.00"))
        self.assertEqual(line.sgst_amount, Decimal("90.00"))
        self.assertEqual(line.line_total, Decimal("1180.00"))

    def test_discount_reduces_taxable(self):
        doc = self.make_document("INVOICE", self.far_customer, [
            (self.item, "1", "1000.00", "18"),
        ])
        line = doc.lines.get()
        line.discount_percent = Decimal("10")
        line.save()
        doc.refresh_from_db()
        self.assertEqual(doc.discount_amount, Decimal("100.00"))
        self.assertEqual(doc.tax_amount, Decimal("162.00"))
        self.assertEqual(doc.total_amount, Decimal("1062.00"))

    def test_bill_uses_vendor_as_seller(self):
        remote_vendor = self.far_customer
        doc = self.make_document("BILL", remote_vendor, [
            (self.item, "1", "1000.00", "18"),
        ])
        line = doc.lines.get()
        self.assertEqual(line.igst_amount, Decimal("180.00"))
