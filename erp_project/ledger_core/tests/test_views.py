import json
from decimal import Decimal

from django.test import TestCase
from django.urls import reverse

from ..models import ControlRole
from ..services.valuation import produce
from .helpers import TODAY, LedgerFixtureMixin


class LedgerViewTests(LedgerFixtureMixin, TestCase):

    def setUp(self):
        super().setUp()
        produce(self.item, self.warehouse, Decimal("10"), Decimal("5"), date=TODAY)
        self.invoice = self.make_document("INVOICE", self.customer, [
            (self.item, "2", "100.00", "18"),
        ])

    def post_transition(self, payload, document_id=None):
        url = reverse(
            "ledger_core:document-transition",
            args=[document_id or self.invoice.pk])
        return self.client.post(
            url, data=json.dumps(payload), content_type="application/json")

    def test_transition_returns_receipt(self):
        response = self.post_transition(
            {"from_status": "DRAFT", "to_status": "APPROVED", "expected_version": 1})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["ok"])
        self.assertEqual(body["to_status"], "APPROVED")
        self.assertEqual(body["version"], 2)
        self.assertEqual(len(body["journal_entry_ids"]), 2)

    def test_invalid_transition_is_400(self):
        response = self.post_transition({"from_status": "DRAFT", "to_status": "PAID"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["type"], "InvalidTransitionError")

    def test_missing_fields_is_400(self):
        response = self.post_transition({"to_status": "APPROVED"})
        self.assertEqual(response.status_code, 400)

    def test_stale_version_is_409(self):
        response = self.post_transition(
            {"from_status": "DRAFT", "to_status": "APPROVED", "expected_version": 3})
        self.assertEqual(response.status_code, 409)
        self.assertFalse(response.json()["ok"])

    def test_insufficient_stock_is_400(self):
        big = self.make_document("INVOICE", self.customer, [
            (self.item, "99", "1.00", "0"),
        ])
        response = self.post_transition(
            {"from_status": "DRAFT", "to_status": "APPROVED"}, document_id=big.pk)
        self.assertEqual(response.status_code, 400)
        self.assertIn("insufficient stock", response.json()["error"])

    def test_unknown_document_is_404(self):
        response = self.post_transition(
            {"from_status": "DRAFT", "to_status": "APPROVED"}, document_id=987654)
        self.assertEqual(response.status_code, 404)

    def test_transition_requires_post(self):
        url = reverse("ledger_core:document-transition", args=[self.invoice.pk])
        self.assertEqual(self.client.get(url).status_code, 405)

    def test_ledger_balance(self):
        self.post_transition({"from_status": "DRAFT", "to_status": "APPROVED"})
        account = self.control(ControlRole.RECEIVABLE)
        response = self.client.get(
            reverse("ledger_core:ledger-balance", args=[account.pk]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["amount"], "236.00")
        self.assertEqual(response.json()["side"], "DEBIT")

    def test_item_valuation(self):
        response = self.client.get(reverse(
            "ledger_core:item-valuation", args=[self.item.pk, self.warehouse.pk]))
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(Decimal(body["quantity"]), Decimal("10"))
        self.assertEqual(body["total_value"], "50.00")
        self.assertEqual(body["method"], "FIFO")
