import datetime
from decimal import Decimal

from ledger_core.management.commands.seed_demo import seed_company
from ledger_core.models import (Company, ControlAccount, Currency, Document,
                                DocumentLine, Item, LedgerAccount, Party)

TODAY = datetime.date(2025, 9, 15)


class LedgerFixtureMixin:
    """Seeded company in state 27 with a same-state customer and vendor,
    an out-of-state customer and one FIFO stock item."""

    def setUp(self):
        self.inr = Currency.objects.create(code="INR", name="Indian Rupee")
        self.company = Company.objects.create(
            name="Test Co", slug="test-co", default_currency=self.inr,
            state_code="27",
        )
        self.warehouse = seed_company(self.company)
        self.customer = Party.objects.create(
            company=self.company, name="Local Customer", state_code="27")
        self.far_customer = Party.objects.create(
            company=self.company, name="Remote Customer", state_code="29")
        self.vendor = Party.objects.create(
            company=self.company, name="Local Vendor", party_type="VENDOR",
            state_code="27")
        self.item = Item.objects.create(
            company=self.company, sku="WID-1", name="Widget")

    # ---------- lookups ----------
    def control(self, role):
        return ControlAccount.objects.get(company=self.company, role=role).account

    def balance(self, role):
        account = LedgerAccount.objects.get(pk=self.control(role).pk)
        return account.current_balance

    def all_balances(self):
        return dict(
            LedgerAccount.objects.for_company(self.company)
            .values_list("code", "current_balance")
        )

    # ---------- builders ----------
    def make_document(self, doc_type, party=None, lines=(), **kwargs):
        """lines: (item, quantity, unit_price, tax_rate) tuples"""
        doc = Document.objects.create(
            company=self.company,
            doc_type=doc_type,
            party=party,
            date=kwargs.pop("date", TODAY),
            warehouse=kwargs.pop("warehouse", self.warehouse),
            **kwargs,
        )
        for no, (item, qty, price, rate) in enumerate(lines, start=1):
            DocumentLine.objects.create(
                document=doc,
                line_no=no,
                item=item,
                description=item.name if item else "Service",
                quantity=Decimal(qty),
                unit_price=Decimal(price),
                tax_rate=Decimal(rate),
            )
        doc.refresh_from_db()
        return doc
