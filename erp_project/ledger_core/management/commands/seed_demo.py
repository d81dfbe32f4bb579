from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils.text import slugify

from ledger_core.models import (Company, ControlAccount, ControlRole, Currency,
                                LedgerAccount, LedgerGroup, Warehouse)

User = get_user_model()

# (name, nature, parent)
GROUPS = [
    ("Assets", "ASSET", None),
    ("Current Assets", "ASSET", "Assets"),
    ("Cash & Bank", "ASSET", "Current Assets"),
    ("Sundry Debtors", "ASSET", "Current Assets"),
    ("Stock-in-Hand", "ASSET", "Current Assets"),
    ("Input Tax Credit", "ASSET", "Current Assets"),
    ("Fixed Assets", "ASSET", "Assets"),
    ("Liabilities", "LIABILITY", None),
    ("Current Liabilities", "LIABILITY", "Liabilities"),
    ("Sundry Creditors", "LIABILITY", "Current Liabilities"),
    ("Duties & Taxes", "LIABILITY", "Current Liabilities"),
    ("Income", "INCOME", None),
    ("Sales Accounts", "INCOME", "Income"),
    ("Expenses", "EXPENSE", None),
    ("Direct Expenses", "EXPENSE", "Expenses"),
    ("Indirect Expenses", "EXPENSE", "Expenses"),
    ("Capital Account", "EQUITY", None),
]

# (code, name, group, control role)
LEDGERS = [
    ("1100", "Cash in Hand", "Cash & Bank", ControlRole.CASH),
    ("1200", "Sundry Debtors", "Sundry Debtors", ControlRole.RECEIVABLE),
    ("1300", "Stock-in-Hand", "Stock-in-Hand", ControlRole.INVENTORY),
    ("1410", "Input CGST", "Input Tax Credit", ControlRole.INPUT_CGST),
    ("1420", "Input SGST", "Input Tax Credit", ControlRole.INPUT_SGST),
    ("1430", "Input IGST", "Input Tax Credit", ControlRole.INPUT_IGST),
    ("2100", "Sundry Creditors", "Sundry Creditors", ControlRole.PAYABLE),
    ("2210", "Output CGST", "Duties & Taxes", ControlRole.OUTPUT_CGST),
    ("2220", "Output SGST", "Duties & Taxes", ControlRole.OUTPUT_SGST),
    ("2230", "Output IGST", "Duties & Taxes", ControlRole.OUTPUT_IGST),
    ("3000", "Capital", "Capital Account", None),
    ("4100", "Sales - Goods", "Sales Accounts", ControlRole.SALES),
    ("4200", "Sales Returns", "Sales Accounts", ControlRole.SALES_RETURN),
    ("5100", "Purchase Accounts", "Direct Expenses", ControlRole.PURCHASE),
    ("5200", "Purchase Returns", "Direct Expenses", ControlRole.PURCHASE_RETURN),
    ("5300", "Cost of Goods Sold", "Direct Expenses", ControlRole.COGS),
    ("5400", "Stock Adjustment", "Indirect Expenses", ControlRole.STOCK_ADJUSTMENT),
]


def seed_company(company):
    """Chart of accounts, control accounts and a main warehouse.
    Safe to run twice: existing rows are reused."""
    groups = {}
    for name, nature, parent in GROUPS:
        groups[name], _ = LedgerGroup.objects.get_or_create(
            company=company,
            name=name,
            defaults={"nature": nature, "parent": groups.get(parent)},
        )

    for code, name, group_name, role in LEDGERS:
        group = groups[group_name]
        account, _ = LedgerAccount.objects.get_or_create(
            company=company,
            code=code,
            defaults={"name": name, "group": group, "nature": group.nature},
        )
        if role is not None:
            ControlAccount.objects.get_or_create(
                company=company, role=role, defaults={"account": account})

    warehouse, _ = Warehouse.objects.get_or_create(
        company=company, code="MAIN", defaults={"name": "Main Warehouse"})
    return warehouse


class Command(BaseCommand):
    help = (
        "Create a demo company with a GST chart of accounts, control "
        "accounts and a warehouse."
    )

    # Define command-line arguments
    def add_arguments(self, parser):
        parser.add_argument(
            "--company",
            type=str,
            default="Demo Ltd",
            help="Name of the demo company (default: Demo Ltd)",
        )
        parser.add_argument(
            "--state-code",
            default="27",
            help="GST state code of the company (default: 27)",
        )
        parser.add_argument(
            "--username", default="", help="Optional owner username."
        )

    @transaction.atomic
    def handle(self, *args, **options):
        com_name = options["company"]  # Read argument from add_arguments()
        self.stdout.write(self.style.NOTICE(
            f"Seeding demo data for {com_name}..."))

        inr, _ = Currency.objects.get_or_create(
            code="INR", defaults={"name": "Indian Rupee", "symbol": "₹"}
        )

        owner = None
        if options["username"]:
            owner, created = User.objects.get_or_create(
                username=options["username"],
                defaults={"email": f"{options['username']}@example.com"},
            )
            if created:
                self.stdout.write(
                    self.style.SUCCESS(f"Created user: {owner.username}"))

        # get_or_create returns (object, created)
        company, created = Company.objects.get_or_create(
            slug=slugify(com_name) or "company",
            defaults={
                "name": com_name,
                "default_currency": inr,
                "state_code": options["state_code"],
                "owner": owner,
            },
        )
        if created:
            self.stdout.write(self.style.SUCCESS(f"Created company: {company}"))

        warehouse = seed_company(company)
        self.stdout.write(self.style.SUCCESS(
            f"{LedgerGroup.objects.for_company(company).count()} groups, "
            f"{LedgerAccount.objects.for_company(company).count()} ledgers, "
            f"warehouse {warehouse.code}"
        ))
        self.stdout.write(self.style.SUCCESS("Demo data seeded successfully!"))
