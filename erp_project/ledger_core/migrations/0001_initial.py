"""
Initial migration for the ledger core.

Creates:
- tenants and currencies
- chart of accounts (groups, ledgers, control accounts) and periods
- immutable journal entries / lines and the audit log
- parties, warehouses, items, stock movements and cost layers
- documents, document lines and payments
"""
import datetime

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

NATURE_CHOICES = [
    ("ASSET", "Asset"),
    ("LIABILITY", "Liability"),
    ("INCOME", "Income"),
    ("EXPENSE", "Expense"),
    ("EQUITY", "Equity"),
]
SIDE_CHOICES = [("DEBIT", "Debit"), ("CREDIT", "Credit")]
VALUATION_CHOICES = [
    ("FIFO", "First in, first out"),
    ("LIFO", "Last in, first out"),
    ("WEIGHTED_AVG", "Weighted average"),
]


def money_field(**kwargs):
    return models.DecimalField(max_digits=18, decimal_places=2, **kwargs)


def quantity_field(**kwargs):
    return models.DecimalField(max_digits=14, decimal_places=4, **kwargs)


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Currency",
            fields=[
                (
                    "code",
                    models.CharField(max_length=3, primary_key=True, serialize=False),
                ),
                ("name", models.CharField(max_length=64)),
                ("symbol", models.CharField(blank=True, max_length=8, null=True)),
                ("decimal_places", models.PositiveSmallIntegerField(default=2)),
            ],
            options={"verbose_name_plural": "currencies"},
        ),
        migrations.CreateModel(
            name="Company",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("slug", models.SlugField(max_length=80, unique=True)),
                ("gstin", models.CharField(blank=True, max_length=15)),
                ("state_code", models.CharField(blank=True, max_length=2)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "default_currency",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="companies",
                        to="ledger_core.currency",
                    ),
                ),
                (
                    "owner",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={"verbose_name_plural": "companies"},
        ),
        migrations.CreateModel(
            name="LedgerGroup",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=120)),
                ("nature", models.CharField(choices=NATURE_CHOICES, max_length=10)),
                (
                    "company",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="ledger_core.company",
                    ),
                ),
                (
                    "parent",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="children",
                        to="ledger_core.ledgergroup",
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(
                        fields=("company", "name"), name="uq_company_ledger_group"
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="LedgerAccount",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=32)),
                ("name", models.CharField(max_length=200)),
                ("nature", models.CharField(choices=NATURE_CHOICES, max_length=10)),
                ("opening_balance", money_field(default=0)),
                (
                    "opening_balance_type",
                    models.CharField(choices=SIDE_CHOICES, default="DEBIT", max_length=6),
                ),
                ("current_balance", money_field(default=0, editable=False)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "company",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="ledger_core.company",
                    ),
                ),
                (
                    "group",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="accounts",
                        to="ledger_core.ledgergroup",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["company", "nature"], name="la_company_nature_idx"),
                    models.Index(fields=["company", "code"], name="la_company_code_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("company", "code"), name="uq_company_ledger_code"
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("opening_balance__gte", 0)),
                        name="ledger_opening_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ControlAccount",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "role",
                    models.CharField(
                        choices=[
                            ("RECEIVABLE", "Sundry Debtors"),
                            ("PAYABLE", "Sundry Creditors"),
                            ("SALES", "Sales"),
                            ("PURCHASE", "Purchases"),
                            ("SALES_RETURN", "Sales Returns"),
                            ("PURCHASE_RETURN", "Purchase Returns"),
                            ("OUTPUT_CGST", "Output CGST"),
                            ("OUTPUT_SGST", "Output SGST"),
                            ("OUTPUT_IGST", "Output IGST"),
                            ("INPUT_CGST", "Input CGST"),
                            ("INPUT_SGST", "Input SGST"),
                            ("INPUT_IGST", "Input IGST"),
                            ("INVENTORY", "Stock-in-Hand"),
                            ("COGS", "Cost of Goods Sold"),
                            ("STOCK_ADJUSTMENT", "Stock Adjustment"),
                            ("CASH", "Cash in Hand"),
                        ],
                        max_length=20,
                    ),
                ),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="roles",
                        to="ledger_core.ledgeraccount",
                    ),
                ),
                (
                    "company",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="ledger_core.company",
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(
                        fields=("company", "role"), name="uq_company_control_role"
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Period",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=50)),
                ("start_date", models.DateField()),
                ("end_date", models.DateField()),
                ("is_closed", models.BooleanField(default=False)),
                (
                    "company",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        to="ledger_core.company",
                    ),
                ),
            ],
            options={
                "ordering": ("company", "start_date"),
                "indexes": [
                    models.Index(fields=["company", "start_date"], name="period_company_start_idx"),
                    models.Index(fields=["company", "is_closed"], name="period_company_closed_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("company", "name"), name="uq_company_period_name"
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="JournalEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("document_type", models.CharField(max_length=20)),
                ("document_id", models.PositiveBigIntegerField()),
                ("transition", models.CharField(max_length=30)),
                (
                    "kind",
                    models.CharField(
                        choices=[
                            ("POSTING", "Posting"),
                            ("COGS", "Cost of goods sold"),
                            ("REVERSAL", "Reversal"),
                        ],
                        default="POSTING",
                        max_length=10,
                    ),
                ),
                ("date", models.DateField()),
                ("description", models.CharField(blank=True, max_length=300)),
                ("posted_at", models.DateTimeField(auto_now_add=True)),
                (
                    "company",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="ledger_core.company",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "period",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        to="ledger_core.period",
                    ),
                ),
                (
                    "reverses",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="reversed_by",
                        to="ledger_core.journalentry",
                    ),
                ),
            ],
            options={
                "ordering": ("date", "id"),
                "indexes": [
                    models.Index(fields=["company", "date"], name="je_company_date_idx"),
                    models.Index(
                        fields=["company", "document_type", "document_id"],
                        name="je_company_document_idx",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("reverses__isnull", True)),
                        fields=(
                            "company", "document_type", "document_id",
                            "transition", "kind",
                        ),
                        name="uq_je_document_transition",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="JournalLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("line_no", models.PositiveIntegerField(default=1)),
                ("side", models.CharField(choices=SIDE_CHOICES, max_length=6)),
                ("amount", money_field()),
                ("description", models.CharField(blank=True, max_length=300)),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="journal_lines",
                        to="ledger_core.ledgeraccount",
                    ),
                ),
                (
                    "company",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="ledger_core.company",
                    ),
                ),
                (
                    "journal",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="lines",
                        to="ledger_core.journalentry",
                    ),
                ),
            ],
            options={
                "ordering": ("journal_id", "line_no"),
                "indexes": [
                    models.Index(fields=["company", "account"], name="jl_company_account_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="jl_amount_positive",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(max_length=50)),
                ("object_type", models.CharField(max_length=100)),
                ("object_id", models.CharField(max_length=100)),
                ("changes", models.JSONField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "company",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        to="ledger_core.company",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["company", "created_at"], name="audit_company_created_idx"),
                    models.Index(fields=["object_type", "object_id"], name="audit_object_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Party",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                (
                    "party_type",
                    models.CharField(
                        choices=[
                            ("CUSTOMER", "Customer"),
                            ("VENDOR", "Vendor"),
                            ("BOTH", "Customer & Vendor"),
                        ],
                        default="CUSTOMER",
                        max_length=10,
                    ),
                ),
                ("email", models.EmailField(blank=True, max_length=254)),
                ("gstin", models.CharField(blank=True, max_length=15)),
                ("state_code", models.CharField(blank=True, max_length=2)),
                ("is_active", models.BooleanField(default=True)),
                (
                    "company",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="ledger_core.company",
                    ),
                ),
                (
                    "ledger_account",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="parties",
                        to="ledger_core.ledgeraccount",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "parties",
                "indexes": [
                    models.Index(fields=["company", "name"], name="party_company_name_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Warehouse",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=20)),
                ("name", models.CharField(max_length=120)),
                ("is_active", models.BooleanField(default=True)),
                (
                    "company",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="ledger_core.company",
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(
                        fields=("company", "code"), name="uq_company_warehouse_code"
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Item",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("sku", models.CharField(max_length=80)),
                ("name", models.CharField(max_length=200)),
                (
                    "item_type",
                    models.CharField(
                        choices=[("GOODS", "Goods"), ("SERVICES", "Services")],
                        default="GOODS",
                        max_length=10,
                    ),
                ),
                (
                    "valuation_method",
                    models.CharField(
                        choices=VALUATION_CHOICES, default="FIFO", max_length=12
                    ),
                ),
                ("unit", models.CharField(default="pcs", max_length=16)),
                ("hsn_code", models.CharField(blank=True, max_length=8)),
                ("default_unit_price", money_field(blank=True, null=True)),
                (
                    "default_tax_rate",
                    models.DecimalField(decimal_places=2, default=0, max_digits=5),
                ),
                ("is_active", models.BooleanField(default=True)),
                (
                    "company",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="ledger_core.company",
                    ),
                ),
                (
                    "sales_account",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="items_sales",
                        to="ledger_core.ledgeraccount",
                    ),
                ),
                (
                    "purchase_account",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="items_purchase",
                        to="ledger_core.ledgeraccount",
                    ),
                ),
                (
                    "inventory_account",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="items_inventory",
                        to="ledger_core.ledgeraccount",
                    ),
                ),
                (
                    "cogs_account",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="items_cogs",
                        to="ledger_core.ledgeraccount",
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(
                        fields=("company", "sku"), name="uq_company_item_sku"
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="StockMovement",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "movement_type",
                    models.CharField(
                        choices=[
                            ("IN", "Stock in"),
                            ("OUT", "Stock out"),
                            ("TRANSFER", "Transfer"),
                            ("ADJUSTMENT", "Adjustment"),
                        ],
                        max_length=10,
                    ),
                ),
                (
                    "direction",
                    models.CharField(choices=[("IN", "In"), ("OUT", "Out")], max_length=3),
                ),
                ("quantity", quantity_field()),
                ("date", models.DateField()),
                ("document_type", models.CharField(blank=True, max_length=20)),
                ("document_id", models.PositiveBigIntegerField(blank=True, null=True)),
                (
                    "valuation_method",
                    models.CharField(blank=True, choices=VALUATION_CHOICES, max_length=12),
                ),
                ("total_cost", money_field(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "company",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="ledger_core.company",
                    ),
                ),
                (
                    "item",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="movements",
                        to="ledger_core.item",
                    ),
                ),
                (
                    "warehouse",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="movements",
                        to="ledger_core.warehouse",
                    ),
                ),
                (
                    "counterpart",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="counterpart_of",
                        to="ledger_core.stockmovement",
                    ),
                ),
                (
                    "reverses",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="reversals",
                        to="ledger_core.stockmovement",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(
                        fields=["company", "item", "warehouse"], name="sm_company_item_wh_idx"),
                    models.Index(
                        fields=["document_type", "document_id"], name="sm_document_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("quantity__gt", 0)),
                        name="sm_quantity_positive",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="CostLayer",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("acquisition_date", models.DateField()),
                ("sequence", models.PositiveIntegerField()),
                ("original_quantity", quantity_field()),
                ("remaining_quantity", quantity_field()),
                ("unit_cost", models.DecimalField(decimal_places=6, max_digits=18)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "company",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="ledger_core.company",
                    ),
                ),
                (
                    "item",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="cost_layers",
                        to="ledger_core.item",
                    ),
                ),
                (
                    "warehouse",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="cost_layers",
                        to="ledger_core.warehouse",
                    ),
                ),
                (
                    "source_movement",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="resulting_layers",
                        to="ledger_core.stockmovement",
                    ),
                ),
                (
                    "merged_into",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="absorbed_layers",
                        to="ledger_core.costlayer",
                    ),
                ),
            ],
            options={
                "ordering": ("acquisition_date", "sequence"),
                "indexes": [
                    models.Index(
                        fields=["item", "warehouse", "remaining_quantity"],
                        name="cl_item_wh_remaining_idx",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("item", "warehouse", "sequence"),
                        name="uq_cost_layer_sequence",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("remaining_quantity__gte", 0)),
                        name="cl_remaining_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("remaining_quantity__lte", models.F("original_quantity"))
                        ),
                        name="cl_remaining_le_original",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("unit_cost__gte", 0)),
                        name="cl_unit_cost_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="LayerAllocation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("quantity_taken", quantity_field()),
                ("unit_cost", models.DecimalField(decimal_places=6, max_digits=18)),
                (
                    "layer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="allocations",
                        to="ledger_core.costlayer",
                    ),
                ),
                (
                    "movement",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="allocations",
                        to="ledger_core.stockmovement",
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("quantity_taken__gt", 0)),
                        name="la_quantity_positive",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Document",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "doc_type",
                    models.CharField(
                        choices=[
                            ("INVOICE", "Sales invoice"),
                            ("BILL", "Purchase bill"),
                            ("SALES_ORDER", "Sales order"),
                            ("PURCHASE_ORDER", "Purchase order"),
                            ("QUOTATION", "Quotation"),
                            ("CREDIT_NOTE", "Credit note"),
                            ("DEBIT_NOTE", "Debit note"),
                        ],
                        max_length=20,
                    ),
                ),
                ("number", models.CharField(blank=True, max_length=40)),
                ("date", models.DateField(default=datetime.date.today)),
                ("due_date", models.DateField(blank=True, null=True)),
                ("valid_until", models.DateField(blank=True, null=True)),
                ("status", models.CharField(default="DRAFT", max_length=12)),
                ("version", models.PositiveIntegerField(default=1)),
                ("subtotal", money_field(default=0)),
                ("discount_amount", money_field(default=0)),
                ("tax_amount", money_field(default=0)),
                ("total_amount", money_field(default=0)),
                ("amount_paid", money_field(default=0)),
                ("balance_due", money_field(default=0)),
                ("notes", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "company",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="ledger_core.company",
                    ),
                ),
                (
                    "party",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="documents",
                        to="ledger_core.party",
                    ),
                ),
                (
                    "warehouse",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="documents",
                        to="ledger_core.warehouse",
                    ),
                ),
                (
                    "converted_from",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="conversions",
                        to="ledger_core.document",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(
                        fields=["company", "doc_type", "status"],
                        name="doc_company_type_status_idx",
                    ),
                    models.Index(fields=["company", "date"], name="doc_company_date_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("number", ""), _negated=True),
                        fields=("company", "doc_type", "number"),
                        name="uq_company_document_number",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="DocumentLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("line_no", models.PositiveIntegerField(default=1)),
                ("description", models.CharField(blank=True, max_length=300)),
                ("quantity", quantity_field(default=1)),
                ("unit_price", money_field()),
                (
                    "discount_percent",
                    models.DecimalField(decimal_places=2, default=0, max_digits=5),
                ),
                (
                    "tax_rate",
                    models.DecimalField(decimal_places=2, default=0, max_digits=5),
                ),
                ("taxable_amount", money_field(default=0, editable=False)),
                ("cgst_amount", money_field(default=0, editable=False)),
                ("sgst_amount", money_field(default=0, editable=False)),
                ("igst_amount", money_field(default=0, editable=False)),
                ("line_total", money_field(default=0, editable=False)),
                (
                    "document",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="lines",
                        to="ledger_core.document",
                    ),
                ),
                (
                    "item",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        to="ledger_core.item",
                    ),
                ),
                (
                    "account",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        to="ledger_core.ledgeraccount",
                    ),
                ),
            ],
            options={"ordering": ("document_id", "line_no", "id")},
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "kind",
                    models.CharField(
                        choices=[
                            ("RECEIPT", "Receipt from customer"),
                            ("PAYMENT", "Payment to vendor"),
                        ],
                        max_length=8,
                    ),
                ),
                ("date", models.DateField(default=datetime.date.today)),
                ("amount", money_field()),
                ("reference", models.CharField(blank=True, max_length=100)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "company",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="ledger_core.company",
                    ),
                ),
                (
                    "document",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="ledger_core.document",
                    ),
                ),
                (
                    "account",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="ledger_core.ledgeraccount",
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="payment_amount_positive",
                    )
                ],
            },
        ),
    ]
