"""
Cost layers carry their remaining book value, allocations the value
they took. Adds manual journal vouchers and their entries.
"""
from decimal import ROUND_HALF_EVEN, Decimal

import django.db.models.deletion
from django.db import migrations, models

CENT = Decimal("0.01")


def money_field(**kwargs):
    return models.DecimalField(max_digits=18, decimal_places=2, **kwargs)


def backfill_values(apps, schema_editor):
    CostLayer = apps.get_model("ledger_core", "CostLayer")
    LayerAllocation = apps.get_model("ledger_core", "LayerAllocation")
    for layer in CostLayer.objects.filter(remaining_quantity__gt=0).iterator():
        layer.remaining_value = (layer.remaining_quantity * layer.unit_cost).quantize(
            CENT, rounding=ROUND_HALF_EVEN)
        layer.save(update_fields=["remaining_value"])
    for alloc in LayerAllocation.objects.iterator():
        alloc.value = (alloc.quantity_taken * alloc.unit_cost).quantize(
            CENT, rounding=ROUND_HALF_EVEN)
        alloc.save(update_fields=["value"])


class Migration(migrations.Migration):

    dependencies = [
        ("ledger_core", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="costlayer",
            name="remaining_value",
            field=money_field(default=0),
        ),
        migrations.AddField(
            model_name="layerallocation",
            name="value",
            field=money_field(default=0),
        ),
        migrations.RunPython(backfill_values, migrations.RunPython.noop),
        migrations.AddConstraint(
            model_name="costlayer",
            constraint=models.CheckConstraint(
                condition=models.Q(("remaining_value__gte", 0)),
                name="cl_remaining_value_non_negative",
            ),
        ),
        migrations.AlterField(
            model_name="document",
            name="doc_type",
            field=models.CharField(
                choices=[
                    ("INVOICE", "Sales invoice"),
                    ("BILL", "Purchase bill"),
                    ("SALES_ORDER", "Sales order"),
                    ("PURCHASE_ORDER", "Purchase order"),
                    ("QUOTATION", "Quotation"),
                    ("CREDIT_NOTE", "Credit note"),
                    ("DEBIT_NOTE", "Debit note"),
                    ("VOUCHER", "Journal voucher"),
                ],
                max_length=20,
            ),
        ),
        migrations.CreateModel(
            name="VoucherEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("line_no", models.PositiveIntegerField(default=1)),
                ("side", models.CharField(choices=[("DEBIT", "Debit"), ("CREDIT", "Credit")], max_length=6)),
                ("amount", money_field()),
                ("narration", models.CharField(blank=True, max_length=300)),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="voucher_entries",
                        to="ledger_core.ledgeraccount",
                    ),
                ),
                (
                    "document",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="voucher_entries",
                        to="ledger_core.document",
                    ),
                ),
            ],
            options={
                "ordering": ("document_id", "line_no", "id"),
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="ve_amount_positive",
                    ),
                ],
            },
        ),
    ]
