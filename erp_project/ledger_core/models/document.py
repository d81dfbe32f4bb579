import datetime
from dataclasses import dataclass

from django.core.exceptions import ImproperlyConfigured, ValidationError
from django.db import models
from django.utils import timezone

from ..exceptions import InvalidTransitionError
from ..managers import TenantManager
from .account import LedgerAccount
from .company import Company
from .item import Item, Warehouse
from .party import Party


class DocumentType(models.TextChoices):
    INVOICE = "INVOICE", "Sales invoice"
    BILL = "BILL", "Purchase bill"
    SALES_ORDER = "SALES_ORDER", "Sales order"
    PURCHASE_ORDER = "PURCHASE_ORDER", "Purchase order"
    QUOTATION = "QUOTATION", "Quotation"
    CREDIT_NOTE = "CREDIT_NOTE", "Credit note"
    DEBIT_NOTE = "DEBIT_NOTE", "Debit note"
    VOUCHER = "VOUCHER", "Journal voucher"


# ---------- Status sets, one closed set per document type ----------
class InvoiceStatus(models.TextChoices):
    # invoices and bills
    DRAFT = "DRAFT", "Draft"
    PENDING = "PENDING", "Pending approval"
    APPROVED = "APPROVED", "Approved"
    PARTIAL = "PARTIAL", "Partially paid"
    PAID = "PAID", "Paid"
    CANCELLED = "CANCELLED", "Cancelled"


class NoteStatus(models.TextChoices):
    # credit and debit notes
    DRAFT = "DRAFT", "Draft"
    PENDING = "PENDING", "Pending approval"
    APPROVED = "APPROVED", "Approved"
    CANCELLED = "CANCELLED", "Cancelled"


class OrderStatus(models.TextChoices):
    # sales and purchase orders
    DRAFT = "DRAFT", "Draft"
    CONFIRMED = "CONFIRMED", "Confirmed"
    PARTIAL = "PARTIAL", "Partially fulfilled"
    FULFILLED = "FULFILLED", "Fulfilled"
    CANCELLED = "CANCELLED", "Cancelled"


class QuotationStatus(models.TextChoices):
    DRAFT = "DRAFT", "Draft"
    SENT = "SENT", "Sent"
    ACCEPTED = "ACCEPTED", "Accepted"
    REJECTED = "REJECTED", "Rejected"
    CONVERTED = "CONVERTED", "Converted"
    CANCELLED = "CANCELLED", "Cancelled"


class VoucherStatus(models.TextChoices):
    # manual journal vouchers
    DRAFT = "DRAFT", "Draft"
    PENDING = "PENDING", "Pending approval"
    APPROVED = "APPROVED", "Approved"
    REJECTED = "REJECTED", "Rejected"
    CANCELLED = "CANCELLED", "Cancelled"


# Read-time statuses, never stored
OVERDUE = "OVERDUE"
EXPIRED = "EXPIRED"

STATUS_SETS = {
    DocumentType.INVOICE: InvoiceStatus,
    DocumentType.BILL: InvoiceStatus,
    DocumentType.CREDIT_NOTE: NoteStatus,
    DocumentType.DEBIT_NOTE: NoteStatus,
    DocumentType.SALES_ORDER: OrderStatus,
    DocumentType.PURCHASE_ORDER: OrderStatus,
    DocumentType.QUOTATION: QuotationStatus,
    DocumentType.VOUCHER: VoucherStatus,
}

_INVOICE_TABLE = {
    InvoiceStatus.DRAFT: (
        InvoiceStatus.PENDING, InvoiceStatus.APPROVED, InvoiceStatus.CANCELLED),
    InvoiceStatus.PENDING: (
        InvoiceStatus.APPROVED, InvoiceStatus.DRAFT, InvoiceStatus.CANCELLED),
    InvoiceStatus.APPROVED: (
        InvoiceStatus.PARTIAL, InvoiceStatus.PAID, InvoiceStatus.CANCELLED),
    InvoiceStatus.PARTIAL: (InvoiceStatus.PAID, InvoiceStatus.CANCELLED),
    InvoiceStatus.PAID: (),
    InvoiceStatus.CANCELLED: (),
}
_NOTE_TABLE = {
    NoteStatus.DRAFT: (
        NoteStatus.PENDING, NoteStatus.APPROVED, NoteStatus.CANCELLED),
    NoteStatus.PENDING: (
        NoteStatus.APPROVED, NoteStatus.DRAFT, NoteStatus.CANCELLED),
    NoteStatus.APPROVED: (NoteStatus.CANCELLED,),
    NoteStatus.CANCELLED: (),
}
_ORDER_TABLE = {
    OrderStatus.DRAFT: (OrderStatus.CONFIRMED, OrderStatus.CANCELLED),
    OrderStatus.CONFIRMED: (
        OrderStatus.PARTIAL, OrderStatus.FULFILLED, OrderStatus.CANCELLED),
    OrderStatus.PARTIAL: (OrderStatus.FULFILLED, OrderStatus.CANCELLED),
    OrderStatus.FULFILLED: (),
    OrderStatus.CANCELLED: (),
}
_QUOTATION_TABLE = {
    QuotationStatus.DRAFT: (QuotationStatus.SENT, QuotationStatus.CANCELLED),
    QuotationStatus.SENT: (
        QuotationStatus.ACCEPTED, QuotationStatus.REJECTED,
        QuotationStatus.CANCELLED),
    QuotationStatus.ACCEPTED: (
        QuotationStatus.CONVERTED, QuotationStatus.CANCELLED),
    QuotationStatus.REJECTED: (),
    QuotationStatus.CONVERTED: (),
    QuotationStatus.CANCELLED: (),
}
_VOUCHER_TABLE = {
    VoucherStatus.DRAFT: (
        VoucherStatus.PENDING, VoucherStatus.APPROVED, VoucherStatus.CANCELLED),
    VoucherStatus.PENDING: (
        VoucherStatus.APPROVED, VoucherStatus.REJECTED, VoucherStatus.DRAFT,
        VoucherStatus.CANCELLED),
    VoucherStatus.APPROVED: (VoucherStatus.CANCELLED,),
    VoucherStatus.REJECTED: (),
    VoucherStatus.CANCELLED: (),
}

TRANSITIONS = {
    DocumentType.INVOICE: _INVOICE_TABLE,
    DocumentType.BILL: _INVOICE_TABLE,
    DocumentType.CREDIT_NOTE: _NOTE_TABLE,
    DocumentType.DEBIT_NOTE: _NOTE_TABLE,
    DocumentType.SALES_ORDER: _ORDER_TABLE,
    DocumentType.PURCHASE_ORDER: _ORDER_TABLE,
    DocumentType.QUOTATION: _QUOTATION_TABLE,
    DocumentType.VOUCHER: _VOUCHER_TABLE,
}

# every state of a set has a row and every target belongs to the set
for _doc_type, _table in TRANSITIONS.items():
    _states = set(STATUS_SETS[_doc_type].values)
    if set(_table) != _states or any(
            not set(t) <= _states for t in _table.values()):
        raise ImproperlyConfigured(
            f"Transition table for {_doc_type} does not match its statuses")

# Documents that hit the books when approved
POSTING_TYPES = {
    DocumentType.INVOICE,
    DocumentType.BILL,
    DocumentType.CREDIT_NOTE,
    DocumentType.DEBIT_NOTE,
    DocumentType.VOUCHER,
}
POSTED_STATUSES = {"APPROVED", "PARTIAL", "PAID"}
EDITABLE_STATUSES = {"DRAFT"}

NUMBER_PREFIX = {
    DocumentType.INVOICE: "INV",
    DocumentType.BILL: "BILL",
    DocumentType.SALES_ORDER: "SO",
    DocumentType.PURCHASE_ORDER: "PO",
    DocumentType.QUOTATION: "QT",
    DocumentType.CREDIT_NOTE: "CN",
    DocumentType.DEBIT_NOTE: "DN",
    DocumentType.VOUCHER: "JV",
}


class PostingAction:
    POST = "POST"
    REVERSE = "REVERSE"
    NONE = "NONE"


@dataclass(frozen=True)
class Transition:
    """An edge of a document type's table. Building one for a
    (source, target) pair that is not in the table fails."""

    doc_type: str
    source: str
    target: str

    def __post_init__(self):
        table = TRANSITIONS.get(self.doc_type)
        if table is None:
            raise InvalidTransitionError(
                f"Unknown document type {self.doc_type}")
        if self.source not in table:
            raise InvalidTransitionError(
                f"{self.source} is not a {self.doc_type} status")
        if self.target not in table[self.source]:
            raise InvalidTransitionError(
                f"Cannot go from {self.source} to {self.target} "
                f"for {self.doc_type}")

    @property
    def action(self):
        if self.doc_type not in POSTING_TYPES:
            return PostingAction.NONE
        if self.target == "APPROVED":
            return PostingAction.POST
        if self.target == "CANCELLED" and self.source in POSTED_STATUSES:
            return PostingAction.REVERSE
        return PostingAction.NONE


def fiscal_year_label(date):
    """Indian fiscal year, April to March: 2025-26"""
    start = date.year if date.month >= 4 else date.year - 1
    return f"{start}-{(start + 1) % 100:02d}"


# ---------- Document (Header) & DocumentLine ----------
class Document(models.Model):
    """
    Invoice, bill, order, quotation, note or journal voucher.
    Totals are computed from the lines (services.tax) and are never
    edited by hand; status only moves through services.lifecycle.
    """

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    doc_type = models.CharField(max_length=20, choices=DocumentType.choices)
    number = models.CharField(max_length=40, blank=True)
    party = models.ForeignKey(
        Party,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="documents",
    )
    date = models.DateField(default=datetime.date.today)
    due_date = models.DateField(null=True, blank=True)  # invoices / bills
    valid_until = models.DateField(null=True, blank=True)  # quotations
    # where goods leave / arrive
    warehouse = models.ForeignKey(
        Warehouse,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="documents",
    )
    status = models.CharField(max_length=12, default="DRAFT")
    # optimistic lock, bumped by every committed transition
    version = models.PositiveIntegerField(default=1)

    subtotal = models.DecimalField(max_digits=18, decimal_places=2, default=0)
    discount_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=0)
    tax_amount = models.DecimalField(max_digits=18, decimal_places=2, default=0)
    total_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=0)
    amount_paid = models.DecimalField(
        max_digits=18, decimal_places=2, default=0)
    balance_due = models.DecimalField(
        max_digits=18, decimal_places=2, default=0)

    converted_from = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="conversions",
    )
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(
                fields=["company", "doc_type", "status"],
                name="doc_company_type_status_idx",
            ),
            models.Index(fields=["company", "date"], name="doc_company_date_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "doc_type", "number"],
                condition=~models.Q(number=""),
                name="uq_company_document_number",
            ),
        ]

    def __str__(self):
        return f"{self.doc_type} {self.number or self.pk} [{self.status}]"

    @property
    def status_set(self):
        return STATUS_SETS[self.doc_type]

    @property
    def is_posting_type(self):
        return self.doc_type in POSTING_TYPES

    @property
    def is_editable(self):
        return self.status in EDITABLE_STATUSES

    def effective_status(self, today=None):
        """Stored status plus the read-time OVERDUE / EXPIRED states."""
        today = today or timezone.localdate()
        if (self.doc_type in (DocumentType.INVOICE, DocumentType.BILL)
                and self.status in ("APPROVED", "PARTIAL")
                and self.due_date and self.due_date < today
                and self.balance_due > 0):
            return OVERDUE
        if (self.doc_type == DocumentType.QUOTATION
                and self.status in ("DRAFT", "SENT")
                and self.valid_until and self.valid_until < today):
            return EXPIRED
        return self.status

    def transition(self, to_status):
        return Transition(self.doc_type, self.status, to_status)

    def recalc_totals(self):
        """Recompute header and line figures from the lines.

        Uses the same computation the posting templates use.
        Line rows are written with queryset.update() so the
        draft-only edit guard on DocumentLine does not apply.
        Outside DRAFT the figures saved on the lines are returned
        as they are; nothing is rewritten.
        """
        # lazy import to avoid circular import at module load time
        from ..services.tax import (compute_document_totals,
                                    stored_document_totals)

        if not self.is_editable:
            totals = stored_document_totals(self)
            self.balance_due = self.total_amount - self.amount_paid
            return totals

        totals = compute_document_totals(self)
        for lt in totals.lines:
            DocumentLine.objects.filter(pk=lt.line.pk).update(
                taxable_amount=lt.taxable,
                cgst_amount=lt.tax.cgst,
                sgst_amount=lt.tax.sgst,
                igst_amount=lt.tax.igst,
                line_total=lt.total,
            )
        self.subtotal = totals.subtotal
        self.discount_amount = totals.discount
        self.tax_amount = totals.tax
        self.total_amount = totals.total
        self.balance_due = totals.total - self.amount_paid
        return totals

    TOTAL_FIELDS = [
        "subtotal", "discount_amount", "tax_amount",
        "total_amount", "balance_due", "updated_at",
    ]

    def clean(self):
        if self.doc_type not in STATUS_SETS:
            raise ValidationError(f"Unknown document type {self.doc_type}")
        if self.status not in self.status_set.values:
            raise ValidationError(
                f"{self.status} is not a valid {self.doc_type} status")
        if self.party_id and self.party.company_id != self.company_id:
            raise ValidationError("Party must belong to the same company")
        if self.warehouse_id and self.warehouse.company_id != self.company_id:
            raise ValidationError("Warehouse must belong to the same company")
        if self.due_date and self.due_date < self.date:
            raise ValidationError("due_date cannot be before the document date")
        if self.amount_paid < 0:
            raise ValidationError("amount_paid must be >= 0")

    def save(self, *args, **kwargs):
        if self.pk:
            orig = Document.objects.filter(pk=self.pk).first()
            if orig and orig.doc_type != self.doc_type:
                raise ValidationError("Document type cannot change")
            # header fields that feed the totals are frozen outside DRAFT
            if orig and not orig.is_editable:
                for f in ("party_id", "date", "warehouse_id"):
                    if getattr(orig, f) != getattr(self, f):
                        raise ValidationError(
                            f"Cannot edit {f} of a {orig.status} document.")
        if not self.number:
            self.number = self._next_number()
        if "update_fields" not in kwargs:
            self.full_clean()
        return super().save(*args, **kwargs)

    def _next_number(self):
        # INV/2025-26/00001
        prefix = f"{NUMBER_PREFIX[self.doc_type]}/{fiscal_year_label(self.date)}/"
        count = Document.objects.filter(
            company_id=self.company_id,
            doc_type=self.doc_type,
            number__startswith=prefix,
        ).count()
        return f"{prefix}{count + 1:05d}"


class DocumentLine(models.Model):
    document = models.ForeignKey(
        Document, on_delete=models.CASCADE, related_name="lines")
    line_no = models.PositiveIntegerField(default=1)
    item = models.ForeignKey(
        Item, null=True, blank=True, on_delete=models.PROTECT)
    description = models.CharField(max_length=300, blank=True)
    quantity = models.DecimalField(max_digits=14, decimal_places=4, default=1)
    unit_price = models.DecimalField(max_digits=18, decimal_places=2)
    discount_percent = models.DecimalField(
        max_digits=5, decimal_places=2, default=0)
    tax_rate = models.DecimalField(max_digits=5, decimal_places=2, default=0)
    # revenue / expense ledger override for this line
    account = models.ForeignKey(
        LedgerAccount, null=True, blank=True, on_delete=models.PROTECT)

    # computed by Document.recalc_totals()
    taxable_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=0, editable=False)
    cgst_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=0, editable=False)
    sgst_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=0, editable=False)
    igst_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=0, editable=False)
    line_total = models.DecimalField(
        max_digits=18, decimal_places=2, default=0, editable=False)

    class Meta:
        ordering = ("document_id", "line_no", "id")

    def __str__(self):
        return f"{self.document_id}:{self.line_no} {self.quantity} x {self.unit_price}"

    def clean(self):
        if not self.document.is_editable:
            raise ValidationError(
                f"Lines can only be edited in DRAFT "
                f"(document is {self.document.status}).")
        if self.quantity is None or self.quantity <= 0:
            raise ValidationError("Line quantity must be > 0")
        if self.unit_price is None or self.unit_price < 0:
            raise ValidationError("Unit price must be >= 0")
        if not (0 <= self.discount_percent <= 100):
            raise ValidationError("Discount must be between 0 and 100 percent")
        if not (0 <= self.tax_rate <= 100):
            raise ValidationError("Tax rate must be between 0 and 100 percent")
        company_id = self.document.company_id
        if self.item_id and self.item.company_id != company_id:
            raise ValidationError("Item must belong to the same company")
        if self.account_id and self.account.company_id != company_id:
            raise ValidationError("Line account must belong to the same company")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        if not self.document.is_editable:
            raise ValidationError("Lines can only be removed in DRAFT.")
        return super().delete(*args, **kwargs)


