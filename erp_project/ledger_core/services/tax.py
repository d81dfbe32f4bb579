"""
GST split and document totals.

Both the figures shown on a document and the journal lines posted for it
come from compute_document_totals(), so the posted tax liability always
equals the tax printed on the invoice.
"""
from dataclasses import dataclass, field
from decimal import Decimal

from django.core.exceptions import ValidationError

from ..money import ZERO, money, multiply, to_decimal

ZERO_MONEY = money(ZERO)


@dataclass(frozen=True)
class TaxBreakdown:
    cgst: Decimal = ZERO_MONEY
    sgst: Decimal = ZERO_MONEY
    igst: Decimal = ZERO_MONEY

    @property
    def total(self):
        return self.cgst + self.sgst + self.igst

    @property
    def is_inter_state(self):
        return self.igst > 0

    def __add__(self, other):
        return TaxBreakdown(
            self.cgst + other.cgst,
            self.sgst + other.sgst,
            self.igst + other.igst,
        )


def get_jurisdiction(party_or_company):
    """State code of a party / company: explicit state_code, else
    the first two characters of its GSTIN. Empty when unknown."""
    if party_or_company is None:
        return ""
    return party_or_company.jurisdiction


def split_tax(amount, rate, seller_jurisdiction, buyer_jurisdiction):
    """
    Tax on `amount` at `rate` percent.
    - same jurisdiction: CGST + SGST, half the rate each
    - different (or unknown) jurisdiction: IGST at the full rate
    - zero / missing rate: all zero

    The total tax is rounded once, CGST takes half of it and SGST
    the rest, so the components always add up to the total.
    """
    if not rate:
        return TaxBreakdown()
    rate = to_decimal(rate)
    if rate < 0:
        raise ValidationError(f"Tax rate cannot be negative: {rate}")

    total = money(multiply(amount, rate) / 100)
    intra = bool(seller_jurisdiction) and seller_jurisdiction == buyer_jurisdiction
    if not intra:
        return TaxBreakdown(igst=total)
    cgst = money(total / 2)
    return TaxBreakdown(cgst=cgst, sgst=total - cgst)


@dataclass(frozen=True)
class LineTotals:
    line: object
    gross: Decimal
    discount: Decimal
    taxable: Decimal
    tax: TaxBreakdown

    @property
    def total(self):
        return self.taxable + self.tax.total


@dataclass(frozen=True)
class DocumentTotals:
    lines: list = field(default_factory=list)
    subtotal: Decimal = ZERO_MONEY  # Σ gross
    discount: Decimal = ZERO_MONEY
    taxable: Decimal = ZERO_MONEY
    tax_breakdown: TaxBreakdown = TaxBreakdown()

    @property
    def tax(self):
        return self.tax_breakdown.total

    @property
    def total(self):
        return self.taxable + self.tax


def compute_line(line, seller_jurisdiction, buyer_jurisdiction):
    gross = money(multiply(line.quantity, line.unit_price))
    discount = money(multiply(gross, line.discount_percent or 0) / 100)
    taxable = gross - discount
    tax = split_tax(
        taxable, line.tax_rate, seller_jurisdiction, buyer_jurisdiction)
    return LineTotals(
        line=line, gross=gross, discount=discount, taxable=taxable, tax=tax)


def _voucher_totals(document):
    # a journal voucher carries no tax, its total is the debit side
    debit = sum(
        (e.amount for e in document.voucher_entries.filter(side="DEBIT")),
        ZERO_MONEY)
    return DocumentTotals(subtotal=debit, taxable=debit)


def compute_document_totals(document, lines=None):
    """Totals for a document from its lines (pure; nothing is saved)."""
    if document.doc_type == "VOUCHER":
        return _voucher_totals(document)
    if lines is None:
        lines = list(document.lines.select_related("item", "account").all())
    seller = get_jurisdiction(document.company)
    buyer = get_jurisdiction(document.party)

    # on purchase side the vendor is the seller
    if document.doc_type in ("BILL", "PURCHASE_ORDER", "DEBIT_NOTE"):
        seller, buyer = buyer, seller

    return _sum_lines([compute_line(line, seller, buyer) for line in lines])


def stored_document_totals(document, lines=None):
    """Totals of a document as they were frozen when it left DRAFT.

    Reads the per-line figures saved on the lines instead of re-deriving
    the tax split, so a party that later moves state cannot change what
    a posted document (and its reversal) says.
    """
    if document.doc_type == "VOUCHER":
        return _voucher_totals(document)
    if lines is None:
        lines = list(document.lines.select_related("item", "account").all())
    computed = []
    for line in lines:
        gross = money(multiply(line.quantity, line.unit_price))
        computed.append(LineTotals(
            line=line,
            gross=gross,
            discount=gross - line.taxable_amount,
            taxable=line.taxable_amount,
            tax=TaxBreakdown(
                line.cgst_amount, line.sgst_amount, line.igst_amount),
        ))
    return _sum_lines(computed)


def _sum_lines(computed):
    tax = TaxBreakdown()
    for lt in computed:
        tax = tax + lt.tax
    return DocumentTotals(
        lines=computed,
        subtotal=sum((lt.gross for lt in computed), ZERO_MONEY),
        discount=sum((lt.discount for lt in computed), ZERO_MONEY),
        taxable=sum((lt.taxable for lt in computed), ZERO_MONEY),
        tax_breakdown=tax,
    )
