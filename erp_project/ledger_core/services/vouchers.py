import logging

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from ..models import Document, DocumentType, Side, VoucherEntry
from ..money import money
from .audit_helper import log_action

logger = logging.getLogger(__name__)

# ----------------------------
# Manual journal vouchers
# ----------------------------


def create_voucher(company, entries, *, date=None, narration="", user=None):
    """
    Draft journal voucher.
    entries: (account, side, amount) or (account, side, amount, narration)
    tuples. Nothing is posted until the voucher is approved through
    post_document_transition(); approval checks the double entry.
    """
    entries = list(entries)
    if not entries:
        raise ValidationError("A voucher needs at least one entry")

    with transaction.atomic():
        voucher = Document.objects.create(
            company=company,
            doc_type=DocumentType.VOUCHER,
            date=date or timezone.localdate(),
            notes=narration,
        )
        for no, row in enumerate(entries, start=1):
            account, side, amount = row[:3]
            if side not in Side.values:
                raise ValidationError(f"Unknown side {side!r}")
            VoucherEntry.objects.create(
                document=voucher,
                line_no=no,
                account=account,
                side=side,
                amount=money(amount),
                narration=row[3] if len(row) > 3 else "",
            )
        voucher.refresh_from_db()
        log_action(
            action="create",
            instance=voucher,
            user=user,
            changes={"number": voucher.number, "entries": len(entries),
                     "total": voucher.total_amount},
        )

    logger.info("Voucher %s drafted (%s entries)", voucher.number, len(entries))
    return voucher
