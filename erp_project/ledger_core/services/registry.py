"""
Ledger account registry.

apply_entry() is the single writer of LedgerAccount.current_balance:
it persists the journal entry, its lines and the balance changes in one
transaction, holding row locks on every touched account.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import IntegrityError, models, transaction

from ..exceptions import (ConcurrencyConflictError, InactiveAccountError,
                          UnbalancedJournalError, UnknownAccountError)
from ..models import JournalEntry, JournalLine, LedgerAccount, Side
from ..money import ZERO, money, signed_for
from .periods import resolve_period

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DraftLine:
    account_id: int
    side: str
    amount: Decimal
    description: str = ""


@dataclass
class JournalDraft:
    """A journal entry that has not been applied yet."""

    company: object
    document_type: str
    document_id: int
    transition: str
    date: object
    kind: str = "POSTING"
    description: str = ""
    lines: list = field(default_factory=list)
    reverses: object = None
    created_by: object = None

    def add(self, account_id, side, amount, description=""):
        self.lines.append(DraftLine(account_id, side, money(amount), description))

    def totals(self):
        debit = sum((ln.amount for ln in self.lines if ln.side == Side.DEBIT), ZERO)
        credit = sum((ln.amount for ln in self.lines if ln.side == Side.CREDIT), ZERO)
        return debit, credit


def validate_draft(draft):
    """Shape and double-entry checks. Runs before anything is written."""
    if not draft.lines:
        raise ValidationError("JournalEntry must have at least one line.")
    for line in draft.lines:
        if line.side not in (Side.DEBIT, Side.CREDIT):
            raise ValidationError(f"Unknown side {line.side!r}")
        if line.amount <= 0:
            raise ValidationError(
                f"Journal line amount must be > 0, got {line.amount}")
        if money(line.amount) != line.amount:
            raise ValidationError(
                f"Journal line amount {line.amount} is not rounded to cents")

    td, tc = draft.totals()
    if td != tc:
        # a template produced this, never a user
        logger.error(
            "Unbalanced journal for %s#%s %s: debits=%s credits=%s",
            draft.document_type, draft.document_id, draft.transition, td, tc,
        )
        raise UnbalancedJournalError(
            f"Journal not balanced: debits={td}, credits={tc}")


def _lock_accounts(company, account_ids):
    # always lock in primary key order so two postings can't deadlock
    accounts = {
        acct.pk: acct
        for acct in LedgerAccount.objects.select_for_update()
        .filter(company=company, pk__in=account_ids)
        .order_by("pk")
    }
    missing = [pk for pk in account_ids if pk not in accounts]
    if missing:
        raise UnknownAccountError(
            f"Unknown ledger account(s) {missing} for company {company}")
    inactive = [acct for acct in accounts.values() if not acct.is_active]
    if inactive:
        names = ", ".join(str(a) for a in inactive)
        raise InactiveAccountError(f"Cannot post to inactive account(s): {names}")
    return accounts


def apply_entry(draft):
    """Persist `draft` and move the balances of every account it touches."""
    validate_draft(draft)

    with transaction.atomic():
        period = resolve_period(draft.company, draft.date)
        account_ids = sorted({line.account_id for line in draft.lines})
        accounts = _lock_accounts(draft.company, account_ids)

        try:
            # savepoint: a lost idempotency race must not poison
            # the caller's transaction
            with transaction.atomic():
                entry = JournalEntry.objects.create(
                    company=draft.company,
                    period=period,
                    document_type=draft.document_type,
                    document_id=draft.document_id,
                    transition=draft.transition,
                    kind=draft.kind,
                    reverses=draft.reverses,
                    date=draft.date,
                    description=draft.description[:300],
                    created_by=draft.created_by,
                )
        except IntegrityError as exc:
            logger.warning(
                "Concurrent posting for %s#%s %s/%s",
                draft.document_type, draft.document_id,
                draft.transition, draft.kind,
            )
            raise ConcurrencyConflictError(
                f"{draft.document_type} {draft.document_id} was posted "
                f"concurrently ({draft.transition}/{draft.kind})"
            ) from exc

        JournalLine.objects.bulk_create([
            JournalLine(
                company=draft.company,
                journal=entry,
                line_no=no,
                account_id=line.account_id,
                side=line.side,
                amount=line.amount,
                description=line.description[:300],
            )
            for no, line in enumerate(draft.lines, start=1)
        ])

        deltas = defaultdict(Decimal)
        for line in draft.lines:
            acct = accounts[line.account_id]
            deltas[acct.pk] += signed_for(acct.natural_side, line.side, line.amount)
        for pk, delta in deltas.items():
            # read-modify-write is safe: the row is locked above
            LedgerAccount.objects.filter(pk=pk).update(
                current_balance=accounts[pk].current_balance + delta)

    logger.info(
        "Posted JE %s for %s#%s %s/%s (%s lines)",
        entry.pk, draft.document_type, draft.document_id,
        draft.transition, draft.kind, len(draft.lines),
    )
    return entry


def get_balance(account_id):
    """Current balance with explicit polarity."""
    try:
        account = LedgerAccount.objects.get(pk=account_id)
    except LedgerAccount.DoesNotExist:
        raise UnknownAccountError(f"Unknown ledger account {account_id}")
    return account.balance


def computed_balance(account):
    """Opening balance plus every journal line, from the audit trail."""
    aggs = JournalLine.objects.filter(account=account).aggregate(
        debit=models.Sum("amount", filter=models.Q(side=Side.DEBIT)),
        credit=models.Sum("amount", filter=models.Q(side=Side.CREDIT)),
    )
    debit = aggs["debit"] or ZERO
    credit = aggs["credit"] or ZERO
    movement = debit - credit if account.natural_side == Side.DEBIT else credit - debit
    return money(account.signed_opening + movement)


def recompute_balance(account):
    """Rebuild the cached balance from the journal trail.
    Returns (old, new)."""
    with transaction.atomic():
        locked = LedgerAccount.objects.select_for_update().get(pk=account.pk)
        new = computed_balance(locked)
        old = locked.current_balance
        if new != old:
            LedgerAccount.objects.filter(pk=locked.pk).update(current_balance=new)
            logger.warning(
                "Ledger %s balance drifted: cached=%s computed=%s",
                locked, old, new,
            )
    return old, new


def verify_balances(company):
    """Accounts whose cached balance disagrees with the journal trail."""
    drift = []
    for account in LedgerAccount.objects.for_company(company).order_by("code"):
        expected = computed_balance(account)
        if expected != account.current_balance:
            drift.append((account, account.current_balance, expected))
    return drift
