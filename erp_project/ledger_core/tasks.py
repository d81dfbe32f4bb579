import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task  # register this function as a Celery task
def recompute_ledger_balances(company_id):
    """
    Rebuild every cached ledger balance of a company from its journal
    lines. Returns the accounts that had drifted as
    [{"account_id", "code", "old", "new"}].
    """
    # import lazily to avoid circular imports at module import time
    from .models import LedgerAccount
    from .services.registry import recompute_balance

    corrected = []
    for account in LedgerAccount.objects.filter(company_id=company_id).order_by("pk"):
        old, new = recompute_balance(account)
        if old != new:
            corrected.append({
                "account_id": account.pk,
                "code": account.code,
                "old": str(old),
                "new": str(new),
            })

    logger.info(
        "Recomputed ledger balances for company %s, %s corrected",
        company_id, len(corrected),
    )
    return corrected
