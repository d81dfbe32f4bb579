from collections import defaultdict

from django.db import models

from ..models import (AccountNature, CostLayer, JournalLine, LedgerAccount,
                      Side)
from ..money import ZERO, balance_from_signed, money, signed_for


def trial_balance(company):
    """One row per account with its balance in the debit or credit column.
    Debit and credit totals agree whenever opening balances do."""
    rows = []
    total_debit = total_credit = money(ZERO)
    for account in LedgerAccount.objects.for_company(company).order_by("code"):
        bal = account.balance
        debit = bal.amount if bal.side == Side.DEBIT else money(ZERO)
        credit = bal.amount if bal.side == Side.CREDIT else money(ZERO)
        total_debit += debit
        total_credit += credit
        rows.append({
            "account_id": account.pk,
            "code": account.code,
            "name": account.name,
            "nature": account.nature,
            "debit": debit,
            "credit": credit,
        })
    return {"rows": rows, "total_debit": total_debit, "total_credit": total_credit}


def ledger_report(company, date_from=None, date_to=None):
    """Opening, period debits / credits and closing per account,
    computed from journal lines (not the cached balance)."""
    lines = JournalLine.objects.filter(company=company)
    before = defaultdict(lambda: ZERO)
    if date_from:
        earlier = (lines.filter(journal__date__lt=date_from)
                   .values("account_id", "side")
                   .annotate(total=models.Sum("amount")))
        for row in earlier:
            before[(row["account_id"], row["side"])] = row["total"]

    in_range = lines
    if date_from:
        in_range = in_range.filter(journal__date__gte=date_from)
    if date_to:
        in_range = in_range.filter(journal__date__lte=date_to)
    sums = defaultdict(lambda: ZERO)
    for row in (in_range.values("account_id", "side")
                .annotate(total=models.Sum("amount"))):
        sums[(row["account_id"], row["side"])] = row["total"]

    report = []
    for account in LedgerAccount.objects.for_company(company).order_by("code"):
        side = account.natural_side
        opening = (account.signed_opening
                   + signed_for(side, Side.DEBIT, before[(account.pk, Side.DEBIT)])
                   + signed_for(side, Side.CREDIT, before[(account.pk, Side.CREDIT)]))
        debit = sums[(account.pk, Side.DEBIT)]
        credit = sums[(account.pk, Side.CREDIT)]
        closing = (opening + signed_for(side, Side.DEBIT, debit)
                   + signed_for(side, Side.CREDIT, credit))
        report.append({
            "account_id": account.pk,
            "code": account.code,
            "name": account.name,
            "opening": balance_from_signed(side, opening),
            "debit": money(debit),
            "credit": money(credit),
            "closing": balance_from_signed(side, closing),
        })
    return report


def _natural_totals(company, natures, date_from=None, date_to=None,
                    with_opening=True):
    """[(account, amount)] for accounts of `natures`, amount signed
    towards the account's natural side, from journal lines."""
    lines = JournalLine.objects.filter(
        company=company, account__nature__in=natures)
    if date_from:
        lines = lines.filter(journal__date__gte=date_from)
    if date_to:
        lines = lines.filter(journal__date__lte=date_to)
    sums = {
        row["account_id"]: row
        for row in lines.values("account_id").annotate(
            debit=models.Sum("amount", filter=models.Q(side=Side.DEBIT)),
            credit=models.Sum("amount", filter=models.Q(side=Side.CREDIT)),
        )
    }
    result = []
    accounts = (LedgerAccount.objects.for_company(company)
                .filter(nature__in=natures).order_by("code"))
    for account in accounts:
        row = sums.get(account.pk, {})
        side = account.natural_side
        amount = (signed_for(side, Side.DEBIT, row.get("debit") or ZERO)
                  + signed_for(side, Side.CREDIT, row.get("credit") or ZERO))
        if with_opening:
            amount += account.signed_opening
        result.append((account, money(amount)))
    return result


def _rows(pairs):
    return [{
        "account_id": account.pk,
        "code": account.code,
        "name": account.name,
        "amount": amount,
    } for account, amount in pairs if amount != 0]


def profit_and_loss(company, date_from=None, date_to=None):
    """Income and expense accounts over a date range. Contra accounts
    (sales returns, purchase returns) show as negative amounts."""
    with_opening = date_from is None
    income = _natural_totals(
        company, [AccountNature.INCOME], date_from, date_to, with_opening)
    expenses = _natural_totals(
        company, [AccountNature.EXPENSE], date_from, date_to, with_opening)
    total_income = sum((amount for _, amount in income), money(ZERO))
    total_expenses = sum((amount for _, amount in expenses), money(ZERO))
    return {
        "income": _rows(income),
        "expenses": _rows(expenses),
        "total_income": total_income,
        "total_expenses": total_expenses,
        "net_profit": total_income - total_expenses,
    }


def balance_sheet(company, as_of=None):
    """Assets against liabilities, equity and the profit to date.
    `balanced` is False only when opening balances disagree."""
    assets = _natural_totals(company, [AccountNature.ASSET], date_to=as_of)
    liabilities = _natural_totals(
        company, [AccountNature.LIABILITY], date_to=as_of)
    equity = _natural_totals(company, [AccountNature.EQUITY], date_to=as_of)
    net_profit = profit_and_loss(company, date_to=as_of)["net_profit"]

    total_assets = sum((amount for _, amount in assets), money(ZERO))
    total_liabilities = sum((amount for _, amount in liabilities), money(ZERO))
    total_equity = sum((amount for _, amount in equity), money(ZERO))
    return {
        "assets": _rows(assets),
        "liabilities": _rows(liabilities),
        "equity": _rows(equity),
        "net_profit": net_profit,
        "total_assets": total_assets,
        "total_liabilities": total_liabilities,
        "total_equity": total_equity,
        "balanced": total_assets == total_liabilities + total_equity + net_profit,
    }


def stock_summary(company):
    """On-hand quantity and value per item and warehouse (open layers)."""
    summary = {}
    layers = (CostLayer.objects.for_company(company).open()
              .select_related("item", "warehouse"))
    for layer in layers:
        key = (layer.item_id, layer.warehouse_id)
        row = summary.setdefault(key, {
            "item_id": layer.item_id,
            "sku": layer.item.sku,
            "warehouse_id": layer.warehouse_id,
            "warehouse": layer.warehouse.code,
            "method": layer.item.valuation_method,
            "quantity": ZERO,
            "value": ZERO,
        })
        row["quantity"] += layer.remaining_quantity
        row["value"] += layer.remaining_value
    for row in summary.values():
        row["value"] = money(row["value"])
    return sorted(summary.values(), key=lambda r: (r["sku"], r["warehouse"]))
