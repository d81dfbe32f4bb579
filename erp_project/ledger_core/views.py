import json
import logging

from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from .exceptions import ConcurrencyConflictError, LedgerError
from .models import Document, Item, LedgerAccount, Warehouse
from .services import (get_item_valuation, get_ledger_balance,
                       post_document_transition)

logger = logging.getLogger(__name__)


def _error(exc, status):
    if isinstance(exc, ValidationError):
        message = "; ".join(exc.messages)
    else:
        message = str(exc)
    return JsonResponse(
        {"ok": False, "error": message, "type": exc.__class__.__name__},
        status=status,
    )


def _payload(request):
    if request.content_type == "application/json":
        try:
            return json.loads(request.body or b"{}")
        except json.JSONDecodeError:
            raise ValidationError("Request body is not valid JSON")
    return request.POST


@csrf_exempt
@require_POST
def document_transition_view(request, document_id):
    # 404 instead of a stack trace for an unknown document
    get_object_or_404(Document, pk=document_id)
    try:
        data = _payload(request)
        from_status = data.get("from_status")
        to_status = data.get("to_status")
        if not from_status or not to_status:
            raise ValidationError("from_status and to_status are required")
        version = data.get("expected_version")
        if version in (None, ""):
            version = None
        else:
            try:
                version = int(version)
            except (TypeError, ValueError):
                raise ValidationError("expected_version must be an integer")
        receipt = post_document_transition(
            document_id,
            from_status,
            to_status,
            expected_version=version,
            user=request.user,
        )
    except ConcurrencyConflictError as e:
        return _error(e, 409)
    except (ValidationError, LedgerError) as e:
        logger.info("Transition of document %s refused: %s", document_id, e)
        return _error(e, 400)
    return JsonResponse({"ok": True, **receipt.as_dict()})


@require_GET
def ledger_balance_view(request, account_id):
    account = get_object_or_404(LedgerAccount, pk=account_id)
    balance = get_ledger_balance(account.pk)
    return JsonResponse({
        "account_id": account.pk,
        "code": account.code,
        "name": account.name,
        **balance.as_dict(),
    })


@require_GET
def item_valuation_view(request, item_id, warehouse_id):
    item = get_object_or_404(Item, pk=item_id)
    warehouse = get_object_or_404(Warehouse, pk=warehouse_id)
    if item.company_id != warehouse.company_id:
        return JsonResponse(
            {"ok": False, "error": "Item and warehouse belong to different companies"},
            status=400,
        )
    valuation = get_item_valuation(item.pk, warehouse.pk)
    return JsonResponse({
        "item_id": item.pk,
        "warehouse_id": warehouse.pk,
        "quantity": str(valuation["quantity"]),
        "total_value": str(valuation["total_value"]),
        "method": valuation["method"],
    })
