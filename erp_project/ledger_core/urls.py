from django.urls import path

from . import views

app_name = "ledger_core"

urlpatterns = [
    path(
        "documents/<int:document_id>/transition/",
        views.document_transition_view,
        name="document-transition",
    ),
    path(
        "ledgers/<int:account_id>/balance/",
        views.ledger_balance_view,
        name="ledger-balance",
    ),
    path(
        "items/<int:item_id>/valuation/<int:warehouse_id>/",
        views.item_valuation_view,
        name="item-valuation",
    ),
]
