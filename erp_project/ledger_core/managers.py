from django.db import models


# -----------------------------------------
# Enforce tenant scoping across all models
# that belong to a company
# -----------------------------------------
class TenantQuerySet(models.QuerySet):
    def for_company(self, company):
        return self.filter(company=company)

    def active(self, company):
        return self.filter(
            company=company,  # enforce tenant scoping
            is_active=True,  # only fetch active records
        )
    # LedgerAccount.objects.active(company)


class TenantManager(models.Manager.from_queryset(TenantQuerySet)):
    pass


class CostLayerQuerySet(TenantQuerySet):
    """Layers of one item in one warehouse."""

    def for_stock(self, item, warehouse):
        return self.filter(item=item, warehouse=warehouse)

    def open(self):
        # fully consumed / merged layers are kept for audit
        # but never take part in valuation
        return self.filter(remaining_quantity__gt=0)

    def fifo(self):
        return self.order_by("acquisition_date", "sequence")

    def lifo(self):
        return self.order_by("-acquisition_date", "-sequence")


class CostLayerManager(models.Manager.from_queryset(CostLayerQuerySet)):
    pass
