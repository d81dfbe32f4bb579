from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from .company import Company


# ---------- Period (accounting period) ----------
class Period(models.Model):
    """
    A date range of the books. Once is_closed is set no journal entry
    dated inside the range can be posted, reversals included.
    """

    company = models.ForeignKey(Company, on_delete=models.PROTECT)
    name = models.CharField(max_length=50)  # "FY2025-26 Q1", "2025-07"
    start_date = models.DateField()
    end_date = models.DateField()
    is_closed = models.BooleanField(default=False)

    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "start_date"], name="period_company_start_idx"),
            models.Index(fields=["company", "is_closed"], name="period_company_closed_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "name"], name="uq_company_period_name"),
        ]
        ordering = ("company", "start_date")

    def __str__(self):
        return f"{self.company.slug} {self.name}"

    def clean(self):
        if self.start_date >= self.end_date:
            raise ValidationError("start_date must be before end_date")
        overlapping = Period.objects.filter(
            company_id=self.company_id,
            start_date__lte=self.end_date,
            end_date__gte=self.start_date,
        ).exclude(pk=self.pk)
        if overlapping.exists():
            raise ValidationError("Accounting periods cannot overlap")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
