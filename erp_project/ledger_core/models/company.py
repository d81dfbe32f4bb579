from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models


# ---------- Tenant / Company ----------
class Company(models.Model):
    """Tenant / Organization (the seller side of every sales document)"""

    name = models.CharField(max_length=200)
    # URL-friendly identifier, unique across tenants
    slug = models.SlugField(max_length=80, unique=True)

    # Functional currency of the books
    default_currency = models.ForeignKey(
        "Currency",
        on_delete=models.PROTECT,
        related_name="companies",
    )
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
    )

    # Tax registration. state_code is the GST jurisdiction,
    # when blank the first two characters of the GSTIN are used
    gstin = models.CharField(max_length=15, blank=True)
    state_code = models.CharField(max_length=2, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name_plural = "companies"

    def __str__(self):
        return self.name

    @property
    def jurisdiction(self):
        return self.state_code or (self.gstin[:2] if self.gstin else "")

    def clean(self):
        if self.gstin and len(self.gstin) != 15:
            raise ValidationError("GSTIN must be 15 characters")
        if self.gstin and self.state_code and self.gstin[:2] != self.state_code:
            raise ValidationError("GSTIN does not match the company state code")
