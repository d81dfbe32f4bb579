from django.db import models


# ---------- Currency ----------
class Currency(models.Model):
    """
    ISO currencies. Use currency.code FK in other tables instead of free-text.
    """
    code = models.CharField(max_length=3, primary_key=True)  # 'INR', 'USD'
    name = models.CharField(max_length=64)
    symbol = models.CharField(max_length=8, blank=True, null=True)  # '₹'
    # Minor units. Amounts are always stored with 2 dp,
    # this only drives display.
    decimal_places = models.PositiveSmallIntegerField(default=2)

    def __str__(self):
        return f"{self.code} ({self.symbol or ''})"

    class Meta:
        verbose_name_plural = "currencies"
