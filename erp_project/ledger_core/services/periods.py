from django.core.exceptions import ValidationError

from ..models.period import Period


def resolve_period(company, date):
    """Period the posting date falls in.
    Companies that never defined periods post freely;
    a date inside a closed period is refused."""
    period = Period.objects.filter(
        company=company,
        start_date__lte=date,
        end_date__gte=date,
    ).first()
    if period and period.is_closed:
        raise ValidationError(
            f"Period {period.name} is closed, cannot post on {date}")
    return period


def close_period(period):
    if period.is_closed:
        return period
    period.is_closed = True
    period.save()
    return period
