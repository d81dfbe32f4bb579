import json
import logging
from typing import Optional

from django.core.serializers.json import DjangoJSONEncoder

from ..models import AuditLog, Company

logger = logging.getLogger(__name__)


def _jsonable(changes):
    # Decimal amounts and dates become strings
    if changes is None:
        return None
    return json.loads(json.dumps(changes, cls=DjangoJSONEncoder))


def log_action(
    *,
    action: str,
    instance,
    user=None,
    company: Optional[Company] = None,
    changes: dict | None = None,
) -> AuditLog:
    """
    Record `action` on `instance` in the audit log.
    Runs inside the caller's transaction, so a rolled back
    transition leaves no audit row behind.
    """
    company = company or getattr(instance, "company", None)

    # anonymous / system actors are stored as NULL
    if user is not None and not getattr(user, "is_authenticated", False):
        user = None

    entry = AuditLog.objects.create(
        company=company,
        user=user,
        action=action,
        object_type=type(instance).__name__,
        object_id=str(instance.pk),
        changes=_jsonable(changes),
    )
    logger.debug("audit %s %s(%s)", action, entry.object_type, entry.object_id)
    return entry
