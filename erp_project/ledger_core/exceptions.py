from django.core.exceptions import ValidationError


class LedgerError(Exception):
    """Base for errors raised by the posting and valuation core."""
    pass


class UnbalancedJournalError(LedgerError):
    """Raised when a journal draft fails the double-entry balance check.
    Always a posting template bug; nothing is persisted."""
    pass


class UnknownAccountError(LedgerError):
    """Raised when a journal line names an account that does not exist
    for the company (or a control account role is not configured)."""
    pass


class InactiveAccountError(LedgerError):
    """Raised when a journal line targets a deactivated account."""
    pass


class InsufficientStockError(LedgerError):
    """Raised when an OUT movement asks for more than the open layers hold."""

    def __init__(self, requested, available, item=None, warehouse=None):
        self.requested = requested
        self.available = available
        self.item = item
        self.warehouse = warehouse
        super().__init__(
            f"insufficient stock: requested {requested}, available {available}"
        )


class ConcurrencyConflictError(LedgerError):
    """Raised when a document changed under us (stale status or version),
    or a concurrent writer won the idempotency race. Safe to retry."""
    pass


class InvalidTransitionError(ValidationError):
    """Raised when a status change is not an edge of the document's table."""
    pass
