from .account import (AccountNature, ControlAccount, ControlRole,
                      LedgerAccount, LedgerGroup, Side)
from .auditlog import AuditLog
from .company import Company
from .currency import Currency
from .document import (Document, DocumentLine, DocumentType, InvoiceStatus,
                       NoteStatus, OrderStatus, QuotationStatus, Transition,
                       VoucherStatus)
from .inventory import (CostLayer, Direction, LayerAllocation, MovementType,
                        StockMovement)
from .item import Item, ItemType, ValuationMethod, Warehouse
from .journal import EntryKind, JournalEntry, JournalLine
from .party import Party, PartyType
from .payment import Payment, PaymentKind
from .period import Period
from .voucher import VoucherEntry
