from .auditlog import AuditLog
from .company import Company, CompanyMembership, User
from .document import (PAYMENT_METHODS, Document, DocumentLine,
                       PaymentHistoryEntry)
from .item import Item
from .party import Party
from .payment import Payment, PaymentAllocation
from .sequence import DocumentSequence
