from .auditlog import AuditLogAdmin
from .company import CompanyAdmin, CompanyMembershipAdmin, UserAdmin
from .document import DocumentAdmin
from .mixins import TenantAdminMixin
from .party import ItemAdmin, PartyAdmin
from .payment import PaymentAdmin
from .readonly import ReadOnlyAdmin
