from decimal import Decimal

from billing_core.context import TenantContext
from billing_core.models import Company, CompanyMembership, Party, User
from billing_core.services.documents import LineRequest


def make_tenant(slug="test-co", username=None):
    """Company + owner user + context, the way a request would see them."""
    company = Company.objects.create(name=slug.replace("-", " ").title(),
                                     slug=slug)
    user = User.objects.create_user(username=username or f"{slug}-user",
                                    password="pw", default_company=company)
    CompanyMembership.objects.create(user=user, company=company, role="owner")
    return company, user, TenantContext(company=company, user=user)


def make_party(company, name="Ravi Kumar", phone="9876543210",
               party_type="customer", opening_balance="0.00"):
    return Party.objects.create(
        company=company, name=name, phone_number=phone,
        party_type=party_type, opening_balance=Decimal(opening_balance),
    )


def plain_line(quantity=10, unit_price=100, **kwargs):
    """No discount, no tax: line amount = quantity x price."""
    kwargs.setdefault("name", "Widget")
    kwargs.setdefault("gst_rate", 0)
    return LineRequest(quantity=quantity, unit_price=unit_price, **kwargs)
