from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils.text import slugify

from billing_core.context import TenantContext
from billing_core.models import Company, CompanyMembership, Item, Party
from billing_core.services.documents import LineRequest, build_document

User = get_user_model()

DEMO_PARTIES = [
    # (name, phone, party_type)
    ("Sharma Traders", "9876543210", "customer"),
    ("Gupta Wholesale", "9123456780", "supplier"),
]

DEMO_ITEMS = [
    # (name, code, hsn, gst, buy, sale, opening stock)
    ("Steel Bolt M8", "BOLT-M8", "7318", "18", "4.50", "7.00", "500"),
    ("Copper Wire 1mm", "CW-1MM", "7408", "12", "95.00", "130.00", "120"),
    ("Installation Service", "SRV-INST", "9987", "18", "0", "750.00", "0"),
]


class Command(BaseCommand):
    help = ("Create a demo tenant (company), user, membership, parties, "
            "items and one sample sales order.")

    def add_arguments(self, parser):
        parser.add_argument("--company-name", default="Demo Company",
                            help="Name of the demo company to create.")
        parser.add_argument("--username", default="demo",
                            help="Username for the demo user.")
        parser.add_argument("--password", default="demo123",
                            help="Password for the demo user.")

    def _unique_slug(self, name, max_tries=100):
        # "Demo Co" -> "demo-co", then "demo-co-1", "demo-co-2", ...
        base = slugify(name) or "company"
        slug, i = base, 1
        while Company.objects.filter(slug=slug).exists():
            slug = f"{base}-{i}"
            i += 1
            if i > max_tries:
                raise RuntimeError("Couldn't generate unique slug")
        return slug

    @transaction.atomic
    def handle(self, *args, **options):
        company_name = options["company_name"]
        username = options["username"]
        password = options["password"]

        # 1. Company
        company = Company.objects.filter(name=company_name).first()
        if company is None:
            company = Company.objects.create(
                name=company_name, slug=self._unique_slug(company_name),
                state_code="27")
        self.stdout.write(self.style.SUCCESS(f"Company: {company}"))

        # 2. User + membership
        user, created = User.objects.get_or_create(
            username=username,
            defaults={"email": f"{username}@example.com"},
        )
        if created:
            user.set_password(password)
        user.default_company = company
        user.save()
        CompanyMembership.objects.get_or_create(
            user=user, company=company, defaults={"role": "owner"})
        if company.owner_id is None:
            company.owner = user
            company.save(update_fields=["owner"])
        self.stdout.write(
            self.style.SUCCESS(f"User: {user.username} (pw={password})"))

        # 3. Parties
        parties = {}
        for name, phone, party_type in DEMO_PARTIES:
            party, _ = Party.objects.get_or_create(
                company=company, phone_number=phone, is_active=True,
                defaults={"name": name, "party_type": party_type,
                          "created_by": user},
            )
            parties[party_type] = party

        # 4. Items
        items = []
        for name, code, hsn, gst, buy, sale, stock in DEMO_ITEMS:
            item, _ = Item.objects.get_or_create(
                company=company, item_code=code,
                defaults={
                    "name": name,
                    "hsn_code": hsn,
                    "item_type": "service" if code.startswith("SRV") else "product",
                    "gst_rate": Decimal(gst),
                    "buy_price": Decimal(buy),
                    "sale_price": Decimal(sale),
                    "opening_stock": Decimal(stock),
                    "created_by": user,
                },
            )
            items.append(item)
        self.stdout.write(self.style.SUCCESS(
            f"{len(parties)} parties, {len(items)} items"))

        # 5. A sample order, first run only
        customer = parties["customer"]
        if not customer.documents.exists():
            ctx = TenantContext(company=company, user=user)
            order = build_document(
                ctx, "sales_order", customer,
                [LineRequest(item_id=items[0].pk, quantity=100,
                             unit_price=items[0].sale_price,
                             gst_rate=items[0].gst_rate),
                 LineRequest(item_id=items[2].pk, quantity=1,
                             unit_price=items[2].sale_price,
                             gst_rate=items[2].gst_rate)],
                advance_amount=Decimal("500.00"),
                payment_method="upi",
                credit_days=15,
            )
            self.stdout.write(self.style.SUCCESS(
                f"Sample order {order.number} ({order.final_total})"))
