import django.contrib.auth.validators
import django.db.models.deletion
import django.utils.timezone
from decimal import Decimal

import billing_core.managers
from django.conf import settings
from django.db import migrations, models


def money(**kwargs):
    return models.DecimalField(decimal_places=2, default=Decimal("0.00"),
                               max_digits=18, **kwargs)


def user_fk(**kwargs):
    return models.ForeignKey(
        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
        related_name="+", to=settings.AUTH_USER_MODEL, **kwargs)


PAYMENT_METHODS = [
    ("cash", "Cash"), ("card", "Card"), ("upi", "UPI"),
    ("bank_transfer", "Bank Transfer"), ("cheque", "Cheque"),
    ("credit", "Credit"), ("online", "Online"), ("other", "Other"),
]

DOC_TYPES = [
    ("quotation", "Quotation"),
    ("sales_order", "Sales order"),
    ("proforma_invoice", "Proforma invoice"),
    ("sales_invoice", "Sales invoice"),
    ("purchase_quotation", "Purchase quotation"),
    ("purchase_order", "Purchase order"),
    ("proforma_purchase", "Proforma purchase"),
    ("purchase_invoice", "Purchase invoice"),
]

DOC_STATUSES = [
    ("draft", "Draft"), ("sent", "Sent"), ("accepted", "Accepted"),
    ("rejected", "Rejected"), ("expired", "Expired"),
    ("confirmed", "Confirmed"), ("ordered", "Ordered"),
    ("partially_received", "Partially received"), ("received", "Received"),
    ("converted", "Converted"), ("completed", "Completed"),
    ("cancelled", "Cancelled"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("auth", "0012_alter_user_first_name_max_length"),
    ]

    operations = [
        migrations.CreateModel(
            name="Company",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("slug", models.SlugField(max_length=80, unique=True)),
                ("gst_number", models.CharField(blank=True, default="", max_length=15)),
                ("state_code", models.CharField(blank=True, default="", max_length=2)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "verbose_name_plural": "companies",
            },
        ),
        migrations.CreateModel(
            name="User",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("password", models.CharField(max_length=128, verbose_name="password")),
                ("last_login", models.DateTimeField(blank=True, null=True, verbose_name="last login")),
                ("is_superuser", models.BooleanField(default=False, help_text="Designates that this user has all permissions without explicitly assigning them.", verbose_name="superuser status")),
                ("username", models.CharField(error_messages={"unique": "A user with that username already exists."}, help_text="Required. 150 characters or fewer. Letters, digits and @/./+/-/_ only.", max_length=150, unique=True, validators=[django.contrib.auth.validators.UnicodeUsernameValidator()], verbose_name="username")),
                ("first_name", models.CharField(blank=True, max_length=150, verbose_name="first name")),
                ("last_name", models.CharField(blank=True, max_length=150, verbose_name="last name")),
                ("email", models.EmailField(blank=True, max_length=254, verbose_name="email address")),
                ("is_staff", models.BooleanField(default=False, help_text="Designates whether the user can log into this admin site.", verbose_name="staff status")),
                ("is_active", models.BooleanField(default=True, help_text="Designates whether this user should be treated as active. Unselect this instead of deleting accounts.", verbose_name="active")),
                ("date_joined", models.DateTimeField(default=django.utils.timezone.now, verbose_name="date joined")),
                ("phone", models.CharField(blank=True, max_length=32)),
                ("default_company", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="default_users", to="billing_core.company")),
                ("groups", models.ManyToManyField(blank=True, help_text="The groups this user belongs to. A user will get all permissions granted to each of their groups.", related_name="user_set", related_query_name="user", to="auth.group", verbose_name="groups")),
                ("user_permissions", models.ManyToManyField(blank=True, help_text="Specific permissions for this user.", related_name="user_set", related_query_name="user", to="auth.permission", verbose_name="user permissions")),
            ],
            options={
                "indexes": [models.Index(fields=["default_company"], name="user_default_company_idx")],
            },
            managers=[
                ("objects", billing_core.managers.TenantUserManager()),
            ],
        ),
        migrations.AddField(
            model_name="company",
            name="owner",
            field=models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="owned_companies", to=settings.AUTH_USER_MODEL),
        ),
        migrations.CreateModel(
            name="CompanyMembership",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("role", models.CharField(choices=[("owner", "Owner"), ("admin", "Admin"), ("accountant", "Accountant"), ("staff", "Staff"), ("viewer", "Viewer")], default="viewer", max_length=20)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="memberships", to="billing_core.company")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="memberships", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "indexes": [models.Index(fields=["company", "user"], name="membership_company_user_idx")],
                "constraints": [models.UniqueConstraint(fields=("user", "company"), name="uq_user_company_membership")],
            },
        ),
        migrations.CreateModel(
            name="Party",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("party_type", models.CharField(choices=[("customer", "Customer"), ("vendor", "Vendor"), ("supplier", "Supplier"), ("both", "Both")], default="customer", max_length=10)),
                ("name", models.CharField(max_length=100)),
                ("phone_number", models.CharField(blank=True, default="", max_length=15)),
                ("email", models.EmailField(blank=True, default="", max_length=254)),
                ("gst_number", models.CharField(blank=True, default="", max_length=15)),
                ("gst_type", models.CharField(choices=[("unregistered", "Unregistered"), ("regular", "Regular"), ("composition", "Composition")], default="unregistered", max_length=15)),
                ("opening_balance", money()),
                ("current_balance", money()),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="billing_core.company")),
                ("created_by", user_fk()),
            ],
            options={
                "verbose_name_plural": "parties",
                "indexes": [
                    models.Index(fields=["company", "name"], name="party_company_name_idx"),
                    models.Index(fields=["company", "phone_number"], name="party_company_phone_idx"),
                    models.Index(fields=["company", "party_type"], name="party_company_type_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(condition=models.Q(("is_active", True), models.Q(("phone_number", ""), _negated=True)), fields=("company", "phone_number"), name="uq_company_active_party_phone"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Item",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("item_code", models.CharField(blank=True, max_length=80, null=True)),
                ("item_type", models.CharField(choices=[("product", "Product"), ("service", "Service")], default="product", max_length=10)),
                ("hsn_code", models.CharField(blank=True, default="", max_length=20)),
                ("unit", models.CharField(blank=True, default="PCS", max_length=10)),
                ("category", models.CharField(blank=True, default="", max_length=100)),
                ("description", models.TextField(blank=True, default="")),
                ("gst_rate", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=5)),
                ("buy_price", money()),
                ("buy_price_includes_tax", models.BooleanField(default=False)),
                ("sale_price", money()),
                ("sale_price_includes_tax", models.BooleanField(default=False)),
                ("buy_price_with_tax", money()),
                ("buy_price_without_tax", money()),
                ("sale_price_with_tax", money()),
                ("sale_price_without_tax", money()),
                ("current_stock", models.DecimalField(decimal_places=4, default=0, max_digits=14)),
                ("opening_stock", models.DecimalField(decimal_places=4, default=0, max_digits=14)),
                ("min_stock_level", models.DecimalField(decimal_places=4, default=0, max_digits=14)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="billing_core.company")),
                ("created_by", user_fk()),
            ],
            options={
                "indexes": [
                    models.Index(fields=["company", "name"], name="item_company_name_idx"),
                    models.Index(fields=["company", "item_type"], name="item_company_type_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(condition=models.Q(("item_code__isnull", False)), fields=("company", "item_code"), name="uq_company_item_code"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Document",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("doc_type", models.CharField(choices=DOC_TYPES, max_length=20)),
                ("number", models.CharField(max_length=64)),
                ("document_date", models.DateField(default=django.utils.timezone.localdate)),
                ("valid_until", models.DateField(blank=True, null=True)),
                ("delivery_date", models.DateField(blank=True, null=True)),
                ("status", models.CharField(choices=DOC_STATUSES, default="draft", max_length=20)),
                ("tax_inclusive", models.BooleanField(default=False)),
                ("gst_enabled", models.BooleanField(default=True)),
                ("subtotal", money()),
                ("discount_total", money()),
                ("taxable_total", money()),
                ("cgst_total", money()),
                ("sgst_total", money()),
                ("igst_total", money()),
                ("tax_total", money()),
                ("round_off", money()),
                ("final_total", money()),
                ("payment_method", models.CharField(choices=PAYMENT_METHODS, default="credit", max_length=20)),
                ("payment_status", models.CharField(choices=[("pending", "Pending"), ("partial", "Partial"), ("paid", "Paid"), ("overdue", "Overdue"), ("cancelled", "Cancelled")], default="pending", max_length=10)),
                ("paid_amount", money()),
                ("advance_amount", money()),
                ("pending_amount", money()),
                ("credit_days", models.PositiveIntegerField(default=0)),
                ("due_date", models.DateField(blank=True, null=True)),
                ("payment_date", models.DateField(blank=True, null=True)),
                ("is_converted", models.BooleanField(default=False)),
                ("converted_at", models.DateTimeField(blank=True, null=True)),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="billing_core.company")),
                ("party", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="documents", to="billing_core.party")),
                ("converted_document", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to="billing_core.document")),
                ("source_document", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="derived_documents", to="billing_core.document")),
                ("converted_by", user_fk()),
                ("approved_by", user_fk()),
                ("created_by", user_fk()),
                ("last_modified_by", user_fk()),
            ],
            options={
                "indexes": [
                    models.Index(fields=["company", "doc_type", "status"], name="doc_company_type_status_idx"),
                    models.Index(fields=["company", "party"], name="doc_company_party_idx"),
                    models.Index(fields=["company", "document_date"], name="doc_company_date_idx"),
                    models.Index(fields=["payment_status", "due_date"], name="doc_paystatus_due_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("company", "number"), name="uq_company_document_number"),
                    models.CheckConstraint(condition=models.Q(("paid_amount__gte", 0), ("pending_amount__gte", 0)), name="document_non_negative_payment"),
                ],
            },
        ),
        migrations.CreateModel(
            name="DocumentLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("line_number", models.PositiveIntegerField()),
                ("item_name", models.CharField(max_length=200)),
                ("item_code", models.CharField(blank=True, default="", max_length=80)),
                ("hsn_code", models.CharField(blank=True, default="", max_length=20)),
                ("unit", models.CharField(blank=True, default="", max_length=10)),
                ("quantity", models.DecimalField(decimal_places=4, max_digits=14)),
                ("unit_price", models.DecimalField(decimal_places=2, max_digits=18)),
                ("discount_percent", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=5)),
                ("tax_inclusive", models.BooleanField(default=False)),
                ("cgst_rate", models.DecimalField(decimal_places=3, default=Decimal("0.00"), max_digits=6)),
                ("sgst_rate", models.DecimalField(decimal_places=3, default=Decimal("0.00"), max_digits=6)),
                ("igst_rate", models.DecimalField(decimal_places=3, default=Decimal("0.00"), max_digits=6)),
                ("base_amount", money()),
                ("discount_amount", money()),
                ("taxable_amount", money()),
                ("cgst_amount", money()),
                ("sgst_amount", money()),
                ("igst_amount", money()),
                ("tax_amount", money()),
                ("line_amount", money()),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="billing_core.company")),
                ("document", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="lines", to="billing_core.document")),
                ("item", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="+", to="billing_core.item")),
            ],
            options={
                "ordering": ["document", "line_number"],
                "constraints": [
                    models.UniqueConstraint(fields=("document", "line_number"), name="uq_document_line_no"),
                    models.CheckConstraint(condition=models.Q(("quantity__gt", 0), ("unit_price__gte", 0)), name="docline_positive_qty_price"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("payment_number", models.CharField(max_length=64)),
                ("payment_type", models.CharField(choices=[("payment_in", "Payment in"), ("payment_out", "Payment out")], max_length=12)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=18)),
                ("payment_method", models.CharField(choices=PAYMENT_METHODS, default="cash", max_length=20)),
                ("payment_date", models.DateField(default=django.utils.timezone.localdate)),
                ("reference", models.CharField(blank=True, default="", max_length=200)),
                ("notes", models.TextField(blank=True, default="")),
                ("party_balance_before", money()),
                ("party_balance_after", money()),
                ("status", models.CharField(choices=[("pending", "Pending"), ("completed", "Completed"), ("cancelled", "Cancelled"), ("failed", "Failed")], default="completed", max_length=10)),
                ("cancel_reason", models.TextField(blank=True, default="")),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="billing_core.company")),
                ("party", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="billing_core.party")),
                ("cancelled_by", user_fk()),
                ("created_by", user_fk()),
            ],
            options={
                "indexes": [
                    models.Index(fields=["company", "party", "payment_date"], name="pay_company_party_date_idx"),
                    models.Index(fields=["company", "payment_type", "payment_date"], name="pay_company_type_date_idx"),
                    models.Index(fields=["company", "status"], name="pay_company_status_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("company", "payment_number"), name="uq_company_payment_number"),
                    models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="payment_amount_positive"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentHistoryEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount", models.DecimalField(decimal_places=2, max_digits=18)),
                ("method", models.CharField(choices=PAYMENT_METHODS, default="cash", max_length=20)),
                ("reference", models.CharField(blank=True, default="", max_length=200)),
                ("paid_on", models.DateField(default=django.utils.timezone.localdate)),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="billing_core.company")),
                ("document", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="payment_history", to="billing_core.document")),
                ("payment", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="history_entries", to="billing_core.payment")),
                ("created_by", user_fk()),
            ],
            options={
                "ordering": ["document", "created_at", "id"],
                "verbose_name_plural": "payment history entries",
            },
        ),
        migrations.CreateModel(
            name="PaymentAllocation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("document_total", models.DecimalField(decimal_places=2, max_digits=18)),
                ("allocated_amount", models.DecimalField(decimal_places=2, max_digits=18)),
                ("remaining_amount", models.DecimalField(decimal_places=2, max_digits=18)),
                ("is_fully_paid", models.BooleanField(default=False)),
                ("allocated_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="billing_core.company")),
                ("document", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="allocations", to="billing_core.document")),
                ("payment", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="allocations", to="billing_core.payment")),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("payment", "document"), name="uq_payment_document"),
                    models.CheckConstraint(condition=models.Q(("allocated_amount__gt", 0), ("remaining_amount__gte", 0)), name="allocation_amounts_valid"),
                ],
            },
        ),
        migrations.CreateModel(
            name="DocumentSequence",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("prefix", models.CharField(max_length=16)),
                ("day", models.DateField()),
                ("last_value", models.PositiveIntegerField(default=0)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="billing_core.company")),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("company", "prefix", "day"), name="uq_sequence_company_prefix_day"),
                ],
            },
        ),
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(max_length=50)),
                ("object_type", models.CharField(max_length=100)),
                ("object_id", models.CharField(max_length=100)),
                ("changes", models.JSONField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to="billing_core.company")),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "indexes": [
                    models.Index(fields=["company", "created_at"], name="audit_company_created_idx"),
                    models.Index(fields=["object_type", "object_id"], name="audit_object_idx"),
                ],
            },
        ),
    ]
