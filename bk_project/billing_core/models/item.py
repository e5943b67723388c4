from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from ..services.tax import ALLOWED_GST_RATES, price_pair
from .company import Company

ITEM_TYPES = [
    ("product", "Product"),
    ("service", "Service"),
]


# ---------- Items (product/service) ----------
class Item(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE)

    name = models.CharField(max_length=200)
    # optional, unique within a company when present
    item_code = models.CharField(max_length=80, null=True, blank=True)
    item_type = models.CharField(max_length=10, choices=ITEM_TYPES,
                                 default="product")
    hsn_code = models.CharField(max_length=20, blank=True, default="")
    unit = models.CharField(max_length=10, blank=True, default="PCS")
    category = models.CharField(max_length=100, blank=True, default="")
    description = models.TextField(blank=True, default="")

    gst_rate = models.DecimalField(max_digits=5, decimal_places=2,
                                   default=Decimal("0.00"))

    # prices as entered, plus the flag saying which side of tax they are on
    buy_price = models.DecimalField(max_digits=18, decimal_places=2,
                                    default=Decimal("0.00"))
    buy_price_includes_tax = models.BooleanField(default=False)
    sale_price = models.DecimalField(max_digits=18, decimal_places=2,
                                     default=Decimal("0.00"))
    sale_price_includes_tax = models.BooleanField(default=False)

    # derived on every save
    buy_price_with_tax = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))
    buy_price_without_tax = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))
    sale_price_with_tax = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))
    sale_price_without_tax = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))

    # stock only means something for products
    current_stock = models.DecimalField(max_digits=14, decimal_places=4,
                                        default=0)
    opening_stock = models.DecimalField(max_digits=14, decimal_places=4,
                                        default=0)
    min_stock_level = models.DecimalField(max_digits=14, decimal_places=4,
                                          default=0)

    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "name"], name="item_company_name_idx"),
            models.Index(fields=["company", "item_type"], name="item_company_type_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "item_code"],
                condition=models.Q(item_code__isnull=False),
                name="uq_company_item_code",
            ),
        ]

    def __str__(self):
        return self.name

    @property
    def is_service(self):
        return self.item_type == "service"

    @property
    def stock_status(self):
        if self.is_service:
            return "N/A"
        if self.current_stock <= 0:
            return "Out of Stock"
        if self.current_stock <= self.min_stock_level:
            return "Low Stock"
        return "In Stock"

    def clean(self):
        if Decimal(self.gst_rate) not in ALLOWED_GST_RATES:
            raise ValidationError(
                {"gst_rate": f"GST rate must be one of "
                             f"{', '.join(str(r) for r in ALLOWED_GST_RATES)}"})
        if self.buy_price < 0 or self.sale_price < 0:
            raise ValidationError("Prices cannot be negative.")
        if not self.is_service and self.current_stock < 0:
            raise ValidationError({"current_stock": "Stock cannot go below 0"})

    def save(self, *args, **kwargs):
        self.item_code = (self.item_code or "").strip() or None

        if self.is_service:
            self.current_stock = 0
            self.opening_stock = 0
            self.min_stock_level = 0
        elif self._state.adding and not self.current_stock:
            self.current_stock = self.opening_stock or 0

        self.buy_price_with_tax, self.buy_price_without_tax = price_pair(
            self.buy_price, self.gst_rate, self.buy_price_includes_tax)
        self.sale_price_with_tax, self.sale_price_without_tax = price_pair(
            self.sale_price, self.gst_rate, self.sale_price_includes_tax)

        self.full_clean()
        return super().save(*args, **kwargs)
