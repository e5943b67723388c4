"""
GST line and document arithmetic.

Pure functions over Decimal: no ORM, no request state. Every amount that
leaves a function is quantized to paise with ROUND_HALF_UP (half away from
zero), and dependent sums are rounded before they feed the next step.
"""
from dataclasses import asdict, dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, List, Optional

from ..exceptions import InvalidLineItem

ZERO = Decimal("0.00")
HUNDRED = Decimal("100")
TWO_PLACES = Decimal("0.01")

# GST slabs an Item may carry
ALLOWED_GST_RATES = tuple(
    Decimal(r) for r in ("0", "0.25", "3", "5", "12", "18", "28"))


def to_decimal(value, default=ZERO) -> Decimal:
    """Coerce int/float/str/None into Decimal without binary float noise."""
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        result = value
    else:
        if isinstance(value, float):
            # str() first: Decimal(0.1) would keep the float error
            value = repr(value)
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"Not a number: {value!r}")
    # NaN and Infinity parse but cannot be quantized
    if not result.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return result


def round2(value) -> Decimal:
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class TaxRates:
    cgst: Decimal = ZERO
    sgst: Decimal = ZERO
    igst: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.cgst + self.sgst + self.igst


def split_gst(gst_rate=None, cgst_rate=None, sgst_rate=None, igst_rate=None):
    """Resolve component rates for one line.

    Explicit components win. A flat GST rate is split evenly into CGST and
    SGST (intra-state); IGST stays 0 unless given explicitly.
    """
    if any(r not in (None, "") for r in (cgst_rate, sgst_rate, igst_rate)):
        return TaxRates(
            cgst=to_decimal(cgst_rate),
            sgst=to_decimal(sgst_rate),
            igst=to_decimal(igst_rate),
        )
    rate = to_decimal(gst_rate)
    half = rate / 2
    return TaxRates(cgst=half, sgst=half, igst=ZERO)


@dataclass(frozen=True)
class LineAmounts:
    base_amount: Decimal
    discount_amount: Decimal
    taxable_amount: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    total_tax: Decimal
    item_amount: Decimal
    rates: TaxRates = field(default_factory=TaxRates)

    def as_dict(self):
        data = asdict(self)
        data.pop("rates")
        return data


def compute_line(
    quantity,
    unit_price,
    *,
    discount_percent=None,
    discount_amount=None,
    gst_rate=None,
    cgst_rate=None,
    sgst_rate=None,
    igst_rate=None,
    tax_inclusive=False,
) -> LineAmounts:
    """Tax breakdown for one line item.

    Exclusive mode adds tax on top of the discounted amount. Inclusive mode
    treats the discounted amount as already containing tax and backs the
    taxable value out of it, so the line amount does not change.
    """
    try:
        qty = to_decimal(quantity, default=None)
        price = to_decimal(unit_price, default=None)
        pct = to_decimal(discount_percent)
        flat_discount = to_decimal(discount_amount)
        rates = split_gst(gst_rate, cgst_rate, sgst_rate, igst_rate)
    except ValueError as exc:
        raise InvalidLineItem(str(exc))

    if qty is None or qty <= 0:
        raise InvalidLineItem("Quantity must be greater than 0",
                              code="quantity")
    if price is None or price < 0:
        raise InvalidLineItem("Unit price must be 0 or more",
                              code="unit_price")
    if pct < 0 or pct > HUNDRED:
        raise InvalidLineItem("Discount percent must be between 0 and 100",
                              code="discount_percent")
    if flat_discount < 0:
        raise InvalidLineItem("Discount amount cannot be negative",
                              code="discount_amount")
    if rates.cgst < 0 or rates.sgst < 0 or rates.igst < 0:
        raise InvalidLineItem("Tax rates cannot be negative", code="tax_rate")

    base = round2(qty * price)

    # an explicit amount wins over a percentage
    if flat_discount != 0:
        discount = round2(flat_discount)
    else:
        discount = round2(base * pct / HUNDRED)
    if discount > base:
        raise InvalidLineItem("Discount cannot exceed the line amount",
                              code="discount_amount")

    after_discount = base - discount

    if tax_inclusive and rates.total > 0:
        multiplier = 1 + rates.total / HUNDRED
        taxable = round2(after_discount / multiplier)
    else:
        taxable = after_discount

    cgst = round2(taxable * rates.cgst / HUNDRED)
    sgst = round2(taxable * rates.sgst / HUNDRED)
    igst = round2(taxable * rates.igst / HUNDRED)
    total_tax = round2(cgst + sgst + igst)

    if tax_inclusive:
        # tax is already inside the price
        item_amount = round2(after_discount)
    else:
        item_amount = round2(taxable + total_tax)

    return LineAmounts(
        base_amount=base,
        discount_amount=discount,
        taxable_amount=round2(taxable),
        cgst=cgst,
        sgst=sgst,
        igst=igst,
        total_tax=total_tax,
        item_amount=item_amount,
        rates=rates,
    )


@dataclass(frozen=True)
class DocumentTotals:
    subtotal: Decimal = ZERO
    discount_total: Decimal = ZERO
    taxable_total: Decimal = ZERO
    cgst_total: Decimal = ZERO
    sgst_total: Decimal = ZERO
    igst_total: Decimal = ZERO
    tax_total: Decimal = ZERO
    lines_total: Decimal = ZERO
    round_off: Decimal = ZERO
    final_total: Decimal = ZERO

    def as_dict(self):
        return asdict(self)


def auto_round_off(amount) -> Decimal:
    """Adjustment that brings an amount to the nearest whole rupee."""
    amount = round2(amount)
    whole = amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return round2(whole - amount)


def compute_totals(
    lines: Iterable[LineAmounts],
    *,
    round_off_enabled=False,
    round_off: Optional[object] = None,
) -> DocumentTotals:
    """Field-wise sum of line results, each sum rounded to paise.

    Round-off only applies when enabled: the caller's signed value, or the
    nearest-rupee adjustment when none is given.
    """
    lines: List[LineAmounts] = list(lines)

    def total(attr):
        return round2(sum((getattr(line, attr) for line in lines), ZERO))

    lines_total = total("item_amount")

    adjustment = ZERO
    if round_off_enabled:
        if round_off in (None, ""):
            adjustment = auto_round_off(lines_total)
        else:
            adjustment = round2(round_off)

    return DocumentTotals(
        subtotal=total("base_amount"),
        discount_total=total("discount_amount"),
        taxable_total=total("taxable_amount"),
        cgst_total=total("cgst"),
        sgst_total=total("sgst"),
        igst_total=total("igst"),
        tax_total=total("total_tax"),
        lines_total=lines_total,
        round_off=adjustment,
        final_total=round2(lines_total + adjustment),
    )


def price_pair(price, gst_rate, includes_tax):
    """(with_tax, without_tax) for an item price entered in either mode."""
    price = round2(price)
    multiplier = 1 + to_decimal(gst_rate) / HUNDRED
    if includes_tax:
        return price, round2(price / multiplier)
    return round2(price * multiplier), price
