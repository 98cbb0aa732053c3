"""
Line item and document total calculations.

Every monetary field is computed from unrounded intermediates and rounded
once, half-up, to 2 decimal places. Document totals are sums of the rounded
line fields, so ``subtotal - total_discount + total_tax`` and the sum of
``item_total`` agree to the cent. For example 3 x 33.335 at 5% tax gives a
line total of 100.01, tax of 5.00 and an item total of 105.01.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from gstbook.core.exceptions import ValidationError
from gstbook.core.money import HUNDRED, ZERO, to_decimal, to_money
from gstbook.models.common import GstClassification, PaymentStatus


@dataclass(frozen=True)
class LineItemAmounts:
    line_total: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    item_total: Decimal

    @property
    def taxable_amount(self) -> Decimal:
        return self.line_total - self.discount_amount


@dataclass(frozen=True)
class TaxBreakdownRow:
    rate: Decimal
    taxable_amount: Decimal
    tax_amount: Decimal


@dataclass(frozen=True)
class DocumentTotals:
    subtotal: Decimal
    total_discount: Decimal
    total_tax: Decimal
    total_amount: Decimal
    tax_breakdown: List[TaxBreakdownRow] = field(default_factory=list)


def _validate_item(quantity: Decimal, unit_price: Decimal, discount_percent: Decimal, tax_rate: Decimal) -> None:
    # Request schemas validate first; this catches anything that bypassed them
    if quantity <= 0:
        raise ValidationError("Quantity must be greater than zero")
    if unit_price < 0:
        raise ValidationError("Unit price cannot be negative")
    if discount_percent < 0 or discount_percent > HUNDRED:
        raise ValidationError("Discount must be between 0 and 100 percent")
    if tax_rate < 0 or tax_rate > HUNDRED:
        raise ValidationError("Tax rate must be between 0 and 100 percent")


def calculate_item(
    quantity: Any,
    unit_price: Any,
    discount_percent: Any = 0,
    tax_rate: Any = 0,
    is_tax_exempt: bool = False,
) -> LineItemAmounts:
    """
    Amounts for a single line.

    line_total      = quantity * unit_price
    discount_amount = line_total * discount_percent / 100
    tax_amount      = (line_total - discount_amount) * tax_rate / 100, 0 if exempt
    item_total      = line_total - discount_amount + tax_amount
    """
    quantity = to_decimal(quantity)
    unit_price = to_decimal(unit_price)
    discount_percent = to_decimal(discount_percent)
    tax_rate = to_decimal(tax_rate)
    _validate_item(quantity, unit_price, discount_percent, tax_rate)

    line_total = quantity * unit_price
    discount_amount = line_total * discount_percent / HUNDRED
    taxable = line_total - discount_amount
    tax_amount = Decimal("0") if is_tax_exempt else taxable * tax_rate / HUNDRED

    line_total = to_money(line_total)
    discount_amount = to_money(discount_amount)
    tax_amount = to_money(tax_amount)
    # Built from the rounded fields so the item totals sum to the document total
    return LineItemAmounts(
        line_total=line_total,
        discount_amount=discount_amount,
        tax_amount=tax_amount,
        item_total=line_total - discount_amount + tax_amount,
    )


def calculate_totals(items: Iterable[Dict[str, Any]]) -> DocumentTotals:
    """
    Document totals from line inputs.

    Each item is a mapping with ``quantity``, ``unit_price`` and optionally
    ``discount_percent``, ``tax_rate`` and ``is_tax_exempt``. Credit and
    debit notes leave out ``discount_percent``.
    """
    subtotal = ZERO
    total_discount = ZERO
    total_tax = ZERO
    by_rate: Dict[Decimal, List[Decimal]] = {}

    for item in items:
        is_exempt = bool(item.get("is_tax_exempt", False))
        amounts = calculate_item(
            quantity=item["quantity"],
            unit_price=item["unit_price"],
            discount_percent=item.get("discount_percent") or 0,
            tax_rate=item.get("tax_rate") or 0,
            is_tax_exempt=is_exempt,
        )
        subtotal += amounts.line_total
        total_discount += amounts.discount_amount
        total_tax += amounts.tax_amount

        rate = ZERO if is_exempt else to_money(item.get("tax_rate") or 0)
        bucket = by_rate.setdefault(rate, [ZERO, ZERO])
        bucket[0] += amounts.taxable_amount
        bucket[1] += amounts.tax_amount

    breakdown = [
        TaxBreakdownRow(rate=rate, taxable_amount=taxable, tax_amount=tax)
        for rate, (taxable, tax) in sorted(by_rate.items())
    ]

    return DocumentTotals(
        subtotal=subtotal,
        total_discount=total_discount,
        total_tax=total_tax,
        total_amount=subtotal - total_discount + total_tax,
        tax_breakdown=breakdown,
    )


def gst_classification(tax_rate: Any, is_tax_exempt: bool) -> str:
    """
    STANDARD, ZERO_RATED or EXEMPT for a line.

    Exemption wins over the rate; a 0% rate without exemption is zero-rated.
    """
    if is_tax_exempt:
        return GstClassification.EXEMPT.value
    if to_decimal(tax_rate) == 0:
        return GstClassification.ZERO_RATED.value
    return GstClassification.STANDARD.value


def resolve_classification(tax_rate: Any, is_tax_exempt: bool, requested: Optional[str] = None) -> str:
    """
    Classification to store on a line.

    Bills and notes may state a classification explicitly; it must agree
    with the rate. Otherwise it is derived.
    """
    if not requested:
        return gst_classification(tax_rate, is_tax_exempt)

    requested = requested.upper()
    if requested not in {c.value for c in GstClassification}:
        raise ValidationError(f"Unknown GST classification '{requested}'")
    if requested == GstClassification.ZERO_RATED.value and to_decimal(tax_rate) != 0:
        raise ValidationError("Zero-rated lines must have a 0% tax rate")
    if requested == GstClassification.STANDARD.value and (is_tax_exempt or to_decimal(tax_rate) == 0):
        raise ValidationError("Standard-rated lines need a tax rate above 0% and no exemption")
    return requested


def calculate_amount_due(total_amount: Any, amount_paid: Any) -> Decimal:
    """Outstanding balance, floored at zero."""
    due = to_money(total_amount) - to_money(amount_paid)
    return due if due > 0 else ZERO


def determine_payment_status(total_amount: Any, amount_paid: Any) -> str:
    total = to_money(total_amount)
    paid = to_money(amount_paid)
    if paid >= total:
        return PaymentStatus.PAID.value
    if paid > 0:
        return PaymentStatus.PARTIAL.value
    return PaymentStatus.UNPAID.value
