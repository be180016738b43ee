"""
Invoice financial engine.

Pure functions over in-memory values: no database, no clock. Everything is
computed with Decimal at full precision; only the figures that get persisted
(item total, subtotal, total tax, total, balance) are rounded to cents, once,
at the end.

Conventions:
- Discounts never push an amount below zero (line or invoice).
- BY_PRODUCT: item tax is folded into the item total, so the subtotal is
  tax-inclusive and total == subtotal. total_tax is reported for display.
- BY_TOTAL: items carry no tax; one percentage applies to VAT-enabled items
  and is added on top of the discounted subtotal.
- NONE: no tax anywhere.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Sequence

from core.models.pricing import (
    Discount, NoDiscount, PercentageDiscount, FixedDiscount,
    TaxPolicy, ProductTax, TotalTax, discount_from_columns,
)
from utils.money import HUNDRED, ZERO, to_decimal, to_money, sum_money


@dataclass(frozen=True)
class PricedLine:
    """The inputs of one invoice line that affect money."""

    quantity: Decimal
    unit_price: Decimal
    discount: Discount = NoDiscount()
    tax: Decimal = ZERO
    vat_enabled: bool = False


@dataclass(frozen=True)
class LineAmounts:
    """Unrounded breakdown of one line."""

    base: Decimal
    discount_amount: Decimal
    after_discount: Decimal
    tax: Decimal
    total: Decimal


@dataclass(frozen=True)
class InvoiceTotals:
    """Invoice figures, rounded to cents and ready to persist."""

    items_subtotal: Decimal
    discount_amount: Decimal
    subtotal: Decimal
    total_tax: Decimal
    total: Decimal
    paid: Decimal
    balance: Decimal


def priced_line(item) -> PricedLine:
    """PricedLine from a stored InvoiceItem (or any object with its columns)."""
    return PricedLine(
        quantity=to_decimal(item.quantity),
        unit_price=to_decimal(item.unit_price),
        discount=discount_from_columns(item.discount_type, item.discount),
        tax=to_decimal(item.tax),
        vat_enabled=bool(item.vat_enabled),
    )


def apply_discount(amount: Decimal, discount: Discount) -> Decimal:
    """Return amount after discount, never below zero."""
    if isinstance(discount, PercentageDiscount):
        discounted = amount * (1 - discount.amount / HUNDRED)
    elif isinstance(discount, FixedDiscount):
        discounted = amount - discount.amount
    else:
        discounted = amount
    return max(discounted, ZERO)


def compute_line(line: PricedLine, tax_policy: TaxPolicy) -> LineAmounts:
    """Break one line down into base, discount, tax and total."""
    base = to_decimal(line.quantity) * to_decimal(line.unit_price)
    after_discount = apply_discount(base, line.discount)

    if isinstance(tax_policy, ProductTax):
        tax = after_discount * to_decimal(line.tax) / HUNDRED
    else:
        tax = ZERO

    return LineAmounts(
        base=base,
        discount_amount=base - after_discount,
        after_discount=after_discount,
        tax=tax,
        total=after_discount + tax,
    )


def compute_item_total(line: PricedLine, tax_policy: TaxPolicy) -> Decimal:
    """Line total as persisted on the item (rounded to cents)."""
    return to_money(compute_line(line, tax_policy).total)


def compute_invoice_totals(
    lines: Sequence[PricedLine],
    discount: Discount,
    tax_policy: TaxPolicy,
    payments: Iterable[Decimal] = (),
) -> InvoiceTotals:
    """
    Aggregate an invoice from its lines, discount, tax policy and payments.

    Recomputes every line from its raw inputs, so calling this twice on the
    same state always yields the same figures.

    Args:
        lines: Live (non-deleted) invoice lines
        discount: Invoice-level discount
        tax_policy: Invoice tax policy
        payments: Amounts of active payments

    Returns:
        InvoiceTotals with money fields rounded to cents
    """
    amounts = [compute_line(line, tax_policy) for line in lines]

    items_subtotal = sum_money(a.total for a in amounts)
    subtotal = apply_discount(items_subtotal, discount)

    if isinstance(tax_policy, TotalTax):
        taxable = sum_money(
            a.after_discount for a, line in zip(amounts, lines) if line.vat_enabled
        )
        total_tax = taxable * to_decimal(tax_policy.percentage) / HUNDRED
    elif isinstance(tax_policy, ProductTax):
        total_tax = sum_money(a.tax for a in amounts)
    else:
        total_tax = ZERO

    # total == subtotal (+ total_tax for BY_TOTAL) on the rounded figures
    subtotal = to_money(subtotal)
    total_tax = to_money(total_tax)
    total = subtotal + total_tax if isinstance(tax_policy, TotalTax) else subtotal
    paid = to_money(sum_money(payments))

    return InvoiceTotals(
        items_subtotal=to_money(items_subtotal),
        discount_amount=to_money(items_subtotal) - subtotal,
        subtotal=subtotal,
        total_tax=total_tax,
        total=total,
        paid=paid,
        balance=total - paid,
    )


def normalize_item_tax(tax_policy: TaxPolicy, tax: Decimal | None, vat_enabled: bool | None) -> tuple[Decimal, bool]:
    """
    Keep only the item tax field the invoice tax policy actually uses.

    BY_PRODUCT keeps the item percentage, BY_TOTAL keeps the VAT flag,
    NONE clears both.
    """
    if isinstance(tax_policy, ProductTax):
        return to_decimal(tax if tax is not None else ZERO), False
    if isinstance(tax_policy, TotalTax):
        return ZERO, bool(vat_enabled)
    return ZERO, False
