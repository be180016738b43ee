"""
Document payloads for the PDF renderer.

The renderer is a separate service with a camelCase JSON contract; these
builders flatten an InvoiceDetail (and a payment, for receipts) into that
shape. Amounts are plain numbers rounded to cents.
"""

from decimal import Decimal
from typing import Any

from core.calculator import compute_line, priced_line
from core.models import InvoiceDetail, Payment
from core.models.pricing import PercentageDiscount
from utils.money import HUNDRED, sum_money, to_money


def _amount(value: Decimal | None) -> float:
    return float(to_money(value or 0))


def _date(value) -> str | None:
    return value.isoformat() if value is not None else None


def _invoice_discount_amount(invoice: InvoiceDetail) -> Decimal:
    """Invoice-level discount as a currency amount."""
    discount = invoice.discount_policy
    items_subtotal = sum_money(item.total for item in invoice.items)
    if isinstance(discount, PercentageDiscount):
        return min(items_subtotal * discount.amount / HUNDRED, items_subtotal)
    return min(discount.amount, items_subtotal)


def build_invoice_document(invoice: InvoiceDetail) -> dict[str, Any]:
    """Payload for POST /generate-invoice."""
    tax_policy = invoice.tax_policy
    total_paid = sum_money(p.amount for p in invoice.payments)

    items = []
    for item in invoice.items:
        amounts = compute_line(priced_line(item), tax_policy)
        items.append({
            "name": item.name,
            "description": item.description,
            "quantity": float(item.quantity),
            "quantityUnit": item.quantity_unit.value,
            "unitPrice": _amount(item.unit_price),
            "discountType": item.discount_type.value,
            "discount": float(item.discount),
            "discountAmount": _amount(amounts.discount_amount),
            "tax": float(item.tax),
            "taxAmount": _amount(amounts.tax),
            "vatEnabled": item.vat_enabled,
            "total": _amount(item.total),
        })

    return {
        "invoice": {
            "sequence": invoice.sequence,
            "invoiceNumber": invoice.invoice_number,
            "status": invoice.status.value,
            "issueDate": _date(invoice.issue_date),
            "dueDate": _date(invoice.due_date),
            "purchaseOrder": invoice.purchase_order,
            "currency": invoice.currency,
            "discountType": invoice.discount_type.value,
            "discount": _amount(_invoice_discount_amount(invoice)),
            "taxMode": invoice.tax_mode.value,
            "taxName": invoice.tax_name,
            "taxPercentage": float(invoice.tax_percentage) if invoice.tax_percentage is not None else None,
            "subtotal": _amount(invoice.subtotal),
            "totalTax": _amount(invoice.total_tax),
            "total": _amount(invoice.total),
            "totalPaid": _amount(total_paid),
            "balance": _amount(invoice.balance),
            "notes": invoice.notes,
            "terms": invoice.terms,
        },
        "client": {
            "name": invoice.client.name,
            "businessName": invoice.client.business_name,
            "address": invoice.client_address or invoice.client.address,
            "phone": invoice.client_phone or invoice.client.phone,
            "email": invoice.client_email or invoice.client.email,
            "taxId": invoice.client.tax_id,
        },
        "company": {
            "name": invoice.business.name,
            "address": invoice.business.address,
            "email": invoice.business.email,
            "phone": invoice.business.phone,
            "taxId": invoice.business.tax_id,
            "logo": invoice.business.logo_url,
        },
        "items": items,
    }


def build_receipt_document(invoice: InvoiceDetail, payment: Payment) -> dict[str, Any]:
    """Payload for POST /generate-receipt. Payment history is newest first."""
    total_paid = sum_money(p.amount for p in invoice.payments)
    history = sorted(invoice.payments, key=lambda p: (p.paid_at, p.id), reverse=True)

    return {
        "company": {
            "name": invoice.business.name,
            "logo": invoice.business.logo_url,
            "address": invoice.business.address,
        },
        "client": {
            "name": invoice.client.name,
            "email": invoice.client_email or invoice.client.email,
        },
        "invoice": {
            "invoiceNumber": invoice.invoice_number,
            "total": _amount(invoice.total),
            "currency": invoice.currency,
            "status": invoice.status.value,
            "totalPaid": _amount(total_paid),
            "balance": _amount(invoice.balance),
        },
        "payment": {
            "id": str(payment.id),
            "amount": _amount(payment.amount),
            "method": payment.payment_method,
            "date": _date(payment.paid_at.date()),
            "notes": payment.details,
        },
        "payments": [
            {
                "date": _date(p.paid_at.date()),
                "method": p.payment_method,
                "amount": _amount(p.amount),
            }
            for p in history
        ],
    }
