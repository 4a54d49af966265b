"""
Presentation helpers shared by API consumers: currency and date formatting,
status/type labels and file names.
"""

import re
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Optional, Union

from . import schemas
from .identifiers import generate_line_item_id

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "INR": "₹",
    "AUD": "A$",
    "CAD": "C$",
    "JPY": "¥",
    "CNY": "¥",
    "AED": "د.إ",
}

STATUS_COLORS = {
    "draft": "bg-gray-100 text-gray-800",
    "sent": "bg-blue-100 text-blue-800",
    "paid": "bg-green-100 text-green-800",
    "overdue": "bg-red-100 text-red-800",
    "cancelled": "bg-yellow-100 text-yellow-800",
    "partial": "bg-orange-100 text-orange-800",
}

TYPE_ICONS = {
    "travel": "✈️",
    "package": "📦",
    "trip": "🗺️",
    "service": "🛠️",
    "custom": "📄",
}

PAYMENT_METHOD_NAMES = {
    "credit_card": "Credit Card",
    "debit_card": "Debit Card",
    "bank_transfer": "Bank Transfer",
    "paypal": "PayPal",
    "cash": "Cash",
    "check": "Check",
    "cryptocurrency": "Cryptocurrency",
    "other": "Other",
}


def _value(member: Union[str, Enum]) -> str:
    return member.value if isinstance(member, Enum) else member


def format_currency(amount: float, currency: str = "USD", show_symbol: bool = True) -> str:
    """``$1,234.50`` with a symbol, ``1,234.50 USD`` without one."""
    currency = _value(currency)
    # Half cents round away from zero
    cents = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    formatted = f"{cents:,.2f}"
    symbol = CURRENCY_SYMBOLS.get(currency)
    if show_symbol and symbol:
        return f"{symbol}{formatted}"
    return f"{formatted} {currency}"


def format_invoice_date(value: Union[str, date]) -> str:
    """Long US form, e.g. January 5, 2025; unparseable strings come back unchanged."""
    if isinstance(value, str):
        try:
            value = date.fromisoformat(value[:10])
        except ValueError:
            return value
    return f"{value:%B} {value.day}, {value.year}"


def get_invoice_status_color(status: Union[str, schemas.InvoiceStatus]) -> str:
    return STATUS_COLORS.get(_value(status), STATUS_COLORS["draft"])


def get_invoice_type_icon(invoice_type: Union[str, schemas.InvoiceType]) -> str:
    return TYPE_ICONS.get(_value(invoice_type), TYPE_ICONS["custom"])


def get_payment_method_name(method: Union[str, schemas.PaymentMethod]) -> str:
    method = _value(method)
    return PAYMENT_METHOD_NAMES.get(method, method)


def mask_payment_reference(reference: Optional[str]) -> Optional[str]:
    if not reference or len(reference) <= 4:
        return reference
    return "*" * (len(reference) - 4) + reference[-4:]


def generate_invoice_pdf_filename(invoice: schemas.Invoice) -> str:
    customer = re.sub(r"[^a-z0-9]", "_", invoice.customer_name.lower())
    customer = re.sub(r"_{2,}", "_", customer).strip("_")
    return f"invoice_{invoice.invoice_number}_{customer}.pdf"


def create_default_line_item() -> schemas.LineItem:
    """Blank line item for a new invoice form."""
    return schemas.LineItem(
        id=generate_line_item_id(),
        description="",
        quantity=1,
        unit_price=0,
        total_price=0,
        taxable=True,
    )
