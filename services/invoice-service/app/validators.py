"""Advisory validation for invoices and line items.

Validators never raise; they return human readable messages, one per
violation, and the caller decides whether to reject the write.
"""

import re
from typing import List, Optional, Sequence

from . import schemas

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
TOTAL_TOLERANCE = 0.01


def is_valid_email(email: Optional[str]) -> bool:
    if not email:
        return False
    return EMAIL_PATTERN.match(email) is not None


def validate_line_items(line_items: Optional[Sequence[schemas.LineItem]]) -> List[str]:
    errors: List[str] = []

    if not line_items:
        errors.append("At least one line item is required")
        return errors

    for index, item in enumerate(line_items, start=1):
        if not (item.description or "").strip():
            errors.append(f"Line item {index}: Description is required")

        if item.quantity is None or item.quantity <= 0:
            errors.append(f"Line item {index}: Quantity must be greater than 0")

        if item.unit_price is None or item.unit_price < 0:
            errors.append(f"Line item {index}: Unit price must be 0 or greater")

        expected_total = (item.quantity or 0) * (item.unit_price or 0)
        if abs((item.total_price or 0) - expected_total) > TOTAL_TOLERANCE:
            errors.append(f"Line item {index}: Total price doesn't match quantity × unit price")

    return errors


def validate_tax_rate(tax_rate: Optional[float]) -> List[str]:
    if tax_rate is not None and (tax_rate < 0 or tax_rate > 100):
        return ["Tax rate must be between 0 and 100"]
    return []


def validate_discount_amount(discount_amount: Optional[float]) -> List[str]:
    if discount_amount is not None and discount_amount < 0:
        return ["Discount amount cannot be negative"]
    return []


def validate_invoice_data(data: schemas.InvoiceCreate) -> List[str]:
    """Validate a direct invoice creation payload."""
    errors: List[str] = []

    if not data.type:
        errors.append("Invoice type is required")

    if not (data.customer_name or "").strip():
        errors.append("Customer name is required")

    if not (data.customer_email or "").strip():
        errors.append("Customer email is required")
    elif not is_valid_email(data.customer_email):
        errors.append("Invalid customer email format")

    if not data.issue_date:
        errors.append("Issue date is required")

    if not data.due_date:
        errors.append("Due date is required")

    if data.issue_date and data.due_date and data.due_date <= data.issue_date:
        errors.append("Due date must be after issue date")

    errors.extend(validate_line_items(data.line_items))
    errors.extend(validate_tax_rate(data.tax_rate))
    errors.extend(validate_discount_amount(data.discount_amount))

    return errors
