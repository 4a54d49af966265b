"""
Invoice lifecycle: status transitions and the side effects of an update.

``build_update`` turns an ``InvoiceUpdate`` into the patch document written
to the store. It never mutates the existing invoice; a rejected update raises
before any patch is produced.
"""

from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from pydantic.alias_generators import to_camel

from . import schemas
from .documents import stringify_line_items, to_document_value
from .exceptions import StateError, ValidationError
from .invoice_calculator import InvoiceCalculator
from .validators import (
    is_valid_email,
    validate_discount_amount,
    validate_line_items,
    validate_tax_rate,
)

Status = schemas.InvoiceStatus

TERMINAL_STATUSES = {Status.PAID.value, Status.CANCELLED.value}

STATUS_TRANSITIONS = {
    Status.DRAFT.value: {Status.SENT.value, Status.CANCELLED.value},
    Status.SENT.value: {Status.PAID.value, Status.PARTIAL.value, Status.OVERDUE.value, Status.CANCELLED.value},
    Status.OVERDUE.value: {Status.PAID.value, Status.PARTIAL.value, Status.CANCELLED.value},
    Status.PARTIAL.value: {Status.PAID.value, Status.OVERDUE.value, Status.CANCELLED.value},
    Status.PAID.value: set(),
    Status.CANCELLED.value: set(),
}

REMINDER_OFFSETS_DAYS = [-3, 0, 7, 14, 30]

# Updatable plain fields and how their values are cleaned
_TRIMMED_FIELDS = ["customer_phone", "customer_address", "customer_country", "destination",
                   "notes", "terms", "payment_instructions", "payment_reference"]
_PASSTHROUGH_FIELDS = ["due_date", "paid_date", "travel_date", "return_date", "number_of_travelers",
                       "payment_method", "reminder_count", "last_reminder_date"]


def _status_value(status: Any) -> str:
    return status.value if isinstance(status, Status) else str(status)


def clean_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


def is_overdue(invoice: schemas.Invoice, today: Optional[date] = None) -> bool:
    today = today or date.today()
    if _status_value(invoice.status) in TERMINAL_STATUSES:
        return False
    return invoice.due_date < today


def display_status(invoice: schemas.Invoice, today: Optional[date] = None) -> str:
    """Status to show; a sent invoice past its due date shows as overdue."""
    status = _status_value(invoice.status)
    if status == Status.SENT.value and is_overdue(invoice, today):
        return Status.OVERDUE.value
    return status


def can_edit(invoice: schemas.Invoice) -> bool:
    return _status_value(invoice.status) in {Status.DRAFT.value, Status.SENT.value}


def can_cancel(invoice: schemas.Invoice) -> bool:
    return _status_value(invoice.status) not in TERMINAL_STATUSES


def get_days_until_due(due_date: date, today: Optional[date] = None) -> int:
    return (due_date - (today or date.today())).days


def get_invoice_age(issue_date: date, today: Optional[date] = None) -> int:
    return ((today or date.today()) - issue_date).days


def get_next_reminder_date(due_date: date, reminder_count: int) -> date:
    """3 days before, on the due date, then 7, 14 and 30 days after; monthly afterwards."""
    if reminder_count < len(REMINDER_OFFSETS_DAYS):
        return due_date + timedelta(days=REMINDER_OFFSETS_DAYS[reminder_count])
    return due_date + timedelta(days=(reminder_count - 2) * 30)


def ensure_mutable(invoice: schemas.Invoice) -> None:
    status = _status_value(invoice.status)
    if status == Status.PAID.value:
        raise StateError("Cannot update paid invoice")
    if status == Status.CANCELLED.value:
        raise StateError("Cannot update cancelled invoice")


def check_transition(current: Any, target: Any) -> None:
    current, target = _status_value(current), _status_value(target)
    if current == target:
        return
    if target not in STATUS_TRANSITIONS.get(current, set()):
        raise StateError(f"Cannot change invoice status from {current} to {target}")


def _validate_update(update: schemas.InvoiceUpdate) -> None:
    line_item_errors: List[str] = []
    errors: List[str] = []

    if update.line_items is not None:
        line_item_errors = validate_line_items(update.line_items)

    if update.provided("customer_name") and not (update.customer_name or "").strip():
        errors.append("Customer name is required")

    if update.provided("customer_email"):
        if not (update.customer_email or "").strip():
            errors.append("Customer email is required")
        elif not is_valid_email(update.customer_email.strip()):
            errors.append("Invalid customer email format")

    errors.extend(validate_tax_rate(update.tax_rate))
    errors.extend(validate_discount_amount(update.discount_amount))

    if update.paid_amount is not None and update.paid_amount < 0:
        errors.append("Paid amount cannot be negative")

    if line_item_errors and not errors:
        raise ValidationError("Invalid line items", details=line_item_errors)
    if errors or line_item_errors:
        raise ValidationError("Validation failed", details=line_item_errors + errors)


def build_update(
    existing: schemas.Invoice,
    update: schemas.InvoiceUpdate,
    today: Optional[date] = None,
    user_id: Optional[str] = None,
    calculator: Optional[InvoiceCalculator] = None,
) -> Dict[str, Any]:
    """Compute the store patch for ``update`` applied to ``existing``.

    Only an explicit ``status`` is checked against ``STATUS_TRANSITIONS``.
    Statuses derived from a payment (``paidAmount`` reaching the total gives
    paid, a smaller positive amount gives partial) or from a first
    ``sentDate`` on a draft are applied from any editable status, so a draft
    settled in full goes straight to paid.
    """
    today = today or date.today()
    calculator = calculator or InvoiceCalculator()

    ensure_mutable(existing)
    _validate_update(update)

    patch: Dict[str, Any] = {}

    if update.status is not None:
        check_transition(existing.status, update.status)
        patch["status"] = _status_value(update.status)
        if patch["status"] == Status.PAID.value and not update.paid_date:
            patch["paidDate"] = today.isoformat()
            patch["paidAmount"] = existing.total_amount
            patch["balancedue"] = 0

    if update.provided("customer_name"):
        patch["customerName"] = update.customer_name.strip()
    if update.provided("customer_email"):
        patch["customerEmail"] = update.customer_email.strip().lower()
    for field_name in _TRIMMED_FIELDS:
        if update.provided(field_name):
            patch[to_camel(field_name)] = clean_optional(getattr(update, field_name))
    for field_name in _PASSTHROUGH_FIELDS:
        if update.provided(field_name):
            patch[to_camel(field_name)] = to_document_value(getattr(update, field_name))

    # Financials: new line items, or a tax/discount change against the stored items
    total_amount = existing.total_amount
    if update.line_items is not None or update.tax_rate is not None or update.discount_amount is not None:
        line_items = update.line_items if update.line_items is not None else existing.line_items
        financials = calculator.calculate_financials(
            line_items,
            update.tax_rate if update.tax_rate is not None else existing.tax_rate,
            update.discount_amount if update.discount_amount is not None else existing.discount_amount,
        )
        if update.line_items is not None:
            patch["lineItems"] = stringify_line_items(line_items)
        patch.update({
            "subtotal": financials.subtotal,
            "taxAmount": financials.tax_amount,
            "taxRate": financials.tax_rate,
            "discountAmount": financials.discount_amount,
            "totalAmount": financials.total_amount,
        })
        total_amount = financials.total_amount

        if patch.get("status") == Status.PAID.value and "balancedue" in patch:
            patch["paidAmount"] = total_amount
        else:
            patch["balancedue"] = calculator.calculate_balance_due(total_amount, existing.paid_amount)

    if update.paid_amount is not None:
        patch["paidAmount"] = update.paid_amount
        patch["balancedue"] = calculator.calculate_balance_due(total_amount, update.paid_amount)
        if update.paid_amount >= total_amount:
            patch["status"] = Status.PAID.value
            patch["paidDate"] = patch.get("paidDate") or today.isoformat()
        elif update.paid_amount > 0:
            patch["status"] = Status.PARTIAL.value

    if update.provided("sent_date"):
        patch["sentDate"] = to_document_value(update.sent_date)
        first_send = existing.sent_date is None and update.sent_date is not None
        if first_send and _status_value(existing.status) == Status.DRAFT.value and "status" not in patch:
            patch["status"] = Status.SENT.value

    if user_id is not None:
        patch["lastModifiedBy"] = user_id

    return patch


def build_cancellation(existing: schemas.Invoice, user_id: Optional[str] = None) -> Dict[str, Any]:
    status = _status_value(existing.status)
    if status == Status.PAID.value:
        raise StateError("Cannot cancel paid invoice")
    if status == Status.CANCELLED.value:
        raise StateError("Invoice is already cancelled")

    patch: Dict[str, Any] = {"status": Status.CANCELLED.value}
    if user_id is not None:
        patch["lastModifiedBy"] = user_id
    return patch
