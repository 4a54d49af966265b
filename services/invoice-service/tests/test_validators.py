from datetime import date

from app import schemas
from app.validators import (
    is_valid_email,
    validate_discount_amount,
    validate_invoice_data,
    validate_line_items,
    validate_tax_rate,
)


def test_email_format():
    assert is_valid_email("a@b.co")
    assert is_valid_email("jane.doe@travel.example.com")
    assert not is_valid_email("not-an-email")
    assert not is_valid_email("jane @example.com")
    assert not is_valid_email("")
    assert not is_valid_email(None)


def test_empty_line_items_yield_exactly_one_error():
    assert validate_line_items([]) == ["At least one line item is required"]
    assert validate_line_items(None) == ["At least one line item is required"]


def test_valid_line_items_including_zero_price():
    items = [
        schemas.LineItem(description="Flight", quantity=2, unit_price=10, total_price=20),
        schemas.LineItem(description="Welcome drink", quantity=1, unit_price=0, total_price=0),
    ]

    assert validate_line_items(items) == []


def test_line_item_errors_are_numbered_from_one():
    items = [
        schemas.LineItem(description="Flight", quantity=2, unit_price=10, total_price=20),
        schemas.LineItem(description="  ", quantity=0, unit_price=-5, total_price=0),
    ]

    assert validate_line_items(items) == [
        "Line item 2: Description is required",
        "Line item 2: Quantity must be greater than 0",
        "Line item 2: Unit price must be 0 or greater",
    ]


def test_total_price_mismatch():
    items = [schemas.LineItem(description="Flight", quantity=2, unit_price=10, total_price=25)]

    assert validate_line_items(items) == [
        "Line item 1: Total price doesn't match quantity × unit price"
    ]


def test_total_price_within_tolerance():
    items = [schemas.LineItem(description="Tour", quantity=3, unit_price=33.333, total_price=100.0)]

    assert validate_line_items(items) == []


def test_tax_rate_and_discount_bounds():
    assert validate_tax_rate(None) == []
    assert validate_tax_rate(0) == []
    assert validate_tax_rate(100) == []
    assert validate_tax_rate(100.5) == ["Tax rate must be between 0 and 100"]
    assert validate_tax_rate(-1) == ["Tax rate must be between 0 and 100"]
    assert validate_discount_amount(0) == []
    assert validate_discount_amount(-0.01) == ["Discount amount cannot be negative"]


def test_validate_invoice_data_collects_every_error():
    data = schemas.InvoiceCreate(
        customer_email="nope",
        issue_date=date(2025, 6, 15),
        due_date=date(2025, 6, 15),
        tax_rate=120,
        discount_amount=-10,
    )

    assert validate_invoice_data(data) == [
        "Invoice type is required",
        "Customer name is required",
        "Invalid customer email format",
        "Due date must be after issue date",
        "At least one line item is required",
        "Tax rate must be between 0 and 100",
        "Discount amount cannot be negative",
    ]


def test_validate_invoice_data_missing_dates_and_email():
    data = schemas.InvoiceCreate(
        type=schemas.InvoiceType.CUSTOM,
        customer_name="Jane",
        line_items=[schemas.LineItem(description="Visa", quantity=1, unit_price=50, total_price=50)],
    )

    assert validate_invoice_data(data) == [
        "Customer email is required",
        "Issue date is required",
        "Due date is required",
    ]
