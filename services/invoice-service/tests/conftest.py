import os
import sys
from datetime import date, timedelta

import pytest

# Adjust path to import app and other modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from app import schemas
from app.config import Settings
from app.store import InMemoryDocumentStore

TEST_TODAY = date(2025, 6, 15)

BOOKING_DOCUMENT = {
    "$id": "booking-1",
    "bookingReference": "BH-1001",
    "customerName": "Jane Traveller",
    "customerEmail": " Jane@Example.com ",
    "customerPhone": "+1 555 0100",
    "customerCountry": "USA",
    "packageId": "package-1",
    "numberOfTravelers": 2,
    "totalAmount": 3000,
    "currency": "USD",
    "travelDate": "2025-07-01",
    "returnDate": "2025-07-10",
    "specialRequests": "Vegetarian meals",
    "notes": "Anniversary trip",
}

PACKAGE_DOCUMENT = {
    "$id": "package-1",
    "name": "Bali Escape",
    "price": 1400,
    "destinations": ["Ubud", "Seminyak"],
    "duration": "9 days",
}


@pytest.fixture
def today():
    return TEST_TODAY


@pytest.fixture
def settings():
    return Settings(AUTH_SECRET_KEY="test-secret-key", INVOICE_WEBHOOK_URL=None)


@pytest.fixture
def store():
    store = InMemoryDocumentStore()
    store.seed("bookings", [BOOKING_DOCUMENT])
    store.seed("packages", [PACKAGE_DOCUMENT])
    return store


@pytest.fixture
def make_invoice():
    """Factory for a 500.00 invoice: 2 x 200 flights and a 100 hotel night."""

    def _make(**overrides):
        data = {
            "id": "invoice-1",
            "invoice_number": "INV-202506-12345601",
            "status": schemas.InvoiceStatus.DRAFT,
            "type": schemas.InvoiceType.TRAVEL,
            "customer_name": "Jane Traveller",
            "customer_email": "jane@example.com",
            "issue_date": TEST_TODAY,
            "due_date": TEST_TODAY + timedelta(days=30),
            "line_items": [
                schemas.LineItem(id="line_1", description="Flight", quantity=2, unit_price=200, total_price=400),
                schemas.LineItem(id="line_2", description="Hotel", quantity=1, unit_price=100, total_price=100),
            ],
            "subtotal": 500,
            "tax_rate": 0,
            "tax_amount": 0,
            "discount_amount": 0,
            "total_amount": 500,
            "paid_amount": 0,
            "balance_due": 500,
            "currency": schemas.Currency.USD,
        }
        data.update(overrides)
        return schemas.Invoice(**data)

    return _make
