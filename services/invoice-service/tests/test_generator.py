from datetime import timedelta

import pytest

from app import crud, schemas
from app.exceptions import ConflictError, NotFoundError, ValidationError
from app.generator import InvoiceGenerator, merge_company_info
from app.store import DocumentStoreError


def generation_request(today, **overrides):
    data = {
        "bookingId": "booking-1",
        "bookingReference": "BH-1001",
        "dueDate": (today + timedelta(days=30)).isoformat(),
    }
    data.update(overrides)
    return schemas.GenerateInvoiceFromBooking.model_validate(data)


@pytest.mark.asyncio
async def test_generate_invoice_from_booking_with_package(store, settings, today):
    generator = InvoiceGenerator(store, settings)

    invoice = await generator.generate(generation_request(today), user_id="agent-7", today=today)

    assert invoice.id
    assert invoice.invoice_number.startswith("INV-")
    assert invoice.status == "draft"
    assert invoice.type == "travel"
    assert invoice.customer_name == "Jane Traveller"
    assert invoice.customer_email == "jane@example.com"
    assert invoice.customer_country == "USA"
    assert invoice.booking_id == "booking-1"
    assert invoice.issue_date == today
    assert invoice.destination == "Ubud, Seminyak"
    assert invoice.created_by == "agent-7"
    assert invoice.notes == "Invoice generated for booking BH-1001. Anniversary trip"
    assert invoice.terms == settings.DEFAULT_PAYMENT_TERMS
    assert invoice.company_name == "Brothers Holidays"
    assert invoice.company_logo == "/travelLogo.svg"

    package_line, special_line = invoice.line_items
    assert package_line.description == "Travel Package: Bali Escape"
    assert package_line.quantity == 2
    assert package_line.unit_price == 1500
    assert package_line.total_price == 3000
    assert package_line.category == "Travel Package"
    assert package_line.notes == "Destination: Ubud, Seminyak, Duration: 9 days"
    assert special_line.description == "Special Requirements & Additional Services"
    assert special_line.unit_price == 0
    assert special_line.notes == "Vegetarian meals"

    assert invoice.subtotal == 3000
    assert invoice.total_amount == 3000
    assert invoice.paid_amount == 0
    assert invoice.balance_due == 3000
    assert invoice.reminder_count == 0
    assert invoice.is_template is False


@pytest.mark.asyncio
async def test_generate_applies_tax_discount_and_extra_items(store, settings, today):
    generator = InvoiceGenerator(store, settings)
    request = generation_request(
        today,
        taxRate=10,
        discountAmount=100,
        additionalLineItems=[
            {"description": "Airport transfer", "quantity": 1, "unitPrice": 80, "totalPrice": 80, "taxable": False}
        ],
    )

    invoice = await generator.generate(request, today=today)

    assert len(invoice.line_items) == 3
    assert invoice.subtotal == 3080
    assert invoice.tax_amount == 300
    assert invoice.total_amount == 3280
    assert invoice.balance_due == 3280


@pytest.mark.asyncio
async def test_generating_twice_for_a_booking_conflicts(store, settings, today):
    generator = InvoiceGenerator(store, settings)
    first = await generator.generate(generation_request(today), today=today)

    with pytest.raises(ConflictError) as exc_info:
        await generator.generate(generation_request(today), today=today)

    assert exc_info.value.message == "Invoice already exists for this booking"
    assert exc_info.value.existing["invoiceNumber"] == first.invoice_number
    page = await store.list(crud.INVOICES)
    assert page.total == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("days", [0, -1])
async def test_due_date_must_be_in_the_future(store, settings, today, days):
    generator = InvoiceGenerator(store, settings)
    request = generation_request(today, dueDate=(today + timedelta(days=days)).isoformat())

    with pytest.raises(ValidationError) as exc_info:
        await generator.generate(request, today=today)

    assert exc_info.value.message == "Due date must be in the future"


@pytest.mark.asyncio
async def test_missing_required_fields(store, settings, today):
    generator = InvoiceGenerator(store, settings)

    with pytest.raises(ValidationError) as exc_info:
        await generator.generate(schemas.GenerateInvoiceFromBooking(), today=today)

    assert exc_info.value.details == [
        "bookingId is required",
        "bookingReference is required",
        "dueDate is required",
    ]


@pytest.mark.asyncio
async def test_unknown_booking(store, settings, today):
    generator = InvoiceGenerator(store, settings)

    with pytest.raises(NotFoundError) as exc_info:
        await generator.generate(generation_request(today, bookingId="missing"), today=today)

    assert exc_info.value.message == "Booking not found"


@pytest.mark.asyncio
async def test_booking_reference_mismatch(store, settings, today):
    generator = InvoiceGenerator(store, settings)

    with pytest.raises(ValidationError) as exc_info:
        await generator.generate(generation_request(today, bookingReference="BH-9999"), today=today)

    assert exc_info.value.message == "Booking reference does not match"
    assert (await store.list(crud.INVOICES)).total == 0


@pytest.mark.asyncio
async def test_booking_without_package(store, settings, today):
    store.seed("bookings", [{
        "$id": "booking-2",
        "bookingReference": "BH-1002",
        "firstName": "Sam",
        "lastName": "Rivers",
        "email": "sam@example.com",
        "numberOfTravelers": 3,
        "totalAmount": 900,
        "destination": "Lisbon",
    }])
    generator = InvoiceGenerator(store, settings)

    invoice = await generator.generate(
        generation_request(today, bookingId="booking-2", bookingReference="BH-1002"), today=today
    )

    assert invoice.type == "service"
    assert invoice.customer_name == "Sam Rivers"
    assert invoice.customer_email == "sam@example.com"
    assert invoice.destination == "Lisbon"
    assert [item.description for item in invoice.line_items] == ["Travel Services - Booking BH-1002"]
    assert invoice.line_items[0].unit_price == 300
    assert invoice.line_items[0].notes == "Travel services for 3 traveler(s)"
    assert invoice.total_amount == 900


@pytest.mark.asyncio
async def test_booking_without_total_or_travelers_uses_package_price_for_one(store, settings, today):
    store.seed("bookings", [{
        "$id": "booking-3",
        "bookingReference": "BH-1003",
        "customerName": "Ana Lima",
        "customerEmail": "ana@example.com",
        "packageId": "package-1",
    }])
    generator = InvoiceGenerator(store, settings)

    invoice = await generator.generate(
        generation_request(today, bookingId="booking-3", bookingReference="BH-1003"), today=today
    )

    assert invoice.line_items[0].quantity == 1
    assert invoice.line_items[0].unit_price == 1400
    assert invoice.number_of_travelers == 1
    assert invoice.total_amount == 1400


@pytest.mark.asyncio
async def test_package_lookup_failure_falls_back_to_services_line(mocker, store, settings, today):
    mocker.patch.object(crud, "get_package", side_effect=DocumentStoreError("packages unavailable"))
    generator = InvoiceGenerator(store, settings)

    invoice = await generator.generate(generation_request(today), today=today)

    assert invoice.type == "service"
    assert invoice.line_items[0].description == "Travel Services - Booking BH-1001"
    assert invoice.line_items[0].unit_price == 1500


def test_company_override_keeps_unset_defaults(settings):
    company = merge_company_info(settings, schemas.CompanyInfo(name="Custom Co", phone=""))

    assert company["company_name"] == "Custom Co"
    assert company["company_logo"] == "/travelLogo.svg"
    assert company["company_phone"] == settings.COMPANY_PHONE
