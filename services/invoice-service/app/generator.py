"""
Booking to invoice generation.

Builds a draft invoice from a booking document and, when it can be loaded,
the booked travel package, then persists it.
"""

from datetime import date
from typing import Any, Dict, List, Optional

from . import crud, schemas
from .config import (
    Settings,
    get_default_company_info,
    get_default_payment_instructions,
    get_default_payment_terms,
)
from .documents import invoice_to_response
from .exceptions import ConflictError, NotFoundError, ValidationError
from .identifiers import generate_invoice_number
from .invoice_calculator import InvoiceCalculator
from .logging_config import get_logger
from .store import DocumentStore, DocumentStoreError
from .validators import is_valid_email, validate_discount_amount, validate_line_items, validate_tax_rate

logger = get_logger("generator")


def merge_company_info(settings: Settings, override: Optional[schemas.CompanyInfo]) -> Dict[str, Any]:
    """Company snapshot fields: the default profile with non-empty overrides on top."""
    company = get_default_company_info(settings)
    if override is not None:
        for key, value in override.model_dump(exclude_none=True).items():
            if value != "":
                company[key] = value
    return {f"company_{key}": value for key, value in company.items()}


class InvoiceGenerator:
    """Generates draft invoices from bookings"""

    def __init__(self, store: DocumentStore, settings: Settings, calculator: Optional[InvoiceCalculator] = None):
        self.store = store
        self.settings = settings
        self.calculator = calculator or InvoiceCalculator()

    def build_line_items(
        self,
        booking: schemas.Booking,
        package: Optional[schemas.TravelPackage],
        additional_line_items: Optional[List[schemas.LineItem]] = None,
    ) -> List[schemas.LineItem]:
        quantity = booking.number_of_travelers or 1
        line_items: List[schemas.LineItem] = []

        if package is not None:
            unit_price = booking.total_amount / quantity if booking.total_amount else (package.price or 0)
            line_items.append(schemas.LineItem(
                description=f"Travel Package: {package.name}",
                quantity=quantity,
                unit_price=unit_price,
                total_price=self.calculator.calculate_line_total(quantity, unit_price),
                taxable=True,
                category="Travel Package",
                notes=f"Destination: {package.destination_label or 'N/A'}, Duration: {package.duration or 'N/A'}",
            ))
        else:
            unit_price = booking.total_amount / quantity if booking.total_amount else 0
            line_items.append(schemas.LineItem(
                description=f"Travel Services - Booking {booking.booking_reference}",
                quantity=quantity,
                unit_price=unit_price,
                total_price=self.calculator.calculate_line_total(quantity, unit_price),
                taxable=True,
                category="Travel Services",
                notes=f"Travel services for {quantity} traveler(s)",
            ))

        # Recorded on the invoice, priced separately if at all
        if booking.special_requests:
            line_items.append(schemas.LineItem(
                description="Special Requirements & Additional Services",
                quantity=1,
                unit_price=0,
                total_price=0,
                taxable=True,
                category="Additional Services",
                notes=booking.special_requests,
            ))

        line_items.extend(additional_line_items or [])
        return line_items

    def _currency(self, booking: schemas.Booking) -> str:
        currency = (booking.currency or "").strip().upper()
        if currency not in {code.value for code in schemas.Currency}:
            return self.settings.DEFAULT_CURRENCY
        return currency

    async def _load_package(self, package_id: Optional[str]) -> Optional[schemas.TravelPackage]:
        if not package_id:
            return None
        try:
            return await crud.get_package(self.store, package_id)
        except DocumentStoreError as exc:
            logger.warning(f"Could not load package {package_id}, generating without it: {exc}")
            return None

    def _validate_request(self, request: schemas.GenerateInvoiceFromBooking, today: date) -> None:
        missing = [
            name
            for name, value in (
                ("bookingId", request.booking_id),
                ("bookingReference", request.booking_reference),
                ("dueDate", request.due_date),
            )
            if not value
        ]
        if missing:
            raise ValidationError("Missing required fields", details=[f"{name} is required" for name in missing])

        if request.due_date <= today:
            raise ValidationError("Due date must be in the future")

        errors = validate_tax_rate(request.tax_rate) + validate_discount_amount(request.discount_amount)
        if request.additional_line_items:
            errors.extend(validate_line_items(request.additional_line_items))
        if errors:
            raise ValidationError("Validation failed", details=errors)

    def build_invoice(
        self,
        request: schemas.GenerateInvoiceFromBooking,
        booking: schemas.Booking,
        package: Optional[schemas.TravelPackage],
        today: date,
        user_id: Optional[str] = None,
    ) -> schemas.Invoice:
        line_items = self.build_line_items(booking, package, request.additional_line_items)
        financials = self.calculator.calculate_financials(
            line_items, request.tax_rate or 0, request.discount_amount or 0
        )

        customer_name = booking.display_name
        customer_email = (booking.contact_email or "").strip().lower()
        if not customer_name or not is_valid_email(customer_email):
            raise ValidationError("Booking is missing customer contact details")

        default_notes = f"Invoice generated for booking {booking.booking_reference}. {booking.notes or ''}".strip()
        package_destination = package.destination_label if package is not None else None

        return schemas.Invoice(
            invoice_number=generate_invoice_number(),
            status=schemas.InvoiceStatus.DRAFT,
            type=schemas.InvoiceType.TRAVEL if package is not None else schemas.InvoiceType.SERVICE,
            customer_name=customer_name,
            customer_email=customer_email,
            customer_phone=booking.customer_phone or booking.phone,
            customer_address=booking.customer_address,
            customer_country=booking.customer_country or booking.country,
            customer_id=booking.customer_id,
            booking_reference=booking.booking_reference,
            booking_id=booking.id,
            issue_date=today,
            due_date=request.due_date,
            line_items=line_items,
            subtotal=financials.subtotal,
            tax_rate=financials.tax_rate,
            tax_amount=financials.tax_amount,
            discount_amount=financials.discount_amount,
            total_amount=financials.total_amount,
            paid_amount=0,
            balance_due=financials.total_amount,
            currency=self._currency(booking),
            travel_date=booking.travel_date,
            return_date=booking.return_date,
            destination=package_destination or booking.destination,
            number_of_travelers=booking.number_of_travelers or 1,
            notes=request.notes or default_notes,
            terms=request.terms or get_default_payment_terms(self.settings),
            payment_instructions=request.payment_instructions or get_default_payment_instructions(self.settings),
            created_by=user_id,
            is_template=False,
            reminder_count=0,
            **merge_company_info(self.settings, request.company_info),
        )

    async def generate(
        self,
        request: schemas.GenerateInvoiceFromBooking,
        user_id: Optional[str] = None,
        today: Optional[date] = None,
    ) -> schemas.Invoice:
        """Validate the request, load the booking and persist a new draft invoice."""
        today = today or date.today()
        self._validate_request(request, today)

        existing = await crud.find_invoice_by_booking(self.store, request.booking_id)
        if existing is not None:
            logger.warning(f"Invoice {existing.invoice_number} already exists for booking {request.booking_id}")
            raise ConflictError(
                "Invoice already exists for this booking",
                existing=invoice_to_response(existing),
            )

        booking = await crud.get_booking(self.store, request.booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        if booking.booking_reference != request.booking_reference:
            raise ValidationError("Booking reference does not match")

        package = await self._load_package(booking.package_id)
        invoice = self.build_invoice(request, booking, package, today, user_id)

        created = await crud.insert_invoice(self.store, invoice)
        logger.info(f"Generated invoice {created.invoice_number} for booking {booking.booking_reference}")
        return created
