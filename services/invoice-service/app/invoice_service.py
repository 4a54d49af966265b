"""
Invoice operations exposed by the API.

``InvoiceService`` ties the store, calculator, lifecycle rules and generator
together and translates store failures into the service's error taxonomy.
"""

from contextlib import contextmanager
from datetime import date
from typing import Any, Dict, Iterator, Optional

from . import crud, lifecycle, schemas
from .config import (
    Settings,
    get_default_payment_instructions,
    get_default_payment_terms,
)
from .documents import invoice_from_document, invoice_to_response
from .exceptions import ConflictError, NotFoundError, StoreError, ValidationError
from .formatting import format_currency, generate_invoice_pdf_filename
from .generator import InvoiceGenerator, merge_company_info
from .identifiers import generate_invoice_number
from .invoice_calculator import InvoiceCalculator
from .logging_config import get_logger
from .reporting_service import InvoiceReportingService
from .store import (
    DocumentConflict,
    DocumentNotFound,
    DocumentStore,
    DocumentStoreError,
    InvalidDocumentStructure,
)
from .validators import validate_invoice_data

logger = get_logger("service")


@contextmanager
def store_errors(action: str) -> Iterator[None]:
    """Report unexpected store failures as StoreError("Failed to {action}")."""
    try:
        yield
    except DocumentStoreError as exc:
        logger.error(f"Failed to {action}", exc_info=True)
        raise StoreError(f"Failed to {action}") from exc


class InvoiceService:

    def __init__(self, store: DocumentStore, settings: Settings, calculator: Optional[InvoiceCalculator] = None):
        self.store = store
        self.settings = settings
        self.calculator = calculator or InvoiceCalculator()
        self.generator = InvoiceGenerator(store, settings, self.calculator)
        self.reporting = InvoiceReportingService(store, settings)

    def to_response(self, invoice: schemas.Invoice, today: Optional[date] = None) -> Dict[str, Any]:
        """Wire shape plus display-only fields; none of these are stored."""
        payload = invoice_to_response(invoice, lifecycle.display_status(invoice, today))
        payload["formattedTotal"] = format_currency(invoice.total_amount, invoice.currency)
        payload["formattedBalance"] = format_currency(invoice.balance_due, invoice.currency)
        payload["pdfFilename"] = generate_invoice_pdf_filename(invoice)
        return payload

    async def get_invoice(self, invoice_id: str) -> schemas.Invoice:
        with store_errors("fetch invoice"):
            invoice = await crud.get_invoice(self.store, invoice_id)
        if invoice is None:
            raise NotFoundError("Invoice not found")
        return invoice

    async def list_invoices(
        self,
        filters: Optional[schemas.InvoiceFilters] = None,
        page: int = 1,
        limit: int = crud.DEFAULT_PAGE_SIZE,
        sort_by: str = schemas.InvoiceSortField.CREATED_AT.value,
        sort_order: str = "desc",
        today: Optional[date] = None,
    ) -> schemas.InvoiceListResponse:
        page = max(page, 1)
        limit = max(1, min(limit, self.settings.MAX_PAGE_SIZE))

        with store_errors("fetch invoices"):
            result = await crud.list_invoices(
                self.store, filters, page, limit, sort_by, descending=sort_order != "asc"
            )

        invoices = []
        for document in result.documents:
            try:
                invoices.append(self.to_response(invoice_from_document(document), today))
            except InvalidDocumentStructure as exc:
                logger.warning(f"Skipping malformed invoice in listing: {exc}")

        return schemas.InvoiceListResponse(
            invoices=invoices,
            total=result.total,
            page=page,
            limit=limit,
            has_more=page * limit < result.total,
        )

    async def create_invoice(
        self,
        data: schemas.InvoiceCreate,
        user_id: Optional[str] = None,
    ) -> schemas.Invoice:
        """Direct creation from a complete payload"""
        errors = validate_invoice_data(data)
        if errors:
            raise ValidationError("Validation failed", details=errors)

        invoice_number = (data.invoice_number or "").strip() or generate_invoice_number()

        with store_errors("create invoice"):
            if await crud.find_invoice_by_number(self.store, invoice_number) is not None:
                raise ConflictError("Invoice number already exists")
            if data.booking_id:
                existing = await crud.find_invoice_by_booking(self.store, data.booking_id)
                if existing is not None:
                    raise ConflictError(
                        "Invoice already exists for this booking",
                        existing=invoice_to_response(existing),
                    )

        financials = self.calculator.calculate_financials(
            data.line_items, data.tax_rate or 0, data.discount_amount or 0
        )

        invoice = schemas.Invoice(
            invoice_number=invoice_number,
            status=data.status or schemas.InvoiceStatus.DRAFT,
            type=data.type,
            customer_name=data.customer_name.strip(),
            customer_email=data.customer_email.strip().lower(),
            customer_phone=lifecycle.clean_optional(data.customer_phone),
            customer_address=lifecycle.clean_optional(data.customer_address),
            customer_country=lifecycle.clean_optional(data.customer_country),
            customer_id=data.customer_id,
            booking_reference=data.booking_reference,
            booking_id=data.booking_id,
            issue_date=data.issue_date,
            due_date=data.due_date,
            line_items=data.line_items,
            subtotal=financials.subtotal,
            tax_rate=financials.tax_rate,
            tax_amount=financials.tax_amount,
            discount_amount=financials.discount_amount,
            total_amount=financials.total_amount,
            paid_amount=0,
            balance_due=financials.total_amount,
            currency=data.currency or self.settings.DEFAULT_CURRENCY,
            travel_date=data.travel_date,
            return_date=data.return_date,
            destination=lifecycle.clean_optional(data.destination),
            number_of_travelers=data.number_of_travelers,
            notes=lifecycle.clean_optional(data.notes),
            terms=lifecycle.clean_optional(data.terms) or get_default_payment_terms(self.settings),
            payment_instructions=(
                lifecycle.clean_optional(data.payment_instructions)
                or get_default_payment_instructions(self.settings)
            ),
            created_by=user_id,
            is_template=bool(data.is_template),
            template_name=data.template_name if data.is_template else None,
            reminder_count=0,
            **merge_company_info(self.settings, data.company_info),
        )

        created = await crud.insert_invoice(self.store, invoice)
        logger.info(f"Created invoice {created.invoice_number} ({created.id})")
        return created

    async def generate_from_booking(
        self,
        request: schemas.GenerateInvoiceFromBooking,
        user_id: Optional[str] = None,
        today: Optional[date] = None,
    ) -> schemas.Invoice:
        with store_errors("generate invoice"):
            return await self.generator.generate(request, user_id=user_id, today=today)

    async def _apply_patch(self, invoice: schemas.Invoice, patch: Dict[str, Any], action: str) -> schemas.Invoice:
        try:
            return await crud.update_invoice_document(self.store, invoice.id, patch)
        except DocumentNotFound as exc:
            raise NotFoundError("Invoice not found") from exc
        except DocumentConflict as exc:
            raise ConflictError("Invoice number already exists") from exc
        except InvalidDocumentStructure as exc:
            logger.warning(f"Rejected patch for invoice {invoice.id}: {exc}")
            raise ValidationError("Invalid invoice data structure") from exc
        except DocumentStoreError as exc:
            logger.error(f"Failed to {action} {invoice.id}", exc_info=True)
            raise StoreError(f"Failed to {action}") from exc

    async def update_invoice(
        self,
        invoice_id: str,
        update: schemas.InvoiceUpdate,
        user_id: Optional[str] = None,
        today: Optional[date] = None,
    ) -> schemas.Invoice:
        existing = await self.get_invoice(invoice_id)
        patch = lifecycle.build_update(existing, update, today=today, user_id=user_id, calculator=self.calculator)

        updated = await self._apply_patch(existing, patch, "update invoice")
        logger.info(f"Updated invoice {updated.invoice_number}: {sorted(patch)}")
        return updated

    async def cancel_invoice(self, invoice_id: str, user_id: Optional[str] = None) -> schemas.Invoice:
        existing = await self.get_invoice(invoice_id)
        patch = lifecycle.build_cancellation(existing, user_id)

        cancelled = await self._apply_patch(existing, patch, "cancel invoice")
        logger.info(f"Cancelled invoice {cancelled.invoice_number}")
        return cancelled

    async def get_stats(
        self,
        currency: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        created_by: Optional[str] = None,
        today: Optional[date] = None,
    ) -> schemas.InvoiceStats:
        with store_errors("fetch invoice statistics"):
            return await self.reporting.generate_stats(currency, date_from, date_to, created_by, today)
