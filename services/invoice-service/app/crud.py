from typing import Any, Dict, List, Mapping, Optional

from . import schemas
from .documents import (
    booking_from_document,
    invoice_from_document,
    invoice_to_document,
    invoice_to_response,
    package_from_document,
)
from .exceptions import ConflictError, StoreError, ValidationError
from .logging_config import get_logger
from .store import (
    DocumentConflict,
    DocumentNotFound,
    DocumentPage,
    DocumentStore,
    DocumentStoreError,
    Filter,
    InvalidDocumentStructure,
)

logger = get_logger("crud")

INVOICES = "invoices"
BOOKINGS = "bookings"
PACKAGES = "packages"

DEFAULT_PAGE_SIZE = 20

# === INVOICE STORE OPERATIONS ===

async def get_invoice(store: DocumentStore, invoice_id: str) -> Optional[schemas.Invoice]:
    """Get invoice by ID, None when the store has no such document"""
    try:
        document = await store.get(INVOICES, invoice_id)
    except DocumentNotFound:
        return None
    return invoice_from_document(document)


async def find_invoice_by_booking(store: DocumentStore, booking_id: str) -> Optional[schemas.Invoice]:
    page = await store.list(INVOICES, [Filter("bookingId", booking_id)], limit=1)
    if not page.documents:
        return None
    return invoice_from_document(page.documents[0])


async def find_invoice_by_number(store: DocumentStore, invoice_number: str) -> Optional[schemas.Invoice]:
    page = await store.list(INVOICES, [Filter("invoiceNumber", invoice_number)], limit=1)
    if not page.documents:
        return None
    return invoice_from_document(page.documents[0])


async def create_invoice_document(store: DocumentStore, document: Mapping[str, Any]) -> schemas.Invoice:
    created = await store.create(INVOICES, None, document)
    return invoice_from_document(created)


async def insert_invoice(store: DocumentStore, invoice: schemas.Invoice) -> schemas.Invoice:
    """Persist a new invoice, translating store failures into service errors"""
    try:
        return await create_invoice_document(store, invoice_to_document(invoice))
    except DocumentConflict as exc:
        if exc.field_name != "invoiceNumber" and invoice.booking_id:
            existing = await find_invoice_by_booking(store, invoice.booking_id)
            if existing is not None:
                raise ConflictError(
                    "Invoice already exists for this booking",
                    existing=invoice_to_response(existing),
                ) from exc
        raise ConflictError("Invoice number already exists") from exc
    except InvalidDocumentStructure as exc:
        logger.warning(f"Rejected invoice document {invoice.invoice_number}: {exc}")
        raise ValidationError("Invalid invoice data structure") from exc
    except DocumentStoreError as exc:
        logger.error(f"Failed to create invoice {invoice.invoice_number}", exc_info=True)
        raise StoreError("Failed to create invoice") from exc


async def update_invoice_document(
    store: DocumentStore, invoice_id: str, patch: Mapping[str, Any]
) -> schemas.Invoice:
    updated = await store.update(INVOICES, invoice_id, patch)
    return invoice_from_document(updated)


# === BOOKING / PACKAGE LOOKUPS ===

async def get_booking(store: DocumentStore, booking_id: str) -> Optional[schemas.Booking]:
    try:
        document = await store.get(BOOKINGS, booking_id)
    except DocumentNotFound:
        return None
    return booking_from_document(document)


async def get_package(store: DocumentStore, package_id: str) -> Optional[schemas.TravelPackage]:
    try:
        document = await store.get(PACKAGES, package_id)
    except DocumentNotFound:
        return None
    return package_from_document(document)


# === LISTING ===

def build_invoice_filters(filters: schemas.InvoiceFilters) -> List[Filter]:
    """Translate listing filters into store predicates"""
    predicates: List[Filter] = []

    if filters.status:
        predicates.append(Filter("status", list(filters.status), "in"))
    if filters.type:
        predicates.append(Filter("type", list(filters.type), "in"))

    exact_fields = {
        "customerEmail": filters.customer_email.strip().lower() if filters.customer_email else None,
        "customerId": filters.customer_id,
        "bookingReference": filters.booking_reference,
        "bookingId": filters.booking_id,
        "currency": filters.currency,
        "destination": filters.destination,
        "isTemplate": filters.is_template,
        "createdBy": filters.created_by,
    }
    for field_name, value in exact_fields.items():
        if value is not None:
            predicates.append(Filter(field_name, value))

    # ISO dates compare correctly as strings
    if filters.date_from:
        predicates.append(Filter("issueDate", filters.date_from.isoformat(), "gte"))
    if filters.date_to:
        predicates.append(Filter("issueDate", filters.date_to.isoformat(), "lte"))
    if filters.due_date_from:
        predicates.append(Filter("dueDate", filters.due_date_from.isoformat(), "gte"))
    if filters.due_date_to:
        predicates.append(Filter("dueDate", filters.due_date_to.isoformat(), "lte"))
    if filters.amount_min is not None:
        predicates.append(Filter("totalAmount", filters.amount_min, "gte"))
    if filters.amount_max is not None:
        predicates.append(Filter("totalAmount", filters.amount_max, "lte"))

    return predicates


def _matches_search(document: Dict[str, Any], term: str) -> bool:
    term = term.lower()
    return any(
        term in str(document.get(field_name) or "").lower()
        for field_name in ("invoiceNumber", "customerName")
    )


async def list_invoices(
    store: DocumentStore,
    filters: Optional[schemas.InvoiceFilters] = None,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    sort_by: str = schemas.InvoiceSortField.CREATED_AT.value,
    descending: bool = True,
) -> DocumentPage:
    """Filtered, sorted page of invoice documents"""
    filters = filters or schemas.InvoiceFilters()
    predicates = build_invoice_filters(filters)
    offset = (page - 1) * limit

    if not filters.search:
        return await store.list(INVOICES, predicates, sort_by, descending, limit, offset)

    # Search spans two fields, so it is applied after the store filters
    matched = await store.list(INVOICES, predicates, sort_by, descending)
    documents = [doc for doc in matched.documents if _matches_search(doc, filters.search)]
    return DocumentPage(documents=documents[offset:offset + limit], total=len(documents))
