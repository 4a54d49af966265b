from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import List, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from . import schemas
from .auth import get_current_user_id
from .config import Settings, get_settings
from .database import create_schema, get_db
from .exceptions import InvoiceServiceError
from .invoice_service import InvoiceService
from .logging_config import get_logger, setup_logging
from .store import DocumentStore, SQLDocumentStore
from .sync_service import (
    EVENT_CANCELLED,
    EVENT_CREATED,
    EVENT_GENERATED,
    EVENT_UPDATED,
    InvoiceEventNotifier,
)

logger = get_logger("api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    setup_logging(settings)
    if settings.AUTO_CREATE_SCHEMA:
        await create_schema()
        logger.info("Database schema ensured")
    yield


app = FastAPI(
    title="Travel Invoice Service",
    description="Invoice generation from bookings, payment tracking and invoice statistics",
    version="1.0.0",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "invoices", "description": "Invoice CRUD operations"},
        {"name": "bookings", "description": "Invoice generation from bookings"},
        {"name": "reporting", "description": "Invoice statistics"},
    ],
)


# === DEPENDENCIES ===

def get_store(db: AsyncSession = Depends(get_db)) -> DocumentStore:
    return SQLDocumentStore(db)


def get_invoice_service(
    store: DocumentStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> InvoiceService:
    return InvoiceService(store, settings)


def get_notifier(settings: Settings = Depends(get_settings)) -> InvoiceEventNotifier:
    return InvoiceEventNotifier(settings)


# === ERROR HANDLERS ===

@app.exception_handler(InvoiceServiceError)
async def invoice_service_error_handler(request: Request, exc: InvoiceServiceError):
    if exc.status_code < 500:
        logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    details = [
        f"{'.'.join(str(part) for part in error['loc'] if part != 'body')}: {error['msg']}"
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": "Invalid request data", "details": details},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": "Internal server error"},
    )


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "ok", "service": "invoice-service", "timestamp": datetime.now(timezone.utc)}


# === INVOICE ENDPOINTS ===

@app.post("/invoices", status_code=status.HTTP_201_CREATED, tags=["invoices"])
async def create_invoice(
    invoice_data: schemas.InvoiceCreate,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(get_current_user_id),
    service: InvoiceService = Depends(get_invoice_service),
    notifier: InvoiceEventNotifier = Depends(get_notifier),
):
    """Create an invoice from a complete payload"""
    invoice = await service.create_invoice(invoice_data, user_id=user_id)
    background_tasks.add_task(notifier.notify, EVENT_CREATED, invoice, user_id)
    return {"success": True, "invoice": service.to_response(invoice)}


@app.get("/invoices", tags=["invoices"])
async def list_invoices(
    user_id: str = Depends(get_current_user_id),
    service: InvoiceService = Depends(get_invoice_service),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    invoice_status: Optional[List[schemas.InvoiceStatus]] = Query(None, alias="status"),
    invoice_type: Optional[List[schemas.InvoiceType]] = Query(None, alias="type"),
    customer_email: Optional[str] = Query(None, alias="customerEmail"),
    customer_id: Optional[str] = Query(None, alias="customerId"),
    booking_reference: Optional[str] = Query(None, alias="bookingReference"),
    booking_id: Optional[str] = Query(None, alias="bookingId"),
    currency: Optional[schemas.Currency] = None,
    destination: Optional[str] = None,
    is_template: Optional[bool] = Query(None, alias="isTemplate"),
    created_by: Optional[str] = Query(None, alias="createdBy"),
    date_from: Optional[date] = Query(None, alias="dateFrom"),
    date_to: Optional[date] = Query(None, alias="dateTo"),
    due_date_from: Optional[date] = Query(None, alias="dueDateFrom"),
    due_date_to: Optional[date] = Query(None, alias="dueDateTo"),
    amount_min: Optional[float] = Query(None, alias="amountMin"),
    amount_max: Optional[float] = Query(None, alias="amountMax"),
    search: Optional[str] = None,
    sort_by: schemas.InvoiceSortField = Query(schemas.InvoiceSortField.CREATED_AT, alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
):
    """List invoices with filtering, search, sorting and paging"""
    filters = schemas.InvoiceFilters(
        status=invoice_status,
        type=invoice_type,
        customer_email=customer_email,
        customer_id=customer_id,
        booking_reference=booking_reference,
        booking_id=booking_id,
        currency=currency,
        destination=destination,
        is_template=is_template,
        created_by=created_by,
        date_from=date_from,
        date_to=date_to,
        due_date_from=due_date_from,
        due_date_to=due_date_to,
        amount_min=amount_min,
        amount_max=amount_max,
        search=search.strip() if search and search.strip() else None,
    )
    result = await service.list_invoices(filters, page, limit, sort_by.value, sort_order)
    return {"success": True, **result.model_dump(by_alias=True)}


@app.get("/invoices/stats", tags=["reporting"])
async def get_invoice_stats(
    user_id: str = Depends(get_current_user_id),
    service: InvoiceService = Depends(get_invoice_service),
    currency: schemas.Currency = schemas.Currency.USD,
    date_from: Optional[date] = Query(None, alias="dateFrom"),
    date_to: Optional[date] = Query(None, alias="dateTo"),
    created_by: Optional[str] = Query(None, alias="createdBy"),
):
    """Invoice statistics for one currency, templates excluded"""
    stats = await service.get_stats(currency.value, date_from, date_to, created_by)
    return {"success": True, "stats": stats.model_dump(by_alias=True)}


@app.post("/invoices/from-booking", status_code=status.HTTP_201_CREATED, tags=["bookings"])
async def generate_invoice_from_booking(
    booking_request: schemas.GenerateInvoiceFromBooking,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(get_current_user_id),
    service: InvoiceService = Depends(get_invoice_service),
    notifier: InvoiceEventNotifier = Depends(get_notifier),
):
    """Generate a draft invoice for a booking"""
    invoice = await service.generate_from_booking(booking_request, user_id=user_id)
    background_tasks.add_task(notifier.notify, EVENT_GENERATED, invoice, user_id)
    return {
        "success": True,
        "message": "Invoice generated successfully",
        "invoice": service.to_response(invoice),
    }


@app.get("/invoices/{invoice_id}", tags=["invoices"])
async def get_invoice(
    invoice_id: str,
    user_id: str = Depends(get_current_user_id),
    service: InvoiceService = Depends(get_invoice_service),
):
    """Get specific invoice by ID"""
    invoice = await service.get_invoice(invoice_id)
    return {"success": True, "invoice": service.to_response(invoice)}


@app.put("/invoices/{invoice_id}", tags=["invoices"])
async def update_invoice(
    invoice_id: str,
    invoice_update: schemas.InvoiceUpdate,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(get_current_user_id),
    service: InvoiceService = Depends(get_invoice_service),
    notifier: InvoiceEventNotifier = Depends(get_notifier),
):
    """Apply a partial update; financials and status follow the lifecycle rules"""
    invoice = await service.update_invoice(invoice_id, invoice_update, user_id=user_id)
    background_tasks.add_task(notifier.notify, EVENT_UPDATED, invoice, user_id)
    return {"success": True, "invoice": service.to_response(invoice)}


@app.delete("/invoices/{invoice_id}", tags=["invoices"])
async def cancel_invoice(
    invoice_id: str,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(get_current_user_id),
    service: InvoiceService = Depends(get_invoice_service),
    notifier: InvoiceEventNotifier = Depends(get_notifier),
):
    """Cancel an invoice; invoices are never deleted"""
    invoice = await service.cancel_invoice(invoice_id, user_id=user_id)
    background_tasks.add_task(notifier.notify, EVENT_CANCELLED, invoice, user_id)
    return {
        "success": True,
        "message": "Invoice cancelled successfully",
        "invoice": service.to_response(invoice),
    }
