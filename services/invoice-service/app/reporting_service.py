from datetime import date
from typing import Iterable, Optional

from . import crud, schemas
from .config import Settings
from .documents import invoice_from_document
from .invoice_calculator import round_currency
from .logging_config import get_logger
from .store import DocumentStore, Filter, InvalidDocumentStructure

logger = get_logger("reporting")

Status = schemas.InvoiceStatus


def summarize_invoices(
    invoices: Iterable[schemas.Invoice],
    currency: str = schemas.Currency.USD.value,
    today: Optional[date] = None,
) -> schemas.InvoiceStats:
    """Aggregate counts and amounts; sent and partial invoices past due count as overdue."""
    today = today or date.today()

    total_invoices = 0
    total_amount = 0.0
    paid_amount = 0.0
    overdue_amount = 0.0
    counts = {status.value: 0 for status in Status}

    for invoice in invoices:
        total_invoices += 1
        total_amount += invoice.total_amount or 0
        past_due = invoice.due_date < today

        if invoice.status == Status.PAID.value:
            counts[Status.PAID.value] += 1
            paid_amount += invoice.paid_amount or invoice.total_amount or 0
        elif invoice.status == Status.OVERDUE.value:
            counts[Status.OVERDUE.value] += 1
            overdue_amount += invoice.total_amount or 0
        elif invoice.status == Status.SENT.value:
            if past_due:
                counts[Status.OVERDUE.value] += 1
                overdue_amount += invoice.total_amount or 0
            else:
                counts[Status.SENT.value] += 1
        elif invoice.status == Status.PARTIAL.value:
            paid_amount += invoice.paid_amount or 0
            if past_due:
                counts[Status.OVERDUE.value] += 1
                overdue_amount += (invoice.total_amount or 0) - (invoice.paid_amount or 0)
            else:
                counts[Status.SENT.value] += 1
        else:
            counts[invoice.status] += 1

    average_amount = total_amount / total_invoices if total_invoices else 0

    return schemas.InvoiceStats(
        total_invoices=total_invoices,
        total_amount=round_currency(total_amount),
        paid_amount=round_currency(paid_amount),
        overdue_amount=round_currency(overdue_amount),
        draft_count=counts[Status.DRAFT.value],
        sent_count=counts[Status.SENT.value],
        paid_count=counts[Status.PAID.value],
        overdue_count=counts[Status.OVERDUE.value],
        cancelled_count=counts[Status.CANCELLED.value],
        average_amount=round_currency(average_amount),
        currency=currency,
    )


class InvoiceReportingService:
    """Service for invoice statistics"""

    def __init__(self, store: DocumentStore, settings: Settings):
        self.store = store
        self.settings = settings

    async def generate_stats(
        self,
        currency: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        created_by: Optional[str] = None,
        today: Optional[date] = None,
    ) -> schemas.InvoiceStats:
        """Statistics over non-template invoices of one currency"""
        currency = currency or schemas.Currency.USD.value
        filters = [Filter("currency", currency), Filter("isTemplate", False)]
        if date_from:
            filters.append(Filter("issueDate", date_from.isoformat(), "gte"))
        if date_to:
            filters.append(Filter("issueDate", date_to.isoformat(), "lte"))
        if created_by:
            filters.append(Filter("createdBy", created_by))

        page = await self.store.list(
            crud.INVOICES,
            filters,
            order_by=schemas.InvoiceSortField.CREATED_AT.value,
            descending=True,
            limit=self.settings.STATS_SCAN_LIMIT,
        )
        if page.total > len(page.documents):
            logger.warning(f"Statistics cover {len(page.documents)} of {page.total} invoices")

        invoices = []
        for document in page.documents:
            try:
                invoices.append(invoice_from_document(document))
            except InvalidDocumentStructure as exc:
                logger.warning(f"Skipping malformed invoice in statistics: {exc}")

        return summarize_invoices(invoices, currency, today)
