from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .identifiers import generate_line_item_id


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"
    PARTIAL = "partial"


class InvoiceType(str, Enum):
    TRAVEL = "travel"
    PACKAGE = "package"
    TRIP = "trip"
    SERVICE = "service"
    CUSTOM = "custom"


class Currency(str, Enum):
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    INR = "INR"
    AUD = "AUD"
    CAD = "CAD"
    JPY = "JPY"
    CNY = "CNY"
    AED = "AED"


class PaymentMethod(str, Enum):
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    BANK_TRANSFER = "bank_transfer"
    PAYPAL = "paypal"
    CASH = "cash"
    CHECK = "check"
    CRYPTOCURRENCY = "cryptocurrency"
    OTHER = "other"


class InvoiceSortField(str, Enum):
    INVOICE_NUMBER = "invoiceNumber"
    CUSTOMER_NAME = "customerName"
    TOTAL_AMOUNT = "totalAmount"
    ISSUE_DATE = "issueDate"
    DUE_DATE = "dueDate"
    STATUS = "status"
    CREATED_AT = "$createdAt"


class CamelModel(BaseModel):
    """Base for models whose wire and store shape is camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )


# === LINE ITEM SCHEMAS ===
# No field constraints: values are checked by validators.validate_line_items

class LineItem(CamelModel):
    id: str = Field(default_factory=generate_line_item_id)
    description: str = ""
    quantity: float = 0
    unit_price: float = 0
    total_price: float = 0
    taxable: bool = True
    category: Optional[str] = None
    notes: Optional[str] = None


class InvoiceFinancials(CamelModel):
    subtotal: float
    tax_amount: float
    tax_rate: float
    discount_amount: float
    total_amount: float


class CompanyInfo(CamelModel):
    name: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    logo: Optional[str] = None


# === INVOICE SCHEMAS ===

class Invoice(CamelModel):
    """Invoice as held in memory; line items are typed, not serialized."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = Field(None, alias="$id")
    created_at: Optional[str] = Field(None, alias="$createdAt")
    updated_at: Optional[str] = Field(None, alias="$updatedAt")

    invoice_number: str
    status: InvoiceStatus = InvoiceStatus.DRAFT
    type: InvoiceType = InvoiceType.CUSTOM

    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    customer_address: Optional[str] = None
    customer_country: Optional[str] = None
    customer_id: Optional[str] = None

    booking_reference: Optional[str] = None
    booking_id: Optional[str] = None

    issue_date: date
    due_date: date
    paid_date: Optional[date] = None

    line_items: List[LineItem] = Field(default_factory=list)
    subtotal: float = 0
    tax_rate: float = 0
    tax_amount: float = 0
    discount_amount: float = 0
    total_amount: float = 0
    paid_amount: float = 0
    balance_due: float = Field(0, alias="balancedue")
    currency: Currency = Currency.USD

    travel_date: Optional[date] = None
    return_date: Optional[date] = None
    destination: Optional[str] = None
    number_of_travelers: Optional[int] = None

    notes: Optional[str] = None
    terms: Optional[str] = None
    payment_instructions: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    payment_reference: Optional[str] = None

    company_name: Optional[str] = None
    company_address: Optional[str] = None
    company_phone: Optional[str] = None
    company_email: Optional[str] = None
    company_website: Optional[str] = None
    company_logo: Optional[str] = None

    created_by: Optional[str] = None
    last_modified_by: Optional[str] = None
    is_template: bool = False
    template_name: Optional[str] = None

    sent_date: Optional[date] = None
    reminder_count: int = 0
    last_reminder_date: Optional[date] = None


class InvoiceCreate(CamelModel):
    """Direct creation payload. Required fields are checked by the validator."""

    invoice_number: Optional[str] = None
    status: Optional[InvoiceStatus] = None
    type: Optional[InvoiceType] = None

    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_address: Optional[str] = None
    customer_country: Optional[str] = None
    customer_id: Optional[str] = None

    booking_reference: Optional[str] = None
    booking_id: Optional[str] = None

    issue_date: Optional[date] = None
    due_date: Optional[date] = None

    line_items: List[LineItem] = Field(default_factory=list)
    tax_rate: Optional[float] = None
    discount_amount: Optional[float] = None
    currency: Optional[Currency] = None

    travel_date: Optional[date] = None
    return_date: Optional[date] = None
    destination: Optional[str] = None
    number_of_travelers: Optional[int] = None

    notes: Optional[str] = None
    terms: Optional[str] = None
    payment_instructions: Optional[str] = None

    company_info: Optional[CompanyInfo] = None

    is_template: Optional[bool] = None
    template_name: Optional[str] = None


class InvoiceUpdate(CamelModel):
    """Partial update. A field counts as provided when it appears in the payload."""

    status: Optional[InvoiceStatus] = None

    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_address: Optional[str] = None
    customer_country: Optional[str] = None

    due_date: Optional[date] = None
    paid_date: Optional[date] = None

    line_items: Optional[List[LineItem]] = None
    tax_rate: Optional[float] = None
    discount_amount: Optional[float] = None

    travel_date: Optional[date] = None
    return_date: Optional[date] = None
    destination: Optional[str] = None
    number_of_travelers: Optional[int] = None

    notes: Optional[str] = None
    terms: Optional[str] = None
    payment_instructions: Optional[str] = None

    payment_method: Optional[PaymentMethod] = None
    payment_reference: Optional[str] = None
    paid_amount: Optional[float] = None

    sent_date: Optional[date] = None
    reminder_count: Optional[int] = None
    last_reminder_date: Optional[date] = None

    def provided(self, field_name: str) -> bool:
        return field_name in self.model_fields_set


class GenerateInvoiceFromBooking(CamelModel):
    booking_id: Optional[str] = None
    booking_reference: Optional[str] = None
    due_date: Optional[date] = None
    additional_line_items: List[LineItem] = Field(default_factory=list)
    notes: Optional[str] = None
    terms: Optional[str] = None
    payment_instructions: Optional[str] = None
    tax_rate: Optional[float] = None
    discount_amount: Optional[float] = None
    company_info: Optional[CompanyInfo] = None


# === EXTERNAL DOCUMENTS ===

class Booking(CamelModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., alias="$id")
    booking_reference: Optional[str] = None

    customer_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    customer_email: Optional[str] = None
    email: Optional[str] = None
    customer_phone: Optional[str] = None
    phone: Optional[str] = None
    customer_address: Optional[str] = None
    customer_country: Optional[str] = None
    country: Optional[str] = None
    customer_id: Optional[str] = None

    package_id: Optional[str] = None
    number_of_travelers: Optional[int] = None
    total_amount: Optional[float] = None
    currency: Optional[str] = None

    travel_date: Optional[date] = None
    return_date: Optional[date] = None
    destination: Optional[str] = None

    special_requests: Optional[str] = None
    notes: Optional[str] = None

    @property
    def display_name(self) -> str:
        if self.customer_name:
            return self.customer_name
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def contact_email(self) -> Optional[str]:
        return self.customer_email or self.email


class TravelPackage(CamelModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., alias="$id")
    name: str
    price: Optional[float] = None
    destinations: Optional[Union[str, List[str]]] = None
    duration: Optional[str] = None

    @property
    def destination_label(self) -> Optional[str]:
        if isinstance(self.destinations, list):
            return ", ".join(self.destinations) or None
        return self.destinations


# === QUERY / REPORTING SCHEMAS ===

class InvoiceFilters(CamelModel):
    status: Optional[List[InvoiceStatus]] = None
    type: Optional[List[InvoiceType]] = None
    customer_email: Optional[str] = None
    customer_id: Optional[str] = None
    booking_reference: Optional[str] = None
    booking_id: Optional[str] = None
    currency: Optional[Currency] = None
    destination: Optional[str] = None
    is_template: Optional[bool] = None
    created_by: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    due_date_from: Optional[date] = None
    due_date_to: Optional[date] = None
    amount_min: Optional[float] = None
    amount_max: Optional[float] = None
    search: Optional[str] = None


class InvoiceListResponse(CamelModel):
    invoices: List[Dict[str, Any]]
    total: int
    page: int
    limit: int
    has_more: bool


class InvoiceStats(CamelModel):
    total_invoices: int = 0
    total_amount: float = 0
    paid_amount: float = 0
    overdue_amount: float = 0
    draft_count: int = 0
    sent_count: int = 0
    paid_count: int = 0
    overdue_count: int = 0
    cancelled_count: int = 0
    average_amount: float = 0
    currency: Currency = Currency.USD
