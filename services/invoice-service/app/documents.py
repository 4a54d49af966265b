"""
Mapping between typed models and flat store documents.

The store keeps invoices as flat camelCase documents with line items
serialized into a JSON string field. Everything inside the service works on
typed models; conversion happens only here.
"""

import json
from datetime import date
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from . import schemas
from .logging_config import get_logger
from .store import InvalidDocumentStructure

logger = get_logger("documents")

STORE_METADATA_FIELDS = {"id", "created_at", "updated_at"}


def stringify_line_items(line_items: Iterable[schemas.LineItem]) -> str:
    payload = [item.model_dump(by_alias=True, exclude_none=True) for item in line_items]
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def parse_line_items(raw: Union[str, List[Any], None]) -> List[schemas.LineItem]:
    """Parse stored line items; malformed JSON yields an empty list."""
    if raw is None:
        return []

    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Stored line items are not valid JSON")
            return []

    if not isinstance(raw, list):
        return []

    items: List[schemas.LineItem] = []
    for entry in raw:
        if isinstance(entry, schemas.LineItem):
            items.append(entry)
            continue
        if not isinstance(entry, dict):
            continue
        try:
            items.append(schemas.LineItem.model_validate(entry))
        except PydanticValidationError as exc:
            logger.warning(f"Skipping unreadable stored line item: {exc}")
    return items


def to_document_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    return value


def invoice_to_document(invoice: schemas.Invoice) -> Dict[str, Any]:
    document = invoice.model_dump(
        by_alias=True,
        mode="json",
        exclude=STORE_METADATA_FIELDS,
        exclude_none=True,
    )
    document["lineItems"] = stringify_line_items(invoice.line_items)
    return document


def invoice_from_document(document: Dict[str, Any]) -> schemas.Invoice:
    data = dict(document)
    data["lineItems"] = parse_line_items(data.get("lineItems"))
    try:
        return schemas.Invoice.model_validate(data)
    except PydanticValidationError as exc:
        raise InvalidDocumentStructure(f"Invoice document {document.get('$id')} is malformed: {exc}") from exc


def booking_from_document(document: Dict[str, Any]) -> schemas.Booking:
    try:
        return schemas.Booking.model_validate(document)
    except PydanticValidationError as exc:
        raise InvalidDocumentStructure(f"Booking document {document.get('$id')} is malformed: {exc}") from exc


def package_from_document(document: Dict[str, Any]) -> schemas.TravelPackage:
    try:
        return schemas.TravelPackage.model_validate(document)
    except PydanticValidationError as exc:
        raise InvalidDocumentStructure(f"Package document {document.get('$id')} is malformed: {exc}") from exc


def invoice_to_response(invoice: schemas.Invoice, display_status: Optional[str] = None) -> Dict[str, Any]:
    """Wire shape of an invoice: store fields plus typed line items."""
    payload = invoice.model_dump(by_alias=True, mode="json")
    if display_status is not None:
        payload["displayStatus"] = display_status
    return payload
