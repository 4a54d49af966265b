"""
Domain exceptions for the invoice service.
Each carries the HTTP status the API boundary answers with.
"""

from typing import Any, Dict, List, Optional


class InvoiceServiceError(Exception):
    """Base exception for the invoice service."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_response(self) -> Dict[str, Any]:
        return {"success": False, "error": self.message}


class ValidationError(InvoiceServiceError):
    """Bad input shape or values; nothing was written."""

    status_code = 400

    def __init__(self, message: str, details: Optional[List[str]] = None):
        super().__init__(message)
        self.details = details or []

    def to_response(self) -> Dict[str, Any]:
        body = super().to_response()
        if self.details:
            body["details"] = self.details
        return body


class NotFoundError(InvoiceServiceError):
    """Missing invoice, booking or package."""

    status_code = 404


class ConflictError(InvoiceServiceError):
    """Duplicate invoice number or a second invoice for the same booking."""

    status_code = 409

    def __init__(self, message: str, existing: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.existing = existing

    def to_response(self) -> Dict[str, Any]:
        body = super().to_response()
        if self.existing is not None:
            body["existingInvoice"] = self.existing
        return body


class StateError(InvoiceServiceError):
    """Illegal lifecycle transition, e.g. editing a paid or cancelled invoice."""

    status_code = 400


class StoreError(InvoiceServiceError):
    """Document store failure, reported with a generic message."""

    status_code = 500
