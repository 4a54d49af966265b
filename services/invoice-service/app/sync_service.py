"""
Outbound invoice events.

When a webhook URL is configured, every invoice mutation is POSTed there as a
small JSON event. Delivery is best effort: failures are logged and never
reach the request that caused the event.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from . import schemas
from .config import Settings
from .documents import invoice_to_response
from .http_retry import post_json_with_retry
from .logging_config import get_logger

logger = get_logger("sync")

EVENT_CREATED = "created"
EVENT_GENERATED = "generated"
EVENT_UPDATED = "updated"
EVENT_CANCELLED = "cancelled"


class InvoiceEventNotifier:
    """Posts invoice events to the configured webhook"""

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.webhook_url = settings.INVOICE_WEBHOOK_URL
        self.timeout = settings.WEBHOOK_TIMEOUT
        self.attempts = settings.WEBHOOK_ATTEMPTS
        self.client = client

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    def build_payload(self, event: str, invoice: schemas.Invoice, user_id: Optional[str] = None) -> Dict[str, Any]:
        return {
            "event": f"invoice.{event}",
            "occurredAt": datetime.now(timezone.utc).isoformat(),
            "userId": user_id,
            "invoice": invoice_to_response(invoice),
        }

    async def notify(self, event: str, invoice: schemas.Invoice, user_id: Optional[str] = None) -> bool:
        """Deliver one event; returns whether the webhook accepted it."""
        if not self.enabled:
            return False

        payload = self.build_payload(event, invoice, user_id)
        try:
            await post_json_with_retry(
                self.webhook_url,
                json_body=payload,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
                attempts=self.attempts,
                client=self.client,
            )
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Webhook rejected invoice.{event} for {invoice.invoice_number}: "
                f"{e.response.status_code} - {e.response.text}"
            )
            return False
        except httpx.RequestError as e:
            logger.error(f"Network error delivering invoice.{event} for {invoice.invoice_number}: {e}")
            return False

        logger.info(f"Delivered invoice.{event} for {invoice.invoice_number}")
        return True
