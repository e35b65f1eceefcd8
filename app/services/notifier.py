"""
Change events and the notifier seam.

The ledger only emits events; delivering them to connected group members
(sockets, push) is the consumer's job. Two adapters ship here: a logging
notifier used by default, and a webhook notifier that POSTs each event to
NOTIFIER_WEBHOOK_URL with exponential backoff.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel, Field

from app.core.config import settings
from app.models.base import utcnow

logger = logging.getLogger(__name__)

SPLIT_BILL_CREATED = "split-bill-created"
SPLIT_BILL_UPDATED = "split-bill-updated"
SPLIT_BILL_DELETED = "split-bill-deleted"
REMINDER_DUE = "reminder-due"

PAYMENT_MADE = "payment-made"
PAYMENT_CONFIRMED = "payment-confirmed"
BILL_REJECTED = "bill-rejected"


class ChangeEvent(BaseModel):
    event: str
    type: Optional[str] = None
    split_bill_id: str
    group_id: Optional[str] = None  # fan-out channel; None for direct bills
    recipient_id: Optional[str] = None
    participant_id: Optional[str] = None
    payment_method: Optional[str] = None
    updated_by: Optional[str] = None
    split_bill: Optional[Dict[str, Any]] = None
    reminder: Optional[Dict[str, Any]] = None
    occurred_at: datetime = Field(default_factory=utcnow)


class Notifier:
    """Sink for change events."""

    async def publish(self, event: ChangeEvent) -> None:
        raise NotImplementedError


class LoggingNotifier(Notifier):
    async def publish(self, event: ChangeEvent) -> None:
        logger.info(
            "Change event",
            extra={
                "event": event.event,
                "event_type": event.type,
                "split_bill_id": event.split_bill_id,
                "group_id": event.group_id,
                "recipient_id": event.recipient_id,
            }
        )


class WebhookNotifier(Notifier):
    """
    POST events to a webhook.

    Retry strategy: exponential backoff (base * 2^attempt) on 5xx and
    network failures, up to WEBHOOK_MAX_RETRIES attempts.
    """

    def __init__(self, webhook_url: str | None = None):
        self.webhook_url = webhook_url or settings.NOTIFIER_WEBHOOK_URL
        self.max_retries = settings.WEBHOOK_MAX_RETRIES
        self.backoff_base = settings.WEBHOOK_BACKOFF_BASE

    async def publish(self, event: ChangeEvent) -> None:
        payload = event.model_dump(mode="json")
        attempt = 0
        async with httpx.AsyncClient() as client:
            while attempt < self.max_retries:
                try:
                    response = await client.post(
                        self.webhook_url,
                        json=payload,
                        timeout=settings.WEBHOOK_TIMEOUT_SECONDS,
                    )
                    response.raise_for_status()
                    return

                except (httpx.HTTPStatusError, httpx.RequestError) as e:
                    attempt += 1
                    if isinstance(e, httpx.HTTPStatusError) and e.response.status_code < 500:
                        raise
                    if attempt >= self.max_retries:
                        raise

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    logger.warning(
                        "Webhook delivery failed, retrying",
                        extra={"attempt": attempt, "backoff_seconds": backoff, "error": str(e)}
                    )
                    await asyncio.sleep(backoff)


_notifier: Notifier | None = None


def get_notifier() -> Notifier:
    """Process-wide notifier, chosen from settings on first use."""
    global _notifier
    if _notifier is None:
        if settings.NOTIFIER_WEBHOOK_URL:
            _notifier = WebhookNotifier()
        else:
            _notifier = LoggingNotifier()
    return _notifier


async def emit(notifier: Notifier, event: ChangeEvent) -> None:
    """
    Publish an event after the ledger write has landed.

    A delivery failure is logged and dropped: the write is already committed
    and the event stream is best-effort.
    """
    try:
        await notifier.publish(event)
    except Exception:
        logger.exception(
            "Failed to publish change event",
            extra={"event": event.event, "split_bill_id": event.split_bill_id}
        )
