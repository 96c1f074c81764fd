"""Citizen SMS notifications for document requests.

Messages are formatted here and handed to a NotificationDispatcher, which
delivers them from a background task so a slow or failing SMS provider
never delays or fails the workflow step that triggered it.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from app.models.citizen import Citizen
from app.models.document_request import DocumentRequest
from app.models.enums import DocumentType
from app.services.sms_gateway import SmsGateway

logger = logging.getLogger(__name__)

def _sender_prefix(barangay_name: str) -> str:
    return f"BRGY {barangay_name.upper()}"


def _citizen_name(citizen: Citizen) -> str:
    return " ".join(p for p in (citizen.first_name, citizen.last_name) if p) or "Resident"


def _document_name(document_type) -> str:
    try:
        return DocumentType(document_type).display_name
    except ValueError:
        return str(document_type).replace("_", " ").title()


def format_request_submitted_message(request: DocumentRequest, citizen: Citizen, barangay_name: str) -> str:
    return (
        f"{_sender_prefix(barangay_name)}: Good day {_citizen_name(citizen)}! Your request for "
        f"{_document_name(request.document_type)} has been received and is now pending for approval. "
        "We will notify you once it's processed. Thank you!"
    )


def format_request_approved_message(request: DocumentRequest, citizen: Citizen, barangay_name: str) -> str:
    processed = request.processed_at or datetime.utcnow()
    return (
        f"{_sender_prefix(barangay_name)}: Good news {_citizen_name(citizen)}! Your request for "
        f"{_document_name(request.document_type)} has been APPROVED on "
        f"{processed.month}/{processed.day}/{processed.year}. You may now download your document. Thank you!"
    )


def format_request_denied_message(request: DocumentRequest, citizen: Citizen, barangay_name: str) -> str:
    reason = (request.denial_reason or "").strip() or "Please visit the barangay hall for more information."
    return (
        f"{_sender_prefix(barangay_name)}: {_citizen_name(citizen)}, your request for "
        f"{_document_name(request.document_type)} has been DENIED. Reason: {reason}. "
        "Please contact the barangay hall for assistance. Thank you!"
    )


@dataclass
class SmsMessage:
    phone_number: str
    message: str
    context: str = ""


class NotificationDispatcher:
    """Queue of outgoing SMS drained by a single background worker.

    dispatch() never blocks and never raises. Delivery errors and timeouts
    are logged; there are no retries here.
    """

    def __init__(self, gateway: SmsGateway, timeout: float = 10.0):
        self.gateway = gateway
        self.timeout = timeout
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self.sent = 0
        self.failed = 0

    def dispatch(self, phone_number: Optional[str], message: str, context: str = "") -> bool:
        """Queue a message for delivery.

        Returns:
            True if the message was queued, False if it was skipped
        """
        if not phone_number or not phone_number.strip():
            logger.warning(f"No phone number on file, skipping SMS ({context})")
            return False
        try:
            self._ensure_worker()
            self._queue.put_nowait(SmsMessage(phone_number.strip(), message, context))
        except RuntimeError as e:
            # No running event loop (e.g. called from a sync script)
            logger.error(f"Could not queue SMS ({context}): {e}")
            return False
        return True

    def _ensure_worker(self) -> None:
        loop = asyncio.get_running_loop()
        if self._queue is None or self._worker is None or self._worker.done() or self._worker.get_loop() is not loop:
            self._queue = asyncio.Queue()
            self._worker = loop.create_task(self._run(self._queue))

    async def _run(self, queue: asyncio.Queue) -> None:
        while True:
            item = await queue.get()
            try:
                await self._deliver(item)
            finally:
                queue.task_done()

    async def _deliver(self, item: SmsMessage) -> None:
        try:
            success = await asyncio.wait_for(
                self.gateway.send_sms(item.phone_number, item.message),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            self.failed += 1
            logger.error(f"SMS to {item.phone_number} timed out after {self.timeout}s ({item.context})")
            return
        except Exception as e:
            self.failed += 1
            logger.error(f"Error sending SMS to {item.phone_number} ({item.context}): {e}", exc_info=True)
            return

        if success:
            self.sent += 1
            logger.info(f"SMS sent ({item.context}), Phone: {item.phone_number}")
        else:
            self.failed += 1
            logger.warning(f"Failed to send SMS ({item.context}), Phone: {item.phone_number}")

    async def join(self) -> None:
        """Wait until every queued message has been handled."""
        if self._queue is not None and self._worker is not None and not self._worker.done():
            await self._queue.join()

    async def close(self) -> None:
        """Deliver what is queued, then stop the worker."""
        await self.join()
        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        self._worker = None
        self._queue = None
