"""
Notification dispatcher — WhatsApp delivery with an audit trail.

Every attempt is logged to `whatsapp_messages` as "pending" BEFORE the
provider is called, then finished exactly once as "sent" (with the Twilio
SID) or "failed" (with the Twilio error). A crash mid-call therefore still
leaves a pending row behind.

Dispatch failures raise DispatchError. The submission workflow treats them
as best-effort and only logs them.
"""
import json
import logging
from dataclasses import dataclass
from typing import Optional

from config import Settings
from domain.enums import MessageKind, OrderStatus
from domain.errors import DispatchError, StorageError, ValidationError
from services import messages
from services.order_repository import OrderRepository
from services.whatsapp_client import WhatsAppClient
from utils.phone import mask_phone

logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    message_sid: str
    record_id: int


class NotificationDispatcher:

    def __init__(self, repository: OrderRepository, client: WhatsAppClient, settings: Settings):
        self._repository = repository
        self._client = client
        self._settings = settings

    @property
    def settings(self) -> Settings:
        return self._settings

    async def dispatch(
        self,
        phone: str,
        body_or_template: str,
        kind: MessageKind = MessageKind.SESSION,
        order_id: Optional[str] = None,
        template_variables: Optional[dict] = None,
    ) -> DispatchResult:
        """
        Deliver one message to a canonical phone.

        Args:
            phone: Canonical phone (already normalized)
            body_or_template: Session text, or the template Content SID
            kind: MessageKind.SESSION or MessageKind.TEMPLATE
            order_id: Related order, recorded on the audit row
            template_variables: Positional variables for template messages

        Returns:
            DispatchResult with the provider message SID

        Raises:
            ValidationError for a template message without a template reference
            DispatchError for any delivery failure
        """
        kind = MessageKind(kind)
        if kind == MessageKind.TEMPLATE and not body_or_template:
            raise ValidationError("Template messages need a template reference", field="template_name")

        is_template = kind == MessageKind.TEMPLATE
        try:
            record = await self._repository.create_notification_record(
                order_id=order_id,
                recipient_phone=phone,
                message_type=kind.value,
                template_name=body_or_template if is_template else None,
                message_content=(
                    json.dumps(template_variables or {}, ensure_ascii=False)
                    if is_template else body_or_template
                ),
            )
        except StorageError as e:
            # No audit row, no send.
            raise DispatchError(f"Could not record WhatsApp message: {e.message}", error_code="log_failed") from e

        try:
            response = await self._client.send(
                phone,
                body=None if is_template else body_or_template,
                content_sid=body_or_template if is_template else None,
                content_variables=template_variables if is_template else None,
            )
        except DispatchError as e:
            await self._mark_failed(record.id, e.error_code, e.message)
            raise

        if not response.ok:
            await self._mark_failed(record.id, response.error_code, response.error_message)
            raise DispatchError(
                f"Twilio API error: {response.error_message}",
                error_code=response.error_code,
                details={"record_id": record.id},
            )

        try:
            await self._repository.mark_notification_sent(record.id, response.message_sid)
        except StorageError as e:
            logger.error(f"WhatsApp message {response.message_sid} sent but audit row {record.id} not updated: {e}")

        logger.info(f"WhatsApp {kind.value} message sent to {mask_phone(phone)} (order={order_id}, sid={response.message_sid})")
        return DispatchResult(message_sid=response.message_sid, record_id=record.id)

    async def _mark_failed(self, record_id: int, error_code: Optional[str], error_message: Optional[str]) -> None:
        try:
            await self._repository.mark_notification_failed(record_id, error_code, error_message)
        except StorageError as e:
            logger.error(f"Could not mark WhatsApp message {record_id} as failed: {e}")

    # ── Order messages ──────────────────────────────────────────────

    async def send_order_confirmation(self, order, lines, daily_sequence: Optional[int] = None) -> DispatchResult:
        """Confirmation for a new order: approved template if configured, else free text."""
        template = self._settings.whatsapp_confirmation_template
        if template:
            return await self.dispatch(
                order.customer_phone,
                template,
                MessageKind.TEMPLATE,
                order_id=order.id,
                template_variables=messages.template_variables(order, self._settings),
            )

        body = messages.render_order_confirmation(
            order, lines, self._settings, daily_sequence=daily_sequence
        )
        return await self.dispatch(order.customer_phone, body, MessageKind.SESSION, order_id=order.id)

    async def send_status_update(self, order, status: OrderStatus) -> DispatchResult:
        body = messages.render_status_update(order.id, status, self._settings)
        return await self.dispatch(order.customer_phone, body, MessageKind.SESSION, order_id=order.id)
