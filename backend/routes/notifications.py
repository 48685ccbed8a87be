"""
WhatsApp endpoint — send one message directly (session text or template).
"""
import logging

from fastapi import APIRouter, Depends

from deps import get_dispatcher, get_repository
from domain.enums import MessageKind
from domain.errors import ValidationError
from domain.responses import success_response
from models import SendMessageRequest
from services import messages
from services.notification_service import NotificationDispatcher
from services.order_repository import OrderRepository
from utils.phone import normalize_phone

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.post("/whatsapp")
async def send_whatsapp(
    request: SendMessageRequest,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    repository: OrderRepository = Depends(get_repository),
):
    """
    Send a WhatsApp message and log it.

    Template messages take their positional variables from the related
    order (customer name, total, order id), so orderId is required for them.
    Delivery failures surface as 502 with the Twilio error.
    """
    phone = normalize_phone(request.to)

    if request.type == MessageKind.TEMPLATE:
        if not request.template_name:
            raise ValidationError("Template messages need a template name", field="templateName")
        if not request.order_id:
            raise ValidationError("Template messages need the related order", field="orderId")
        order = await repository.get_order(request.order_id)
        result = await dispatcher.dispatch(
            phone,
            request.template_name,
            MessageKind.TEMPLATE,
            order_id=order.id,
            template_variables=messages.template_variables(order, dispatcher.settings),
        )
    else:
        if not request.message.strip():
            raise ValidationError("Message text is required", field="message")
        if request.order_id:
            await repository.get_order(request.order_id)
        result = await dispatcher.dispatch(
            phone,
            request.message,
            MessageKind.SESSION,
            order_id=request.order_id,
        )

    return success_response(data={"messageSid": result.message_sid, "messageId": result.record_id})
